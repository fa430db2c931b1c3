"""Arena-backed storage for a multi-rooted directed binary forest."""

from __future__ import annotations

import copy
from typing import Final

_NO_NODE: Final[int] = -1


class ForestGraph:
    """A forest of binary trees whose nodes are consecutive integer ids.

    Nodes live in parallel lists indexed by id. A node becomes a child when an
    arc points at it; every node without a parent is a root, and roots are kept
    in the order in which their nodes were created.

    Examples:
        >>> graph = ForestGraph()
        >>> root, left, right = graph.add_node(), graph.add_node(), graph.add_node()
        >>> graph.add_arc(root, left)
        >>> graph.add_arc(root, right)
        >>> graph.num_roots(), graph.out_degree(root), graph.get_child(root, 1)
        (1, 2, 2)
    """

    def __init__(self) -> None:
        self._children: list[list[int]] = []
        self._parents: list[int] = []
        self._roots: list[int] = []

    def add_node(self) -> int:
        """Create a new root node.

        Returns:
            int: The id of the new node.
        """
        node = len(self._children)
        self._children.append([])
        self._parents.append(_NO_NODE)
        self._roots.append(node)
        return node

    def add_arc(self, parent: int, child: int) -> None:
        """Attach `child` as the next branch of `parent`.

        The first arc added to a node is branch 0, the second is branch 1.

        Args:
            parent (int): The parent node.
            child (int): The child node; stops being a root.

        Raises:
            ValueError: If either node does not exist, `parent` already has two
                children, `child` already has a parent, or the arc is a self-loop.
        """
        self._check_node(parent)
        self._check_node(child)
        if parent == child:
            raise ValueError(f"Cannot add a self-loop on node {parent}")
        if len(self._children[parent]) >= 2:
            raise ValueError(f"Node {parent} already has two children")
        if self._parents[child] != _NO_NODE:
            raise ValueError(f"Node {child} already has parent {self._parents[child]}")
        self._children[parent].append(child)
        self._parents[child] = parent
        self._roots.remove(child)

    def num_nodes(self) -> int:
        return len(self._children)

    def num_roots(self) -> int:
        return len(self._roots)

    def roots(self) -> tuple[int, ...]:
        """Return the roots in tree-index order."""
        return tuple(self._roots)

    def get_root(self, k: int) -> int:
        """Return the root node of tree `k`.

        Args:
            k (int): Tree index in `[0, num_roots())`.

        Returns:
            int: The root node id.
        """
        return self._roots[k]

    def out_degree(self, node: int) -> int:
        return len(self._children[node])

    def get_child(self, node: int, branch: int) -> int:
        """Return the child reached from `node` through `branch`.

        Args:
            node (int): An internal node.
            branch (int): 0 or 1.

        Returns:
            int: The child node id.
        """
        return self._children[node][branch]

    def get_parent(self, node: int) -> int | None:
        """Return the parent of `node`, or None for a root."""
        parent = self._parents[node]
        return None if parent == _NO_NODE else parent

    def merge(self, other: ForestGraph) -> None:
        """Append all nodes and arcs of `other` to this graph.

        Node ids of `other` are shifted by this graph's node count prior to the
        merge, and the roots of `other` follow this graph's roots in their
        original order.

        Args:
            other (ForestGraph): The graph to append. It is not modified.
        """
        offset = self.num_nodes()
        # Snapshot first so that merging a graph into itself is well defined.
        children = [list(c) for c in other._children]
        parents = list(other._parents)
        roots = list(other._roots)
        self._children.extend([c + offset for c in kids] for kids in children)
        self._parents.extend(_NO_NODE if p == _NO_NODE else p + offset for p in parents)
        self._roots.extend(r + offset for r in roots)

    def copy(self) -> ForestGraph:
        return copy.deepcopy(self)

    def _check_node(self, node: int) -> None:
        if not 0 <= node < len(self._children):
            raise ValueError(f"Node {node} does not exist (graph has {len(self._children)} nodes)")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(num_nodes={self.num_nodes()}, num_roots={self.num_roots()})"
