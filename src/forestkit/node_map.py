"""Associative storage keyed by forest node id."""

from __future__ import annotations

import copy
import numbers
from collections.abc import Iterator
from typing import Literal

from forestkit.exceptions import DuplicateNodeError, NodeNotFoundError

type ContainerKind = Literal["map", "vector"]


class _Unset:
    """Marker for empty slots in a vector-backed map."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<unset>"


_UNSET = _Unset()


class NodeMap[V]:
    """Maps forest nodes to values such as split tests or leaf responses.

    Two backings share one interface: `"map"` stores values in a dict and
    suits sparse key sets (split tests of a forest only cover internal nodes),
    `"vector"` stores them in a list indexed by node id and suits dense key
    sets. Iteration always yields `(node, value)` pairs in ascending node
    order.

    Attributes:
        container (ContainerKind): The backing in use.

    Examples:
        >>> responses = NodeMap[int]()
        >>> responses.insert(3, 0)
        >>> responses.at(3)
        0
        >>> list(responses)
        [(3, 0)]
    """

    def __init__(self, container: ContainerKind = "map") -> None:
        """Initialize an empty node map.

        Args:
            container (ContainerKind): `"map"` (default) or `"vector"`.

        Raises:
            ValueError: If `container` is not a known backing.
        """
        if container not in ("map", "vector"):
            raise ValueError(f"container must be 'map' or 'vector', got {container!r}")
        self.container: ContainerKind = container
        self._dict: dict[int, V] = {}
        self._slots: list[V | _Unset] = []
        self._size = 0

    def insert(self, node: int, value: V, *, overwrite: bool = False) -> None:
        """Store `value` for `node`.

        Args:
            node (int): Non-negative node id.
            value (V): The value to store.
            overwrite (bool): Replace an existing value instead of failing.

        Raises:
            ValueError: If `node` is negative.
            DuplicateNodeError: If `node` already holds a value and
                `overwrite` is False.
        """
        node = int(node)
        if node < 0:
            raise ValueError(f"Node ids must be non-negative, got {node}")
        if node in self and not overwrite:
            raise DuplicateNodeError(node)
        if self.container == "map":
            if node not in self._dict:
                self._size += 1
            self._dict[node] = value
            return
        if node >= len(self._slots):
            self._slots.extend([_UNSET] * (node + 1 - len(self._slots)))
        if self._slots[node] is _UNSET:
            self._size += 1
        self._slots[node] = value

    def at(self, node: int) -> V:
        """Return the value stored for `node`.

        Args:
            node (int): The node id to look up.

        Returns:
            V: The stored value.

        Raises:
            NodeNotFoundError: If no value is stored for `node`.
        """
        if self.container == "map":
            try:
                return self._dict[node]
            except KeyError:
                raise NodeNotFoundError(node) from None
        if 0 <= node < len(self._slots):
            value = self._slots[node]
            if not isinstance(value, _Unset):
                return value
        raise NodeNotFoundError(node)

    def __contains__(self, node: object) -> bool:
        if not isinstance(node, numbers.Integral):
            return False
        if self.container == "map":
            return node in self._dict
        return 0 <= node < len(self._slots) and self._slots[node] is not _UNSET

    def __iter__(self) -> Iterator[tuple[int, V]]:
        if self.container == "map":
            for node in sorted(self._dict):
                yield node, self._dict[node]
            return
        for node, value in enumerate(self._slots):
            if not isinstance(value, _Unset):
                yield node, value

    def __len__(self) -> int:
        return self._size

    def nodes(self) -> list[int]:
        """Return the stored node ids in ascending order."""
        return [node for node, _ in self]

    def copy(self) -> NodeMap[V]:
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(container={self.container!r}, size={len(self)})"
