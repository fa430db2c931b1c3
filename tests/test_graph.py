"""Tests for ForestGraph."""

from __future__ import annotations

import pytest
from pytest_check import check

from forestkit import ForestGraph


def _two_stumps() -> ForestGraph:
    """Return a graph with two one-split trees: 0 -> (1, 2) and 3 -> (4, 5)."""
    graph = ForestGraph()
    for _ in range(2):
        root, left, right = graph.add_node(), graph.add_node(), graph.add_node()
        graph.add_arc(root, left)
        graph.add_arc(root, right)
    return graph


class TestConstruction:
    """Node and arc creation."""

    def test_new_nodes_are_consecutive_roots(self) -> None:
        """add_node returns consecutive ids and every new node starts as a root."""
        # Arrange
        graph = ForestGraph()

        # Act
        nodes = [graph.add_node() for _ in range(3)]

        # Assert
        with check:
            assert nodes == [0, 1, 2]
        with check:
            assert graph.roots() == (0, 1, 2)

    def test_arcs_define_branches_and_parents(self) -> None:
        """The first arc of a node is branch 0, the second branch 1; children stop being roots."""
        # Arrange / Act
        graph = _two_stumps()

        # Assert
        with check:
            assert graph.num_nodes() == 6
        with check:
            assert graph.roots() == (0, 3)
        with check:
            assert (graph.get_child(3, 0), graph.get_child(3, 1)) == (4, 5)
        with check:
            assert graph.get_parent(5) == 3
        with check:
            assert graph.get_parent(3) is None
        with check:
            assert graph.out_degree(4) == 0

    @pytest.mark.parametrize(
        ("arcs", "bad_arc", "match"),
        [
            ([], (0, 0), "self-loop"),
            ([(0, 1), (0, 2)], (0, 3), "already has two children"),
            ([(0, 1)], (2, 1), "already has parent"),
            ([], (0, 9), "does not exist"),
            ([], (-1, 0), "does not exist"),
        ],
        ids=["self-loop", "third-child", "second-parent", "missing-child", "negative-parent"],
    )
    def test_invalid_arcs_raise(self, arcs: list[tuple[int, int]], bad_arc: tuple[int, int], match: str) -> None:
        """Arcs that would break the binary-forest shape are rejected.

        Args:
            arcs (list[tuple[int, int]]): Valid arcs added first.
            bad_arc (tuple[int, int]): The arc expected to fail.
            match (str): Expected fragment of the error message.
        """
        # Arrange
        graph = ForestGraph()
        for _ in range(4):
            graph.add_node()
        for parent, child in arcs:
            graph.add_arc(parent, child)

        # Act / Assert
        with pytest.raises(ValueError, match=match):
            graph.add_arc(*bad_arc)


class TestMerge:
    """Appending one graph to another."""

    def test_merge_offsets_ids_and_appends_roots(self) -> None:
        """Nodes of the other graph are shifted by the prior node count; its roots follow ours."""
        # Arrange
        graph = _two_stumps()
        other = ForestGraph()
        root, child_a, child_b = other.add_node(), other.add_node(), other.add_node()
        other.add_arc(root, child_b)
        other.add_arc(root, child_a)

        # Act
        graph.merge(other)

        # Assert
        with check:
            assert graph.num_nodes() == 9
        with check:
            assert graph.roots() == (0, 3, 6)
        with check:
            assert (graph.get_child(6, 0), graph.get_child(6, 1)) == (8, 7)
        with check:
            assert graph.get_parent(7) == 6
        with check:
            assert other.num_nodes() == 3

    def test_merge_with_itself(self) -> None:
        """Merging a graph into itself duplicates every tree."""
        # Arrange
        graph = _two_stumps()

        # Act
        graph.merge(graph)

        # Assert
        with check:
            assert graph.roots() == (0, 3, 6, 9)
        with check:
            assert graph.get_child(9, 1) == 11

    def test_copy_is_independent(self) -> None:
        """A copy does not see nodes added to the original."""
        # Arrange
        graph = _two_stumps()
        duplicate = graph.copy()

        # Act
        graph.add_node()

        # Assert
        with check:
            assert duplicate.num_nodes() == 6
        with check:
            assert duplicate.num_roots() == 2
