"""Tests for ForestModel.check_structure."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from forestkit import ForestGraph, ForestModel, LessEqualSplitTest, NodeMap, ProblemSpec, SplitTest
from forestkit.exceptions import MalformedForestError

_SPEC = ProblemSpec(num_features=2, distinct_classes=(0, 1))


def _stump(*, with_test: bool = True, responses: tuple[int, ...] = (1, 2)) -> ForestModel[int]:
    """Return a one-split forest whose annotations can be left incomplete."""
    graph = ForestGraph()
    root, left, right = graph.add_node(), graph.add_node(), graph.add_node()
    graph.add_arc(root, left)
    graph.add_arc(root, right)
    split_tests: NodeMap[SplitTest] = NodeMap()
    if with_test:
        split_tests.insert(root, LessEqualSplitTest(0, 0.5))
    node_responses: NodeMap[int] = NodeMap()
    for node in responses:
        node_responses.insert(node, node - 1)
    return ForestModel(graph, split_tests, node_responses, _SPEC)


class TestCheckStructure:
    """check_structure validates shapes and annotations of every tree."""

    def test_well_formed_forest_passes(self, example_forest: ForestModel[int]) -> None:
        """The example forest is well formed."""
        # Arrange / Act / Assert
        example_forest.check_structure()

    def test_random_forest_passes(self, random_forest_factory: Callable[..., ForestModel[int]]) -> None:
        """Randomly grown forests are well formed."""
        # Arrange
        forest = random_forest_factory(
            n_trees=6,
            max_depth=5,
            problem_spec=ProblemSpec(num_features=3, distinct_classes=(0, 1)),
            seed=0,
        )

        # Act / Assert
        forest.check_structure()

    def test_missing_split_test_raises(self) -> None:
        """An internal node without a split test is reported."""
        # Arrange
        forest = _stump(with_test=False)

        # Act / Assert
        with pytest.raises(MalformedForestError, match="no split test") as exc_info:
            forest.check_structure()
        assert exc_info.value.node == 0

    def test_missing_leaf_response_raises(self) -> None:
        """A leaf without a response is reported."""
        # Arrange
        forest = _stump(responses=(1,))

        # Act / Assert
        with pytest.raises(MalformedForestError, match="leaf has no response") as exc_info:
            forest.check_structure()
        assert exc_info.value.node == 2

    def test_response_on_internal_node_raises(self) -> None:
        """Responses are only allowed on leaves."""
        # Arrange
        forest = _stump(responses=(1, 2))
        forest.node_responses.insert(0, 0)

        # Act / Assert
        with pytest.raises(MalformedForestError, match="non-leaf"):
            forest.check_structure()

    def test_split_test_on_leaf_raises(self) -> None:
        """Split tests are only allowed on internal nodes."""
        # Arrange
        forest = _stump()
        forest.split_tests.insert(1, LessEqualSplitTest(1, 0.3))

        # Act / Assert
        with pytest.raises(MalformedForestError, match="non-internal"):
            forest.check_structure()

    def test_out_degree_one_raises(self) -> None:
        """A node with a single child is neither internal nor a leaf."""
        # Arrange
        forest = ForestModel(problem_spec=_SPEC)
        root, child = forest.graph.add_node(), forest.graph.add_node()
        forest.graph.add_arc(root, child)
        forest.node_responses.insert(child, 0)

        # Act / Assert
        with pytest.raises(MalformedForestError, match="out-degree 1"):
            forest.check_structure()
