"""Shared forest fixtures for the ForestModel tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np
import pytest

from forestkit import ForestGraph, ForestModel, LessEqualSplitTest, NodeMap, ProblemSpec, SplitTest
from forestkit.node_map import ContainerKind

EXAMPLE_FEATURES = np.array(
    [
        [0.2, 0.2],
        [0.4, 0.2],
        [0.2, 0.7],
        [0.4, 0.7],
        [0.7, 0.2],
        [0.8, 0.2],
        [0.7, 0.8],
        [0.8, 0.8],
    ]
)
EXAMPLE_LABELS = [0, 0, 1, 1, -7, -7, 3, 3]
EXAMPLE_LEAF_IDS = [3, 3, 4, 4, 5, 5, 6, 6]
EXAMPLE_SPEC = ProblemSpec(num_features=2, distinct_classes=(0, 1, -7, 3))


def build_example_forest(container: ContainerKind = "map") -> ForestModel[int]:
    """Build the single seven-node tree used throughout the query tests.

    The root splits on feature 0 at 0.6; its children split on feature 1 at
    0.25 (left) and 0.75 (right). Leaves 3..6 respond with class indices 0..3.

    Args:
        container (ContainerKind): Backing for both node maps.

    Returns:
        ForestModel[int]: The assembled forest.
    """
    graph = ForestGraph()
    n0, n1, n2, n3, n4, n5, n6 = (graph.add_node() for _ in range(7))
    graph.add_arc(n0, n1)
    graph.add_arc(n0, n2)
    graph.add_arc(n1, n3)
    graph.add_arc(n1, n4)
    graph.add_arc(n2, n5)
    graph.add_arc(n2, n6)

    split_tests: NodeMap[SplitTest] = NodeMap(container)
    split_tests.insert(n0, LessEqualSplitTest(0, 0.6))
    split_tests.insert(n1, LessEqualSplitTest(1, 0.25))
    split_tests.insert(n2, LessEqualSplitTest(1, 0.75))

    leaf_responses: NodeMap[int] = NodeMap(container)
    leaf_responses.insert(n3, 0)
    leaf_responses.insert(n4, 1)
    leaf_responses.insert(n5, 2)
    leaf_responses.insert(n6, 3)
    return ForestModel(graph, split_tests, leaf_responses, EXAMPLE_SPEC)


def build_random_forest(
    *,
    n_trees: int,
    max_depth: int,
    problem_spec: ProblemSpec,
    seed: int,
) -> ForestModel[int]:
    """Build a forest of random trees with class-index leaf responses.

    Each tree is grown recursively; a node becomes a leaf at `max_depth` or
    with probability 0.2 below it, so trees are unbalanced.

    Args:
        n_trees (int): Number of trees.
        max_depth (int): Maximum depth of any leaf.
        problem_spec (ProblemSpec): Spec whose feature and class counts bound
            the random split features and leaf classes.
        seed (int): Seed for `np.random.default_rng`.

    Returns:
        ForestModel[int]: The random forest.
    """
    rng = np.random.default_rng(seed)
    graph = ForestGraph()
    split_tests: NodeMap[SplitTest] = NodeMap()
    leaf_responses: NodeMap[int] = NodeMap()

    def grow(node: int, depth: int) -> None:
        if depth == max_depth or (depth > 0 and rng.random() < 0.2):
            leaf_responses.insert(node, int(rng.integers(problem_spec.num_classes)))
            return
        feature = int(rng.integers(problem_spec.num_features))
        split_tests.insert(node, LessEqualSplitTest(feature, float(rng.random())))
        left, right = graph.add_node(), graph.add_node()
        graph.add_arc(node, left)
        graph.add_arc(node, right)
        grow(left, depth + 1)
        grow(right, depth + 1)

    for _ in range(n_trees):
        grow(graph.add_node(), 0)
    return ForestModel(graph, split_tests, leaf_responses, problem_spec)


class RecordingAcc:
    """Accumulator that records every call and votes like `ArgMaxAcc`."""

    def __init__(self) -> None:
        self.calls: list[list[int]] = []

    def __call__(self, responses: Sequence[int], out: np.ndarray) -> None:
        self.calls.append(list(responses))
        out[:] = 0.0
        for class_index in responses:
            out[class_index] += 1.0


@pytest.fixture
def example_forest() -> ForestModel[int]:
    """Return the seven-node example forest with dict-backed node maps."""
    return build_example_forest()


@pytest.fixture
def random_forest_factory() -> Callable[..., ForestModel[int]]:
    """Return `build_random_forest` so tests can request differently seeded forests."""
    return build_random_forest


@pytest.fixture
def random_features() -> np.ndarray:
    """Return 200 uniformly random instances with four features."""
    return np.random.default_rng(1234).random((200, 4))


@pytest.fixture
def example_forest_factory() -> Callable[..., ForestModel[int]]:
    """Return `build_example_forest` so tests can choose the node-map backing."""
    return build_example_forest


@pytest.fixture
def example_features() -> np.ndarray:
    """Return the eight example instances, one per quadrant half."""
    return EXAMPLE_FEATURES.copy()


@pytest.fixture
def example_labels() -> list[int]:
    """Return the labels the example forest predicts for `example_features`."""
    return list(EXAMPLE_LABELS)


@pytest.fixture
def example_leaf_ids() -> list[int]:
    """Return the leaf ids the example instances reach."""
    return list(EXAMPLE_LEAF_IDS)


@pytest.fixture
def recording_acc() -> RecordingAcc:
    """Return a fresh accumulator that records its calls."""
    return RecordingAcc()
