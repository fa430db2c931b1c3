"""Conversion of fitted scikit-learn tree classifiers into a `ForestModel`."""

from __future__ import annotations

import numpy as np
from loguru import logger
from sklearn.ensemble import ExtraTreesClassifier, RandomForestClassifier
from sklearn.tree import DecisionTreeClassifier
from sklearn.utils.validation import check_is_fitted

from forestkit.accumulators import MeanDistributionAcc
from forestkit.forest import ForestModel
from forestkit.graph import ForestGraph
from forestkit.node_map import ContainerKind, NodeMap
from forestkit.problem_spec import ProblemSpec
from forestkit.split_tests import Float32LessEqualSplitTest, SplitTest

type SklearnTreeClassifier = RandomForestClassifier | ExtraTreesClassifier | DecisionTreeClassifier

_SKLEARN_LEAF: int = -1  # sklearn.tree._tree.TREE_LEAF


def forest_from_sklearn(
    estimator: SklearnTreeClassifier,
    *,
    container: ContainerKind = "vector",
) -> ForestModel[np.ndarray]:
    """Build a `ForestModel` equivalent to a fitted scikit-learn classifier.

    Each fitted tree becomes one tree of the forest, in `estimators_` order.
    Internal nodes get `Float32LessEqualSplitTest(feature, threshold)`, which
    rounds feature values to float32 as scikit-learn does and routes NaN
    through `tree_.missing_go_to_left` (scikit-learn sends `x <= threshold`
    and left-going missing values to the left child, which becomes branch
    0). Leaves get their class distribution. The forest uses
    `MeanDistributionAcc`, so `predict_proba` and `predict` agree with the
    estimator's own methods.

    Args:
        estimator (SklearnTreeClassifier): A fitted single-output
            `RandomForestClassifier`, `ExtraTreesClassifier` or
            `DecisionTreeClassifier`.
        container (ContainerKind): Backing of the split-test and response
            maps. Defaults to `"vector"`; imported node ids are dense.

    Returns:
        ForestModel[np.ndarray]: The converted forest.

    Raises:
        TypeError: If `estimator` is not one of the supported classifiers.
        ValueError: If `estimator` is not fitted or has several outputs.

    Examples:
        >>> from sklearn.ensemble import RandomForestClassifier  # doctest: +SKIP
        >>> rf = RandomForestClassifier(n_estimators=10).fit(X, y)  # doctest: +SKIP
        >>> model = forest_from_sklearn(rf)  # doctest: +SKIP
        >>> model.num_trees()  # doctest: +SKIP
        10
    """
    if not isinstance(estimator, RandomForestClassifier | ExtraTreesClassifier | DecisionTreeClassifier):
        raise TypeError(
            "estimator must be a RandomForestClassifier, ExtraTreesClassifier or DecisionTreeClassifier, "
            f"got {type(estimator).__name__}"
        )
    check_is_fitted(estimator)
    if estimator.n_outputs_ != 1:
        raise ValueError(f"Only single-output classifiers are supported, got n_outputs_={estimator.n_outputs_}")

    trees = [estimator] if isinstance(estimator, DecisionTreeClassifier) else list(estimator.estimators_)
    problem_spec = ProblemSpec(
        num_features=int(estimator.n_features_in_),
        distinct_classes=tuple(np.asarray(estimator.classes_).tolist()),
    )

    graph = ForestGraph()
    split_tests: NodeMap[SplitTest] = NodeMap(container)
    node_responses: NodeMap[np.ndarray] = NodeMap(container)
    for tree in trees:
        _append_tree(tree, graph, split_tests, node_responses)

    logger.info(
        "Imported scikit-learn forest",
        estimator=type(estimator).__name__,
        num_trees=graph.num_roots(),
        num_nodes=graph.num_nodes(),
    )
    return ForestModel(graph, split_tests, node_responses, problem_spec, accumulator=MeanDistributionAcc())


def _append_tree(
    tree: DecisionTreeClassifier,
    graph: ForestGraph,
    split_tests: NodeMap[SplitTest],
    node_responses: NodeMap[np.ndarray],
) -> None:
    """Copy the nodes of one fitted tree into `graph` and the node maps.

    Args:
        tree (DecisionTreeClassifier): A fitted tree.
        graph (ForestGraph): Graph that receives the tree as a new root.
        split_tests (NodeMap[SplitTest]): Receives one test per internal node.
        node_responses (NodeMap[np.ndarray]): Receives one distribution per leaf.
    """
    structure = tree.tree_
    left = structure.children_left
    right = structure.children_right
    missing_go_to_left = structure.missing_go_to_left

    root = graph.add_node()
    # (sklearn node id, forest node id)
    stack = [(0, root)]
    while stack:
        sk_node, node = stack.pop()
        if left[sk_node] == _SKLEARN_LEAF:
            node_responses.insert(node, np.array(structure.value[sk_node, 0], dtype=np.float64))
            continue
        split_tests.insert(
            node,
            Float32LessEqualSplitTest(
                int(structure.feature[sk_node]),
                float(structure.threshold[sk_node]),
                missing_go_to_left=bool(missing_go_to_left[sk_node]),
            ),
        )
        left_child = graph.add_node()
        right_child = graph.add_node()
        graph.add_arc(node, left_child)
        graph.add_arc(node, right_child)
        stack.append((int(right[sk_node]), right_child))
        stack.append((int(left[sk_node]), left_child))
