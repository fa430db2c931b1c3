"""The forest model: leaf traversal, probability aggregation, prediction and merging."""

from __future__ import annotations

import numbers
from collections.abc import Iterable
from typing import Final, NoReturn

import numpy as np
from loguru import logger

from forestkit.accumulators import Accumulator, ArgMaxAcc
from forestkit.exceptions import (
    FeatureWidthMismatchError,
    ForestContractError,
    IncompatibleProblemSpecError,
    MalformedForestError,
    OutputWidthMismatchError,
    ShapeMismatchError,
    TreeIndexOutOfRangeError,
)
from forestkit.features import FeatureInput, as_feature_matrix
from forestkit.graph import ForestGraph
from forestkit.logging import QUERY_LEVEL
from forestkit.node_map import NodeMap
from forestkit.parallel import AUTO_THREADS, parallel_block_sum, resolve_n_threads
from forestkit.problem_spec import ProblemSpec
from forestkit.split_tests import SplitTest

UNSET_LEAF_ID: Final[int] = -1
_QUERY_MSG: Final[str] = "Forest query: {operation}"


class ForestModel[R]:
    """An ensemble of binary decision trees sharing one node-id space.

    The model owns a `ForestGraph`, a `NodeMap` of split tests (one per
    internal node), a `NodeMap` of leaf responses (one per leaf) and a
    `ProblemSpec`. Queries only read these structures, so a single model may
    be queried from many threads at once; `merge` mutates the model and must
    not run concurrently with a query.

    Query methods follow a fill-the-output convention: the caller allocates
    the output array and the method returns the average number of split
    comparisons per instance, a cost diagnostic.

    Examples:
        >>> from forestkit import ForestGraph, LessEqualSplitTest, NodeMap, ProblemSpec
        >>> graph = ForestGraph()
        >>> root, left, right = graph.add_node(), graph.add_node(), graph.add_node()
        >>> graph.add_arc(root, left)
        >>> graph.add_arc(root, right)
        >>> tests = NodeMap[SplitTest]()
        >>> tests.insert(root, LessEqualSplitTest(0, 0.5))
        >>> responses = NodeMap[int]()
        >>> responses.insert(left, 0)
        >>> responses.insert(right, 1)
        >>> model = ForestModel(graph, tests, responses, ProblemSpec(num_features=1, distinct_classes=("a", "b")))
        >>> model.num_nodes(), model.num_trees(), model.num_classes()
        (3, 1, 2)
    """

    def __init__(
        self,
        graph: ForestGraph | None = None,
        split_tests: NodeMap[SplitTest] | None = None,
        node_responses: NodeMap[R] | None = None,
        problem_spec: ProblemSpec | None = None,
        *,
        accumulator: Accumulator[R] | None = None,
    ) -> None:
        """Initialize a forest from pre-built components.

        With no arguments, the forest is empty and only useful as a `merge`
        target. Components are copied; nothing is validated here (see
        `check_structure`).

        Args:
            graph (ForestGraph | None): The tree structure.
            split_tests (NodeMap[SplitTest] | None): A split test per internal node.
            node_responses (NodeMap[R] | None): A response per leaf node.
            problem_spec (ProblemSpec | None): Feature and class description.
            accumulator (Accumulator[R] | None): Combines leaf responses into
                probabilities. Defaults to `ArgMaxAcc`, which expects each leaf
                response to be a class index.
        """
        self._graph = graph.copy() if graph is not None else ForestGraph()
        self._split_tests: NodeMap[SplitTest] = split_tests.copy() if split_tests is not None else NodeMap()
        self._node_responses: NodeMap[R] = node_responses.copy() if node_responses is not None else NodeMap()
        self._problem_spec = problem_spec if problem_spec is not None else ProblemSpec()
        self._accumulator: Accumulator[R] = accumulator if accumulator is not None else ArgMaxAcc()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def graph(self) -> ForestGraph:
        return self._graph

    @property
    def split_tests(self) -> NodeMap[SplitTest]:
        return self._split_tests

    @property
    def node_responses(self) -> NodeMap[R]:
        return self._node_responses

    @property
    def problem_spec(self) -> ProblemSpec:
        return self._problem_spec

    @property
    def accumulator(self) -> Accumulator[R]:
        return self._accumulator

    def num_nodes(self) -> int:
        return self._graph.num_nodes()

    def num_trees(self) -> int:
        return self._graph.num_roots()

    def num_classes(self) -> int:
        return self._problem_spec.num_classes

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def merge(self, other: ForestModel[R]) -> None:
        """Grow this forest by appending all trees of `other`.

        The nodes of `other` are renumbered by adding this forest's prior node
        count, and its trees follow this forest's trees in their original
        order. An empty forest that still carries the default problem spec
        adopts the problem spec of `other`.

        Args:
            other (ForestModel[R]): The forest to append. It is not modified.

        Raises:
            IncompatibleProblemSpecError: If the problem specs differ. The
                forest is left unchanged.
        """
        if self._problem_spec != other._problem_spec:
            if self.num_nodes() == 0 and self._problem_spec.is_default():
                self._problem_spec = other._problem_spec
            else:
                _fail(IncompatibleProblemSpecError())

        offset = self.num_nodes()
        # Snapshot the maps of `other` so that a forest can be merged with itself.
        other_split_tests = list(other._split_tests)
        other_node_responses = list(other._node_responses)
        self._graph.merge(other._graph)
        for node, split_test in other_split_tests:
            self._split_tests.insert(node + offset, split_test)
        for node, response in other_node_responses:
            self._node_responses.insert(node + offset, response)
        logger.info(
            "Forests merged",
            offset=offset,
            num_nodes=self.num_nodes(),
            num_trees=self.num_trees(),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def leaf_ids(
        self,
        features: FeatureInput,
        ids: np.ndarray,
        n_threads: int = AUTO_THREADS,
        tree_indices: Iterable[int] = (),
    ) -> float:
        """Compute, for every instance and tree, the id of the leaf the instance reaches.

        Args:
            features (FeatureInput): Matrix of shape `(n_instances, num_features)`.
            ids (np.ndarray): Integer output of shape `(n_instances, num_trees)`.
                Cells of trees not listed in `tree_indices` are set to
                `UNSET_LEAF_ID`.
            n_threads (int): Worker threads; `-1` uses all available CPUs.
            tree_indices (Iterable[int]): Trees to traverse. Empty means all trees.

        Returns:
            float: Average number of split comparisons per instance.

        Raises:
            ShapeMismatchError: If `features` and `ids` have different row counts.
            FeatureWidthMismatchError: If the feature width differs from the problem spec.
            OutputWidthMismatchError: If `ids` does not have `num_trees` columns.
            TreeIndexOutOfRangeError: If a tree index is not in `[0, num_trees)`.
        """
        operation = "leaf_ids"
        matrix = as_feature_matrix(features, operation=operation)
        _check_output_ndim(ids, 2, "ids", operation)
        _check_instance_count(matrix, ids, "Shape mismatch between features and leaf ids", operation)
        self._check_feature_width(matrix, operation)
        if ids.shape[1] != self.num_trees():
            _fail(
                OutputWidthMismatchError(
                    "Leaf array has wrong shape",
                    expected=self.num_trees(),
                    actual=ids.shape[1],
                    operation=operation,
                )
            )
        active_trees = self._resolve_tree_indices(tree_indices, operation)
        logger.log(
            QUERY_LEVEL,
            _QUERY_MSG.format(operation=operation),
            n_instances=matrix.shape[0],
            n_trees=len(active_trees),
        )
        return self._compute_leaf_ids(matrix, ids, n_threads, active_trees)

    def predict_proba(
        self,
        features: FeatureInput,
        probs: np.ndarray,
        n_threads: int = AUTO_THREADS,
        tree_indices: Iterable[int] = (),
    ) -> float:
        """Compute class probabilities by combining the leaf responses of the selected trees.

        Args:
            features (FeatureInput): Matrix of shape `(n_instances, num_features)`.
            probs (np.ndarray): Float output of shape `(n_instances, num_classes)`.
            n_threads (int): Worker threads; `-1` uses all available CPUs.
            tree_indices (Iterable[int]): Trees to use. Empty means all trees;
                order and duplicates are irrelevant.

        Returns:
            float: Average number of split comparisons per instance.

        Raises:
            ShapeMismatchError: If `features` and `probs` have different row counts.
            FeatureWidthMismatchError: If the feature width differs from the problem spec.
            OutputWidthMismatchError: If `probs` does not have `num_classes` columns.
            TreeIndexOutOfRangeError: If a tree index is not in `[0, num_trees)`.
        """
        operation = "predict_proba"
        matrix = as_feature_matrix(features, operation=operation)
        self._check_proba_args(matrix, probs, operation)
        active_trees = self._resolve_tree_indices(tree_indices, operation)
        logger.log(
            QUERY_LEVEL,
            _QUERY_MSG.format(operation=operation),
            n_instances=matrix.shape[0],
            n_trees=len(active_trees),
        )
        return self._compute_proba(matrix, probs, n_threads, active_trees)

    def predict(
        self,
        features: FeatureInput,
        labels: np.ndarray,
        n_threads: int = AUTO_THREADS,
        tree_indices: Iterable[int] = (),
    ) -> float:
        """Predict a class label for every instance.

        The label is `distinct_classes[c]` for the first class index `c` of
        maximal probability, so ties go to the lowest class index.

        Args:
            features (FeatureInput): Matrix of shape `(n_instances, num_features)`.
            labels (np.ndarray): Output of shape `(n_instances,)` whose dtype can
                hold the class labels.
            n_threads (int): Worker threads; `-1` uses all available CPUs.
            tree_indices (Iterable[int]): Trees to use. Empty means all trees.

        Returns:
            float: Average number of split comparisons per instance.

        Raises:
            ShapeMismatchError: If `features` and `labels` have different row counts.
            FeatureWidthMismatchError: If the feature width differs from the problem spec.
            TreeIndexOutOfRangeError: If a tree index is not in `[0, num_trees)`.
            ForestContractError: If instances are given but the problem spec has no classes.
            TypeError: If `labels` cannot hold the class labels or a tree index is not an integer.
        """
        operation = "predict"
        matrix = as_feature_matrix(features, operation=operation)
        _check_output_ndim(labels, 1, "labels", operation)
        _check_instance_count(matrix, labels, "Shape mismatch between features and labels", operation)
        self._check_feature_width(matrix, operation)
        self._check_label_dtype(labels, operation)
        active_trees = self._resolve_tree_indices(tree_indices, operation)
        if matrix.shape[0] > 0 and self.num_classes() == 0:
            _fail(ForestContractError("Cannot predict labels without any classes", operation=operation))
        logger.log(
            QUERY_LEVEL,
            _QUERY_MSG.format(operation=operation),
            n_instances=matrix.shape[0],
            n_trees=len(active_trees),
        )

        probs = np.zeros((matrix.shape[0], self.num_classes()), dtype=np.float64)
        average_split_counts = self._compute_proba(matrix, probs, n_threads, active_trees)
        if matrix.shape[0] > 0:
            # np.argmax returns the first maximum, so ties go to the lowest class index.
            for i, class_index in enumerate(np.argmax(probs, axis=1)):
                labels[i] = self._problem_spec.label_of(int(class_index))
        return average_split_counts

    # ------------------------------------------------------------------
    # Structure check
    # ------------------------------------------------------------------

    def check_structure(self) -> None:
        """Verify that every tree is a well-formed binary tree with complete annotations.

        Every node reachable from a root must be internal (two children and a
        split test) or a leaf (no children and a response), no node may be
        reachable twice, and neither map may hold values for nodes of the
        wrong kind.

        Raises:
            MalformedForestError: At the first offending node.
        """
        visited: set[int] = set()
        internal: set[int] = set()
        leaves: set[int] = set()
        for root in self._graph.roots():
            stack = [root]
            while stack:
                node = stack.pop()
                if node in visited:
                    _fail(MalformedForestError("reachable more than once", node=node))
                visited.add(node)
                degree = self._graph.out_degree(node)
                if degree == 0:
                    if node not in self._node_responses:
                        _fail(MalformedForestError("leaf has no response", node=node))
                    leaves.add(node)
                elif degree == 2:
                    if node not in self._split_tests:
                        _fail(MalformedForestError("internal node has no split test", node=node))
                    internal.add(node)
                    stack.extend((self._graph.get_child(node, 1), self._graph.get_child(node, 0)))
                else:
                    _fail(MalformedForestError(f"out-degree {degree}, expected 0 or 2", node=node))
        for node in self._split_tests.nodes():
            if node not in internal:
                _fail(MalformedForestError("split test attached to a non-internal node", node=node))
        for node in self._node_responses.nodes():
            if node not in leaves:
                _fail(MalformedForestError("response attached to a non-leaf node", node=node))
        logger.debug("Forest structure verified", num_internal=len(internal), num_leaves=len(leaves))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_feature_width(self, matrix: np.ndarray, operation: str) -> None:
        if matrix.shape[1] != self._problem_spec.num_features:
            _fail(
                FeatureWidthMismatchError(
                    "Number of features in prediction differs from training",
                    expected=self._problem_spec.num_features,
                    actual=matrix.shape[1],
                    operation=operation,
                )
            )

    def _check_proba_args(self, matrix: np.ndarray, probs: np.ndarray, operation: str) -> None:
        _check_output_ndim(probs, 2, "probs", operation)
        _check_instance_count(matrix, probs, "Shape mismatch between features and probabilities", operation)
        self._check_feature_width(matrix, operation)
        if probs.shape[1] != self.num_classes():
            _fail(
                OutputWidthMismatchError(
                    "Number of labels in probabilities differs from training",
                    expected=self.num_classes(),
                    actual=probs.shape[1],
                    operation=operation,
                )
            )
        if not np.issubdtype(probs.dtype, np.floating):
            raise TypeError(f"{operation}(): probs must have a floating dtype, got {probs.dtype}")

    def _check_label_dtype(self, labels: np.ndarray, operation: str) -> None:
        if self.num_classes() == 0:
            return
        class_dtype = np.asarray(self._problem_spec.distinct_classes).dtype
        if not np.can_cast(class_dtype, labels.dtype, casting="same_kind"):
            raise TypeError(
                f"{operation}(): labels of dtype {labels.dtype} cannot hold class labels of dtype {class_dtype}"
            )

    def _resolve_tree_indices(self, tree_indices: Iterable[int], operation: str) -> list[int]:
        """Return the sorted, de-duplicated active tree indices; empty input selects all trees."""
        requested: set[int] = set()
        for k in tree_indices:
            if not isinstance(k, numbers.Integral):
                raise TypeError(f"{operation}(): tree indices must be integers, got {k!r}")
            requested.add(int(k))
        invalid = [k for k in requested if not 0 <= k < self.num_trees()]
        if invalid:
            _fail(TreeIndexOutOfRangeError(invalid_indices=invalid, num_trees=self.num_trees(), operation=operation))
        if not requested:
            return list(range(self.num_trees()))
        return sorted(requested)

    def _compute_leaf_ids(
        self,
        matrix: np.ndarray,
        ids: np.ndarray,
        n_threads: int,
        active_trees: list[int],
    ) -> float:
        num_instances = matrix.shape[0]
        workers = resolve_n_threads(n_threads)
        roots = [self._graph.get_root(k) for k in active_trees]
        ids.fill(UNSET_LEAF_ID)

        def traverse_block(start: int, stop: int) -> float:
            split_comparisons = 0
            for i in range(start, stop):
                row = matrix[i]
                for k, root in zip(active_trees, roots, strict=True):
                    node, comparisons = self._descend(root, row)
                    ids[i, k] = node
                    split_comparisons += comparisons
            return float(split_comparisons)

        total = parallel_block_sum(traverse_block, num_instances, workers)
        average = total / num_instances if num_instances > 0 else 0.0
        logger.debug("Leaf ids computed", n_threads=workers, average_split_comparisons=average)
        return average

    def _descend(self, root: int, row: np.ndarray) -> tuple[int, int]:
        """Follow split tests from `root` to a leaf; return the leaf and the number of tests applied."""
        graph = self._graph
        node = root
        comparisons = 0
        while graph.out_degree(node) > 0:
            branch = self._split_tests.at(node)(row)
            node = graph.get_child(node, branch)
            comparisons += 1
        return node, comparisons

    def _compute_proba(
        self,
        matrix: np.ndarray,
        probs: np.ndarray,
        n_threads: int,
        active_trees: list[int],
    ) -> float:
        ids = np.full((matrix.shape[0], self.num_trees()), UNSET_LEAF_ID, dtype=np.int64)
        average_split_counts = self._compute_leaf_ids(matrix, ids, n_threads, active_trees)
        for i in range(matrix.shape[0]):
            responses = [self._node_responses.at(int(ids[i, k])) for k in active_trees]
            self._accumulator(responses, probs[i])
        return average_split_counts

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(num_nodes={self.num_nodes()}, num_trees={self.num_trees()}, "
            f"num_classes={self.num_classes()}, accumulator={self._accumulator!r})"
        )


# ---------------------------------------------------------------------------
# Private helpers -- precondition checks
# ---------------------------------------------------------------------------


def _fail(error: ForestContractError) -> NoReturn:
    """Log a contract violation and raise it."""
    logger.warning(
        "Precondition violated",
        operation=error.operation,
        error_type=type(error).__name__,
        reason=str(error),
    )
    raise error


def _check_output_ndim(out: np.ndarray, ndim: int, name: str, operation: str) -> None:
    if not isinstance(out, np.ndarray):
        raise TypeError(f"{operation}(): {name} must be a numpy array, got {type(out).__name__}")
    if out.ndim != ndim:
        _fail(
            ShapeMismatchError(
                f"{name} must be {ndim}-dimensional; number of dimensions differs",
                expected=ndim,
                actual=out.ndim,
                operation=operation,
            )
        )


def _check_instance_count(matrix: np.ndarray, out: np.ndarray, message: str, operation: str) -> None:
    if matrix.shape[0] != out.shape[0]:
        _fail(ShapeMismatchError(message, expected=matrix.shape[0], actual=out.shape[0], operation=operation))
