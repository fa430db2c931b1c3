"""Custom exceptions for forest inference.

This module defines the contract violations raised by `ForestModel` queries and
merges, and the lookup errors raised by node maps:

Contract violations (subclass ForestContractError, itself a ValueError):
- ShapeMismatchError: Raised when features and outputs disagree on the number of instances.
- FeatureWidthMismatchError: Raised when the feature column count differs from the problem spec.
- OutputWidthMismatchError: Raised when a probability or leaf-id matrix has the wrong column count.
- TreeIndexOutOfRangeError: Raised when a requested tree index does not exist.
- IncompatibleProblemSpecError: Raised when merging forests with different problem specs.
- MalformedForestError: Raised when a structure check finds an invalid node.

Node map errors:
- NodeNotFoundError (subclass KeyError): Raised when a node has no stored value.
- DuplicateNodeError (subclass ValueError): Raised when a node is inserted twice.
"""

from __future__ import annotations

from collections.abc import Sequence


class ForestContractError(ValueError):
    """Base exception for all forest precondition violations.

    Catching this exception will catch every error raised by the argument
    checks of `ForestModel.leaf_ids`, `predict_proba`, `predict` and `merge`.

    Attributes:
        operation (str | None): Name of the operation whose precondition failed,
            e.g. `"predict_proba"`.
    """

    operation: str | None

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        """Initialize ForestContractError.

        Args:
            message (str): Description of the violated precondition.
            operation (str | None): Name of the failing operation.
        """
        prefix = f"{operation}(): " if operation else ""
        super().__init__(f"{prefix}{message}")
        self.operation = operation

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including message and operation.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, operation={self.operation!r})"


class _CountMismatchError(ForestContractError):
    """Shared base for errors that compare an expected and an actual count."""

    expected: int
    actual: int

    def __init__(self, message: str, *, expected: int, actual: int, operation: str | None = None) -> None:
        super().__init__(f"{message} (expected {expected}, got {actual})", operation=operation)
        self.expected = expected
        self.actual = actual


class ShapeMismatchError(_CountMismatchError):
    """Raised when features and an output array disagree on the number of instances.

    Attributes:
        expected (int): Number of feature rows.
        actual (int): Number of rows in the output array.

    Examples:
        >>> err = ShapeMismatchError("Shape mismatch between features and labels", expected=8, actual=7)
        >>> err.expected, err.actual
        (8, 7)
    """


class FeatureWidthMismatchError(_CountMismatchError):
    """Raised when the feature matrix has a different column count than the problem spec.

    Attributes:
        expected (int): `ProblemSpec.num_features`.
        actual (int): Number of feature columns supplied.
    """


class OutputWidthMismatchError(_CountMismatchError):
    """Raised when a probability or leaf-id matrix has the wrong number of columns.

    Attributes:
        expected (int): `num_classes` for probabilities, `num_trees` for leaf ids.
        actual (int): Number of columns in the supplied output array.
    """


class TreeIndexOutOfRangeError(ForestContractError):
    """Raised when a requested tree index is outside `[0, num_trees)`.

    Attributes:
        invalid_indices (list[int]): The offending indices, sorted.
        num_trees (int): Number of trees in the forest.

    Examples:
        >>> err = TreeIndexOutOfRangeError(invalid_indices=[5], num_trees=3)
        >>> err.invalid_indices
        [5]
    """

    invalid_indices: list[int]
    num_trees: int

    def __init__(self, *, invalid_indices: Sequence[int], num_trees: int, operation: str | None = None) -> None:
        """Initialize TreeIndexOutOfRangeError.

        Args:
            invalid_indices (Sequence[int]): Tree indices that do not exist.
            num_trees (int): Number of trees in the forest.
            operation (str | None): Name of the failing operation.
        """
        self.invalid_indices = sorted(invalid_indices)
        self.num_trees = num_trees
        super().__init__(
            f"Tree index out of range: {self.invalid_indices} (forest has {num_trees} trees)",
            operation=operation,
        )


class IncompatibleProblemSpecError(ForestContractError):
    """Raised when two forests with different problem specs are merged."""

    def __init__(self, operation: str | None = "merge") -> None:
        """Initialize IncompatibleProblemSpecError.

        Args:
            operation (str | None): Name of the failing operation. Defaults to `"merge"`.
        """
        super().__init__("You cannot merge with different problem specs.", operation=operation)


class MalformedForestError(ForestContractError):
    """Raised when a forest fails a structure check.

    Attributes:
        node (int): The node at which the check failed.
    """

    node: int

    def __init__(self, message: str, *, node: int) -> None:
        """Initialize MalformedForestError.

        Args:
            message (str): Description of the structural problem.
            node (int): The offending node id.
        """
        super().__init__(f"node {node}: {message}", operation="check_structure")
        self.node = node


class NodeNotFoundError(KeyError):
    """Raised when a node map holds no value for the requested node.

    Attributes:
        node (int): The missing node id.
    """

    node: int

    def __init__(self, node: int) -> None:
        """Initialize NodeNotFoundError.

        Args:
            node (int): The node id that was looked up.
        """
        super().__init__(node)
        self.node = node

    def __str__(self) -> str:
        """Return a human-readable message.

        Returns:
            str: Message naming the missing node.
        """
        return f"No value stored for node {self.node}"


class DuplicateNodeError(ValueError):
    """Raised when a value is inserted for a node that already has one.

    Attributes:
        node (int): The node id that was inserted twice.
    """

    node: int

    def __init__(self, node: int) -> None:
        """Initialize DuplicateNodeError.

        Args:
            node (int): The node id that already holds a value.
        """
        super().__init__(f"Node {node} already holds a value; pass overwrite=True to replace it")
        self.node = node
