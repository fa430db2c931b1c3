"""Coercion of user-supplied feature tables into dense float matrices."""

from __future__ import annotations

import numpy as np
import polars as pl

from forestkit.exceptions import ShapeMismatchError

type FeatureInput = np.ndarray | pl.DataFrame


def as_feature_matrix(features: FeatureInput, *, operation: str | None = None) -> np.ndarray:
    """Return `features` as a C-contiguous 2-D float64 array.

    Args:
        features (FeatureInput): A 2-D numpy array, or a polars DataFrame whose
            columns are all numeric or boolean. Rows are instances.
        operation (str | None): Name of the calling operation, used in error
            messages.

    Returns:
        np.ndarray: Matrix of shape `(n_instances, n_features)`.

    Raises:
        TypeError: If a DataFrame column is neither numeric nor boolean.
        ShapeMismatchError: If a numpy input is not two-dimensional.

    Examples:
        >>> df = pl.DataFrame({"a": [0.2, 0.7], "b": [1, 0]})
        >>> as_feature_matrix(df).tolist()
        [[0.2, 1.0], [0.7, 0.0]]
    """
    if isinstance(features, pl.DataFrame):
        _validate_numeric_columns(features)
        matrix = features.with_columns(pl.col(pl.Boolean).cast(pl.Int8)).to_numpy()
    else:
        matrix = np.asarray(features)
        if matrix.ndim != 2:
            raise ShapeMismatchError(
                "Features must be a 2-D array of shape (n_instances, n_features); number of dimensions differs",
                expected=2,
                actual=matrix.ndim,
                operation=operation,
            )
    return np.ascontiguousarray(matrix, dtype=np.float64)


def _validate_numeric_columns(df: pl.DataFrame) -> None:
    """Validate that every column of `df` can be used as a split feature.

    Args:
        df (pl.DataFrame): The feature table.

    Raises:
        TypeError: If any column has a non-numeric, non-boolean dtype.
    """
    invalid = [name for name, dtype in df.schema.items() if not (dtype.is_numeric() or dtype == pl.Boolean)]
    if invalid:
        raise TypeError(f"Feature columns must be numeric or boolean; invalid columns: {invalid}")
