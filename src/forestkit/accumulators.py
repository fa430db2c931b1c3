"""Policies that combine per-tree leaf responses into class probabilities.

An accumulator is called once per instance with the leaf responses of every
active tree (in ascending tree-index order) and the instance's probability
row. It must overwrite every cell of that row and must not touch anything
else.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class Accumulator[R](Protocol):
    """Combines the leaf responses of several trees into one probability row."""

    def __call__(self, responses: Sequence[R], out: np.ndarray) -> None:
        """Write `len(out)` class probabilities for one instance into `out`."""
        ...


class ArgMaxAcc:
    """Majority vote over leaves that each store a single class index.

    The probability of class `c` is the fraction of trees whose leaf response
    is `c`.

    Examples:
        >>> out = np.empty(3)
        >>> ArgMaxAcc()([2, 0, 2, 2], out)
        >>> out.tolist()
        [0.25, 0.0, 0.75]
    """

    def __call__(self, responses: Sequence[int], out: np.ndarray) -> None:
        out[:] = 0.0
        for class_index in responses:
            if not 0 <= class_index < out.shape[0]:
                raise ValueError(f"Leaf response {class_index} is not a class index in [0, {out.shape[0]})")
            out[class_index] += 1.0
        if len(responses) > 0:
            out /= len(responses)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class ArgMaxVectorAcc:
    """Majority vote over leaves that each store a per-class count vector.

    Every tree votes for the first class with the highest count in its leaf;
    votes are normalised by the number of trees.
    """

    def __call__(self, responses: Sequence[np.ndarray], out: np.ndarray) -> None:
        out[:] = 0.0
        for distribution in responses:
            out[_checked_argmax(distribution, out.shape[0])] += 1.0
        if len(responses) > 0:
            out /= len(responses)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class MeanDistributionAcc:
    """Soft vote: averages the normalised class distributions of the leaves.

    Each leaf response is a per-class count (or weight) vector. Vectors are
    scaled to sum to one before averaging; an all-zero vector contributes
    nothing but still counts as a tree. This matches the way scikit-learn
    forests compute `predict_proba`.

    Examples:
        >>> out = np.empty(2)
        >>> MeanDistributionAcc()([np.array([3.0, 1.0]), np.array([0.0, 2.0])], out)
        >>> out.tolist()
        [0.375, 0.625]
    """

    def __call__(self, responses: Sequence[np.ndarray], out: np.ndarray) -> None:
        out[:] = 0.0
        for distribution in responses:
            values = np.asarray(distribution, dtype=np.float64)
            if values.shape != out.shape:
                raise ValueError(f"Leaf distribution has shape {values.shape}, expected {out.shape}")
            total = values.sum()
            if total > 0.0:
                out += values / total
        if len(responses) > 0:
            out /= len(responses)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _checked_argmax(distribution: np.ndarray, num_classes: int) -> int:
    values = np.asarray(distribution)
    if values.shape != (num_classes,):
        raise ValueError(f"Leaf distribution has shape {values.shape}, expected ({num_classes},)")
    return int(np.argmax(values))
