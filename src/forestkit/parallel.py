"""Thread-parallel evaluation over blocks of instances."""

from __future__ import annotations

from collections.abc import Callable
from typing import Final

import joblib
from joblib import Parallel, delayed
from loguru import logger

AUTO_THREADS: Final[int] = -1


def resolve_n_threads(n_threads: int) -> int:
    """Turn a thread-count hint into a concrete worker count.

    Args:
        n_threads (int): `-1` selects the number of available CPUs; any other
            value below one is clamped to one.

    Returns:
        int: Number of worker threads, at least one.
    """
    if n_threads == AUTO_THREADS:
        n_threads = joblib.cpu_count()
    return max(1, n_threads)


def partition_instances(num_instances: int, n_blocks: int) -> list[tuple[int, int]]:
    """Split `range(num_instances)` into at most `n_blocks` contiguous blocks.

    Blocks differ in size by at most one and are never empty.

    Args:
        num_instances (int): Number of instances to distribute.
        n_blocks (int): Desired number of blocks.

    Returns:
        list[tuple[int, int]]: Half-open `(start, stop)` ranges in ascending order.

    Examples:
        >>> partition_instances(7, 3)
        [(0, 3), (3, 5), (5, 7)]
    """
    n_blocks = min(n_blocks, num_instances)
    if n_blocks <= 0:
        return []
    base, extra = divmod(num_instances, n_blocks)
    blocks: list[tuple[int, int]] = []
    start = 0
    for block in range(n_blocks):
        stop = start + base + (1 if block < extra else 0)
        blocks.append((start, stop))
        start = stop
    return blocks


def parallel_block_sum(
    work: Callable[[int, int], float],
    num_instances: int,
    n_threads: int,
) -> float:
    """Run `work(start, stop)` on disjoint instance blocks and sum the results.

    Every block is handled by exactly one worker, so `work` may write to the
    output rows of its own block without locking. Each worker returns a local
    total; the totals are reduced once after all workers have finished.

    Args:
        work (Callable[[int, int], float]): Processes instances `[start, stop)`
            and returns a per-block total.
        num_instances (int): Number of instances.
        n_threads (int): Resolved worker count (see `resolve_n_threads`).

    Returns:
        float: Sum of all block totals.
    """
    blocks = partition_instances(num_instances, n_threads)
    logger.debug("Dispatching instance blocks", n_threads=n_threads, n_blocks=len(blocks))
    if len(blocks) <= 1:
        return float(sum(work(start, stop) for start, stop in blocks))
    totals = Parallel(n_jobs=len(blocks), backend="threading")(delayed(work)(start, stop) for start, stop in blocks)
    return float(sum(totals))
