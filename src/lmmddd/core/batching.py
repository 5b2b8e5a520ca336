"""Path batching for block-wise Monte Carlo pricing.

Large path counts are simulated in fixed-size blocks so that only one block of
paths lives in memory at a time: each block is generated, reduced to per-path
values and discarded before the next one is drawn.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, NamedTuple

import jax.numpy as jnp

logger = logging.getLogger(__name__)

Array = jnp.ndarray

__all__ = ["BlockDecomposition", "PathBatchScheduler", "decompose", "mean_over_blocks"]


class BlockDecomposition(NamedTuple):
    """Split of a path count into full blocks and a remainder block."""

    full_blocks: int
    paths_per_block: int
    remainder: int

    @property
    def total_paths(self) -> int:
        return self.full_blocks * self.paths_per_block + self.remainder

    @property
    def block_count(self) -> int:
        return self.full_blocks + (1 if self.remainder > 0 else 0)


def decompose(total_paths: int, paths_per_block: int) -> BlockDecomposition:
    """Decompose ``total_paths`` into blocks of ``paths_per_block`` paths.

    Parameters
    ----------
    total_paths : int
        Number of paths to simulate, non-negative.
    paths_per_block : int
        Size of a full block, positive.

    Returns
    -------
    BlockDecomposition
        ``(full_blocks, paths_per_block, remainder)`` with
        ``full_blocks * paths_per_block + remainder == total_paths``.

    Examples
    --------
    >>> decompose(323, 100)
    BlockDecomposition(full_blocks=3, paths_per_block=100, remainder=23)
    """
    if total_paths < 0:
        raise ValueError(f"total_paths must be non-negative, got {total_paths}")
    if paths_per_block <= 0:
        raise ValueError(f"paths_per_block must be positive, got {paths_per_block}")
    full_blocks, remainder = divmod(total_paths, paths_per_block)
    return BlockDecomposition(full_blocks, paths_per_block, remainder)


@dataclass(frozen=True)
class PathBatchScheduler:
    """Block schedule with a fixed number of paths per full block."""

    paths_per_block: int

    def __post_init__(self) -> None:
        if self.paths_per_block <= 0:
            raise ValueError(f"paths_per_block must be positive, got {self.paths_per_block}")

    def decompose(self, total_paths: int) -> BlockDecomposition:
        return decompose(total_paths, self.paths_per_block)

    def block_sizes(self, total_paths: int) -> Iterator[int]:
        """Yield the path count of each block, the remainder block last."""
        blocks = self.decompose(total_paths)
        for _ in range(blocks.full_blocks):
            yield blocks.paths_per_block
        if blocks.remainder > 0:
            yield blocks.remainder


def mean_over_blocks(
    total_paths: int,
    scheduler: PathBatchScheduler,
    simulate_block: Callable[[int], Any],
    aggregate: Callable[[Any], Array],
) -> Array:
    """Average per-path values over all paths, one block at a time.

    Parameters
    ----------
    total_paths : int
        Number of paths over which the mean is taken, positive.
    scheduler : PathBatchScheduler
        Block schedule.
    simulate_block : Callable[[int], Any]
        Generates the data of a block given its path count.
    aggregate : Callable[[Any], Array]
        Reduces a block to per-path values with the path on the first axis.

    Returns
    -------
    Array
        Mean over the path axis of the per-path values.
    """
    if total_paths <= 0:
        raise ValueError(f"total_paths must be positive, got {total_paths}")
    total = None
    for n_paths in scheduler.block_sizes(total_paths):
        values = jnp.asarray(aggregate(simulate_block(n_paths)))
        if values.shape[0] != n_paths:
            raise ValueError(
                f"aggregate returned {values.shape[0]} values for a block of {n_paths} paths"
            )
        block_sum = jnp.sum(values, axis=0)
        total = block_sum if total is None else total + block_sum
    logger.debug("Averaged %d paths over %s", total_paths, scheduler.decompose(total_paths))
    return total / total_paths
