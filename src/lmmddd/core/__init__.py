"""Core computational infrastructure.

This module provides random sources, time measures, path batching,
numerical solvers and configuration management.
"""

from . import config, math
from .batching import BlockDecomposition, PathBatchScheduler, decompose, mean_over_blocks
from .rng import KeySeq, NormalSource, SequenceNormalSource
from .time import ScaledSecondTime, TimeMeasure

__all__ = [
    "BlockDecomposition",
    "KeySeq",
    "NormalSource",
    "PathBatchScheduler",
    "ScaledSecondTime",
    "SequenceNormalSource",
    "TimeMeasure",
    "config",
    "decompose",
    "math",
    "mean_over_blocks",
]
