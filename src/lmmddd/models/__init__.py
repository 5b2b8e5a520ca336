"""Model level utilities."""

from . import lmm_examples
from .indices import IborIndex, OvernightIndex
from .lmm import DEFAULT_TIME_TOLERANCE, LMMDDDParams
from .lmm_examples import (
    hull_white_shaped,
    ibor_times_from_dates,
    one_factor_flat,
    three_factor_angle,
    two_factor_angle,
)

__all__ = [
    "DEFAULT_TIME_TOLERANCE",
    "IborIndex",
    "LMMDDDParams",
    "OvernightIndex",
    "hull_white_shaped",
    "ibor_times_from_dates",
    "lmm_examples",
    "one_factor_flat",
    "three_factor_angle",
    "two_factor_angle",
]
