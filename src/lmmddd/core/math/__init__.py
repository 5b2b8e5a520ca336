"""Mathematical utilities for calibration."""

from .solvers import RootFinderConfig, RootResult, broyden_root, finite_difference_jacobian

__all__ = [
    "RootFinderConfig",
    "RootResult",
    "broyden_root",
    "finite_difference_jacobian",
]
