"""Exception hierarchy shared by the model, engine and calibration layers."""
from __future__ import annotations

from typing import Optional

__all__ = [
    "CalibrationError",
    "InvalidInstrumentBasketError",
    "LMMError",
    "ModelConfigurationError",
    "NotConvergedError",
]


class LMMError(Exception):
    """Base class for all errors raised by :mod:`lmmddd`."""


class ModelConfigurationError(LMMError, ValueError):
    """Raised when model parameters violate a construction invariant."""


class CalibrationError(LMMError, RuntimeError):
    """Base class for calibration failures."""


class NotConvergedError(CalibrationError):
    """Raised when a root search exhausts its maximum number of iterations."""

    def __init__(
        self,
        message: str,
        *,
        iterations: int,
        residual_norm: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.iterations = iterations
        self.residual_norm = residual_norm


class InvalidInstrumentBasketError(CalibrationError, ValueError):
    """Raised when a calibration basket does not satisfy its preconditions."""
