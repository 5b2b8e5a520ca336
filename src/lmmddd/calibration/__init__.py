"""Calibration of the LMM-DDD to option implied volatilities."""

from .base import CalibrationResult, ModelEvaluator, RootCalibrationController
from .interpolation import (
    LinearInterpolator,
    MonotoneCubicInterpolator,
    NaturalCubicSplineInterpolator,
    NodalInterpolator,
    get_interpolator,
)
from .lmm_root import LMMLevelSkewCalibrator, LMMNodalLevelCalibrator, LMMSingleLevelCalibrator

__all__ = [
    "CalibrationResult",
    "LMMLevelSkewCalibrator",
    "LMMNodalLevelCalibrator",
    "LMMSingleLevelCalibrator",
    "LinearInterpolator",
    "ModelEvaluator",
    "MonotoneCubicInterpolator",
    "NaturalCubicSplineInterpolator",
    "NodalInterpolator",
    "RootCalibrationController",
    "get_interpolator",
]
