"""Common infrastructure for root-finding calibration controllers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import jax
import jax.numpy as jnp

from lmmddd.core.math.solvers import RootFinderConfig, broyden_root
from lmmddd.errors import InvalidInstrumentBasketError, NotConvergedError
from lmmddd.models.lmm import LMMDDDParams

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

Array = jnp.ndarray
ModelEvaluator = Callable[[LMMDDDParams], Any]

__all__ = ["CalibrationResult", "ModelEvaluator", "RootCalibrationController"]


@dataclass(frozen=True)
class CalibrationResult:
    """Container for calibration outputs."""

    params: LMMDDDParams
    scale: Array
    residuals: Array
    iterations: int
    converged: bool

    @property
    def residual_norm(self) -> float:
        return float(jnp.linalg.norm(self.residuals))


class RootCalibrationController:
    """Base class implementing the scale-and-solve calibration workflow.

    A calibrator scales the starting parameters by a small vector ``x`` and
    solves ``market_vols - evaluator(scaled(x)) = 0`` with Broyden's method.
    The evaluator returns the model implied volatilities of the calibration
    basket; it is supplied by the pricing layer. The starting parameters are
    never modified.
    """

    def __init__(
        self,
        starting_parameters: LMMDDDParams,
        evaluator: ModelEvaluator,
        root_finder: Optional[RootFinderConfig] = None,
    ) -> None:
        self.starting_parameters = starting_parameters
        self.evaluator = evaluator
        self.root_finder = root_finder or RootFinderConfig()

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------
    def _model_observables(self, params: LMMDDDParams) -> Array:
        return jnp.atleast_1d(jnp.asarray(self.evaluator(params), dtype=jnp.float64))

    @staticmethod
    def _prepare_targets(market_vols: Any, expected: Optional[int] = None) -> Array:
        targets = jnp.atleast_1d(jnp.asarray(market_vols, dtype=jnp.float64))
        if targets.ndim != 1 or targets.shape[0] == 0:
            raise InvalidInstrumentBasketError("market_vols must be a non-empty vector")
        if expected is not None and targets.shape[0] != expected:
            raise InvalidInstrumentBasketError(
                f"Expected {expected} implied volatilities, got {targets.shape[0]}"
            )
        return targets

    # ------------------------------------------------------------------
    def _run(
        self,
        market_vols: Array,
        initial_guess: Array,
        scaled_parameters: Callable[[Array], LMMDDDParams],
    ) -> CalibrationResult:
        """Solve for the scale vector and build the calibrated parameters."""

        def residuals(x: Array) -> Array:
            model_vols = self._model_observables(scaled_parameters(x))
            if model_vols.shape != market_vols.shape:
                raise InvalidInstrumentBasketError(
                    f"Evaluator returned {model_vols.shape[0]} volatilities "
                    f"for a basket of {market_vols.shape[0]}"
                )
            return market_vols - model_vols

        try:
            root = broyden_root(residuals, initial_guess, self.root_finder)
        except NotConvergedError as exc:
            logger.warning(
                "%s did not converge after %d iterations (|r|=%s)",
                type(self).__name__,
                exc.iterations,
                exc.residual_norm,
            )
            raise

        logger.info(
            "%s converged in %d iterations, scale=%s",
            type(self).__name__,
            root.iterations,
            [float(v) for v in root.x],
        )
        return CalibrationResult(
            params=scaled_parameters(root.x),
            scale=root.x,
            residuals=root.residuals,
            iterations=root.iterations,
            converged=root.converged,
        )
