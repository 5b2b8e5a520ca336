"""Root-finding calibrators of the LMM-DDD volatility structure.

Three calibrators share the same procedure (see
:class:`~lmmddd.calibration.base.RootCalibrationController`) and differ by the
scale vector they solve for:

- :class:`LMMSingleLevelCalibrator`: one multiplier applied to all the
  volatility loadings, fitted to one implied volatility.
- :class:`LMMLevelSkewCalibrator`: one multiplier on the loadings and one on
  the displacements, fitted to two implied volatilities (typically an at-the-money
  and an out-of-the-money option on the same underlying).
- :class:`LMMNodalLevelCalibrator`: one multiplier per instrument, placed on a
  node between the start and end periods of the instrument and interpolated
  over all the periods, fitted to a term structure of implied volatilities.
"""
from __future__ import annotations

import datetime
import logging
from typing import Any, Optional, Sequence

import jax.numpy as jnp
import numpy as np

from lmmddd.calibration.base import CalibrationResult, ModelEvaluator, RootCalibrationController
from lmmddd.calibration.interpolation import LinearInterpolator, NodalInterpolator
from lmmddd.core.math.solvers import RootFinderConfig
from lmmddd.core.time import DateLike
from lmmddd.errors import InvalidInstrumentBasketError
from lmmddd.models.lmm import LMMDDDParams

logger = logging.getLogger(__name__)

Array = jnp.ndarray

__all__ = ["LMMLevelSkewCalibrator", "LMMNodalLevelCalibrator", "LMMSingleLevelCalibrator"]


class LMMSingleLevelCalibrator(RootCalibrationController):
    """Calibrate a common level multiplier of the volatility loadings."""

    def scaled_parameters(self, scale: Array) -> LMMDDDParams:
        return self.starting_parameters.with_volatilities(
            self.starting_parameters.volatilities * scale[0]
        )

    def calibrate_with_result(self, market_vol: Any) -> CalibrationResult:
        targets = self._prepare_targets(market_vol, expected=1)
        return self._run(targets, jnp.ones(1), self.scaled_parameters)

    def calibrate(self, market_vol: Any) -> LMMDDDParams:
        """Return new parameters reproducing ``market_vol``."""
        return self.calibrate_with_result(market_vol).params


class LMMLevelSkewCalibrator(RootCalibrationController):
    """Calibrate a level multiplier of the loadings and a skew multiplier of the displacements.

    The basket holds exactly two instruments; the first scale entry multiplies
    the volatility loadings and the second one the displacements.
    """

    def scaled_parameters(self, scale: Array) -> LMMDDDParams:
        start = self.starting_parameters
        return start.replace(
            volatilities=start.volatilities * scale[0],
            displacements=start.displacements * scale[1],
        )

    def calibrate_with_result(self, market_vols: Sequence[float] | Array) -> CalibrationResult:
        targets = self._prepare_targets(market_vols, expected=2)
        return self._run(targets, jnp.ones(2), self.scaled_parameters)

    def calibrate(self, market_vols: Sequence[float] | Array) -> LMMDDDParams:
        return self.calibrate_with_result(market_vols).params


class LMMNodalLevelCalibrator(RootCalibrationController):
    """Calibrate a term structure of level multipliers.

    Instrument ``i`` of an ``N`` instrument basket covers the periods from
    ``start_i`` to ``end_i - 1`` (indices from ``time_index``). Its multiplier
    sits on the node

        x_i = (1 - w_i) start_i + w_i (end_i - 1),    w_i = i / (N - 1)

    so that the first node is on the first period of the first instrument and
    the last node on the last period of the last instrument. The multipliers
    are interpolated on the period indices ``0..n_periods-1`` and each row of
    the volatility matrix is scaled by its period multiplier.

    Parameters
    ----------
    starting_parameters : LMMDDDParams
        Parameters to scale.
    evaluator : ModelEvaluator
        Model implied volatilities of the basket for given parameters.
    interpolator : NodalInterpolator, optional
        Interpolation scheme of the multipliers (default: linear with flat
        extrapolation).
    root_finder : RootFinderConfig, optional
        Settings of the Broyden root finder.
    """

    def __init__(
        self,
        starting_parameters: LMMDDDParams,
        evaluator: ModelEvaluator,
        interpolator: Optional[NodalInterpolator] = None,
        root_finder: Optional[RootFinderConfig] = None,
    ) -> None:
        super().__init__(starting_parameters, evaluator, root_finder)
        self.interpolator = interpolator or LinearInterpolator()

    def _times(self, values: Sequence[float | DateLike]) -> list[float]:
        params = self.starting_parameters
        return [
            params.relative_time(v) if isinstance(v, datetime.date) else float(v)
            for v in values
        ]

    def node_indices(
        self,
        start_times: Sequence[float | DateLike],
        end_times: Sequence[float | DateLike],
    ) -> Array:
        """Interpolation nodes, in period index units, of an instrument basket."""
        n_instruments = len(start_times)
        if n_instruments == 0:
            raise InvalidInstrumentBasketError("The instrument basket is empty")
        if len(end_times) != n_instruments:
            raise InvalidInstrumentBasketError(
                "the number of start times must be equal to the number of end times"
            )
        params = self.starting_parameters
        start_indices = params.time_index(self._times(start_times))
        end_indices = params.time_index(self._times(end_times))
        if np.any(np.diff(start_indices) <= 0):
            raise InvalidInstrumentBasketError(
                "instruments must be in strictly increasing start date order"
            )
        if np.any(np.diff(end_indices) <= 0):
            raise InvalidInstrumentBasketError(
                "instruments must be in strictly increasing end date order"
            )

        if n_instruments == 1:
            weights = np.zeros(1)
        else:
            weights = np.arange(n_instruments) / (n_instruments - 1)
        nodes = (1.0 - weights) * start_indices + weights * (end_indices - 1)
        if np.any(np.diff(nodes) <= 0.0):
            raise InvalidInstrumentBasketError(
                f"calibration nodes must be strictly increasing, got {nodes.tolist()}"
            )
        return jnp.asarray(nodes, dtype=jnp.float64)

    def period_multipliers(self, nodes: Array, node_values: Array) -> Array:
        """Multipliers of each period interpolated from the nodal values."""
        periods = jnp.arange(self.starting_parameters.period_count, dtype=jnp.float64)
        return self.interpolator(nodes, node_values, periods)

    def calibrate_with_result(
        self,
        start_times: Sequence[float | DateLike],
        end_times: Sequence[float | DateLike],
        market_vols: Sequence[float] | Array,
    ) -> CalibrationResult:
        if len(market_vols) != len(start_times):
            raise InvalidInstrumentBasketError(
                "the number of instruments must be equal to the number of implied volatilities"
            )
        nodes = self.node_indices(start_times, end_times)
        targets = self._prepare_targets(market_vols, expected=nodes.shape[0])
        start = self.starting_parameters
        logger.debug("Nodal calibration on nodes %s", nodes.tolist())

        def scaled_parameters(node_values: Array) -> LMMDDDParams:
            multipliers = self.period_multipliers(nodes, node_values)
            return start.with_volatilities(start.volatilities * multipliers[:, None])

        return self._run(targets, jnp.ones(nodes.shape[0]), scaled_parameters)

    def calibrate(
        self,
        start_times: Sequence[float | DateLike],
        end_times: Sequence[float | DateLike],
        market_vols: Sequence[float] | Array,
    ) -> LMMDDDParams:
        """Return new parameters reproducing the basket implied volatilities."""
        return self.calibrate_with_result(start_times, end_times, market_vols).params
