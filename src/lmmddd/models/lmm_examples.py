"""Ready-made LMM-DDD parameter sets.

The factories below build :class:`~lmmddd.models.lmm.LMMDDDParams` from a
period grid and a handful of shape parameters. They are used for tests,
benchmarks and as starting points for calibration.

Each factory takes the period boundaries in model time. Accrual factors default
to the grid spacing and multiplicative spreads default to one (no Ibor/overnight
spread); both can be supplied from a curve collaborator instead.
"""
from __future__ import annotations

import datetime
from typing import Any, Callable, Optional, Sequence

import jax.numpy as jnp

from lmmddd.core.time import DateLike, ScaledSecondTime, TimeMeasure
from lmmddd.errors import ModelConfigurationError
from lmmddd.models.indices import IborIndex, OvernightIndex
from lmmddd.models.lmm import DEFAULT_TIME_TOLERANCE, LMMDDDParams

DEFAULT_YEAR_ANGLE = 20.0

__all__ = [
    "DEFAULT_YEAR_ANGLE",
    "hull_white_shaped",
    "ibor_times_from_dates",
    "one_factor_flat",
    "three_factor_angle",
    "two_factor_angle",
]


def ibor_times_from_dates(
    valuation_datetime: datetime.datetime,
    dates: Sequence[DateLike],
    time_measure: Optional[TimeMeasure] = None,
) -> jnp.ndarray:
    """Convert period boundary dates into model times."""
    measure = time_measure or ScaledSecondTime()
    return jnp.asarray(
        [measure.relative_time(valuation_datetime, d) for d in dates], dtype=jnp.float64
    )


def _grid(
    ibor_times: Any,
    accrual_factors: Optional[Any],
    multiplicative_spreads: Optional[Any],
) -> tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    times = jnp.asarray(ibor_times, dtype=jnp.float64)
    if times.ndim != 1 or times.shape[0] < 2:
        raise ModelConfigurationError("At least two ibor times are required")
    accruals = (
        jnp.diff(times)
        if accrual_factors is None
        else jnp.asarray(accrual_factors, dtype=jnp.float64)
    )
    spreads = (
        jnp.ones(times.shape[0] - 1)
        if multiplicative_spreads is None
        else jnp.asarray(multiplicative_spreads, dtype=jnp.float64)
    )
    return times, accruals, spreads


def hull_white_shaped(
    mean_reversion: float,
    sigma: float,
    ibor_times: Any,
    overnight_index: OvernightIndex,
    ibor_index: IborIndex,
    valuation_datetime: datetime.datetime,
    accrual_factors: Optional[Any] = None,
    multiplicative_spreads: Optional[Any] = None,
    time_measure: Optional[TimeMeasure] = None,
    time_tolerance: float = DEFAULT_TIME_TOLERANCE,
) -> LMMDDDParams:
    """One-factor LMM reproducing the Hull-White one-factor dynamic.

    Loadings are ``σ/a (e^{-a t_i} - e^{-a t_{i+1}})`` and displacements
    ``1/δ_i``; the model mean reversion is ``a``.
    """
    if mean_reversion == 0.0:
        raise ModelConfigurationError("Hull-White shaped loadings require a non-zero mean reversion")
    times, accruals, spreads = _grid(ibor_times, accrual_factors, multiplicative_spreads)
    a = mean_reversion
    loadings = sigma / a * (jnp.exp(-a * times[:-1]) - jnp.exp(-a * times[1:]))
    return LMMDDDParams(
        overnight_index=overnight_index,
        ibor_index=ibor_index,
        valuation_datetime=valuation_datetime,
        ibor_times=times,
        accrual_factors=accruals,
        multiplicative_spreads=spreads,
        displacements=1.0 / accruals,
        volatilities=loadings[:, None],
        mean_reversion=a,
        time_tolerance=time_tolerance,
        time_measure=time_measure or ScaledSecondTime(),
    )


def one_factor_flat(
    mean_reversion: float,
    vol_level: float,
    displacement: float,
    ibor_times: Any,
    overnight_index: OvernightIndex,
    ibor_index: IborIndex,
    valuation_datetime: datetime.datetime,
    accrual_factors: Optional[Any] = None,
    multiplicative_spreads: Optional[Any] = None,
    time_measure: Optional[TimeMeasure] = None,
    time_tolerance: float = DEFAULT_TIME_TOLERANCE,
) -> LMMDDDParams:
    """One-factor model with the same loading and displacement on every period."""
    times, accruals, spreads = _grid(ibor_times, accrual_factors, multiplicative_spreads)
    n_periods = times.shape[0] - 1
    return LMMDDDParams(
        overnight_index=overnight_index,
        ibor_index=ibor_index,
        valuation_datetime=valuation_datetime,
        ibor_times=times,
        accrual_factors=accruals,
        multiplicative_spreads=spreads,
        displacements=jnp.full(n_periods, displacement),
        volatilities=jnp.full((n_periods, 1), vol_level),
        mean_reversion=mean_reversion,
        time_tolerance=time_tolerance,
        time_measure=time_measure or ScaledSecondTime(),
    )


def two_factor_angle(
    mean_reversion: float,
    vol_level: float,
    angle: float,
    vol_angle: float,
    displacement: float,
    ibor_times: Any,
    overnight_index: OvernightIndex,
    ibor_index: IborIndex,
    valuation_datetime: datetime.datetime,
    vol_angle_slope: float = 0.0,
    year_angle: float = DEFAULT_YEAR_ANGLE,
    accrual_factors: Optional[Any] = None,
    multiplicative_spreads: Optional[Any] = None,
    time_measure: Optional[TimeMeasure] = None,
    time_tolerance: float = DEFAULT_TIME_TOLERANCE,
) -> LMMDDDParams:
    """Two-factor model with loadings rotating along the curve.

    Period ``i`` loads ``vol_level + v_i sin(angle t_i / year_angle)`` on the
    first factor and ``vol_level + v_i cos(angle t_i / year_angle)`` on the
    second, where ``v_i`` moves linearly from ``vol_angle`` on the first period
    to ``vol_angle + vol_angle_slope`` on the last one. With ``angle = 0``
    the model has a single effective factor; with ``angle = π/2`` the rate at
    zero is independent of the rate at ``year_angle``.

    Parameters
    ----------
    mean_reversion : float
        Exponential time scaling of the loadings.
    vol_level : float
        Common part of the loadings.
    angle : float
        Angle reached after ``year_angle`` years.
    vol_angle : float
        Amplitude of the rotating part on the first period.
    displacement : float
        Displacement applied to every period.
    ibor_times : array-like
        Period boundaries in model time.
    vol_angle_slope : float, optional
        Increase of the rotating amplitude between the first and last period.
    year_angle : float, optional
        Number of years after which ``angle`` is attained (default: 20).
    """
    times, accruals, spreads = _grid(ibor_times, accrual_factors, multiplicative_spreads)
    n_periods = times.shape[0] - 1
    slope_steps = max(n_periods - 1, 1)
    vol2 = vol_angle + jnp.arange(n_periods) * vol_angle_slope / slope_steps
    phase = times[:-1] / year_angle * angle
    loadings = jnp.stack(
        [vol_level + vol2 * jnp.sin(phase), vol_level + vol2 * jnp.cos(phase)], axis=1
    )
    return LMMDDDParams(
        overnight_index=overnight_index,
        ibor_index=ibor_index,
        valuation_datetime=valuation_datetime,
        ibor_times=times,
        accrual_factors=accruals,
        multiplicative_spreads=spreads,
        displacements=jnp.full(n_periods, displacement),
        volatilities=loadings,
        mean_reversion=mean_reversion,
        time_tolerance=time_tolerance,
        time_measure=time_measure or ScaledSecondTime(),
    )


def three_factor_angle(
    mean_reversion: float,
    volatility: float,
    angle_end_1: float,
    angle_end_2: float,
    displacement: float,
    ibor_times: Any,
    overnight_index: OvernightIndex,
    ibor_index: IborIndex,
    valuation_datetime: datetime.datetime,
    angle_2_function: Callable[[jnp.ndarray], jnp.ndarray] = lambda x: x,
    year_angle: float = DEFAULT_YEAR_ANGLE,
    accrual_factors: Optional[Any] = None,
    multiplicative_spreads: Optional[Any] = None,
    time_measure: Optional[TimeMeasure] = None,
    time_tolerance: float = DEFAULT_TIME_TOLERANCE,
) -> LMMDDDParams:
    """Three-factor model with unit-norm loading directions.

    With ``u_i = (t_i - t_0) / year_angle``, the two angles of period ``i`` are
    ``θ1 = u_i angle_end_1`` and ``θ2 = angle_2_function(u_i) angle_end_2``
    and its loadings are::

        volatility * (sin θ1, cos θ1 sin θ2, cos θ1 cos θ2)

    Every period therefore has total volatility ``volatility``.
    """
    times, accruals, spreads = _grid(ibor_times, accrual_factors, multiplicative_spreads)
    n_periods = times.shape[0] - 1
    load = (times[:-1] - times[0]) / year_angle
    theta_1 = load * angle_end_1
    theta_2 = jnp.asarray(angle_2_function(load), dtype=jnp.float64) * angle_end_2
    loadings = volatility * jnp.stack(
        [
            jnp.sin(theta_1),
            jnp.cos(theta_1) * jnp.sin(theta_2),
            jnp.cos(theta_1) * jnp.cos(theta_2),
        ],
        axis=1,
    )
    return LMMDDDParams(
        overnight_index=overnight_index,
        ibor_index=ibor_index,
        valuation_datetime=valuation_datetime,
        ibor_times=times,
        accrual_factors=accruals,
        multiplicative_spreads=spreads,
        displacements=jnp.full(n_periods, displacement),
        volatilities=loadings,
        mean_reversion=mean_reversion,
        time_tolerance=time_tolerance,
        time_measure=time_measure or ScaledSecondTime(),
    )
