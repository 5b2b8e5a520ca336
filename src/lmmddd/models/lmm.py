"""Displaced-diffusion LIBOR Market Model with deterministic spread (LMM-DDD).

The model describes the joint evolution of the discounting (overnight-based)
forward rates L_i(t) on the accrual periods [T_i, T_{i+1}]. Under the
measure associated with the numeraire P(t, T_N) (the discount bond maturing at
the last model date) each rate follows a shifted log-normal dynamic:

    d(L_i + a_i) / (L_i + a_i) = μ_i(t) dt + e^{κt} Σ_f γ_{i,f} dW_f(t)

    μ_i(t) = - Σ_{j>i} δ_j (L_j + a_j) / (1 + δ_j L_j) · e^{2κt} Σ_f γ_{i,f} γ_{j,f}

where:
    - a_i: displacement of period i (allows negative rates)
    - γ_{i,f}: loading of period i on factor f
    - κ: mean reversion (scales all loadings by e^{κt})
    - δ_i: accrual factor of period i

The Ibor rates are obtained from the discounting forwards through a
deterministic multiplicative spread β_i:

    1 + δ_i I_i = β_i (1 + δ_i L_i)

With κ = a, a single factor γ_i = σ/a (e^{-aT_i} - e^{-aT_{i+1}}) and
displacements a_i = 1/δ_i the model reproduces the Hull-White one-factor
forward bond dynamics.

References
----------
Henrard, M. (2019). "A quant perspective on IBOR fallback consultation
results." SSRN Working Paper.

Brigo, D., & Mercurio, F. (2006). "Interest Rate Models - Theory and Practice."
Springer. (Chapter 6: The LIBOR and Swap Market Models)
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from lmmddd.core.time import DateLike, ScaledSecondTime, TimeMeasure
from lmmddd.errors import ModelConfigurationError
from lmmddd.models.indices import IborIndex, OvernightIndex

jax.config.update("jax_enable_x64", True)

Array = jnp.ndarray

DEFAULT_TIME_TOLERANCE = 5.0 / 350.0  # allows for long week-ends

__all__ = ["DEFAULT_TIME_TOLERANCE", "LMMDDDParams"]


def _as_vector(name: str, values: Any) -> Array:
    arr = jnp.asarray(values, dtype=jnp.float64)
    if arr.ndim != 1:
        raise ModelConfigurationError(f"{name} must be one-dimensional, got shape {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class LMMDDDParams:
    """Immutable parameters of the LMM-DDD.

    Attributes
    ----------
    overnight_index : OvernightIndex
        Index represented by the forward rates.
    ibor_index : IborIndex
        Index modelled by the multiplicative spreads. Must share the currency
        of ``overnight_index``.
    valuation_datetime : datetime.datetime
        Timezone-aware valuation instant; model time zero.
    time_measure : TimeMeasure
        Converts calendar instants into model times.
    ibor_times : Array
        Period boundaries in model time, strictly increasing. Shape: [n_periods + 1]
    accrual_factors : Array
        Accrual factors δ_i. Shape: [n_periods]
    multiplicative_spreads : Array
        Spreads β_i between Ibor and discounting forwards. Shape: [n_periods]
    displacements : Array
        Displacements a_i. Shape: [n_periods]
    volatilities : Array
        Factor loadings γ. Shape: [n_periods, n_factors]
    mean_reversion : float
        Exponential time scaling κ of the loadings.
    time_tolerance : float
        Tolerance used when matching a time to the period grid.
    """

    overnight_index: OvernightIndex
    ibor_index: IborIndex
    valuation_datetime: datetime.datetime
    ibor_times: Array
    accrual_factors: Array
    multiplicative_spreads: Array
    displacements: Array
    volatilities: Array
    mean_reversion: float = 0.0
    time_tolerance: float = DEFAULT_TIME_TOLERANCE
    time_measure: TimeMeasure = field(default_factory=ScaledSecondTime)

    def __post_init__(self) -> None:
        """Validate and freeze the parameters."""
        if self.overnight_index.currency != self.ibor_index.currency:
            raise ModelConfigurationError(
                "iborIndex and overnightIndex must have the same currency, got "
                f"{self.ibor_index.currency} and {self.overnight_index.currency}"
            )
        if self.valuation_datetime.tzinfo is None:
            raise ModelConfigurationError("valuation_datetime must be timezone-aware")

        ibor_times = _as_vector("ibor_times", self.ibor_times)
        accrual_factors = _as_vector("accrual_factors", self.accrual_factors)
        spreads = _as_vector("multiplicative_spreads", self.multiplicative_spreads)
        displacements = _as_vector("displacements", self.displacements)
        volatilities = jnp.asarray(self.volatilities, dtype=jnp.float64)
        if volatilities.ndim != 2:
            raise ModelConfigurationError(
                f"volatilities must be a [periods, factors] matrix, got shape {volatilities.shape}"
            )

        n_periods = accrual_factors.shape[0]
        if n_periods == 0:
            raise ModelConfigurationError("The model must have at least one period")
        if displacements.shape[0] != n_periods:
            raise ModelConfigurationError(
                "number of accrual factors must be equal to number of displacements"
            )
        if spreads.shape[0] != n_periods:
            raise ModelConfigurationError(
                "number of accrual factors must be equal to number of spreads"
            )
        if volatilities.shape[0] != n_periods:
            raise ModelConfigurationError(
                "number of accrual factors must be equal to number of volatilities rows"
            )
        if volatilities.shape[1] == 0:
            raise ModelConfigurationError("volatilities must have at least one factor")
        if ibor_times.shape[0] != n_periods + 1:
            raise ModelConfigurationError(
                f"ibor_times length {ibor_times.shape[0]} must be n_periods + 1 = {n_periods + 1}"
            )
        if bool(jnp.any(jnp.diff(ibor_times) <= 0.0)):
            raise ModelConfigurationError("ibor_times must be strictly increasing")
        if bool(jnp.any(accrual_factors <= 0.0)):
            raise ModelConfigurationError("accrual_factors must be positive")
        if self.time_tolerance < 0.0:
            raise ModelConfigurationError(
                f"time_tolerance must be non-negative, got {self.time_tolerance}"
            )

        object.__setattr__(self, "ibor_times", ibor_times)
        object.__setattr__(self, "accrual_factors", accrual_factors)
        object.__setattr__(self, "multiplicative_spreads", spreads)
        object.__setattr__(self, "displacements", displacements)
        object.__setattr__(self, "volatilities", volatilities)
        object.__setattr__(self, "mean_reversion", float(self.mean_reversion))
        object.__setattr__(self, "time_tolerance", float(self.time_tolerance))

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------
    @property
    def currency(self) -> str:
        return self.overnight_index.currency

    @property
    def parameter_count(self) -> int:
        return int(self.volatilities.size)

    @property
    def factor_count(self) -> int:
        return int(self.volatilities.shape[1])

    @property
    def period_count(self) -> int:
        return int(self.volatilities.shape[0])

    # ------------------------------------------------------------------
    # Flat parameter view: ordered by period and, in a period, by factor
    # ------------------------------------------------------------------
    def _check_parameter_index(self, parameter_index: int) -> tuple[int, int]:
        if not 0 <= parameter_index < self.parameter_count:
            raise IndexError(
                f"Parameter index {parameter_index} out of range [0, {self.parameter_count})"
            )
        return divmod(parameter_index, self.factor_count)

    def parameter(self, parameter_index: int) -> float:
        period, factor = self._check_parameter_index(parameter_index)
        return float(self.volatilities[period, factor])

    def parameters(self) -> Array:
        """Return all parameters as a flat row-major vector."""
        return jnp.ravel(self.volatilities)

    def parameter_metadata(self, parameter_index: int) -> Optional[Any]:
        """Return the metadata attached to a parameter.

        The model defines no parameter metadata; ``None`` is returned for every
        valid index.
        """
        self._check_parameter_index(parameter_index)
        return None

    def with_parameter(self, parameter_index: int, new_value: float) -> "LMMDDDParams":
        """Return a copy with one volatility loading replaced."""
        period, factor = self._check_parameter_index(parameter_index)
        return self.with_volatilities(self.volatilities.at[period, factor].set(new_value))

    # ------------------------------------------------------------------
    # Copy-on-write derivations
    # ------------------------------------------------------------------
    def replace(self, **changes: Any) -> "LMMDDDParams":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes)

    def with_volatilities(self, volatilities: Any) -> "LMMDDDParams":
        return self.replace(volatilities=volatilities)

    def with_displacements(self, displacements: Any) -> "LMMDDDParams":
        return self.replace(displacements=displacements)

    # ------------------------------------------------------------------
    # Time handling
    # ------------------------------------------------------------------
    def relative_time(self, instant: DateLike) -> float:
        """Model time of a calendar instant measured from the valuation instant."""
        return float(self.time_measure.relative_time(self.valuation_datetime, instant))

    def time_index(self, times: float | Sequence[float] | Array) -> np.ndarray:
        """Indices in ``ibor_times`` corresponding to the input times.

        The index of a time ``t`` is the smallest ``j`` such that
        ``ibor_times[j] >= t - time_tolerance``. An exact match returns its own
        index, including at ``j = 0``. Times after the last boundary return
        ``n_periods + 1``.
        """
        shifted = np.atleast_1d(np.asarray(times, dtype=np.float64)) - self.time_tolerance
        grid = np.asarray(self.ibor_times)
        return np.searchsorted(grid, shifted, side="left").astype(np.int64)

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------
    def ibor_rate_from_discount_forward(self, discount_forward: Any, period_index: Any) -> Array:
        """Ibor rate on a period implied by the discounting forward.

        ``I = (β (1 + δ L) - 1) / δ``; both arguments broadcast.
        """
        delta = self.accrual_factors[period_index]
        beta = self.multiplicative_spreads[period_index]
        return (beta * (1.0 + delta * jnp.asarray(discount_forward)) - 1.0) / delta

    def __repr__(self) -> str:
        return (
            f"LMMDDDParams(currency={self.currency}, ibor_index={self.ibor_index}, "
            f"periods={self.period_count}, factors={self.factor_count}, "
            f"mean_reversion={self.mean_reversion})"
        )
