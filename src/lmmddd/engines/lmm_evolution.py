"""Monte Carlo evolution of the LMM-DDD discounting forwards.

The forwards are evolved under the measure of the last model discount bond
with a predictor-corrector scheme. Between two requested dates the engine takes
sub-steps of at most ``max_jump`` years. On each sub-step only the periods that
have not started by its end are evolved (the others keep their values) and the
drift is resolved by a reverse recursion from the last period to the first
live one:

    L_j ← (L_j + a_j) exp(-½ (μ_j^pred + μ_j^corr) Δt + D_j) - a_j

    μ_j^pred = Σ_{k>j} S_jk (L_k + a_k) / (L_k + 1/δ_k)     (start-of-step values)
    μ_j^corr = Σ_{k>j} S_jk (L_k + a_k) / (L_k + 1/δ_k)     (already updated values)

    S = Γ Γᵀ e^{2κ t_1},   D_j = e^{κ t_1} √Δt Σ_f Γ_jf Z_f - ½ S_jj Δt

Exactly one ``factors x paths`` matrix of standard normals is drawn per
sub-step, factor by factor, whether or not a period is live, so a given normal
source always produces the same paths.

References
----------
Henrard, M. (2019). "A quant perspective on IBOR fallback consultation
results." SSRN Working Paper. (Section 5.3: efficient one step implementation)

Glasserman, P. (2003). "Monte Carlo Methods in Financial Engineering."
Springer. (Section 3.7: Forward rate models)
"""
from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass
from typing import Sequence, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import lax

from lmmddd.core.rng import NormalSource
from lmmddd.models.lmm import LMMDDDParams

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

Array = jnp.ndarray
StepTime = Union[float, datetime.date, datetime.datetime]

DEFAULT_MAX_JUMP = 1.0

__all__ = [
    "DEFAULT_MAX_JUMP",
    "EvolutionConfig",
    "evolve_at",
    "evolve_at_each",
    "generate_paths",
    "sub_step_times",
]


@dataclass(frozen=True)
class EvolutionConfig:
    """Configuration of the path evolution.

    Attributes
    ----------
    max_jump : float
        Maximum length, in years, of a sub-step.
    """

    max_jump: float = DEFAULT_MAX_JUMP

    def __post_init__(self) -> None:
        if not self.max_jump > 0.0:
            raise ValueError(f"EvolutionConfig.max_jump must be > 0, got {self.max_jump}")


def sub_step_times(start: float, end: float, max_jump: float) -> np.ndarray:
    """Boundaries of the sub-steps covering ``[start, end]``.

    A jump shorter than ``max_jump`` is taken in one sub-step; a longer one is
    split into ``ceil((end - start) / max_jump)`` equal sub-steps.
    """
    length = end - start
    if length < max_jump:
        return np.array([start, end], dtype=np.float64)
    n_sub = int(math.ceil(length / max_jump))
    return start + np.arange(n_sub + 1, dtype=np.float64) * length / n_sub


@jax.jit
def _predictor_corrector_step(
    forwards: Array,
    gamma: Array,
    displacements: Array,
    inv_accruals: Array,
    normals: Array,
    dt: Array,
    t_end: Array,
    mean_reversion: Array,
    first_live: Array,
) -> Array:
    """Evolve the forwards ``[period, path]`` over one sub-step."""
    n_periods = forwards.shape[0]
    alpha = jnp.exp(mean_reversion * t_end)
    cov = gamma @ gamma.T * alpha * alpha
    diffusion = (gamma @ normals) * jnp.sqrt(dt) * alpha - 0.5 * jnp.diag(cov)[:, None] * dt

    shifted = forwards + displacements[:, None]
    coef_predict = shifted / (forwards + inv_accruals[:, None])
    # later[j, k] = S_jk for k > j
    later = cov * jnp.triu(jnp.ones_like(cov), k=1)
    mu_predict = later @ coef_predict
    live = jnp.arange(n_periods) >= first_live

    def backward(coef_correct, j):
        mu_correct = later[j] @ coef_correct
        evolved = (
            shifted[j] * jnp.exp(-0.5 * (mu_predict[j] + mu_correct) * dt + diffusion[j])
            - displacements[j]
        )
        row = jnp.where(live[j], evolved, forwards[j])
        coef_correct = coef_correct.at[j].set(
            (row + displacements[j]) / (row + inv_accruals[j])
        )
        return coef_correct, row

    _, rows = lax.scan(backward, jnp.zeros_like(forwards), jnp.arange(n_periods - 1, -1, -1))
    return rows[::-1]


def _draw_normals(source: NormalSource, n_factors: int, n_paths: int) -> Array:
    rows = []
    for _ in range(n_factors):
        draw = jnp.asarray(source.vector(n_paths), dtype=jnp.float64)
        if draw.shape != (n_paths,):
            raise ValueError(
                f"Normal source returned shape {draw.shape}, expected ({n_paths},)"
            )
        rows.append(draw)
    return jnp.stack(rows)


def _model_time(time: StepTime, params: LMMDDDParams) -> float:
    if isinstance(time, (datetime.date, datetime.datetime)):
        return params.relative_time(time)
    return float(time)


def generate_paths(
    step_times: Sequence[float] | Array,
    initial_states: Array,
    params: LMMDDDParams,
    source: NormalSource,
    config: EvolutionConfig,
) -> Array:
    """Evolve the forwards from time zero through increasing step times.

    Parameters
    ----------
    step_times : Sequence[float] | Array
        Model times, non-negative and strictly increasing. Shape: [n_steps]
    initial_states : Array
        Forwards at time zero for every path. Shape: [n_paths, n_periods]
    params : LMMDDDParams
        Model parameters.
    source : NormalSource
        Provider of standard normal vectors.
    config : EvolutionConfig
        Sub-stepping configuration.

    Returns
    -------
    Array
        Forwards at each step time. Shape: [n_steps, n_periods, n_paths]

    Raises
    ------
    ValueError
        If the step times or the initial states are malformed.
    """
    times = np.atleast_1d(np.asarray(step_times, dtype=np.float64))
    if times.ndim != 1 or times.shape[0] == 0:
        raise ValueError("step_times must be a non-empty one-dimensional sequence")
    if np.any(times < 0.0):
        raise ValueError("step_times must be non-negative")
    if np.any(np.diff(times) <= 0.0):
        raise ValueError("step_times must be strictly increasing")

    states = jnp.asarray(initial_states, dtype=jnp.float64)
    if states.ndim != 2:
        raise ValueError(f"initial_states must be [paths, periods], got shape {states.shape}")
    n_paths, n_periods = states.shape
    if n_periods != params.period_count:
        raise ValueError(
            f"initial_states has {n_periods} periods, the model has {params.period_count}"
        )
    if n_paths <= 0:
        raise ValueError("At least one path is required")

    gamma = params.volatilities
    displacements = params.displacements
    inv_accruals = 1.0 / params.accrual_factors
    mean_reversion = jnp.asarray(params.mean_reversion)

    forwards = states.T
    snapshots = []
    start = 0.0
    for step_end in times:
        boundaries = sub_step_times(start, float(step_end), config.max_jump)
        first_live = params.time_index(boundaries[1:])
        logger.debug(
            "Jump [%.6f, %.6f]: %d sub-steps, first live period %d",
            start,
            step_end,
            boundaries.shape[0] - 1,
            int(first_live[-1]),
        )
        for t0, t1, live_index in zip(boundaries[:-1], boundaries[1:], first_live):
            normals = _draw_normals(source, params.factor_count, n_paths)
            forwards = _predictor_corrector_step(
                forwards,
                gamma,
                displacements,
                inv_accruals,
                normals,
                jnp.asarray(t1 - t0),
                jnp.asarray(t1),
                mean_reversion,
                jnp.asarray(live_index),
            )
        snapshots.append(forwards)
        start = float(step_end)
    return jnp.stack(snapshots)


def evolve_at_each(
    times: Sequence[StepTime],
    initial_state: Array,
    params: LMMDDDParams,
    source: NormalSource,
    n_paths: int,
    config: EvolutionConfig,
) -> Array:
    """Evolve the initial curve state to each of several increasing dates.

    Returns
    -------
    Array
        Shape: [n_steps, n_paths, n_periods]
    """
    if n_paths <= 0:
        raise ValueError(f"n_paths must be > 0, got {n_paths}")
    model_times = [_model_time(t, params) for t in times]
    state = jnp.asarray(initial_state, dtype=jnp.float64)
    if state.ndim != 1:
        raise ValueError(f"initial_state must be one-dimensional, got shape {state.shape}")
    initial_states = jnp.tile(state, (n_paths, 1))
    paths = generate_paths(model_times, initial_states, params, source, config)
    return jnp.transpose(paths, (0, 2, 1))


def evolve_at(
    time: StepTime,
    initial_state: Array,
    params: LMMDDDParams,
    source: NormalSource,
    n_paths: int,
    config: EvolutionConfig,
) -> Array:
    """Evolve the initial curve state to a single date.

    Returns
    -------
    Array
        Shape: [n_paths, n_periods]
    """
    return evolve_at_each([time], initial_state, params, source, n_paths, config)[0]
