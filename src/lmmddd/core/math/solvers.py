"""
Numerical solvers for vector root finding.

This module provides the quasi-Newton machinery used by the calibrators:
- Finite-difference Jacobians of vector functions
- Broyden's method with backtracking and SVD least-squares steps
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import jax.numpy as jnp

from lmmddd.errors import NotConvergedError

logger = logging.getLogger(__name__)

Array = jnp.ndarray
VectorFunction = Callable[[Array], Array]

DIFFERENCE_SCHEMES = ("forward", "central")

__all__ = [
    "DIFFERENCE_SCHEMES",
    "RootFinderConfig",
    "RootResult",
    "broyden_root",
    "finite_difference_jacobian",
]


@dataclass(frozen=True)
class RootFinderConfig:
    """Settings of the Broyden root finder.

    Attributes:
        absolute_tolerance: Absolute tolerance on the step and on the residual norm.
        relative_tolerance: Step tolerance relative to the current position.
        max_steps: Maximum number of Broyden iterations.
        finite_difference_step: Bump size for the Jacobian.
        difference_scheme: ``"forward"`` or ``"central"`` differences.
        max_backtracks: Number of step halvings tried before the step is rejected.
    """

    absolute_tolerance: float = 1.0e-9
    relative_tolerance: float = 1.0e-4
    max_steps: int = 250
    finite_difference_step: float = 1.0e-5
    difference_scheme: str = "forward"
    max_backtracks: int = 10

    def __post_init__(self) -> None:
        if self.absolute_tolerance <= 0.0:
            raise ValueError("absolute_tolerance must be positive")
        if self.relative_tolerance < 0.0:
            raise ValueError("relative_tolerance must be non-negative")
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive")
        if self.finite_difference_step <= 0.0:
            raise ValueError("finite_difference_step must be positive")
        if self.difference_scheme not in DIFFERENCE_SCHEMES:
            raise ValueError(
                f"difference_scheme must be one of {list(DIFFERENCE_SCHEMES)}, "
                f"got '{self.difference_scheme}'"
            )
        if self.max_backtracks < 0:
            raise ValueError("max_backtracks must be non-negative")


@dataclass(frozen=True)
class RootResult:
    """Outcome of a successful root search."""

    x: Array
    residuals: Array
    iterations: int
    converged: bool = True

    @property
    def residual_norm(self) -> float:
        return float(jnp.linalg.norm(self.residuals))


def _evaluate(f: VectorFunction, x: Array) -> Array:
    return jnp.atleast_1d(jnp.asarray(f(x), dtype=jnp.float64))


def finite_difference_jacobian(
    f: VectorFunction,
    x: Array,
    fx: Optional[Array] = None,
    step: float = 1.0e-5,
    scheme: str = "forward",
) -> Array:
    """
    Jacobian of a vector function by finite differences.

    Args:
        f: Function mapping an ``n`` vector to an ``m`` vector
        x: Point of differentiation, shape ``(n,)``
        fx: ``f(x)`` if already known; only used by the forward scheme
        step: Bump applied to each coordinate
        scheme: ``"forward"`` or ``"central"``

    Returns:
        Matrix of shape ``(m, n)`` with ``J[i, j] = ∂f_i/∂x_j``

    Raises:
        ValueError: If the scheme is unknown
    """
    if scheme not in DIFFERENCE_SCHEMES:
        raise ValueError(f"Unknown difference scheme '{scheme}'")
    x = jnp.asarray(x, dtype=jnp.float64)
    n = x.shape[0]
    if scheme == "forward" and fx is None:
        fx = _evaluate(f, x)

    columns = []
    for j in range(n):
        bump = jnp.zeros(n).at[j].set(step)
        if scheme == "forward":
            columns.append((_evaluate(f, x + bump) - fx) / step)
        else:
            columns.append((_evaluate(f, x + bump) - _evaluate(f, x - bump)) / (2.0 * step))
    return jnp.stack(columns, axis=1)


def _is_finite(values: Array) -> bool:
    return bool(jnp.all(jnp.isfinite(values)))


def broyden_root(
    f: VectorFunction,
    x0: Array,
    config: Optional[RootFinderConfig] = None,
    jacobian: Optional[Callable[[Array, Array], Array]] = None,
) -> RootResult:
    """
    Broyden's method for solving ``f(x) = 0`` with ``f`` from R^n to R^m.

    The Jacobian is initialised by finite differences (or by ``jacobian`` if
    given) and then refined by rank-one updates. Each step solves
    ``J p = -f(x)`` in the least-squares sense through an SVD and is halved
    until the residual norm decreases. When no halving helps, the Jacobian is
    rebuilt once from scratch before giving up.

    Args:
        f: Residual function
        x0: Initial guess
        config: Root finder settings, defaults to :class:`RootFinderConfig`
        jacobian: Optional ``(x, f(x)) -> J`` replacing the finite differences

    Returns:
        RootResult holding the root and the residuals there

    Raises:
        NotConvergedError: If the residual cannot be reduced or ``max_steps``
            iterations are exhausted

    Example:
        >>> def f(x): return jnp.array([x[0] ** 2 - 4.0, x[1] - 1.0])
        >>> result = broyden_root(f, jnp.array([1.0, 0.0]))
        >>> print(result.x)  # Should be ≈ [2.0, 1.0]
    """
    cfg = config or RootFinderConfig()
    abs_tol = cfg.absolute_tolerance
    rel_tol = cfg.relative_tolerance

    def full_jacobian(x: Array, fx: Array) -> Array:
        if jacobian is not None:
            return jnp.asarray(jacobian(x, fx), dtype=jnp.float64)
        return finite_difference_jacobian(
            f, x, fx, step=cfg.finite_difference_step, scheme=cfg.difference_scheme
        )

    x = jnp.atleast_1d(jnp.asarray(x0, dtype=jnp.float64))
    r = _evaluate(f, x)
    if not _is_finite(r):
        raise NotConvergedError("Residual is not finite at the initial guess", iterations=0)
    r_norm = float(jnp.linalg.norm(r))
    if r_norm < abs_tol:
        return RootResult(x=x, residuals=r, iterations=0)

    jac = full_jacobian(x, r)
    jacobian_is_fresh = True

    for iteration in range(1, cfg.max_steps + 1):
        direction = jnp.linalg.lstsq(jac, -r)[0]

        scale = 1.0
        accepted = False
        for _ in range(cfg.max_backtracks + 1):
            x_trial = x + scale * direction
            r_trial = _evaluate(f, x_trial)
            trial_norm = float(jnp.linalg.norm(r_trial))
            if _is_finite(r_trial) and (trial_norm < r_norm or trial_norm < abs_tol):
                accepted = True
                break
            scale *= 0.5

        if not accepted:
            if jacobian_is_fresh:
                raise NotConvergedError(
                    f"Broyden step failed to reduce the residual after {iteration} iterations",
                    iterations=iteration,
                    residual_norm=r_norm,
                )
            logger.debug("Backtracking failed at iteration %d; rebuilding Jacobian", iteration)
            jac = full_jacobian(x, r)
            jacobian_is_fresh = True
            continue

        dx = x_trial - x
        dr = r_trial - r
        jac = jac + jnp.outer(dr - jac @ dx, dx) / jnp.dot(dx, dx)
        jacobian_is_fresh = False
        x, r, r_norm = x_trial, r_trial, trial_norm

        step_small = bool(jnp.all(jnp.abs(dx) <= abs_tol + rel_tol * jnp.abs(x)))
        if step_small or r_norm < abs_tol:
            logger.debug("Broyden converged in %d iterations, |r|=%.3e", iteration, r_norm)
            return RootResult(x=x, residuals=r, iterations=iteration)

    raise NotConvergedError(
        f"Broyden root finder did not converge in {cfg.max_steps} iterations",
        iterations=cfg.max_steps,
        residual_norm=r_norm,
    )
