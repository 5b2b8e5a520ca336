"""Discount factors implied by simulated LMM-DDD forwards.

The numeraire of the evolution is the discount bond maturing on the last model
date. On a path, the value of the bond maturing on ``t_k`` expressed in units
of the numeraire is the product of the compounding factors of the periods
after ``t_k``:

    P(t, t_k) / P(t, t_P) = Π_{j>=k} (1 + δ_j L_j(t))
"""
from __future__ import annotations

import jax.numpy as jnp

Array = jnp.ndarray

__all__ = ["initial_forwards_from_discount_factors", "numeraire_rebased_discount_factors"]


def numeraire_rebased_discount_factors(forwards: Array, accrual_factors: Array) -> Array:
    """Numeraire-rebased discount factors on the model dates.

    Parameters
    ----------
    forwards : Array
        Simulated forwards. Shape: [n_paths, n_periods]
    accrual_factors : Array
        Accrual factors of the periods. Shape: [n_periods]

    Returns
    -------
    Array
        Shape [n_paths, n_periods + 1] with ``df[:, -1] = 1`` and
        ``df[:, k] = df[:, k + 1] (1 + δ_k L_k)``.
    """
    forwards = jnp.atleast_2d(jnp.asarray(forwards, dtype=jnp.float64))
    accrual_factors = jnp.asarray(accrual_factors, dtype=jnp.float64)
    if forwards.shape[-1] != accrual_factors.shape[0]:
        raise ValueError(
            f"forwards have {forwards.shape[-1]} periods, accrual_factors {accrual_factors.shape[0]}"
        )
    growth = 1.0 + forwards * accrual_factors
    rolled = jnp.cumprod(growth[:, ::-1], axis=1)[:, ::-1]
    return jnp.concatenate([rolled, jnp.ones((forwards.shape[0], 1))], axis=1)


def initial_forwards_from_discount_factors(
    discount_factors: Array, accrual_factors: Array
) -> Array:
    """Discounting forwards ``(P(t_i) / P(t_{i+1}) - 1) / δ_i`` from discount factors.

    ``discount_factors`` are taken on the model dates ``t_0..t_P`` and
    ``accrual_factors`` on the periods.
    """
    discount_factors = jnp.asarray(discount_factors, dtype=jnp.float64)
    accrual_factors = jnp.asarray(accrual_factors, dtype=jnp.float64)
    if discount_factors.shape[0] != accrual_factors.shape[0] + 1:
        raise ValueError("discount_factors must have one more entry than accrual_factors")
    return (discount_factors[:-1] / discount_factors[1:] - 1.0) / accrual_factors
