"""Tests for the numeraire-rebased discount factors."""
import jax.numpy as jnp
import numpy as np
import pytest

from lmmddd.core.rng import KeySeq
from lmmddd.engines.discounting import (
    initial_forwards_from_discount_factors,
    numeraire_rebased_discount_factors,
)
from lmmddd.engines.lmm_evolution import EvolutionConfig, evolve_at
from lmmddd.models.lmm_examples import two_factor_angle


def test_rollup_values():
    forwards = jnp.array([[0.01, 0.02], [0.03, 0.0]])
    df = numeraire_rebased_discount_factors(forwards, jnp.array([0.5, 1.0]))
    expected = [[1.02 * 1.005, 1.02, 1.0], [1.015, 1.0, 1.0]]
    np.testing.assert_allclose(df, expected, rtol=1e-14)


def test_rollup_shape_mismatch():
    with pytest.raises(ValueError):
        numeraire_rebased_discount_factors(jnp.ones((3, 2)), jnp.ones(3))


def test_initial_forwards_from_discount_factors():
    dfs = jnp.array([1.0, 0.99, 0.975])
    forwards = initial_forwards_from_discount_factors(dfs, jnp.array([0.5, 0.5]))
    np.testing.assert_allclose(forwards, [(1 / 0.99 - 1) / 0.5, (0.99 / 0.975 - 1) / 0.5])

    rebased = numeraire_rebased_discount_factors(forwards[None, :], jnp.array([0.5, 0.5]))
    np.testing.assert_allclose(rebased[0], dfs / dfs[-1], rtol=1e-14)

    with pytest.raises(ValueError):
        initial_forwards_from_discount_factors(dfs, jnp.ones(3))


def test_rebased_bonds_are_martingales(eur_indices, valuation_datetime, semiannual_times):
    overnight, ibor = eur_indices
    params = two_factor_angle(
        0.02, 0.1, np.pi / 3, 0.05, 0.02, semiannual_times, overnight, ibor, valuation_datetime
    )
    times = np.asarray(semiannual_times)
    dfs = jnp.exp(-0.015 * times - 0.001 * times**2)
    initial = initial_forwards_from_discount_factors(dfs, params.accrual_factors)

    n_paths = 20_000
    horizon = 1.0
    forwards = evolve_at(
        horizon, initial, params, KeySeq(seed=17), n_paths, EvolutionConfig(max_jump=0.25)
    )
    rebased = numeraire_rebased_discount_factors(forwards, params.accrual_factors)
    first_alive = int(params.time_index(horizon)[0])

    for k in range(first_alive, params.period_count + 1):
        mean = float(jnp.mean(rebased[:, k]))
        std_error = float(jnp.std(rebased[:, k])) / np.sqrt(n_paths)
        expected = float(dfs[k] / dfs[-1])
        assert abs(mean - expected) < 4.0 * std_error + 1.0e-5, k
