"""Tests for the LMM-DDD predictor-corrector path evolution."""
from datetime import timedelta

import jax.numpy as jnp
import numpy as np
import pytest

from lmmddd.core.rng import KeySeq, SequenceNormalSource
from lmmddd.engines.lmm_evolution import (
    EvolutionConfig,
    evolve_at,
    evolve_at_each,
    generate_paths,
    sub_step_times,
)
from lmmddd.models.lmm import LMMDDDParams
from lmmddd.models.lmm_examples import two_factor_angle

N_PATHS = 64


@pytest.fixture
def params(eur_indices, valuation_datetime, semiannual_times):
    overnight, ibor = eur_indices
    return two_factor_angle(
        0.02, 0.1, np.pi / 3, 0.05, 0.02, semiannual_times, overnight, ibor, valuation_datetime
    )


@pytest.fixture
def initial_forwards():
    return jnp.linspace(0.01, 0.025, 10)


@pytest.fixture
def config():
    return EvolutionConfig(max_jump=0.5)


def _small_model(eur_indices, valuation_datetime, ibor_times, volatilities, displacements):
    overnight, ibor = eur_indices
    n_periods = len(ibor_times) - 1
    return LMMDDDParams(
        overnight_index=overnight,
        ibor_index=ibor,
        valuation_datetime=valuation_datetime,
        ibor_times=ibor_times,
        accrual_factors=np.diff(ibor_times),
        multiplicative_spreads=np.ones(n_periods),
        displacements=displacements,
        volatilities=volatilities,
        mean_reversion=0.1,
    )


def test_sub_step_times():
    np.testing.assert_allclose(sub_step_times(0.0, 0.5, 1.0), [0.0, 0.5])
    np.testing.assert_allclose(sub_step_times(0.0, 2.5, 1.0), [0.0, 2.5 / 3, 5.0 / 3, 2.5])
    np.testing.assert_allclose(sub_step_times(1.0, 2.0, 1.0), [1.0, 2.0])
    np.testing.assert_allclose(sub_step_times(1.0, 3.0, 1.0), [1.0, 2.0, 3.0])


def test_config_validation():
    with pytest.raises(ValueError, match="max_jump"):
        EvolutionConfig(max_jump=0.0)
    assert EvolutionConfig().max_jump == 1.0


def test_shapes(params, initial_forwards, config):
    initial_states = jnp.tile(initial_forwards, (N_PATHS, 1))
    paths = generate_paths([0.5, 1.25], initial_states, params, KeySeq(seed=1), config)
    assert paths.shape == (2, 10, N_PATHS)

    at_each = evolve_at_each([0.5, 1.25], initial_forwards, params, KeySeq(seed=1), N_PATHS, config)
    assert at_each.shape == (2, N_PATHS, 10)
    np.testing.assert_array_equal(at_each, jnp.transpose(paths, (0, 2, 1)))

    at = evolve_at(0.75, initial_forwards, params, KeySeq(seed=1), N_PATHS, config)
    assert at.shape == (N_PATHS, 10)
    assert bool(jnp.all(jnp.isfinite(at)))


def test_deterministic_for_a_seed(params, initial_forwards, config):
    first = evolve_at_each([0.5, 2.0], initial_forwards, params, KeySeq(seed=5), N_PATHS, config)
    second = evolve_at_each([0.5, 2.0], initial_forwards, params, KeySeq(seed=5), N_PATHS, config)
    other = evolve_at_each([0.5, 2.0], initial_forwards, params, KeySeq(seed=6), N_PATHS, config)
    np.testing.assert_array_equal(first, second)
    assert not np.allclose(first, other)


def test_single_date_matches_multi_date(params, initial_forwards, config):
    single = evolve_at(1.7, initial_forwards, params, KeySeq(seed=9), N_PATHS, config)
    multi = evolve_at_each([1.7], initial_forwards, params, KeySeq(seed=9), N_PATHS, config)
    np.testing.assert_array_equal(single, multi[0])


def test_calendar_date_input(params, initial_forwards, valuation_datetime):
    config = EvolutionConfig()
    one_year = valuation_datetime + timedelta(days=365)
    by_date = evolve_at(one_year, initial_forwards, params, KeySeq(seed=2), N_PATHS, config)
    by_time = evolve_at(1.0, initial_forwards, params, KeySeq(seed=2), N_PATHS, config)
    np.testing.assert_allclose(by_date, by_time, rtol=1e-12)


def test_started_periods_are_frozen(params, initial_forwards):
    evolved = evolve_at(1.0, initial_forwards, params, KeySeq(seed=3), N_PATHS, EvolutionConfig())
    # Periods starting at 0.0 and 0.5 are fixed during the only sub-step [0, 1]
    np.testing.assert_array_equal(evolved[:, :2], jnp.tile(initial_forwards[:2], (N_PATHS, 1)))
    assert float(jnp.std(evolved[:, 2])) > 0.0


def test_one_normal_matrix_per_sub_step(params, initial_forwards, config):
    n_paths = 5
    # [0, 0.5]: 1 sub-step; [0.5, 2.0]: 3; [2.0, 6.0]: 8, the last three with no live period
    n_draws = (1 + 3 + 8) * params.factor_count * n_paths
    source = SequenceNormalSource(np.random.default_rng(0).standard_normal(n_draws))
    evolve_at_each([0.5, 2.0, 6.0], initial_forwards, params, source, n_paths, config)
    assert source.remaining == 0

    short = SequenceNormalSource(np.zeros(n_draws - 1))
    with pytest.raises(ValueError, match="remain"):
        evolve_at_each([0.5, 2.0, 6.0], initial_forwards, params, short, n_paths, config)


def test_same_draws_same_paths(params, initial_forwards, config):
    draws = np.random.default_rng(4).standard_normal(4 * params.factor_count * 3)
    first = evolve_at(2.0, initial_forwards, params, SequenceNormalSource(draws), 3, config)
    second = evolve_at(2.0, initial_forwards, params, SequenceNormalSource(draws), 3, config)
    np.testing.assert_array_equal(first, second)


def test_last_period_is_driftless(eur_indices, valuation_datetime):
    gamma = np.array([[0.2], [0.3]])
    displacement = np.array([0.05, 0.04])
    params = _small_model(eur_indices, valuation_datetime, [0.0, 1.0, 3.0], gamma, displacement)
    z = np.array([0.3, -1.2, 0.7])
    initial = jnp.array([0.01, 0.02])
    evolved = evolve_at(0.5, initial, params, SequenceNormalSource(z), 3, EvolutionConfig())

    alpha = np.exp(0.1 * 0.5)
    expected = (0.02 + 0.04) * np.exp(
        -0.5 * 0.09 * alpha**2 * 0.5 + 0.3 * alpha * np.sqrt(0.5) * z
    ) - 0.04
    np.testing.assert_allclose(evolved[:, 1], expected, rtol=1e-12)
    np.testing.assert_array_equal(evolved[:, 0], np.full(3, 0.01))


def test_predictor_corrector_drift(eur_indices, valuation_datetime):
    gamma = np.array([[0.2, 0.1], [0.15, 0.25]])
    displacement = np.array([0.05, 0.04])
    ibor_times = [1.0, 2.0, 3.0]
    params = _small_model(eur_indices, valuation_datetime, ibor_times, gamma, displacement)
    initial = jnp.array([0.01, 0.02])
    evolved = evolve_at(0.5, initial, params, SequenceNormalSource(np.zeros(2)), 1, EvolutionConfig())

    dt, alpha2 = 0.5, np.exp(2 * 0.1 * 0.5)
    s = gamma @ gamma.T * alpha2
    inv_delta = 1.0
    l1 = (0.02 + 0.04) * np.exp(-0.5 * s[1, 1] * dt) - 0.04
    coef_predict = (0.02 + 0.04) / (0.02 + inv_delta)
    coef_correct = (l1 + 0.04) / (l1 + inv_delta)
    l0 = (0.01 + 0.05) * np.exp(
        -0.5 * s[0, 1] * (coef_predict + coef_correct) * dt - 0.5 * s[0, 0] * dt
    ) - 0.05
    np.testing.assert_allclose(evolved[0], [l0, l1], rtol=1e-12)


@pytest.mark.parametrize(
    "times",
    [[], [0.5, 0.5], [1.0, 0.5], [-0.1, 0.5]],
)
def test_invalid_step_times(params, initial_forwards, config, times):
    states = jnp.tile(initial_forwards, (2, 1))
    with pytest.raises(ValueError):
        generate_paths(times, states, params, KeySeq(seed=0), config)


def test_invalid_initial_states(params, initial_forwards, config):
    with pytest.raises(ValueError, match="periods"):
        generate_paths([0.5], jnp.ones((3, 4)), params, KeySeq(seed=0), config)
    with pytest.raises(ValueError, match="n_paths"):
        evolve_at(0.5, initial_forwards, params, KeySeq(seed=0), 0, config)
    with pytest.raises(ValueError):
        evolve_at(0.5, jnp.ones((2, 10)), params, KeySeq(seed=0), 2, config)


class _WrongLengthSource:
    def vector(self, size):
        return jnp.zeros(size + 1)


def test_source_returning_wrong_length(params, initial_forwards, config):
    with pytest.raises(ValueError, match="Normal source"):
        evolve_at(0.5, initial_forwards, params, _WrongLengthSource(), 4, config)
