"""Tests for the finite-difference Jacobian and the Broyden root finder."""
import jax.numpy as jnp
import numpy as np
import pytest

from lmmddd.core.math.solvers import RootFinderConfig, broyden_root, finite_difference_jacobian
from lmmddd.errors import CalibrationError, NotConvergedError

TIGHT = RootFinderConfig(relative_tolerance=1.0e-10)


def test_jacobian_of_linear_map():
    a = jnp.array([[2.0, -1.0, 0.5], [0.0, 3.0, 1.0]])

    def f(x):
        return a @ x

    x = jnp.array([0.3, -0.2, 1.0])
    np.testing.assert_allclose(finite_difference_jacobian(f, x), a, atol=1e-8)
    np.testing.assert_allclose(finite_difference_jacobian(f, x, scheme="central"), a, atol=1e-8)


def test_central_scheme_more_accurate():
    def f(x):
        return jnp.array([jnp.exp(x[0]), x[0] * x[1] ** 2])

    x = jnp.array([0.5, 2.0])
    exact = jnp.array([[jnp.exp(0.5), 0.0], [4.0, 2.0]])
    forward = finite_difference_jacobian(f, x, step=1e-4)
    central = finite_difference_jacobian(f, x, step=1e-4, scheme="central")
    assert float(jnp.max(jnp.abs(central - exact))) < float(jnp.max(jnp.abs(forward - exact)))


def test_unknown_scheme():
    with pytest.raises(ValueError, match="Unknown difference scheme"):
        finite_difference_jacobian(lambda x: x, jnp.ones(2), scheme="backward")


def test_broyden_linear_system():
    a = jnp.array([[3.0, 1.0], [1.0, 2.0]])
    b = jnp.array([9.0, 8.0])
    result = broyden_root(lambda x: a @ x - b, jnp.zeros(2), TIGHT)
    assert result.converged
    np.testing.assert_allclose(result.x, [2.0, 3.0], atol=1e-8)
    assert result.residual_norm < 1e-8


def test_broyden_nonlinear_system():
    def f(x):
        return jnp.array([x[0] ** 2 - 4.0, x[0] * x[1] - 2.0])

    result = broyden_root(f, jnp.array([1.0, 0.5]), TIGHT)
    np.testing.assert_allclose(result.x, [2.0, 1.0], atol=1e-6)
    assert result.iterations > 1


def test_broyden_default_tolerances():
    result = broyden_root(lambda x: x ** 3 - 8.0, jnp.array([1.5]))
    assert float(result.x[0]) == pytest.approx(2.0, abs=1e-3)


def test_initial_guess_already_a_root():
    result = broyden_root(lambda x: x - 1.0, jnp.array([1.0]))
    assert result.iterations == 0
    assert result.converged


def test_no_root_raises():
    with pytest.raises(NotConvergedError) as info:
        broyden_root(lambda x: x ** 2 + 1.0, jnp.array([1.0]))
    assert isinstance(info.value, CalibrationError)
    assert info.value.residual_norm is not None


def test_max_steps_exhausted():
    config = RootFinderConfig(max_steps=1)
    with pytest.raises(NotConvergedError) as info:
        broyden_root(lambda x: x ** 3 - 2.0, jnp.array([10.0]), config)
    assert info.value.iterations == 1


def test_analytic_jacobian_is_used():
    calls = {"count": 0}

    def jacobian(x, fx):
        calls["count"] += 1
        return jnp.diag(2.0 * x)

    result = broyden_root(lambda x: x ** 2 - 9.0, jnp.array([2.0, 4.0]), TIGHT, jacobian=jacobian)
    np.testing.assert_allclose(result.x, [3.0, 3.0], atol=1e-6)
    assert calls["count"] >= 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"absolute_tolerance": 0.0},
        {"relative_tolerance": -1.0},
        {"max_steps": 0},
        {"finite_difference_step": 0.0},
        {"difference_scheme": "backward"},
        {"max_backtracks": -1},
    ],
)
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        RootFinderConfig(**kwargs)
