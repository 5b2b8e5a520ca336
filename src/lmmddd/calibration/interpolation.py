"""Nodal interpolation schemes for calibration multipliers.

The N-level calibrator solves for one multiplier per calibration node and
spreads them over every model period with one of the schemes below. A scheme
is any callable ``(x_nodes, y_nodes, x_new) -> y_new``; the built-in ones
interpolate inside the node range and extrapolate outside it either flat
(boundary value) or linearly (boundary slope).

- Linear interpolation
- Natural cubic spline
- Monotone-preserving cubic spline (Fritsch-Carlson)
"""
from __future__ import annotations

from typing import Protocol

import jax.numpy as jnp

__all__ = [
    "EXTRAPOLATIONS",
    "LinearInterpolator",
    "MonotoneCubicInterpolator",
    "NaturalCubicSplineInterpolator",
    "NodalInterpolator",
    "get_interpolator",
    "natural_cubic_spline_coefficients",
]

EXTRAPOLATIONS = ("flat", "linear")


class NodalInterpolator(Protocol):
    """Callable signature for 1-D nodal interpolation schemes."""

    def __call__(self, x: jnp.ndarray, y: jnp.ndarray, x_new: jnp.ndarray) -> jnp.ndarray:
        ...


def _check_nodes(x: jnp.ndarray, y: jnp.ndarray) -> None:
    if x.ndim != 1 or x.shape != y.shape:
        raise ValueError("x and y must be one-dimensional with the same length")
    if x.shape[0] < 1:
        raise ValueError("Need at least 1 node for interpolation")
    if x.shape[0] > 1 and bool(jnp.any(jnp.diff(x) <= 0.0)):
        raise ValueError("Interpolation nodes must be strictly increasing")


def _check_extrapolation(extrapolation: str) -> str:
    canonical = extrapolation.lower()
    if canonical not in EXTRAPOLATIONS:
        raise ValueError(f"extrapolation must be one of {list(EXTRAPOLATIONS)}")
    return canonical


def _locate(x: jnp.ndarray, x_new: jnp.ndarray) -> jnp.ndarray:
    """Index of the interval containing each point, clipped to the node range."""
    i = jnp.searchsorted(x, x_new) - 1
    return jnp.clip(i, 0, x.shape[0] - 2)


def _extrapolate(
    x: jnp.ndarray,
    y: jnp.ndarray,
    x_new: jnp.ndarray,
    inside: jnp.ndarray,
    slope_left: jnp.ndarray,
    slope_right: jnp.ndarray,
    extrapolation: str,
) -> jnp.ndarray:
    if extrapolation == "flat":
        left = jnp.full_like(x_new, y[0])
        right = jnp.full_like(x_new, y[-1])
    else:
        left = y[0] + slope_left * (x_new - x[0])
        right = y[-1] + slope_right * (x_new - x[-1])
    return jnp.where(x_new < x[0], left, jnp.where(x_new > x[-1], right, inside))


class LinearInterpolator:
    """Piecewise linear interpolation between nodes."""

    def __init__(self, extrapolation: str = "flat") -> None:
        self.extrapolation = _check_extrapolation(extrapolation)

    def __call__(self, x: jnp.ndarray, y: jnp.ndarray, x_new: jnp.ndarray) -> jnp.ndarray:
        x = jnp.asarray(x, dtype=jnp.float64)
        y = jnp.asarray(y, dtype=jnp.float64)
        x_new = jnp.asarray(x_new, dtype=jnp.float64)
        _check_nodes(x, y)
        if x.shape[0] == 1:
            return jnp.full_like(x_new, y[0])

        inside = jnp.interp(x_new, x, y)
        slope_left = (y[1] - y[0]) / (x[1] - x[0])
        slope_right = (y[-1] - y[-2]) / (x[-1] - x[-2])
        return _extrapolate(x, y, x_new, inside, slope_left, slope_right, self.extrapolation)

    def __repr__(self) -> str:
        return f"LinearInterpolator(extrapolation={self.extrapolation!r})"


def natural_cubic_spline_coefficients(
    x: jnp.ndarray, y: jnp.ndarray
) -> tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    """Compute natural cubic spline coefficients.

    For interval ``[x[i], x[i+1]]`` the spline is
    ``a[i] + b[i]*dx + c[i]*dx**2 + d[i]*dx**3`` with ``dx = t - x[i]``, and
    the second derivative vanishes at both ends.
    """
    n = x.shape[0] - 1
    h = jnp.diff(x)

    alpha = jnp.zeros(max(n - 1, 0))
    for i in range(1, n):
        alpha = alpha.at[i - 1].set(
            (3.0 / h[i]) * (y[i + 1] - y[i]) - (3.0 / h[i - 1]) * (y[i] - y[i - 1])
        )

    # Tridiagonal solve with c[0] = c[n] = 0
    l = jnp.ones(n + 1)
    mu = jnp.zeros(n + 1)
    z = jnp.zeros(n + 1)
    for i in range(1, n):
        l = l.at[i].set(2.0 * (x[i + 1] - x[i - 1]) - h[i - 1] * mu[i - 1])
        mu = mu.at[i].set(h[i] / l[i])
        z = z.at[i].set((alpha[i - 1] - h[i - 1] * z[i - 1]) / l[i])

    c_vals = jnp.zeros(n + 1)
    b_vals = jnp.zeros(n)
    d_vals = jnp.zeros(n)
    for j in range(n - 1, -1, -1):
        c_vals = c_vals.at[j].set(z[j] - mu[j] * c_vals[j + 1])
        b_vals = b_vals.at[j].set(
            (y[j + 1] - y[j]) / h[j] - h[j] * (c_vals[j + 1] + 2.0 * c_vals[j]) / 3.0
        )
        d_vals = d_vals.at[j].set((c_vals[j + 1] - c_vals[j]) / (3.0 * h[j]))

    return y[:-1], b_vals, c_vals[:-1], d_vals


class NaturalCubicSplineInterpolator:
    """Natural cubic spline; two nodes reduce to linear interpolation."""

    def __init__(self, extrapolation: str = "flat") -> None:
        self.extrapolation = _check_extrapolation(extrapolation)

    def __call__(self, x: jnp.ndarray, y: jnp.ndarray, x_new: jnp.ndarray) -> jnp.ndarray:
        x = jnp.asarray(x, dtype=jnp.float64)
        y = jnp.asarray(y, dtype=jnp.float64)
        x_new = jnp.asarray(x_new, dtype=jnp.float64)
        _check_nodes(x, y)
        if x.shape[0] <= 2:
            return LinearInterpolator(self.extrapolation)(x, y, x_new)

        a, b, c, d = natural_cubic_spline_coefficients(x, y)
        i = _locate(x, x_new)
        dx = jnp.clip(x_new, x[0], x[-1]) - x[i]
        inside = a[i] + b[i] * dx + c[i] * dx * dx + d[i] * dx * dx * dx

        h_last = x[-1] - x[-2]
        slope_left = b[0]
        slope_right = b[-1] + 2.0 * c[-1] * h_last + 3.0 * d[-1] * h_last * h_last
        return _extrapolate(x, y, x_new, inside, slope_left, slope_right, self.extrapolation)

    def __repr__(self) -> str:
        return f"NaturalCubicSplineInterpolator(extrapolation={self.extrapolation!r})"


class MonotoneCubicInterpolator:
    """Monotone-preserving cubic Hermite spline (Fritsch-Carlson).

    The interpolant is monotone wherever the node values are, so positive
    multipliers never overshoot between nodes.
    """

    def __init__(self, extrapolation: str = "flat") -> None:
        self.extrapolation = _check_extrapolation(extrapolation)

    @staticmethod
    def tangents(x: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        n = x.shape[0]
        h = jnp.diff(x)
        delta = jnp.diff(y) / h

        m = jnp.zeros(n)
        for i in range(1, n - 1):
            if delta[i - 1] * delta[i] > 0:
                w1 = 2.0 * h[i] + h[i - 1]
                w2 = h[i] + 2.0 * h[i - 1]
                m = m.at[i].set((w1 + w2) / (w1 / delta[i - 1] + w2 / delta[i]))
        m = m.at[0].set(delta[0])
        m = m.at[-1].set(delta[-1])

        for i in range(n - 1):
            if jnp.abs(delta[i]) < 1e-12:
                m = m.at[i].set(0.0)
                m = m.at[i + 1].set(0.0)
                continue
            alpha = m[i] / delta[i]
            beta = m[i + 1] / delta[i]
            norm2 = alpha * alpha + beta * beta
            if norm2 > 9.0:
                tau = 3.0 / jnp.sqrt(norm2)
                m = m.at[i].set(tau * alpha * delta[i])
                m = m.at[i + 1].set(tau * beta * delta[i])
        return m

    def __call__(self, x: jnp.ndarray, y: jnp.ndarray, x_new: jnp.ndarray) -> jnp.ndarray:
        x = jnp.asarray(x, dtype=jnp.float64)
        y = jnp.asarray(y, dtype=jnp.float64)
        x_new = jnp.asarray(x_new, dtype=jnp.float64)
        _check_nodes(x, y)
        if x.shape[0] <= 2:
            return LinearInterpolator(self.extrapolation)(x, y, x_new)

        m = self.tangents(x, y)
        i = _locate(x, x_new)
        h = x[i + 1] - x[i]
        t = (jnp.clip(x_new, x[0], x[-1]) - x[i]) / h

        h00 = 2.0 * t**3 - 3.0 * t**2 + 1.0
        h10 = t**3 - 2.0 * t**2 + t
        h01 = -2.0 * t**3 + 3.0 * t**2
        h11 = t**3 - t**2
        inside = h00 * y[i] + h10 * h * m[i] + h01 * y[i + 1] + h11 * h * m[i + 1]
        return _extrapolate(x, y, x_new, inside, m[0], m[-1], self.extrapolation)

    def __repr__(self) -> str:
        return f"MonotoneCubicInterpolator(extrapolation={self.extrapolation!r})"


_SCHEMES = {
    "linear": LinearInterpolator,
    "natural_cubic": NaturalCubicSplineInterpolator,
    "monotone_cubic": MonotoneCubicInterpolator,
}


def get_interpolator(name: str, extrapolation: str = "flat") -> NodalInterpolator:
    """Look up a built-in scheme by name."""
    try:
        scheme = _SCHEMES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown interpolation scheme '{name}'. Expected one of {sorted(_SCHEMES)}"
        ) from None
    return scheme(extrapolation)
