"""Sources of standard normal draws for the Monte Carlo engine.

The evolution engine only needs one capability from its random source: an
i.i.d. standard normal vector of a requested length. :class:`KeySeq` provides
it from a deterministic stream of JAX PRNG keys; :class:`SequenceNormalSource`
replays pre-computed draws, which is how reproducibility of the draw order is
checked.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

import jax
import jax.numpy as jnp

KeyArray = jax.Array

__all__ = ["KeySeq", "NormalSource", "SequenceNormalSource", "normal"]


@runtime_checkable
class NormalSource(Protocol):
    """Producer of i.i.d. standard normal vectors."""

    def vector(self, size: int) -> jnp.ndarray:
        ...


def normal(key: KeyArray, shape: Iterable[int], dtype: Any = jnp.float64) -> jnp.ndarray:
    """Standard normal samples for a given key and shape."""
    return jax.random.normal(key, tuple(shape), dtype=dtype)


@dataclass
class KeySeq:
    """Stateful helper that manages a deterministic stream of PRNG keys.

    Each call to :meth:`vector` consumes exactly one sub-key, so two sequences
    built from the same seed produce identical draws as long as they are
    queried with the same sizes in the same order.
    """

    seed: int = 0
    _key: KeyArray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._key = jax.random.PRNGKey(self.seed)

    @classmethod
    def from_config(cls, config: Any) -> "KeySeq":
        """Instantiate a ``KeySeq`` using the configuration ``seed``."""
        seed = getattr(config, "seed", None)
        if seed is None and isinstance(config, Mapping):
            seed = config.get("seed")
        if seed is None:
            raise ValueError("Configuration does not define a 'seed' entry")
        return cls(seed=int(seed))

    def next(self) -> KeyArray:
        """Return the next sub-key and update the internal state."""
        self._key, sub = jax.random.split(self._key)
        return sub

    def normal(self, shape: Iterable[int], dtype: Any = jnp.float64) -> jnp.ndarray:
        """Convenience wrapper for drawing standard normal samples."""
        return normal(self.next(), shape, dtype=dtype)

    def vector(self, size: int) -> jnp.ndarray:
        """Draw one standard normal vector of length ``size``."""
        return self.normal((size,))


class SequenceNormalSource:
    """Serve consecutive slices of a fixed array of normal draws.

    Raises
    ------
    ValueError
        If more draws are requested than were supplied.
    """

    def __init__(self, draws: Any) -> None:
        self._draws = jnp.ravel(jnp.asarray(draws, dtype=jnp.float64))
        self._position = 0

    @property
    def consumed(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return int(self._draws.shape[0]) - self._position

    def vector(self, size: int) -> jnp.ndarray:
        if size > self.remaining:
            raise ValueError(
                f"Requested {size} normal draws but only {self.remaining} remain"
            )
        start = self._position
        self._position += size
        return self._draws[start:self._position]
