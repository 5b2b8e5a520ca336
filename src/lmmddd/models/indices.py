"""Identity of the rate indices represented by the model."""
from __future__ import annotations

from dataclasses import dataclass

__all__ = ["IborIndex", "OvernightIndex"]


def _check_currency(currency: str) -> str:
    code = currency.upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"Currency must be a three-letter ISO code, got {currency!r}")
    return code


@dataclass(frozen=True)
class OvernightIndex:
    """Overnight index whose compounded rates drive the discounting forwards."""

    name: str
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", _check_currency(self.currency))

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IborIndex:
    """Term index modelled through multiplicative spreads over the forwards.

    Attributes
    ----------
    name : str
        Market identifier, e.g. ``"EUR-EURIBOR-3M"``.
    currency : str
        ISO currency code.
    tenor_months : int
        Length of the underlying deposit period.
    """

    name: str
    currency: str
    tenor_months: int = 3

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", _check_currency(self.currency))
        if self.tenor_months <= 0:
            raise ValueError(f"tenor_months must be positive, got {self.tenor_months}")

    def __str__(self) -> str:
        return self.name
