"""Configure test environment for importing the project package."""
import sys
from datetime import datetime, timezone
from pathlib import Path

import jax.numpy as jnp
import pytest

SRC = Path(__file__).resolve().parents[2]
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from lmmddd.models.indices import IborIndex, OvernightIndex  # noqa: E402


@pytest.fixture
def valuation_datetime():
    return datetime(2021, 6, 15, 11, 0, tzinfo=timezone.utc)


@pytest.fixture
def eur_indices():
    """EUR overnight and 6M Ibor indices."""
    return OvernightIndex("EUR-ESTR", "EUR"), IborIndex("EUR-EURIBOR-6M", "EUR", tenor_months=6)


@pytest.fixture
def semiannual_times():
    """Semi-annual period boundaries from 0 to 5 years."""
    return 0.5 * jnp.arange(11, dtype=jnp.float64)
