import datetime as dt
from pathlib import Path

import pytest

from annuity_core.domain.models import Annuity, PricePoint

DATA_DIR = Path(__file__).parent / "data"

REFERENCE_PRICES = [
    ("2024-01-01", 40000),
    ("2024-02-01", 42000),
    ("2024-03-01", 45000),
    ("2024-04-01", 43000),
    ("2024-05-01", 41000),
    ("2024-06-01", 40000),
]

ANNUITY_DEFAULTS = dict(
    id="test-annuity-1",
    created_at=dt.date(2024, 1, 1),
    principal=100000.0,
    principal_currency="USD",
    amortization_rate=0.12,
    term_months=4,
)


def _build_prices(rows):
    return [PricePoint(date=dt.date.fromisoformat(d), price=float(p)) for d, p in rows]


def _build_annuity(**overrides) -> Annuity:
    return Annuity(**{**ANNUITY_DEFAULTS, **overrides})


@pytest.fixture
def make_prices():
    """Builds price points from ``(iso date, price)`` rows."""
    return _build_prices


@pytest.fixture
def make_annuity():
    """Builds the reference annuity with any field overridden."""
    return _build_annuity


@pytest.fixture
def reference_prices():
    return _build_prices(REFERENCE_PRICES)


@pytest.fixture
def reference_annuity():
    return _build_annuity()


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR
