from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Mapping

import pandas as pd

from annuity_core.domain.calendar import parse_portfolio_date
from annuity_core.domain.models import PricePoint

REQUIRED_COLUMNS = {"date", "price"}


def _to_points(df: pd.DataFrame) -> List[PricePoint]:
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in price history: {missing}")

    df = df[["date", "price"]].copy()
    # slash dates are DD/MM/YYYY, as for annuity records
    df["date"] = df["date"].map(parse_portfolio_date)
    df["price"] = pd.to_numeric(df["price"], errors="coerce")
    df = df.sort_values("date", kind="stable").drop_duplicates(subset="date", keep="first")
    return [PricePoint(date=row.date, price=float(row.price)) for row in df.itertuples(index=False)]


def price_points_from_records(records: Iterable[Mapping]) -> List[PricePoint]:
    """Build price points from ``{date, price}`` mappings; other keys are ignored."""
    rows = [{"date": r["date"], "price": r["price"]} for r in records]
    if not rows:
        return []
    return _to_points(pd.DataFrame(rows))


def load_price_history(path: str | Path) -> List[PricePoint]:
    """Load daily prices from a CSV (date,price columns) or a JSON list of records."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    if path.suffix.lower() == ".json":
        df = pd.read_json(path, orient="records", convert_dates=False)
    else:
        df = pd.read_csv(path)
    return _to_points(df)
