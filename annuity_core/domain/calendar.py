from __future__ import annotations

import datetime as dt
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from annuity_core.domain.models import PricePoint

DateLike = Union[str, dt.date, dt.datetime, pd.Timestamp]


def parse_portfolio_date(value: DateLike) -> dt.date:
    """
    Normalise a date-like value to a calendar day.
    - ISO dates and datetimes; tz-aware values are converted to UTC first.
    - Slash dates are read as DD/MM/YYYY.
    """
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value
    if isinstance(value, str) and "/" in value:
        value = "-".join(reversed(value.strip().split("/")))
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"Not a date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.date()


def month_start(date: dt.date) -> dt.date:
    return dt.date(date.year, date.month, 1)


def is_month_start(date: dt.date) -> bool:
    return date.day == 1


def add_months(date: dt.date, months: int) -> dt.date:
    # DateOffset clamps the day to the end of shorter months
    return (pd.Timestamp(date) + pd.DateOffset(months=months)).date()


def iterate_months(start: dt.date, number_of_months: int) -> List[dt.date]:
    """First day of each of the ``number_of_months`` months after ``start``."""
    first = pd.Period(start, freq="M")
    return [(first + i).to_timestamp().date() for i in range(1, number_of_months + 1)]


def months_between(start: dt.date, end: dt.date) -> int:
    """Whole months from ``start`` to ``end``; negative when ``end`` is earlier."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def index_prices(prices: Iterable[PricePoint]) -> Dict[dt.date, float]:
    """Map each calendar day to its price; the first point wins on duplicates."""
    index: Dict[dt.date, float] = {}
    for point in prices:
        index.setdefault(point.date, point.price)
    return index


def find_price(date: dt.date, prices: Union[Dict[dt.date, float], Iterable[PricePoint]]) -> Optional[float]:
    if not isinstance(prices, dict):
        prices = index_prices(prices)
    return prices.get(date)
