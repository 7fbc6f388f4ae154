from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from annuity_core.domain.errors import DegenerateStatistics, InsufficientData
from annuity_core.domain.models import (
    EnvelopePoint,
    MonteCarloConfig,
    MonteCarloMetadata,
    MonteCarloResult,
    PricePoint,
)

logger = logging.getLogger(__name__)


def _valid_prices(prices: Sequence[PricePoint]) -> List[PricePoint]:
    return [p for p in prices if p.price is not None and math.isfinite(p.price) and p.price > 0]


def restrict_history(prices: Sequence[PricePoint], years: Optional[int]) -> List[PricePoint]:
    """Keep the points strictly after ``years`` before the last date."""
    if not prices or years is None:
        return list(prices)
    cutoff = (pd.Timestamp(prices[-1].date) - pd.DateOffset(years=years)).date()
    return [p for p in prices if p.date > cutoff]


def daily_log_returns(prices: Sequence[PricePoint]) -> Tuple[np.ndarray, int]:
    """Log returns of consecutive points; pairs with a non-positive price are skipped."""
    returns: List[float] = []
    skipped = 0
    for prev, curr in zip(prices, prices[1:]):
        if prev.price <= 0 or curr.price <= 0:
            logger.warning("Invalid price pair skipped: %s=%s, %s=%s", prev.date, prev.price, curr.date, curr.price)
            skipped += 1
            continue
        returns.append(math.log(curr.price / prev.price))
    return np.array(returns, dtype=float), skipped


def fit_log_returns(returns: np.ndarray) -> Tuple[float, float]:
    """Sample mean and Bessel-corrected standard deviation."""
    if returns.size == 0:
        raise DegenerateStatistics("No valid returns to calculate statistics")
    mean = float(np.mean(returns))
    variance = float(np.var(returns, ddof=1)) if returns.size > 1 else math.nan
    if not math.isfinite(mean) or not math.isfinite(variance):
        raise DegenerateStatistics(f"Invalid statistics: mean={mean}, variance={variance}")
    return mean, math.sqrt(variance)


def _box_muller(rng: np.random.Generator, size: Tuple[int, int]) -> np.ndarray:
    # 1 - U keeps u1 in (0, 1] so the log stays finite
    u1 = 1.0 - rng.random(size)
    u2 = rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def simulate_paths(
    anchor_price: float,
    mean: float,
    std_dev: float,
    paths: int,
    days: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    GBM price paths of shape (paths, days), stepping day by day from ``anchor_price``.
    A step that produces a non-positive or non-finite price restarts at the anchor.
    """
    z = _box_muller(rng, (paths, days))
    log_returns = mean + std_dev * z

    prices = np.empty((paths, days), dtype=float)
    current = np.full(paths, anchor_price, dtype=float)
    clamped = 0
    with np.errstate(over="ignore", invalid="ignore"):
        for day in range(days):
            current = current * np.exp(log_returns[:, day])
            bad = ~np.isfinite(current) | (current <= 0)
            if bad.any():
                clamped += int(bad.sum())
                current[bad] = anchor_price
            prices[:, day] = current
    if clamped:
        logger.warning("Reset %d simulated prices to the last historical price %.2f", clamped, anchor_price)
    return prices


def reduce_envelope(dates: Sequence[dt.date], prices: np.ndarray) -> List[EnvelopePoint]:
    """Per-date max (best), min (worst) and mean (average) across paths."""
    best = prices.max(axis=0)
    worst = prices.min(axis=0)
    average = prices.mean(axis=0)
    return [
        EnvelopePoint(
            date=d,
            best_price=float(best[i]),
            worst_price=float(worst[i]),
            average_price=float(average[i]),
        )
        for i, d in enumerate(dates)
    ]


def generate_paths(
    historical_prices: Sequence[PricePoint],
    number_of_paths: int = 100,
    projection_days: int = 365,
    seed: Optional[int] = None,
) -> MonteCarloResult:
    """
    Fit daily log returns to history and project ``number_of_paths`` daily price
    paths ``projection_days`` ahead of the last historical point.
    """
    valid = _valid_prices(historical_prices)
    if len(valid) < 2:
        raise InsufficientData(f"Insufficient historical price data: {len(valid)} valid points, need >= 2")

    returns, skipped = daily_log_returns(valid)
    mean, std_dev = fit_log_returns(returns)

    anchor = valid[-1]
    rng = np.random.default_rng(seed)
    prices = simulate_paths(anchor.price, mean, std_dev, number_of_paths, projection_days, rng)

    dates = [anchor.date + dt.timedelta(days=day) for day in range(1, projection_days + 1)]
    paths = [
        [PricePoint(date=d, price=float(price)) for d, price in zip(dates, row)]
        for row in prices
    ]

    statistics: Dict[str, float] = {
        "mean": mean,
        "std_dev": std_dev,
        "returns": int(returns.size),
        "skipped_pairs": skipped,
    }
    logger.info(
        "Generated %d Monte Carlo paths over %d days (mean=%.6f, std=%.6f)",
        number_of_paths, projection_days, mean, std_dev,
    )
    return MonteCarloResult(
        paths=paths,
        envelope=reduce_envelope(dates, prices),
        metadata=MonteCarloMetadata(
            generated_at=dt.datetime.now(dt.timezone.utc).isoformat(),
            number_of_paths=number_of_paths,
            projection_days=projection_days,
            last_historical_date=anchor.date,
            last_historical_price=anchor.price,
            statistics=statistics,
        ),
    )


def run_monte_carlo(historical_prices: Sequence[PricePoint], config: MonteCarloConfig) -> MonteCarloResult:
    """Generate paths on the configured history window and attach the data range."""
    window = restrict_history(historical_prices, config.history_years)
    valid = _valid_prices(window)
    result = generate_paths(valid, config.paths, config.projection_days, config.seed)
    result.metadata.data_range = {
        "total_data_points": len(historical_prices),
        "valid_data_points": len(valid),
        "filtered_data_points": len(historical_prices) - len(valid),
        "start_date": valid[0].date.isoformat(),
        "start_price": valid[0].price,
        "end_date": valid[-1].date.isoformat(),
        "end_price": valid[-1].price,
        "years_of_history": config.history_years,
    }
    return result
