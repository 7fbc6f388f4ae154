from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from annuity_core.domain.models import (
    CashFlow,
    EnvelopePoint,
    MonteCarloMetadata,
    MonteCarloResult,
    MonthlyIncome,
    PortfolioValuation,
    PricePoint,
    ScenarioResult,
    ScenarioResults,
)


def _date(value: str) -> dt.date:
    return dt.date.fromisoformat(value[:10])


def price_points_to_records(points: Iterable[PricePoint]) -> List[Dict[str, Any]]:
    return [{"date": p.date.isoformat(), "price": p.price} for p in points]


def monte_carlo_to_dict(result: MonteCarloResult, include_paths: bool = False) -> Dict[str, Any]:
    meta = result.metadata
    payload: Dict[str, Any] = {
        "envelope": [
            {
                "date": p.date.isoformat(),
                "bestPrice": p.best_price,
                "worstPrice": p.worst_price,
                "averagePrice": p.average_price,
            }
            for p in result.envelope
        ],
        "metadata": {
            "generatedAt": meta.generated_at,
            "numberOfPaths": meta.number_of_paths,
            "projectionDays": meta.projection_days,
            "lastHistoricalDate": meta.last_historical_date.isoformat(),
            "lastHistoricalPrice": meta.last_historical_price,
            "statistics": meta.statistics,
            "dataRange": meta.data_range,
        },
    }
    if include_paths:
        payload["paths"] = [price_points_to_records(path) for path in result.paths]
    return payload


def monte_carlo_from_dict(data: Dict[str, Any]) -> MonteCarloResult:
    meta = data["metadata"]
    return MonteCarloResult(
        paths=[
            [PricePoint(date=_date(p["date"]), price=float(p["price"])) for p in path]
            for path in data.get("paths", [])
        ],
        envelope=[
            EnvelopePoint(
                date=_date(p["date"]),
                best_price=float(p["bestPrice"]),
                worst_price=float(p["worstPrice"]),
                average_price=float(p["averagePrice"]),
            )
            for p in data.get("envelope", [])
        ],
        metadata=MonteCarloMetadata(
            generated_at=meta.get("generatedAt", ""),
            number_of_paths=int(meta.get("numberOfPaths", 0)),
            projection_days=int(meta.get("projectionDays", 0)),
            last_historical_date=_date(meta["lastHistoricalDate"]),
            last_historical_price=float(meta["lastHistoricalPrice"]),
            statistics=meta.get("statistics", {}) or {},
            data_range=meta.get("dataRange", {}) or {},
        ),
    )


def results_to_dict(results: ScenarioResults) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for name, scenario in results.items():
        payload[name] = {
            "cashFlows": [
                {
                    "date": cf.date.isoformat(),
                    "annuityId": cf.annuity_id,
                    "type": cf.type,
                    "usdAmount": cf.usd_amount,
                    "btcAmount": cf.btc_amount,
                    "isProjection": cf.is_projection,
                }
                for cf in scenario.cash_flows
            ],
            "valuations": [
                {
                    "date": v.date.isoformat(),
                    "btcValue": v.btc_value,
                    "usdValue": v.usd_value,
                    "isProjection": v.is_projection,
                }
                for v in scenario.valuations
            ],
            "monthlyIncome": [
                {"date": m.date.isoformat(), "usdAmount": m.usd_amount, "isProjection": m.is_projection}
                for m in scenario.monthly_income
            ],
        }
    return payload


def results_from_dict(data: Dict[str, Any]) -> ScenarioResults:
    results: ScenarioResults = {}
    for name, scenario in data.items():
        results[name] = ScenarioResult(
            cash_flows=[
                CashFlow(
                    date=_date(cf["date"]),
                    annuity_id=cf["annuityId"],
                    type=cf["type"],
                    usd_amount=float(cf["usdAmount"]),
                    btc_amount=float(cf["btcAmount"]),
                    is_projection=bool(cf.get("isProjection", False)),
                )
                for cf in scenario.get("cashFlows", [])
            ],
            valuations=[
                PortfolioValuation(
                    date=_date(v["date"]),
                    btc_value=float(v["btcValue"]),
                    usd_value=float(v["usdValue"]),
                    is_projection=bool(v.get("isProjection", False)),
                )
                for v in scenario.get("valuations", [])
            ],
            monthly_income=[
                MonthlyIncome(
                    date=_date(m["date"]),
                    usd_amount=float(m["usdAmount"]),
                    is_projection=bool(m.get("isProjection", False)),
                )
                for m in scenario.get("monthlyIncome", [])
            ],
        )
    return results


def save_json(path: str | Path, payload: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def read_json(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
