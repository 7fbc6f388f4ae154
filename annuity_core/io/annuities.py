from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from annuity_core.domain.calendar import parse_portfolio_date
from annuity_core.domain.errors import InvalidAnnuity
from annuity_core.domain.models import CURRENCIES, Annuity


def annuity_from_dict(data: Mapping[str, Any]) -> Annuity:
    try:
        annuity = Annuity(
            id=str(data["id"]),
            created_at=parse_portfolio_date(data["createdAt"]),
            principal=float(data["principal"]),
            principal_currency=str(data.get("principalCurrency", "USD")).upper(),
            amortization_rate=float(data["amortizationRate"]),
            term_months=int(data["termMonths"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidAnnuity(f"Malformed annuity record {dict(data)!r}: {exc}") from exc
    validate_annuity(annuity)
    return annuity


def validate_annuity(annuity: Annuity) -> None:
    if not math.isfinite(annuity.principal) or annuity.principal <= 0:
        raise InvalidAnnuity(f"{annuity.id}: principal must be positive")
    if annuity.principal_currency not in CURRENCIES:
        raise InvalidAnnuity(f"{annuity.id}: unknown currency {annuity.principal_currency!r}")
    if not 0 <= annuity.amortization_rate <= 1:
        raise InvalidAnnuity(f"{annuity.id}: amortization rate must be within [0, 1]")
    if annuity.term_months <= 0:
        raise InvalidAnnuity(f"{annuity.id}: term must be a positive number of months")


def annuity_to_dict(annuity: Annuity) -> Dict[str, Any]:
    return {
        "id": annuity.id,
        "createdAt": annuity.created_at.isoformat(),
        "principal": annuity.principal,
        "principalCurrency": annuity.principal_currency,
        "amortizationRate": annuity.amortization_rate,
        "termMonths": annuity.term_months,
    }


def load_annuities(path: str | Path) -> List[Annuity]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("annuities", [])
    return [annuity_from_dict(item) for item in data]


def save_annuities(path: str | Path, annuities: Iterable[Annuity]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump([annuity_to_dict(a) for a in annuities], f, indent=2)
