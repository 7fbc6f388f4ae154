from __future__ import annotations

import dataclasses
import datetime as dt
import uuid
from typing import Iterable, List, Optional, Sequence

from annuity_core.domain.calendar import add_months, months_between
from annuity_core.domain.models import (
    Annuity,
    CalculationComplete,
    PortfolioState,
    PricePoint,
    StartCalculation,
)


def new_annuity_id() -> str:
    return str(uuid.uuid4())


def oldest_creation_date(annuities: Sequence[Annuity]) -> Optional[dt.date]:
    return min((a.created_at for a in annuities), default=None)


def duplicate_annuity(annuity: Annuity) -> Annuity:
    return dataclasses.replace(annuity, id=new_annuity_id())


def shift_annuity(annuity: Annuity, months: int) -> Annuity:
    """Move ``created_at`` by whole months; the day is clamped to the target month."""
    return dataclasses.replace(annuity, created_at=add_months(annuity.created_at, months))


def remaining_months(annuity: Annuity, today: Optional[dt.date] = None) -> int:
    """
    Months left on the contract as of ``today``.

    A contract that starts in the future has zero elapsed months, so it reports
    its full term.
    """
    today = today or dt.date.today()
    elapsed = max(0, months_between(annuity.created_at, today))
    return max(0, annuity.term_months - elapsed)


def _calculating(state: PortfolioState, **changes) -> PortfolioState:
    return dataclasses.replace(state, calculation_status="calculating", **changes)


def initialize(state: PortfolioState, price_data: List[PricePoint]) -> PortfolioState:
    status = "calculating" if price_data and state.annuities else "idle"
    return dataclasses.replace(state, price_data=list(price_data), calculation_status=status)


def add_annuity(state: PortfolioState, annuity: Annuity) -> PortfolioState:
    annuities = [*state.annuities, annuity]
    return _calculating(
        state,
        annuities=annuities,
        portfolio_start_date=state.portfolio_start_date or oldest_creation_date(annuities),
    )


def remove_annuity(state: PortfolioState, annuity_id: str) -> PortfolioState:
    return _calculating(state, annuities=[a for a in state.annuities if a.id != annuity_id])


def update_annuity(state: PortfolioState, annuity: Annuity) -> PortfolioState:
    return _calculating(
        state,
        annuities=[annuity if a.id == annuity.id else a for a in state.annuities],
    )


def duplicate_in_portfolio(state: PortfolioState, annuity_id: str) -> PortfolioState:
    source = next((a for a in state.annuities if a.id == annuity_id), None)
    if source is None:
        return state
    return add_annuity(state, duplicate_annuity(source))


def shift_in_portfolio(state: PortfolioState, annuity_id: str, months: int) -> PortfolioState:
    return _calculating(
        state,
        annuities=[shift_annuity(a, months) if a.id == annuity_id else a for a in state.annuities],
    )


def set_portfolio_start_date(state: PortfolioState, start: dt.date) -> PortfolioState:
    """Move every contract by the whole-month difference to the new start date."""
    if state.portfolio_start_date is None or not state.annuities:
        return state
    delta = months_between(state.portfolio_start_date, start)
    return _calculating(
        state,
        portfolio_start_date=start,
        annuities=[shift_annuity(a, delta) for a in state.annuities],
    )


def restore(current: PortfolioState, annuities: Iterable[Annuity], price_data: Optional[List[PricePoint]] = None) -> PortfolioState:
    """Rebuild state from saved contracts; results are recomputed, never restored."""
    annuities = list(annuities)
    prices = list(price_data) if price_data is not None else current.price_data
    return PortfolioState(
        price_data=prices,
        annuities=annuities,
        portfolio_start_date=oldest_creation_date(annuities),
        calculation_status="calculating" if prices else "idle",
        last_calculation_input_hash=None,
    )


def apply_action(state: PortfolioState, action) -> PortfolioState:
    if isinstance(action, StartCalculation):
        return dataclasses.replace(
            state,
            last_calculation_input_hash=action.input_hash,
            calculation_status="calculating",
        )
    if isinstance(action, CalculationComplete):
        # only the most recent calculation may land
        if action.input_hash != state.last_calculation_input_hash:
            return state
        return dataclasses.replace(state, scenarios=action.scenarios, calculation_status="idle")
    raise TypeError(f"Unknown action {action!r}")
