from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from annuity_core.domain.calendar import index_prices, is_month_start, iterate_months
from annuity_core.domain.models import (
    SCENARIOS,
    Annuity,
    CashFlow,
    EnvelopePoint,
    MonteCarloResult,
    MonthlyIncome,
    PortfolioValuation,
    PricePoint,
    ScenarioResult,
    ScenarioResults,
    Tick,
)
from annuity_core.services.cashflows import monthly_payment, principal_amounts

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ScenarioLedger:
    """Running balances and recorded events of one scenario."""

    name: str
    btc_balance: float = 0.0
    usd_balance: float = 0.0
    principal_usd: Dict[str, float] = dataclasses.field(default_factory=dict)
    result: ScenarioResult = dataclasses.field(default_factory=ScenarioResult)

    def credit(self, btc: float, usd: float) -> None:
        self.btc_balance = max(0.0, self.btc_balance + btc)
        self.usd_balance = max(0.0, self.usd_balance + usd)

    def debit(self, btc: float, usd: float) -> None:
        self.btc_balance = max(0.0, self.btc_balance - btc)
        self.usd_balance = max(0.0, self.usd_balance - usd)


@dataclasses.dataclass
class ActiveAnnuity:
    """A contract paying on the fixed month starts that follow its creation."""

    annuity: Annuity
    due_dates: List[dt.date]

    @classmethod
    def start(cls, annuity: Annuity) -> "ActiveAnnuity":
        return cls(annuity, iterate_months(annuity.created_at, annuity.term_months))

    @property
    def remaining_term_months(self) -> int:
        return len(self.due_dates)

    def settle(self, date: dt.date) -> bool:
        """Consume the due dates up to ``date``; True when a payment falls on ``date``."""
        # due dates that had no tick are dropped, not deferred
        while self.due_dates and self.due_dates[0] < date:
            self.due_dates.pop(0)
        if self.due_dates and self.due_dates[0] == date:
            self.due_dates.pop(0)
            return True
        return False


def build_timeline(price_history: Sequence[PricePoint], envelope: Sequence[EnvelopePoint] = ()) -> List[Tick]:
    """
    Historical ticks (all scenarios share the price) followed by projected ticks
    from the envelope. Projected dates not after the last historical date are dropped.
    """
    timeline: List[Tick] = []
    for date, price in index_prices(price_history).items():
        timeline.append(
            Tick(date=date, is_projection=False, scenario_prices={name: price for name in SCENARIOS})
        )

    last_date: Optional[dt.date] = timeline[-1].date if timeline else None
    for point in envelope:
        if last_date is not None and point.date <= last_date:
            continue
        timeline.append(
            Tick(
                date=point.date,
                is_projection=True,
                scenario_prices={
                    "average": point.average_price,
                    "best": point.best_price,
                    "worst": point.worst_price,
                },
            )
        )
        last_date = point.date
    return timeline


def _activate(ledger: ScenarioLedger, annuity: Annuity, tick: Tick) -> None:
    price = tick.scenario_prices[ledger.name]
    usd, btc = principal_amounts(annuity, price)
    ledger.principal_usd[annuity.id] = usd
    ledger.credit(btc, usd)
    ledger.result.cash_flows.append(
        CashFlow(
            date=tick.date,
            annuity_id=annuity.id,
            type="inflow",
            usd_amount=usd,
            btc_amount=btc,
            is_projection=tick.is_projection,
        )
    )


def _pay(ledger: ScenarioLedger, annuity: Annuity, tick: Tick) -> None:
    price = tick.scenario_prices[ledger.name]
    payment_usd = monthly_payment(
        ledger.principal_usd[annuity.id], annuity.amortization_rate, annuity.term_months
    )
    payment_btc = payment_usd / price
    ledger.debit(payment_btc, payment_usd)
    ledger.result.cash_flows.append(
        CashFlow(
            date=tick.date,
            annuity_id=annuity.id,
            type="outflow",
            usd_amount=payment_usd,
            btc_amount=payment_btc,
            is_projection=tick.is_projection,
        )
    )
    ledger.result.monthly_income.append(
        MonthlyIncome(date=tick.date, usd_amount=payment_usd, is_projection=tick.is_projection)
    )


def _value(ledger: ScenarioLedger, tick: Tick) -> None:
    ledger.result.valuations.append(
        PortfolioValuation(
            date=tick.date,
            btc_value=ledger.btc_balance,
            usd_value=ledger.btc_balance * tick.scenario_prices[ledger.name],
            is_projection=tick.is_projection,
        )
    )


def simulate(
    price_history: Sequence[PricePoint],
    annuities: Sequence[Annuity],
    monte_carlo: Optional[MonteCarloResult] = None,
) -> ScenarioResults:
    """
    Single forward pass over history plus the Monte Carlo envelope, keeping one
    ledger per scenario. On each tick: contracts created that day are activated,
    then every earlier active contract pays on the month starts of its fixed
    schedule (a month start with no tick is skipped, not deferred),
    then valuations are taken on the first tick, month starts and the final tick.
    """
    timeline = build_timeline(price_history, monte_carlo.envelope if monte_carlo else ())
    ledgers = [ScenarioLedger(name=name) for name in SCENARIOS]

    by_creation: Dict[dt.date, List[Annuity]] = defaultdict(list)
    for annuity in annuities:
        by_creation[annuity.created_at].append(annuity)

    tick_dates = {tick.date for tick in timeline}
    for created_at, group in by_creation.items():
        if created_at not in tick_dates:
            logger.warning("No price for %s; %d annuities never activated", created_at, len(group))

    active: List[ActiveAnnuity] = []
    last_index = len(timeline) - 1
    for i, tick in enumerate(timeline):
        activated = [ActiveAnnuity.start(a) for a in by_creation.get(tick.date, ())]
        for entry in activated:
            for ledger in ledgers:
                _activate(ledger, entry.annuity, tick)

        for entry in active:
            if entry.settle(tick.date):
                for ledger in ledgers:
                    _pay(ledger, entry.annuity, tick)

        month_start = is_month_start(tick.date)
        if month_start or i == 0 or i == last_index:
            for ledger in ledgers:
                _value(ledger, tick)

        active = [entry for entry in active if entry.remaining_term_months > 0]
        active.extend(activated)

    logger.debug(
        "Simulated %d ticks for %d annuities (%d projected)",
        len(timeline), len(annuities), sum(1 for t in timeline if t.is_projection),
    )
    return {ledger.name: ledger.result for ledger in ledgers}


def monthly_income_by_month(result: ScenarioResult) -> Dict[dt.date, float]:
    """Total monthly income per calendar month, in date order."""
    totals: Dict[dt.date, float] = {}
    for entry in sorted(result.monthly_income, key=lambda m: m.date):
        key = dt.date(entry.date.year, entry.date.month, 1)
        totals[key] = totals.get(key, 0.0) + entry.usd_amount
    return totals
