from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from annuity_core.domain.calendar import find_price, index_prices, iterate_months
from annuity_core.domain.models import Annuity, CashFlow, PortfolioValuation, PricePoint

logger = logging.getLogger(__name__)

Prices = Union[Dict[dt.date, float], Sequence[PricePoint]]


def _as_index(prices: Prices) -> Dict[dt.date, float]:
    return prices if isinstance(prices, dict) else index_prices(prices)


def principal_amounts(annuity: Annuity, price: float) -> Tuple[float, float]:
    """(usd, btc) value of the principal at ``price``."""
    if annuity.principal_currency == "USD":
        return annuity.principal, annuity.principal / price
    return annuity.principal * price, annuity.principal


def monthly_payment(principal_usd: float, annual_rate: float, term_months: int) -> float:
    """Level monthly payment that amortizes ``principal_usd`` over ``term_months``."""
    r = annual_rate / 12
    if r == 0:
        return principal_usd / term_months
    return principal_usd * (r / (1 - (1 + r) ** -term_months))


def derive_inflow(annuity: Annuity, prices: Prices) -> Optional[CashFlow]:
    creation_price = find_price(annuity.created_at, _as_index(prices))
    if creation_price is None:
        logger.warning("No price for %s on %s; inflow omitted", annuity.id, annuity.created_at)
        return None
    usd, btc = principal_amounts(annuity, creation_price)
    return CashFlow(
        date=annuity.created_at,
        annuity_id=annuity.id,
        type="inflow",
        usd_amount=usd,
        btc_amount=btc,
    )


def derive_outflows(annuity: Annuity, prices: Prices) -> List[CashFlow]:
    """
    Monthly amortized outflows for one contract:
    - Fixed USD payment from the creation-date principal.
    - One payment per month start after creation, converted at that day's price.
    - Month starts without a price are skipped.
    """
    index = _as_index(prices)
    creation_price = find_price(annuity.created_at, index)
    if creation_price is None:
        return []

    principal_usd, _ = principal_amounts(annuity, creation_price)
    payment_usd = monthly_payment(principal_usd, annuity.amortization_rate, annuity.term_months)

    outflows: List[CashFlow] = []
    for amortization_date in iterate_months(annuity.created_at, annuity.term_months):
        price = index.get(amortization_date)
        if price is None:
            logger.debug("No price for %s on %s; outflow omitted", annuity.id, amortization_date)
            continue
        outflows.append(
            CashFlow(
                date=amortization_date,
                annuity_id=annuity.id,
                type="outflow",
                usd_amount=payment_usd,
                btc_amount=payment_usd / price,
            )
        )
    return outflows


def derive_cash_flows(annuities: Iterable[Annuity], prices: Prices) -> List[CashFlow]:
    """All inflows and outflows for ``annuities`` in one price context, by date."""
    index = _as_index(prices)
    flows: List[CashFlow] = []
    for annuity in annuities:
        inflow = derive_inflow(annuity, index)
        if inflow is not None:
            flows.append(inflow)
        flows.extend(derive_outflows(annuity, index))
    # stable sort keeps each contract's inflow ahead of same-day outflows
    return sorted(flows, key=lambda cf: cf.date)


def historical_valuations(prices: Sequence[PricePoint], cash_flows: Iterable[CashFlow]) -> List[PortfolioValuation]:
    """Running BTC balance valued after each cash flow, closed at the last price point."""
    index = index_prices(prices)
    balance = 0.0
    valuations: List[PortfolioValuation] = []
    for flow in cash_flows:
        balance = max(0.0, balance + flow.signed_btc)
        price = index.get(flow.date)
        if price is None:
            continue
        if valuations and valuations[-1].date == flow.date:
            valuations.pop()
        valuations.append(PortfolioValuation(date=flow.date, btc_value=balance, usd_value=balance * price))

    if prices:
        last = prices[-1]
        if not valuations or valuations[-1].date != last.date:
            valuations.append(PortfolioValuation(date=last.date, btc_value=balance, usd_value=balance * last.price))
    return valuations
