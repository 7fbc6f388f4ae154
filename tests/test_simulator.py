import datetime as dt

import pytest

from annuity_core.domain.models import SCENARIOS, EnvelopePoint, MonteCarloMetadata, MonteCarloResult, PricePoint
from annuity_core.services.simulator import build_timeline, monthly_income_by_month, simulate


def _envelope(start: dt.date, days: int, best: float, average: float, worst: float) -> MonteCarloResult:
    points = [
        EnvelopePoint(
            date=start + dt.timedelta(days=i),
            best_price=best,
            worst_price=worst,
            average_price=average,
        )
        for i in range(days)
    ]
    meta = MonteCarloMetadata(
        generated_at="2024-01-31T00:00:00+00:00",
        number_of_paths=3,
        projection_days=days,
        last_historical_date=start - dt.timedelta(days=1),
        last_historical_price=average,
    )
    return MonteCarloResult(paths=[], envelope=points, metadata=meta)


def _daily_prices(start: dt.date, days: int, price: float):
    return [PricePoint(date=start + dt.timedelta(days=i), price=price) for i in range(days)]


def test_reference_scenario_valuations(reference_prices, reference_annuity):
    results = simulate(reference_prices, [reference_annuity])
    assert set(results) == set(SCENARIOS)

    average = results["average"]
    inflows = [cf for cf in average.cash_flows if cf.type == "inflow"]
    outflows = [cf for cf in average.cash_flows if cf.type == "outflow"]
    assert len(inflows) == 1
    assert inflows[0].usd_amount == 100000
    assert inflows[0].btc_amount == 2.5
    assert [cf.date.isoformat() for cf in outflows] == ["2024-02-01", "2024-03-01", "2024-04-01", "2024-05-01"]
    assert all(round(cf.usd_amount, 2) == 25628.11 for cf in outflows)

    assert [round(v.btc_value, 2) for v in average.valuations[:5]] == [2.5, 1.89, 1.32, 0.72, 0.1]
    assert [round(v.usd_value, 2) for v in average.valuations[:5]] == [
        100000,
        79371.89,
        59413.2,
        31144.51,
        4067.81,
    ]
    assert average.valuations[-1].date == dt.date(2024, 6, 1)
    assert len(average.monthly_income) == 4


def test_historical_scenarios_are_identical(reference_prices, reference_annuity):
    results = simulate(reference_prices, [reference_annuity])
    assert results["best"] == results["average"] == results["worst"]


def test_one_inflow_per_annuity_per_scenario(reference_prices, make_annuity):
    annuities = [
        make_annuity(id="a"),
        make_annuity(id="b", created_at=dt.date(2024, 3, 1), principal=1.0, principal_currency="BTC"),
    ]
    results = simulate(reference_prices, annuities)
    for scenario in results.values():
        for annuity in annuities:
            inflows = [cf for cf in scenario.cash_flows if cf.type == "inflow" and cf.annuity_id == annuity.id]
            assert len(inflows) == 1
            assert inflows[0].date == annuity.created_at


def test_no_outflow_on_creation_day_and_input_order_kept(reference_prices, make_annuity):
    first = make_annuity(id="first", created_at=dt.date(2024, 2, 1), term_months=2)
    second = make_annuity(id="second", created_at=dt.date(2024, 2, 1), term_months=2)
    results = simulate(reference_prices, [first, second])
    flows = results["average"].cash_flows
    feb = [cf for cf in flows if cf.date == dt.date(2024, 2, 1)]
    assert [(cf.annuity_id, cf.type) for cf in feb] == [("first", "inflow"), ("second", "inflow")]
    march = [cf for cf in flows if cf.date == dt.date(2024, 3, 1)]
    assert [cf.type for cf in march] == ["outflow", "outflow"]


def test_missing_month_price_skips_that_outflow(reference_prices, reference_annuity):
    gapped = [p for p in reference_prices if p.date != dt.date(2024, 4, 1)]
    results = simulate(gapped, [reference_annuity])
    for result in results.values():
        outflows = [cf for cf in result.cash_flows if cf.type == "outflow"]
        # the skipped payment is not carried past the end of the term
        assert [cf.date for cf in outflows] == [dt.date(2024, 2, 1), dt.date(2024, 3, 1), dt.date(2024, 5, 1)]
        assert len(result.monthly_income) == 3
    assert results["average"].valuations[-1].date == dt.date(2024, 6, 1)


def test_annuity_without_creation_price_is_never_activated(reference_prices, make_annuity):
    annuity = make_annuity(created_at=dt.date(2024, 1, 20))
    results = simulate(reference_prices, [annuity])
    assert results["average"].cash_flows == []
    assert all(v.btc_value == 0 for v in results["average"].valuations)


def test_projected_scenarios_diverge_after_creation(make_annuity):
    history = _daily_prices(dt.date(2024, 1, 1), 31, 40000)
    mc = _envelope(dt.date(2024, 2, 1), 90, best=60000, average=45000, worst=30000)
    annuity = make_annuity(principal=1.0, principal_currency="BTC", term_months=3)

    results = simulate(history, [annuity], mc)
    payments = {
        name: [cf for cf in result.cash_flows if cf.type == "outflow"]
        for name, result in results.items()
    }
    for name in SCENARIOS:
        assert len(payments[name]) == 3
        assert all(cf.is_projection for cf in payments[name])
        # principal USD is fixed at creation, so USD payments agree across scenarios
        assert payments[name][0].usd_amount == pytest.approx(payments["average"][0].usd_amount)

    assert payments["best"][0].btc_amount < payments["average"][0].btc_amount < payments["worst"][0].btc_amount
    inflow = results["best"].cash_flows[0]
    assert inflow.type == "inflow" and not inflow.is_projection

    final = {name: result.valuations[-1] for name, result in results.items()}
    assert all(v.date == dt.date(2024, 4, 30) and v.is_projection for v in final.values())
    assert final["best"].btc_value > final["average"].btc_value > final["worst"].btc_value


def test_balances_never_go_negative_under_crash(make_annuity):
    history = _daily_prices(dt.date(2024, 1, 1), 31, 40000)
    mc = _envelope(dt.date(2024, 2, 1), 120, best=40000, average=5000, worst=1.0)
    annuity = make_annuity(principal=100000.0, amortization_rate=0.5, term_months=3)

    results = simulate(history, [annuity], mc)
    for result in results.values():
        assert all(v.btc_value >= 0 and v.usd_value >= 0 for v in result.valuations)
    assert results["worst"].valuations[-1].btc_value == 0.0


def test_timeline_drops_envelope_overlap():
    history = _daily_prices(dt.date(2024, 1, 1), 10, 100)
    mc = _envelope(dt.date(2024, 1, 5), 10, best=3, average=2, worst=1)
    timeline = build_timeline(history, mc.envelope)
    dates = [t.date for t in timeline]
    assert dates == sorted(set(dates))
    assert not timeline[9].is_projection
    assert timeline[10].date == dt.date(2024, 1, 11)
    assert timeline[10].scenario_prices == {"average": 2, "best": 3, "worst": 1}


def test_monthly_income_by_month_totals(reference_prices, make_annuity):
    annuities = [make_annuity(id="a"), make_annuity(id="b")]
    results = simulate(reference_prices, annuities)
    totals = monthly_income_by_month(results["average"])
    assert list(totals) == [dt.date(2024, m, 1) for m in (2, 3, 4, 5)]
    assert all(total == pytest.approx(2 * 25628.109391166003) for total in totals.values())
