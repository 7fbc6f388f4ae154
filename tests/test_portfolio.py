import datetime as dt

import pytest

from annuity_core.domain.calendar import iterate_months, months_between, parse_portfolio_date
from annuity_core.domain.models import PortfolioState
from annuity_core.services import portfolio


def test_parse_portfolio_date_variants():
    assert parse_portfolio_date("2024-01-01") == dt.date(2024, 1, 1)
    assert parse_portfolio_date("15/03/2024") == dt.date(2024, 3, 15)
    assert parse_portfolio_date(dt.datetime(2024, 5, 6, 23, 59)) == dt.date(2024, 5, 6)
    # converted to UTC before the time of day is dropped
    assert parse_portfolio_date("2024-01-01T20:00:00-06:00") == dt.date(2024, 1, 2)


def test_iterate_months_from_mid_month():
    months = iterate_months(dt.date(2024, 11, 15), 5)
    assert months == [
        dt.date(2024, 12, 1),
        dt.date(2025, 1, 1),
        dt.date(2025, 2, 1),
        dt.date(2025, 3, 1),
        dt.date(2025, 4, 1),
    ]
    assert iterate_months(dt.date(2024, 11, 15), 5) == months


def test_months_between_counts_whole_months():
    assert months_between(dt.date(2024, 1, 31), dt.date(2024, 2, 29)) == 0
    assert months_between(dt.date(2024, 1, 15), dt.date(2024, 3, 15)) == 2
    assert months_between(dt.date(2024, 3, 15), dt.date(2024, 1, 20)) == -1


def test_remaining_months_elapsed_and_future(make_annuity):
    annuity = make_annuity(created_at=dt.date(2024, 1, 1), term_months=12)
    assert portfolio.remaining_months(annuity, dt.date(2024, 4, 15)) == 9
    assert portfolio.remaining_months(annuity, dt.date(2026, 1, 1)) == 0
    # future-dated contracts have zero elapsed months, not negative ones
    assert portfolio.remaining_months(annuity, dt.date(2023, 6, 1)) == 12


def test_duplicate_gets_new_id_and_same_terms(make_annuity):
    state = portfolio.add_annuity(PortfolioState(), make_annuity(id="orig"))
    state = portfolio.duplicate_in_portfolio(state, "orig")
    assert len(state.annuities) == 2
    original, copy = state.annuities
    assert copy.id != original.id
    assert (copy.created_at, copy.principal, copy.term_months) == (
        original.created_at,
        original.principal,
        original.term_months,
    )
    assert state.calculation_status == "calculating"


def test_shift_clamps_to_month_end(make_annuity):
    annuity = make_annuity(created_at=dt.date(2024, 1, 31))
    assert portfolio.shift_annuity(annuity, 1).created_at == dt.date(2024, 2, 29)
    assert portfolio.shift_annuity(annuity, -2).created_at == dt.date(2023, 11, 30)


def test_set_portfolio_start_date_moves_every_contract(make_annuity):
    state = PortfolioState()
    state = portfolio.add_annuity(state, make_annuity(id="a", created_at=dt.date(2024, 1, 1)))
    state = portfolio.add_annuity(state, make_annuity(id="b", created_at=dt.date(2024, 3, 10)))
    assert state.portfolio_start_date == dt.date(2024, 1, 1)

    moved = portfolio.set_portfolio_start_date(state, dt.date(2024, 4, 1))
    assert moved.portfolio_start_date == dt.date(2024, 4, 1)
    assert [a.created_at for a in moved.annuities] == [dt.date(2024, 4, 1), dt.date(2024, 6, 10)]
    assert [a.id for a in moved.annuities] == ["a", "b"]


def test_update_and_remove_keep_identity(make_annuity):
    state = portfolio.add_annuity(PortfolioState(), make_annuity(id="a"))
    state = portfolio.update_annuity(state, make_annuity(id="a", principal=150000.0))
    assert state.annuities[0].principal == 150000.0
    state = portfolio.remove_annuity(state, "a")
    assert state.annuities == []
    assert state.calculation_status == "calculating"


def test_initialize_and_restore(reference_prices, make_annuity):
    idle = portfolio.initialize(PortfolioState(), reference_prices)
    assert idle.calculation_status == "idle"

    restored = portfolio.restore(idle, [make_annuity(id="a", created_at=dt.date(2024, 2, 1))])
    assert restored.price_data == reference_prices
    assert restored.portfolio_start_date == dt.date(2024, 2, 1)
    assert restored.calculation_status == "calculating"
    assert restored.last_calculation_input_hash is None


def test_apply_action_rejects_unknown_actions():
    with pytest.raises(TypeError):
        portfolio.apply_action(PortfolioState(), object())
