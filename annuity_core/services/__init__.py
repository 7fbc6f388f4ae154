from annuity_core.services.cashflows import derive_cash_flows, derive_inflow, derive_outflows  # noqa: F401
from annuity_core.services.montecarlo import generate_paths, run_monte_carlo  # noqa: F401
from annuity_core.services.portfolio import apply_action, remaining_months  # noqa: F401
from annuity_core.services.recalculation import RecalculationController, ResultCache  # noqa: F401
from annuity_core.services.simulator import simulate  # noqa: F401

__all__ = [
    "derive_cash_flows",
    "derive_inflow",
    "derive_outflows",
    "generate_paths",
    "run_monte_carlo",
    "apply_action",
    "remaining_months",
    "RecalculationController",
    "ResultCache",
    "simulate",
]
