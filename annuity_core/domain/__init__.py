from annuity_core.domain.errors import (  # noqa: F401
    DegenerateStatistics,
    EngineError,
    InsufficientData,
    InvalidAnnuity,
)
from annuity_core.domain.models import (  # noqa: F401
    SCENARIOS,
    Annuity,
    CalculationComplete,
    CashFlow,
    EnvelopePoint,
    MonteCarloConfig,
    MonteCarloMetadata,
    MonteCarloResult,
    MonthlyIncome,
    PortfolioState,
    PortfolioValuation,
    PricePoint,
    ScenarioResult,
    StartCalculation,
    Tick,
)

__all__ = [
    "SCENARIOS",
    "Annuity",
    "CalculationComplete",
    "CashFlow",
    "DegenerateStatistics",
    "EngineError",
    "EnvelopePoint",
    "InsufficientData",
    "InvalidAnnuity",
    "MonteCarloConfig",
    "MonteCarloMetadata",
    "MonteCarloResult",
    "MonthlyIncome",
    "PortfolioState",
    "PortfolioValuation",
    "PricePoint",
    "ScenarioResult",
    "StartCalculation",
    "Tick",
]
