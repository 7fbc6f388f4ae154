from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Any, Dict, List, Optional

SCENARIOS = ("average", "best", "worst")
CURRENCIES = ("BTC", "USD")


@dataclasses.dataclass(frozen=True)
class PricePoint:
    date: dt.date
    price: float


@dataclasses.dataclass(frozen=True)
class Annuity:
    id: str
    created_at: dt.date
    principal: float
    principal_currency: str  # "BTC" or "USD"
    amortization_rate: float  # nominal annual rate, 0..1
    term_months: int


@dataclasses.dataclass(frozen=True)
class CashFlow:
    date: dt.date
    annuity_id: str
    type: str  # "inflow" or "outflow"
    usd_amount: float
    btc_amount: float
    is_projection: bool = False

    @property
    def signed_btc(self) -> float:
        return self.btc_amount if self.type == "inflow" else -self.btc_amount


@dataclasses.dataclass(frozen=True)
class PortfolioValuation:
    date: dt.date
    btc_value: float
    usd_value: float
    is_projection: bool = False


@dataclasses.dataclass(frozen=True)
class MonthlyIncome:
    date: dt.date
    usd_amount: float
    is_projection: bool = False


@dataclasses.dataclass
class ScenarioResult:
    cash_flows: List[CashFlow] = dataclasses.field(default_factory=list)
    valuations: List[PortfolioValuation] = dataclasses.field(default_factory=list)
    monthly_income: List[MonthlyIncome] = dataclasses.field(default_factory=list)


ScenarioResults = Dict[str, ScenarioResult]


@dataclasses.dataclass(frozen=True)
class Tick:
    """One calendar date of the simulation timeline."""

    date: dt.date
    is_projection: bool
    scenario_prices: Dict[str, float]


@dataclasses.dataclass(frozen=True)
class EnvelopePoint:
    date: dt.date
    best_price: float
    worst_price: float
    average_price: float


@dataclasses.dataclass(frozen=True)
class MonteCarloConfig:
    paths: int = 100
    projection_days: int = 365
    history_years: Optional[int] = 13
    seed: Optional[int] = None


@dataclasses.dataclass
class MonteCarloMetadata:
    generated_at: str
    number_of_paths: int
    projection_days: int
    last_historical_date: dt.date
    last_historical_price: float
    statistics: Dict[str, float] = dataclasses.field(default_factory=dict)
    data_range: Dict[str, Any] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class MonteCarloResult:
    paths: List[List[PricePoint]]
    envelope: List[EnvelopePoint]
    metadata: MonteCarloMetadata


@dataclasses.dataclass
class PortfolioState:
    price_data: List[PricePoint] = dataclasses.field(default_factory=list)
    annuities: List[Annuity] = dataclasses.field(default_factory=list)
    scenarios: ScenarioResults = dataclasses.field(default_factory=dict)
    calculation_status: str = "idle"  # "idle" or "calculating"
    last_calculation_input_hash: Optional[str] = None
    portfolio_start_date: Optional[dt.date] = None


@dataclasses.dataclass(frozen=True)
class StartCalculation:
    input_hash: str


@dataclasses.dataclass(frozen=True)
class CalculationComplete:
    scenarios: ScenarioResults
    input_hash: str
