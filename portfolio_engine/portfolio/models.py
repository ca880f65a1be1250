"""Typed portfolio models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

AssetClass = Literal["stock", "etf", "crypto", "real_estate", "fixed_income", "cash", "other"]
ExposureType = Literal["asset_class", "currency", "country", "sector"]
TransactionType = Literal["buy", "sell", "dividend", "fee", "transfer"]
AnalyticsStatus = Literal["ok", "insufficient_data", "no_data"]

ASSET_CLASSES: tuple[str, ...] = ("stock", "etf", "crypto", "real_estate", "fixed_income", "cash", "other")
LISTED_EQUITY_CLASSES = frozenset({"stock", "etf"})


def is_listed_equity(asset_class: str) -> bool:
    """Country and sector exposure is only reported for listed equity."""
    return asset_class in LISTED_EQUITY_CLASSES


@dataclass
class Holding:
    id: str
    asset_class: AssetClass
    name: str
    currency: str
    symbol: str | None = None
    quantity: float | None = None
    cost_basis: float | None = None
    manual_value: float | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    deleted: bool = False

    @property
    def country(self) -> str | None:
        return self.metadata.get("country") or None

    @property
    def sector(self) -> str | None:
        return self.metadata.get("sector") or None


@dataclass
class ValuedHolding:
    holding: Holding
    value_base: float
    weight_percent: float


@dataclass
class Transaction:
    id: str
    holding_id: str
    type: TransactionType
    date: str
    total_amount: float
    currency: str


@dataclass
class ValuationSnapshot:
    timestamp: str
    value_base: float


@dataclass
class CandleSeries:
    symbol: str
    timestamps: list[int]
    closes: list[float]
    opens: list[float] = field(default_factory=list)
    highs: list[float] = field(default_factory=list)
    lows: list[float] = field(default_factory=list)
    volumes: list[float] = field(default_factory=list)
    source: str | None = None

    def __len__(self) -> int:
        return len(self.timestamps)


@dataclass
class ConcentrationMetrics:
    top_holding_percent: float = 0.0
    top3_combined_percent: float = 0.0
    largest_country_percent: float = 0.0
    largest_sector_percent: float = 0.0
    hhi: float = 0.0
    has_country_data: bool = False
    has_sector_data: bool = False


@dataclass
class ExposureSlice:
    label: str
    percent: float
    type: ExposureType


@dataclass
class DiversificationResult:
    score: float
    insights: list[str]
    crypto_percent: float


@dataclass
class TWRRResult:
    twrr: float
    annualized_twrr: float | None
    period_count: int
    span_days: float


@dataclass
class SharpeResult:
    sharpe: float
    annualized_return: float
    annualized_volatility: float
    sample_count: int
    periods_per_year: float


@dataclass
class BenchmarkSeries:
    symbol: str
    label: str
    returns: list[float]
    source: str | None = None


@dataclass
class BenchmarkComparison:
    status: AnalyticsStatus
    labels: list[str] = field(default_factory=list)
    portfolio_returns: list[float] = field(default_factory=list)
    benchmarks: list[BenchmarkSeries] = field(default_factory=list)
    missing_symbols: list[str] = field(default_factory=list)
    message: str | None = None


@dataclass
class MonthlyIncome:
    month: str
    amount: float


@dataclass
class DividendHoldingRow:
    holding_id: str
    name: str
    symbol: str | None
    ttm_amount: float
    yield_on_cost: float | None


@dataclass
class DividendAnalytics:
    ttm_income: float
    monthly: list[MonthlyIncome]
    holding_rows: list[DividendHoldingRow]


@dataclass
class ValidationIssue:
    field: str
    message: str
    row: int | None = None
    code: str = "invalid_value"
