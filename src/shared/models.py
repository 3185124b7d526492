"""Shared data models for the Portfolio Health Check.

All models are plain Python dataclasses. Closed vocabularies (transaction
types, flags, recommendations, severities) are str-valued Enums, so every
report serializes directly with json.dumps after dataclasses.asdict.

Derived models (OpenLot, HealthMetrics, reports) are rebuilt on every
analysis call and never persisted.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

from src.shared.config import (
    HEALTH_ANALYSIS_PERIOD_YEARS,
    HEALTH_BENCHMARK_OUTPERFORMANCE,
    HEALTH_BENCHMARK_SYMBOL,
    HEALTH_BENCHMARK_UNDERPERFORMANCE,
    HEALTH_EXCLUDED_SYMBOLS,
    HEALTH_LARGE_POSITION_THRESHOLD,
    HEALTH_LONG_TERM_HOLD_DAYS,
    HEALTH_MIN_PORTFOLIO_WEIGHT,
    HEALTH_OPPORTUNITY_COST_MIN,
    HEALTH_RISK_FREE_RATE,
    HEALTH_SHARPE_GOOD,
    HEALTH_SMALL_POSITION_THRESHOLD,
    HEALTH_STRONG_MOMENTUM,
    HEALTH_UNDERWATER_DAYS,
    HEALTH_VOLATILITY_LOW,
    HEALTH_VOLATILITY_MAX,
    HEALTH_WEIGHT_ABSOLUTE_RETURN,
    HEALTH_WEIGHT_DIVIDENDS,
    HEALTH_WEIGHT_RELATIVE_RETURN,
    HEALTH_WEIGHT_UNDERWATER,
    HEALTH_WEIGHT_VOLATILITY,
)


# ============================================================
# Vocabularies
# ============================================================

class TransactionType(str, Enum):
    """Transaction kinds supplied by the brokerage data collaborator."""
    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"
    DISTRIBUTION = "distribution"
    TAX = "tax"
    FEE = "fee"
    REINVEST = "reinvest"
    SPLIT = "split"
    TRANSFER = "transfer"

    @classmethod
    def parse(cls, value: str) -> "TransactionType":
        """Case-insensitive lookup. Raises ValueError for unknown types."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown transaction type: {value!r}") from None


class DividendTrend(str, Enum):
    GROWING = "growing"
    FLAT = "flat"
    DECLINING = "declining"
    SUSPENDED = "suspended"
    NONE = "none"                      # never paid; dividend weight is redistributed


class HealthFlag(str, Enum):
    NEGATIVE_RETURN_1Y = "NEGATIVE_RETURN_1Y"
    NEGATIVE_RETURN_3Y = "NEGATIVE_RETURN_3Y"
    NEGATIVE_RETURN_5Y = "NEGATIVE_RETURN_5Y"
    NEGATIVE_RETURN_SINCE_INCEPTION = "NEGATIVE_RETURN_SINCE_INCEPTION"
    UNDERPERFORMED_BENCHMARK_1Y = "UNDERPERFORMED_BENCHMARK_1Y"
    UNDERPERFORMED_BENCHMARK_3Y = "UNDERPERFORMED_BENCHMARK_3Y"
    UNDERPERFORMED_BENCHMARK_5Y = "UNDERPERFORMED_BENCHMARK_5Y"
    UNDERPERFORMED_BENCHMARK_SINCE_INCEPTION = "UNDERPERFORMED_BENCHMARK_SINCE_INCEPTION"
    HIGH_OPPORTUNITY_COST = "HIGH_OPPORTUNITY_COST"
    EXTENDED_UNDERWATER = "EXTENDED_UNDERWATER"
    DECLINING_DIVIDENDS = "DECLINING_DIVIDENDS"
    HIGH_VOLATILITY = "HIGH_VOLATILITY"
    SMALL_POSITION = "SMALL_POSITION"
    LARGE_POSITION = "LARGE_POSITION"


class StrengthFlag(str, Enum):
    POSITIVE_RETURN_3Y = "POSITIVE_RETURN_3Y"
    OUTPERFORMED_BENCHMARK = "OUTPERFORMED_BENCHMARK"
    LOW_VOLATILITY = "LOW_VOLATILITY"
    POSITIVE_SHARPE = "POSITIVE_SHARPE"
    GROWING_DIVIDENDS = "GROWING_DIVIDENDS"
    STRONG_MOMENTUM = "STRONG_MOMENTUM"
    LONG_TERM_HOLD = "LONG_TERM_HOLD"


class Recommendation(str, Enum):
    SELL = "SELL"
    REVIEW = "REVIEW"
    HOLD = "HOLD"
    ACCUMULATE = "ACCUMULATE"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
    HEALTHY = "healthy"


# ============================================================
# Inputs (supplied by the data collaborator)
# ============================================================

@dataclass(frozen=True)
class Transaction:
    """A single brokerage transaction for one symbol.

    Amounts are magnitudes in the transaction's own currency. Sells may
    carry negative shares; the matcher uses the magnitude.
    """
    type: TransactionType
    date: date
    shares: float = 0.0
    price: float = 0.0
    amount: float = 0.0
    currency: str = "USD"
    symbol: str = ""
    split_ratio: Optional[float] = None   # old/new shares, e.g. 0.25 for a 4:1 split


@dataclass(frozen=True)
class PricePoint:
    date: date
    close: float


@dataclass
class PriceHistory:
    """Daily closes for one symbol, ordered by date ascending."""
    symbol: str
    prices: List[PricePoint] = field(default_factory=list)


@dataclass
class Holding:
    """Current position as reported by the brokerage.

    Used by the aggregator for portfolio weight and market value.
    """
    symbol: str
    name: str = ""
    market_value: float = 0.0          # Reporting currency
    quantity: float = 0.0              # Shares held today
    last_price: float = 0.0            # Security currency
    currency: str = "USD"
    xirr: Optional[float] = None       # Decimal (0.12 = 12%), None = compute from transactions


# ============================================================
# Derived: Open lots
# ============================================================

@dataclass
class OpenLot:
    """Unconsumed remainder of a single buy (or reinvest) transaction.

    shares and amount only ever decrease (sells) or get rescaled (splits,
    shares only). Amount is in the reporting currency.
    """
    transaction: Transaction
    shares: float                      # Remaining open shares
    amount: float                      # Remaining cost basis

    @property
    def date(self) -> date:
        return self.transaction.date


# ============================================================
# Configuration
# ============================================================

@dataclass(frozen=True)
class ScoringWeights:
    """Category weights. Nominally sum to 100; not validated."""
    absolute_return: float = HEALTH_WEIGHT_ABSOLUTE_RETURN
    relative_return: float = HEALTH_WEIGHT_RELATIVE_RETURN
    underwater: float = HEALTH_WEIGHT_UNDERWATER
    volatility: float = HEALTH_WEIGHT_VOLATILITY
    dividends: float = HEALTH_WEIGHT_DIVIDENDS


@dataclass(frozen=True)
class HealthThresholds:
    benchmark_underperformance: float = HEALTH_BENCHMARK_UNDERPERFORMANCE  # Alpha % below which to flag
    benchmark_outperformance: float = HEALTH_BENCHMARK_OUTPERFORMANCE      # Alpha % above which it is a strength
    underwater_days: int = HEALTH_UNDERWATER_DAYS
    opportunity_cost_min: float = HEALTH_OPPORTUNITY_COST_MIN              # $
    small_position_threshold: float = HEALTH_SMALL_POSITION_THRESHOLD      # Fraction of portfolio
    large_position_threshold: float = HEALTH_LARGE_POSITION_THRESHOLD      # Fraction of portfolio
    volatility_max: float = HEALTH_VOLATILITY_MAX                          # Annualized, decimal
    volatility_low: float = HEALTH_VOLATILITY_LOW                          # Annualized, decimal
    sharpe_good: float = HEALTH_SHARPE_GOOD
    strong_momentum: float = HEALTH_STRONG_MOMENTUM                        # 1Y return %
    long_term_hold_days: int = HEALTH_LONG_TERM_HOLD_DAYS


@dataclass(frozen=True)
class HealthCheckConfig:
    """Configuration for a health check run.

    All parameters have defaults from config.py / environment variables.
    Read-only for the duration of an analysis.
    """
    benchmark_symbol: str = HEALTH_BENCHMARK_SYMBOL
    analysis_period_years: int = HEALTH_ANALYSIS_PERIOD_YEARS
    risk_free_rate: float = HEALTH_RISK_FREE_RATE
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    thresholds: HealthThresholds = field(default_factory=HealthThresholds)
    excluded_symbols: List[str] = field(default_factory=lambda: list(HEALTH_EXCLUDED_SYMBOLS))
    min_portfolio_weight: float = HEALTH_MIN_PORTFOLIO_WEIGHT


# ============================================================
# Outputs
# ============================================================

@dataclass(frozen=True)
class HealthMetrics:
    """Every metric computed for one holding.

    Returns, alphas and drawdowns are percentages (12.5 = 12.5%).
    volatility is an annualized decimal, portfolio_weight a fraction.
    """
    # Returns
    return_1y: float = 0.0
    return_3y: float = 0.0
    return_5y: float = 0.0
    return_since_inception: float = 0.0
    xirr: float = 0.0
    # Benchmark
    benchmark_return_1y: float = 0.0
    benchmark_return_3y: float = 0.0
    benchmark_return_5y: float = 0.0
    benchmark_return_since_inception: float = 0.0
    alpha_1y: float = 0.0
    alpha_3y: float = 0.0
    alpha_5y: float = 0.0
    alpha_since_inception: float = 0.0
    opportunity_cost: float = 0.0      # $ vs. same cash in the benchmark
    # Drawdown / underwater
    max_drawdown: float = 0.0
    current_drawdown: float = 0.0
    days_underwater: int = 0
    holding_period_days: int = 0
    # Risk
    volatility: float = 0.0
    sharpe_ratio: float = 0.0
    # Dividends
    dividend_yield: float = 0.0
    dividend_growth: float = 0.0       # Annual growth %
    dividend_trend: DividendTrend = DividendTrend.NONE
    # Position
    portfolio_weight: float = 0.0
    position_size: float = 0.0
    cost_basis: float = 0.0
    average_cost: float = 0.0          # Cost basis per open share


@dataclass
class HoldingHealthReport:
    """Health report for a single holding."""
    symbol: str
    name: str
    score: int                         # 0-100, lower = worse health
    recommendation: Recommendation
    severity: Severity
    flags: List[HealthFlag] = field(default_factory=list)
    flag_descriptions: List[str] = field(default_factory=list)
    strengths: List[StrengthFlag] = field(default_factory=list)
    strength_descriptions: List[str] = field(default_factory=list)
    metrics: HealthMetrics = field(default_factory=HealthMetrics)
    opportunity_cost_description: str = ""
    suggested_action: str = ""


@dataclass
class PortfolioHealthSummary:
    """Roll-up of all holding reports."""
    overall_score: int                 # Weighted by portfolio weight
    total_opportunity_cost: float
    holdings_reviewed: int
    flagged_holdings: int
    critical_count: int
    warning_count: int
    info_count: int
    healthy_count: int
    reports: List[HoldingHealthReport] = field(default_factory=list)          # Ascending by score
    worst_performers: List[HoldingHealthReport] = field(default_factory=list)  # 5 lowest scores
    biggest_drags: List[HoldingHealthReport] = field(default_factory=list)     # 5 highest opportunity cost
    recommendations: List[str] = field(default_factory=list)
    analysis_date: str = ""            # YYYY-MM-DD
    benchmark_used: str = ""
    analysis_period_years: int = 3
