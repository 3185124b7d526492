"""Health scoring for the Portfolio Health Check.

The health score is calculated on a 100-point scale across 5 categories.
Lower scores indicate worse health.

SCORING BREAKDOWN (100 points max):
1. ABSOLUTE RETURN (25 points) - XIRR
2. RELATIVE RETURN (25 points) - 3-year alpha vs. benchmark
3. UNDERWATER (20 points) - trading days below cost basis
4. RISK (15 points) - Sharpe ratio
5. DIVIDENDS (15 points) - dividend trend (redistributed for non-payers)

Each category is a step function (no interpolation). Configured weights
rescale the categories; position-size penalties apply after weighting.
"""

import math
from typing import Dict, Iterable, Optional

from src.shared.models import (
    DividendTrend,
    HealthFlag,
    HealthMetrics,
    HealthThresholds,
    Recommendation,
    ScoringWeights,
    Severity,
)

# Category maxima before weighting
MAX_ABSOLUTE_RETURN = 25
MAX_RELATIVE_RETURN = 25
MAX_UNDERWATER = 20
MAX_RISK = 15
MAX_DIVIDENDS = 15

SIZE_PENALTY = 10
SIZE_PENALTY_FLOOR = 15

SERIOUS_FLAGS = (
    HealthFlag.NEGATIVE_RETURN_3Y,
    HealthFlag.EXTENDED_UNDERWATER,
    HealthFlag.DECLINING_DIVIDENDS,
    HealthFlag.HIGH_OPPORTUNITY_COST,
)


def calculate_absolute_return_score(xirr: float) -> int:
    """Score (0-25) from XIRR in percent.

    25: >= 10%, 20: >= 7%, 15: >= 4%, 10: >= 0%, 5: >= -5%, else 0.
    """
    if xirr >= 10:
        return 25
    if xirr >= 7:
        return 20
    if xirr >= 4:
        return 15
    if xirr >= 0:
        return 10
    if xirr >= -5:
        return 5
    return 0


def calculate_relative_return_score(alpha: float) -> int:
    """Score (0-25) from 3-year alpha in percentage points.

    25: >= 5, 20: >= 0, 15: >= -5, 10: >= -10, 5: >= -20, else 0.
    """
    if alpha >= 5:
        return 25
    if alpha >= 0:
        return 20
    if alpha >= -5:
        return 15
    if alpha >= -10:
        return 10
    if alpha >= -20:
        return 5
    return 0


def calculate_underwater_score(days_underwater: int) -> int:
    """Score (0-20) from trading days below cost basis.

    20: < 30, 15: < 180, 10: < 365, 5: < 730, else 0.
    """
    if days_underwater < 30:
        return 20
    if days_underwater < 180:
        return 15
    if days_underwater < 365:
        return 10
    if days_underwater < 730:
        return 5
    return 0


def calculate_risk_score(sharpe_ratio: float) -> int:
    """Score (0-15) from the Sharpe ratio.

    15: >= 1.0, 12: >= 0.5, 8: >= 0, 4: >= -0.5, else 0.
    """
    if sharpe_ratio >= 1.0:
        return 15
    if sharpe_ratio >= 0.5:
        return 12
    if sharpe_ratio >= 0:
        return 8
    if sharpe_ratio >= -0.5:
        return 4
    return 0


def calculate_dividend_score(trend: DividendTrend, growth: float) -> Optional[int]:
    """Score (0-15) from the dividend trend, or None for non-payers.

    None tells the combiner to redistribute the dividend weight.
    """
    if trend == DividendTrend.NONE:
        return None
    if trend == DividendTrend.SUSPENDED:
        return 0
    if trend == DividendTrend.GROWING and growth >= 3:
        return 15
    if trend == DividendTrend.FLAT or -3 <= growth < 3:
        return 12
    if trend == DividendTrend.DECLINING:
        return 6
    return 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def category_maxima(weights: ScoringWeights, has_dividends: bool) -> Dict[str, float]:
    """Effective maximum points per category after weighting.

    For a non-dividend holding the four remaining maxima always sum to 100,
    whatever the configured split.
    """
    if has_dividends:
        return {
            "absolute_return": weights.absolute_return,
            "relative_return": weights.relative_return,
            "underwater": weights.underwater,
            "volatility": weights.volatility,
            "dividends": weights.dividends,
        }

    other = weights.absolute_return + weights.relative_return + weights.underwater + weights.volatility
    multiplier = 100 / other if other else 0.0
    return {
        "absolute_return": weights.absolute_return * multiplier,
        "relative_return": weights.relative_return * multiplier,
        "underwater": weights.underwater * multiplier,
        "volatility": weights.volatility * multiplier,
        "dividends": 0.0,
    }


def calculate_weighted_score(metrics: HealthMetrics, weights: ScoringWeights) -> int:
    """Weighted category total before position-size penalties."""
    absolute = calculate_absolute_return_score(metrics.xirr)
    relative = calculate_relative_return_score(metrics.alpha_3y)
    underwater = calculate_underwater_score(metrics.days_underwater)
    risk = calculate_risk_score(metrics.sharpe_ratio)
    dividend = calculate_dividend_score(metrics.dividend_trend, metrics.dividend_growth)

    raw = (
        absolute * (weights.absolute_return / MAX_ABSOLUTE_RETURN)
        + relative * (weights.relative_return / MAX_RELATIVE_RETURN)
        + underwater * (weights.underwater / MAX_UNDERWATER)
        + risk * (weights.volatility / MAX_RISK)
    )

    if dividend is None:
        # Non-dividend stock: spread the dividend weight over the other four
        other = weights.absolute_return + weights.relative_return + weights.underwater + weights.volatility
        if not other:
            return 0
        return _round_half_up(raw * (100 / other))

    return _round_half_up(raw + dividend * (weights.dividends / MAX_DIVIDENDS))


def calculate_health_score(
    metrics: HealthMetrics,
    weights: ScoringWeights,
    thresholds: Optional[HealthThresholds] = None,
) -> int:
    """Calculate the final 0-100 health score for a holding.

    Position-size penalties apply after weighting: a position below the
    small threshold or above the large threshold loses 10 points, each
    penalty floored at 15.

    Args:
        metrics: All calculated metrics for the holding.
        weights: Category weights from configuration.
        thresholds: Position-size thresholds (defaults: 1% / 15%).

    Returns:
        Health score from 0 to 100.
    """
    thresholds = thresholds or HealthThresholds()
    score = calculate_weighted_score(metrics, weights)

    # Consolidation nudge for tiny positions
    if metrics.portfolio_weight < thresholds.small_position_threshold:
        score = max(SIZE_PENALTY_FLOOR, score - SIZE_PENALTY)

    # Concentration risk
    if metrics.portfolio_weight > thresholds.large_position_threshold:
        score = max(SIZE_PENALTY_FLOOR, score - SIZE_PENALTY)

    return max(0, min(100, score))


def score_to_severity(score: int) -> Severity:
    """Map a score to its severity tier.

    <= 30 critical, <= 50 warning, <= 70 info, else healthy.
    """
    if score <= 30:
        return Severity.CRITICAL
    if score <= 50:
        return Severity.WARNING
    if score <= 70:
        return Severity.INFO
    return Severity.HEALTHY


def count_serious_flags(flags: Iterable[HealthFlag]) -> int:
    return sum(1 for f in flags if f in SERIOUS_FLAGS)


def generate_recommendation(
    score: int,
    flags: Iterable[HealthFlag],
    metrics: HealthMetrics,
) -> Recommendation:
    """Turn a score and its flags into an action.

    Order matters:
    1. score <= 25 -> SELL
    2. 3+ serious flags -> SELL
    3. score <= 50 or 2+ serious flags -> REVIEW
    4. score >= 85 and 3Y alpha > 5 -> ACCUMULATE
    5. HOLD
    """
    if score <= 25:
        return Recommendation.SELL

    serious = count_serious_flags(flags)
    if serious >= 3:
        return Recommendation.SELL

    if score <= 50 or serious >= 2:
        return Recommendation.REVIEW

    if score >= 85 and metrics.alpha_3y > 5:
        return Recommendation.ACCUMULATE

    return Recommendation.HOLD
