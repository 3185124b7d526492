"""Health flags, strengths and their human-readable narrative.

Flags and strengths are threshold checks over HealthMetrics. Every flag
maps to one description string, so reports stay auditable.
"""

from typing import List

from src.shared.models import (
    DividendTrend,
    HealthFlag,
    HealthMetrics,
    HealthThresholds,
    Recommendation,
    StrengthFlag,
)

# Sharpe below this turns high volatility into a flag
POOR_SHARPE = 0.5

_NEGATIVE_RETURNS = (
    HealthFlag.NEGATIVE_RETURN_1Y,
    HealthFlag.NEGATIVE_RETURN_3Y,
    HealthFlag.NEGATIVE_RETURN_5Y,
    HealthFlag.NEGATIVE_RETURN_SINCE_INCEPTION,
)
_LONG_TERM_NEGATIVE_RETURNS = _NEGATIVE_RETURNS[1:]
_UNDERPERFORMANCE = (
    HealthFlag.UNDERPERFORMED_BENCHMARK_1Y,
    HealthFlag.UNDERPERFORMED_BENCHMARK_3Y,
    HealthFlag.UNDERPERFORMED_BENCHMARK_5Y,
    HealthFlag.UNDERPERFORMED_BENCHMARK_SINCE_INCEPTION,
)
_LONG_TERM_UNDERPERFORMANCE = _UNDERPERFORMANCE[1:]


def format_money(value: float) -> str:
    return f"{value:,.2f}"


# ============================================================
# Flags
# ============================================================

def determine_flags(metrics: HealthMetrics, thresholds: HealthThresholds) -> List[HealthFlag]:
    """Determine which flags apply, in a fixed order."""
    flags = []

    # Negative returns across horizons
    if metrics.return_1y < 0:
        flags.append(HealthFlag.NEGATIVE_RETURN_1Y)
    if metrics.return_3y < 0:
        flags.append(HealthFlag.NEGATIVE_RETURN_3Y)
    if metrics.return_5y < 0:
        flags.append(HealthFlag.NEGATIVE_RETURN_5Y)
    if metrics.return_since_inception < 0:
        flags.append(HealthFlag.NEGATIVE_RETURN_SINCE_INCEPTION)

    # Benchmark underperformance
    margin = thresholds.benchmark_underperformance
    if metrics.alpha_1y < margin:
        flags.append(HealthFlag.UNDERPERFORMED_BENCHMARK_1Y)
    if metrics.alpha_3y < margin:
        flags.append(HealthFlag.UNDERPERFORMED_BENCHMARK_3Y)
    if metrics.alpha_5y < margin:
        flags.append(HealthFlag.UNDERPERFORMED_BENCHMARK_5Y)
    if metrics.alpha_since_inception < margin:
        flags.append(HealthFlag.UNDERPERFORMED_BENCHMARK_SINCE_INCEPTION)

    if metrics.opportunity_cost > thresholds.opportunity_cost_min:
        flags.append(HealthFlag.HIGH_OPPORTUNITY_COST)

    if metrics.days_underwater > thresholds.underwater_days:
        flags.append(HealthFlag.EXTENDED_UNDERWATER)

    if metrics.dividend_trend in (DividendTrend.DECLINING, DividendTrend.SUSPENDED):
        flags.append(HealthFlag.DECLINING_DIVIDENDS)

    # Risk without commensurate return
    if metrics.volatility > thresholds.volatility_max and metrics.sharpe_ratio < POOR_SHARPE:
        flags.append(HealthFlag.HIGH_VOLATILITY)

    # Position sizing
    if metrics.portfolio_weight < thresholds.small_position_threshold:
        flags.append(HealthFlag.SMALL_POSITION)
    if metrics.portfolio_weight > thresholds.large_position_threshold:
        flags.append(HealthFlag.LARGE_POSITION)

    return flags


def describe_flag(flag: HealthFlag, metrics: HealthMetrics, benchmark: str) -> str:
    """Human-readable explanation of one flag."""
    if flag == HealthFlag.NEGATIVE_RETURN_1Y:
        return f"Negative 1-year return of {metrics.return_1y:.1f}%"
    if flag == HealthFlag.NEGATIVE_RETURN_3Y:
        return f"Negative 3-year return of {metrics.return_3y:.1f}%"
    if flag == HealthFlag.NEGATIVE_RETURN_5Y:
        return f"Negative 5-year return of {metrics.return_5y:.1f}%"
    if flag == HealthFlag.NEGATIVE_RETURN_SINCE_INCEPTION:
        return f"Negative return of {metrics.return_since_inception:.1f}% since the holding started"
    if flag == HealthFlag.UNDERPERFORMED_BENCHMARK_1Y:
        return f"Underperformed {benchmark} by {abs(metrics.alpha_1y):.1f}% in the last year"
    if flag == HealthFlag.UNDERPERFORMED_BENCHMARK_3Y:
        return f"Underperformed {benchmark} by {abs(metrics.alpha_3y):.1f}% in the last 3 years"
    if flag == HealthFlag.UNDERPERFORMED_BENCHMARK_5Y:
        return f"Underperformed {benchmark} by {abs(metrics.alpha_5y):.1f}% in the last 5 years"
    if flag == HealthFlag.UNDERPERFORMED_BENCHMARK_SINCE_INCEPTION:
        return f"Underperformed {benchmark} by {abs(metrics.alpha_since_inception):.1f}% since the holding started"
    if flag == HealthFlag.HIGH_OPPORTUNITY_COST:
        return f"Opportunity cost of ${format_money(metrics.opportunity_cost)}"
    if flag == HealthFlag.EXTENDED_UNDERWATER:
        months = metrics.holding_period_days // 30
        pct = (
            round(metrics.days_underwater / metrics.holding_period_days * 100)
            if metrics.holding_period_days > 0 else 0
        )
        return (
            f"Below cost basis for {metrics.days_underwater} days "
            f"({pct}% of your {months}-month holding period)"
        )
    if flag == HealthFlag.DECLINING_DIVIDENDS:
        return "Dividend has been cut or is declining"
    if flag == HealthFlag.HIGH_VOLATILITY:
        return f"High volatility ({metrics.volatility * 100:.0f}%) with poor risk-adjusted returns"
    if flag == HealthFlag.SMALL_POSITION:
        return f"Small position ({metrics.portfolio_weight * 100:.2f}% of portfolio)"
    if flag == HealthFlag.LARGE_POSITION:
        return f"Large position ({metrics.portfolio_weight * 100:.1f}% of portfolio) - concentration risk"
    raise ValueError(f"Unhandled health flag: {flag}")


def describe_flags(flags: List[HealthFlag], metrics: HealthMetrics, benchmark: str) -> List[str]:
    return [describe_flag(f, metrics, benchmark) for f in flags]


# ============================================================
# Strengths
# ============================================================

def determine_strengths(metrics: HealthMetrics, thresholds: HealthThresholds) -> List[StrengthFlag]:
    """Mirror image of determine_flags: what the holding does well."""
    strengths = []

    if metrics.return_3y > 0:
        strengths.append(StrengthFlag.POSITIVE_RETURN_3Y)
    if metrics.alpha_3y > thresholds.benchmark_outperformance:
        strengths.append(StrengthFlag.OUTPERFORMED_BENCHMARK)
    if metrics.volatility < thresholds.volatility_low:
        strengths.append(StrengthFlag.LOW_VOLATILITY)
    if metrics.sharpe_ratio > thresholds.sharpe_good:
        strengths.append(StrengthFlag.POSITIVE_SHARPE)
    if metrics.dividend_trend == DividendTrend.GROWING:
        strengths.append(StrengthFlag.GROWING_DIVIDENDS)
    if metrics.return_1y > thresholds.strong_momentum:
        strengths.append(StrengthFlag.STRONG_MOMENTUM)
    if metrics.holding_period_days > thresholds.long_term_hold_days and metrics.return_3y > 0:
        strengths.append(StrengthFlag.LONG_TERM_HOLD)

    return strengths


def describe_strength(strength: StrengthFlag, metrics: HealthMetrics, benchmark: str) -> str:
    if strength == StrengthFlag.POSITIVE_RETURN_3Y:
        return f"Positive 3-year return of {metrics.return_3y:.1f}%"
    if strength == StrengthFlag.OUTPERFORMED_BENCHMARK:
        return f"Outperformed {benchmark} by {metrics.alpha_3y:.1f}%"
    if strength == StrengthFlag.LOW_VOLATILITY:
        return f"Low volatility ({metrics.volatility * 100:.0f}%) - stable investment"
    if strength == StrengthFlag.POSITIVE_SHARPE:
        return f"Excellent risk-adjusted returns (Sharpe ratio: {metrics.sharpe_ratio:.2f})"
    if strength == StrengthFlag.GROWING_DIVIDENDS:
        return f"Growing dividends ({metrics.dividend_growth:.1f}% annual growth)"
    if strength == StrengthFlag.STRONG_MOMENTUM:
        return f"Strong recent performance ({metrics.return_1y:.1f}% in last year)"
    if strength == StrengthFlag.LONG_TERM_HOLD:
        return f"Long-term hold ({metrics.holding_period_days // 365} years) with positive returns"
    raise ValueError(f"Unhandled strength flag: {strength}")


def describe_strengths(strengths: List[StrengthFlag], metrics: HealthMetrics, benchmark: str) -> List[str]:
    return [describe_strength(s, metrics, benchmark) for s in strengths]


# ============================================================
# Narrative
# ============================================================

def format_opportunity_cost(cost: float, benchmark: str) -> str:
    if cost <= 0:
        return f"Outperformed {benchmark} - no opportunity cost"
    return f"If invested in {benchmark} instead, you would have ${format_money(cost)} more today"


def generate_suggested_action(recommendation: Recommendation, flags: List[HealthFlag]) -> str:
    """Pick a specific next step from the recommendation and flag mix."""
    present = set(flags)
    negative = bool(present.intersection(_NEGATIVE_RETURNS))
    long_negative = bool(present.intersection(_LONG_TERM_NEGATIVE_RETURNS))
    underperforming = bool(present.intersection(_UNDERPERFORMANCE))
    long_underperforming = bool(present.intersection(_LONG_TERM_UNDERPERFORMANCE))

    if recommendation == Recommendation.SELL:
        if long_negative and HealthFlag.EXTENDED_UNDERWATER in present:
            return (
                "Consider selling to harvest tax losses and reallocate to better performers. "
                "The position has been underwater for an extended period."
            )
        if HealthFlag.HIGH_OPPORTUNITY_COST in present and long_underperforming:
            return (
                "Sell and invest proceeds in a broad index fund. You would have significantly "
                "more capital had you chosen the benchmark."
            )
        if HealthFlag.DECLINING_DIVIDENDS in present and negative:
            return (
                "Exit the position. Dividend cuts combined with negative returns suggest "
                "fundamental deterioration."
            )
        if HealthFlag.HIGH_VOLATILITY in present and negative:
            return (
                "Sell to reduce portfolio risk. High volatility without positive returns is not "
                "a good risk/reward trade-off."
            )
        if (
            HealthFlag.EXTENDED_UNDERWATER in present
            and HealthFlag.NEGATIVE_RETURN_SINCE_INCEPTION in present
        ):
            return "Consider exiting. The position has consistently failed to recover and deliver returns."
        if len(flags) >= 4:
            return (
                "This holding has multiple critical issues. Strongly consider exiting the position "
                "and reallocating to quality investments."
            )
        return "This holding has significant red flags. Consider exiting the position."

    if recommendation == Recommendation.REVIEW:
        if HealthFlag.LARGE_POSITION in present:
            if underperforming:
                return (
                    "Reduce position size to manage concentration risk. This large position is "
                    "underperforming and exposes your portfolio to unnecessary risk."
                )
            return (
                "Consider trimming to reduce concentration risk. No single position should "
                "dominate your portfolio."
            )
        if HealthFlag.SMALL_POSITION in present:
            if underperforming:
                return "Exit this small underperformer. It adds complexity without meaningful portfolio impact."
            return (
                "Consider consolidating into larger positions or selling. Small positions add "
                "complexity without meaningful portfolio impact."
            )
        if HealthFlag.DECLINING_DIVIDENDS in present:
            if not negative:
                return (
                    "Review company fundamentals immediately. Dividend cuts often precede deeper "
                    "issues, but the stock price may not reflect this yet."
                )
            return (
                "Deep dive into company financials. Dividend cuts combined with price weakness "
                "suggest serious business challenges."
            )
        if HealthFlag.HIGH_VOLATILITY in present:
            return (
                "Evaluate if the volatility matches your risk tolerance. Consider reducing "
                "position size or adding stop-losses."
            )
        if long_underperforming and not negative:
            return (
                "Reevaluate your investment thesis. While not losing money, you are missing out "
                "on better returns available in the market."
            )
        if HealthFlag.EXTENDED_UNDERWATER in present and HealthFlag.NEGATIVE_RETURN_1Y not in present:
            return (
                "Monitor closely. While showing recent improvement, the position has been "
                "underwater for an extended period."
            )
        if HealthFlag.UNDERPERFORMED_BENCHMARK_1Y in present and not long_underperforming:
            return (
                "Watch this position. Recent underperformance may be temporary, but set a "
                "timeframe to reassess."
            )
        if HealthFlag.NEGATIVE_RETURN_1Y in present and not long_negative:
            return (
                "Review your thesis. Recent weakness may be a buying opportunity or the start "
                "of a longer decline."
            )
        if present == {HealthFlag.HIGH_OPPORTUNITY_COST}:
            return (
                "Consider if your conviction justifies the opportunity cost. Passive index "
                "investing might be a better choice."
            )
        return (
            "This holding deserves closer attention. Review your original investment thesis "
            "and whether it still holds."
        )

    if recommendation == Recommendation.ACCUMULATE:
        if HealthFlag.LARGE_POSITION in present:
            return (
                "Excellent performer, but already a large position. Consider rebalancing to "
                "maintain diversification."
            )
        return "Strong performer with solid fundamentals. Consider adding to this position on market dips."

    if recommendation == Recommendation.HOLD:
        if HealthFlag.LARGE_POSITION in present:
            return "Maintain current position but avoid adding more to limit concentration risk."
        if HealthFlag.SMALL_POSITION in present:
            return (
                "Position is performing adequately. Consider whether to consolidate or grow it "
                "to a more meaningful size."
            )
        if HealthFlag.HIGH_VOLATILITY in present:
            return "Monitor volatility and consider hedging strategies if it affects your risk tolerance."
        return "Position is performing adequately. Continue to monitor and maintain current allocation."

    raise ValueError(f"Unhandled recommendation: {recommendation}")
