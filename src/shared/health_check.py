"""Portfolio Health Check service.

Ties the analytics together: per holding it rebuilds the open lots,
computes every HealthMetrics field, scores it and attaches flags,
strengths and narrative. The portfolio roll-up fans this out over all
holdings and summarizes the reports.
"""

import logging
from dataclasses import asdict
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from src.shared.analytics import (
    build_xirr_cash_flows,
    compute_current_drawdown,
    compute_days_underwater,
    compute_holding_period_days,
    compute_horizon_return,
    compute_max_drawdown,
    compute_sharpe_ratio,
    compute_since_inception_return,
    compute_volatility,
    compute_xirr,
)
from src.shared.benchmark import (
    calculate_opportunity_cost,
    compute_alpha,
    compute_benchmark_returns,
)
from src.shared.config import (
    HEALTH_PORTFOLIO_OPPORTUNITY_COST_ALERT,
    HEALTH_PORTFOLIO_UNDERWATER_ALERT_COUNT,
    HEALTH_TOP_N,
)
from src.shared.dividends import (
    calculate_dividend_growth,
    calculate_dividend_yield,
    determine_dividend_trend,
)
from src.shared.flags import (
    describe_flags,
    describe_strengths,
    determine_flags,
    determine_strengths,
    format_money,
    format_opportunity_cost,
    generate_suggested_action,
)
from src.shared.fx import CurrencyConverter, identity_converter
from src.shared.lots import average_cost_per_share, match_open_lots, total_cost_basis
from src.shared.models import (
    HealthCheckConfig,
    HealthFlag,
    HealthMetrics,
    Holding,
    HoldingHealthReport,
    PortfolioHealthSummary,
    PriceHistory,
    Severity,
    Transaction,
)
from src.shared.prices import prices_through
from src.shared.scoring import calculate_health_score, generate_recommendation, score_to_severity

logger = logging.getLogger(__name__)


class HealthCheckService:
    """Analyzes holdings against a benchmark and scores their health.

    Args:
        config: Weights, thresholds and filters. Defaults come from env vars.
        convert: (currency, amount, date) -> reporting-currency amount.
            Defaults to identity_converter (single-currency portfolio).
    """

    def __init__(
        self,
        config: Optional[HealthCheckConfig] = None,
        convert: Optional[CurrencyConverter] = None,
    ):
        self.config = config or HealthCheckConfig()
        self.convert = convert or identity_converter

    # ============================================================
    # Metrics
    # ============================================================

    def calculate_metrics(
        self,
        holding: Holding,
        transactions: List[Transaction],
        price_history: PriceHistory,
        benchmark_history: PriceHistory,
        total_portfolio_value: float,
        as_of: date,
    ) -> HealthMetrics:
        """Compute every metric for one holding as of a date.

        Prices dated after as_of are ignored, so a backdated run sees the
        series as it stood on that day.
        """
        prices = prices_through(price_history.prices, as_of)
        benchmark = prices_through(benchmark_history.prices, as_of)

        lots = match_open_lots(transactions, convert=self.convert)
        holding_start = lots[0].date if lots else None
        cost_basis = total_cost_basis(lots)
        holding_period_days = compute_holding_period_days(lots, as_of)

        # Dividends
        dividend_yield = calculate_dividend_yield(
            transactions, holding.quantity, holding.last_price, as_of,
        )
        dividend_growth = calculate_dividend_growth(transactions)
        dividend_trend = determine_dividend_trend(transactions, as_of)

        # Total return approximations (price + dividend yield)
        return_1y = compute_horizon_return(prices, 1, as_of, holding_start, dividend_yield)
        return_3y = compute_horizon_return(prices, 3, as_of, holding_start, dividend_yield)
        return_5y = compute_horizon_return(prices, 5, as_of, holding_start, dividend_yield)
        return_since_inception = compute_since_inception_return(
            holding.market_value, cost_basis, dividend_yield, holding_period_days,
        )

        xirr = self._holding_xirr(holding, transactions, as_of)

        # Benchmarks have no dividend transactions: price-only
        bench = compute_benchmark_returns(benchmark, as_of, holding_start)

        return HealthMetrics(
            return_1y=return_1y,
            return_3y=return_3y,
            return_5y=return_5y,
            return_since_inception=return_since_inception,
            xirr=xirr,
            benchmark_return_1y=bench.return_1y,
            benchmark_return_3y=bench.return_3y,
            benchmark_return_5y=bench.return_5y,
            benchmark_return_since_inception=bench.return_since_inception,
            alpha_1y=compute_alpha(return_1y, bench.return_1y),
            alpha_3y=compute_alpha(return_3y, bench.return_3y),
            alpha_5y=compute_alpha(return_5y, bench.return_5y),
            alpha_since_inception=compute_alpha(return_since_inception, bench.return_since_inception),
            opportunity_cost=calculate_opportunity_cost(lots, holding.market_value, benchmark),
            max_drawdown=compute_max_drawdown(prices),
            current_drawdown=compute_current_drawdown(prices),
            days_underwater=compute_days_underwater(lots, prices),
            holding_period_days=holding_period_days,
            volatility=compute_volatility(prices),
            sharpe_ratio=compute_sharpe_ratio(prices, as_of, self.config.risk_free_rate),
            dividend_yield=dividend_yield,
            dividend_growth=dividend_growth,
            dividend_trend=dividend_trend,
            portfolio_weight=(
                holding.market_value / total_portfolio_value if total_portfolio_value > 0 else 0.0
            ),
            position_size=holding.market_value,
            cost_basis=cost_basis,
            average_cost=average_cost_per_share(lots),
        )

    def _holding_xirr(self, holding: Holding, transactions: List[Transaction], as_of: date) -> float:
        """XIRR in percent. Supplied value wins; unsolvable flows give 0."""
        if holding.xirr is not None:
            return holding.xirr * 100

        flows = build_xirr_cash_flows(transactions, holding.market_value, as_of, self.convert)
        rate = compute_xirr(flows)
        if rate is None:
            if flows:
                logger.warning("No XIRR for %s, scoring it as 0%%", holding.symbol)
            return 0.0
        return rate * 100

    # ============================================================
    # Single holding
    # ============================================================

    def analyze_holding(
        self,
        holding: Holding,
        transactions: List[Transaction],
        price_history: PriceHistory,
        benchmark_history: PriceHistory,
        total_portfolio_value: float,
        as_of: Optional[date] = None,
    ) -> HoldingHealthReport:
        """Analyze a single holding.

        Args:
            holding: Current position.
            transactions: This holding's transactions, any order.
            price_history: Daily closes for the holding.
            benchmark_history: Daily closes for the benchmark.
            total_portfolio_value: Sum of all holdings' market values.
            as_of: Analysis date. Defaults to today.

        Returns:
            HoldingHealthReport with score, flags and narrative.
        """
        as_of = as_of or date.today()
        benchmark_symbol = self.config.benchmark_symbol
        thresholds = self.config.thresholds

        metrics = self.calculate_metrics(
            holding, transactions, price_history, benchmark_history, total_portfolio_value, as_of,
        )
        score = calculate_health_score(metrics, self.config.weights, thresholds)

        flags = determine_flags(metrics, thresholds)
        strengths = determine_strengths(metrics, thresholds)
        recommendation = generate_recommendation(score, flags, metrics)

        return HoldingHealthReport(
            symbol=holding.symbol,
            name=holding.name,
            score=score,
            recommendation=recommendation,
            severity=score_to_severity(score),
            flags=flags,
            flag_descriptions=describe_flags(flags, metrics, benchmark_symbol),
            strengths=strengths,
            strength_descriptions=describe_strengths(strengths, metrics, benchmark_symbol),
            metrics=metrics,
            opportunity_cost_description=format_opportunity_cost(metrics.opportunity_cost, benchmark_symbol),
            suggested_action=generate_suggested_action(recommendation, flags),
        )

    # ============================================================
    # Portfolio
    # ============================================================

    def analyze_portfolio(
        self,
        holdings: List[Holding],
        transactions: List[Transaction],
        price_histories: Dict[str, PriceHistory],
        benchmark_history: PriceHistory,
        as_of: Optional[date] = None,
    ) -> PortfolioHealthSummary:
        """Analyze every holding and roll the reports up.

        Holdings below min_portfolio_weight, in excluded_symbols, or without
        price data are skipped. A holding whose analysis raises (bad numbers,
        a missing FX rate) is logged and skipped.

        Args:
            holdings: Current positions.
            transactions: Transactions for all symbols.
            price_histories: Price history per symbol.
            benchmark_history: Benchmark price history.
            as_of: Analysis date. Defaults to today.

        Returns:
            PortfolioHealthSummary with reports sorted worst first.
        """
        as_of = as_of or date.today()
        total_value = sum(h.market_value for h in holdings)
        excluded = set(self.config.excluded_symbols)

        reports = []
        for holding in holdings:
            weight = holding.market_value / total_value if total_value > 0 else 0.0
            if weight < self.config.min_portfolio_weight:
                logger.debug("Skipping %s: weight %.4f below minimum", holding.symbol, weight)
                continue
            if holding.symbol in excluded:
                logger.debug("Skipping %s: excluded", holding.symbol)
                continue

            history = price_histories.get(holding.symbol)
            if history is None or not history.prices:
                logger.info("Skipping %s: no price data", holding.symbol)
                continue

            holding_transactions = [t for t in transactions if t.symbol == holding.symbol]
            try:
                report = self.analyze_holding(
                    holding, holding_transactions, history, benchmark_history, total_value, as_of,
                )
            except Exception:
                logger.exception("Health analysis failed for %s, skipping", holding.symbol)
                continue
            reports.append(report)

        # Worst first
        reports.sort(key=lambda r: r.score)

        total_opportunity_cost = sum(r.metrics.opportunity_cost for r in reports)
        summary = PortfolioHealthSummary(
            overall_score=weighted_average_score(reports),
            total_opportunity_cost=total_opportunity_cost,
            holdings_reviewed=len(reports),
            flagged_holdings=sum(1 for r in reports if r.flags),
            critical_count=_count_severity(reports, Severity.CRITICAL),
            warning_count=_count_severity(reports, Severity.WARNING),
            info_count=_count_severity(reports, Severity.INFO),
            healthy_count=_count_severity(reports, Severity.HEALTHY),
            reports=reports,
            worst_performers=reports[:HEALTH_TOP_N],
            biggest_drags=sorted(reports, key=lambda r: r.metrics.opportunity_cost, reverse=True)[:HEALTH_TOP_N],
            recommendations=portfolio_recommendations(reports),
            analysis_date=as_of.isoformat(),
            benchmark_used=self.config.benchmark_symbol,
            analysis_period_years=self.config.analysis_period_years,
        )

        logger.info(
            "Health check: %d holdings reviewed, overall score %d, %d critical, opportunity cost $%s",
            summary.holdings_reviewed, summary.overall_score, summary.critical_count,
            format_money(total_opportunity_cost),
        )
        return summary


# ============================================================
# Roll-up helpers
# ============================================================

def _count_severity(reports: List[HoldingHealthReport], severity: Severity) -> int:
    return sum(1 for r in reports if r.severity == severity)


def weighted_average_score(reports: List[HoldingHealthReport]) -> int:
    """Portfolio score weighted by portfolio weight. 0 with no reports."""
    total_weight = sum(r.metrics.portfolio_weight for r in reports)
    if not reports or total_weight <= 0:
        return 0
    weighted = sum(r.score * r.metrics.portfolio_weight for r in reports)
    return int(round(weighted / total_weight))


def portfolio_recommendations(reports: List[HoldingHealthReport]) -> List[str]:
    """Portfolio-level advice, or a single all-clear message."""
    recommendations = []

    critical = _count_severity(reports, Severity.CRITICAL)
    if critical > 0:
        recommendations.append(
            f"You have {critical} holding(s) requiring urgent attention. Review these first."
        )

    total_opportunity_cost = sum(r.metrics.opportunity_cost for r in reports)
    if total_opportunity_cost > HEALTH_PORTFOLIO_OPPORTUNITY_COST_ALERT:
        recommendations.append(
            f"Total opportunity cost of ${format_money(total_opportunity_cost)}. "
            "Consider consolidating into index funds."
        )

    underwater = sum(1 for r in reports if HealthFlag.EXTENDED_UNDERWATER in r.flags)
    if underwater > HEALTH_PORTFOLIO_UNDERWATER_ALERT_COUNT:
        recommendations.append(
            f"{underwater} holdings are underwater for over a year. Review if your theses still hold."
        )

    if not recommendations:
        recommendations.append("Your portfolio looks healthy! Continue monitoring periodically.")

    return recommendations


def _json_safe(pairs) -> dict:
    return {k: v.value if isinstance(v, Enum) else v for k, v in pairs}


def summary_to_dict(summary: PortfolioHealthSummary) -> dict:
    """JSON-serializable dict of a summary (enums become their values)."""
    data = asdict(summary, dict_factory=_json_safe)
    # asdict leaves enums inside lists alone
    for key in ("reports", "worst_performers", "biggest_drags"):
        for report in data[key]:
            report["flags"] = [f.value for f in report["flags"]]
            report["strengths"] = [s.value for s in report["strengths"]]
    return data
