"""Tests for HealthCheckService: per-holding analysis and portfolio roll-up.

Uses the linear price series from conftest: GOOD doubles, BAD halves and
the benchmark gains 50% over the same period.
"""

import json
from datetime import date, timedelta

import pytest

from src.shared.fx import FXRateTable, identity_converter
from src.shared.health_check import (
    HealthCheckService,
    portfolio_recommendations,
    summary_to_dict,
    weighted_average_score,
)
from src.shared.models import (
    HealthCheckConfig,
    HealthFlag,
    HealthMetrics,
    Holding,
    HoldingHealthReport,
    PriceHistory,
    PricePoint,
    Recommendation,
    Severity,
    StrengthFlag,
    Transaction,
    TransactionType,
)

# Keeps GOOD and BAD between the small and large position thresholds
LARGE_PORTFOLIO = 20000.0


# ============================================================
# Single holding
# ============================================================

class TestAnalyzeHolding:

    def test_compounding_winner(self, good_holding, good_transactions, price_histories,
                                benchmark_history, as_of):
        report = HealthCheckService().analyze_holding(
            good_holding, good_transactions, price_histories["GOOD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        )
        assert report.symbol == "GOOD"
        assert report.name == "Good Corp"
        assert report.score == 100
        assert report.recommendation == Recommendation.ACCUMULATE
        assert report.severity == Severity.HEALTHY
        assert report.flags == []
        assert report.flag_descriptions == []
        assert {
            StrengthFlag.POSITIVE_RETURN_3Y,
            StrengthFlag.OUTPERFORMED_BENCHMARK,
            StrengthFlag.LOW_VOLATILITY,
            StrengthFlag.LONG_TERM_HOLD,
        } <= set(report.strengths)
        assert len(report.strength_descriptions) == len(report.strengths)
        assert report.opportunity_cost_description == "Outperformed SPY - no opportunity cost"
        assert report.suggested_action.startswith("Strong performer")

    def test_winner_metrics(self, good_holding, good_transactions, price_histories,
                            benchmark_history, as_of):
        metrics = HealthCheckService().analyze_holding(
            good_holding, good_transactions, price_histories["GOOD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        ).metrics
        assert metrics.xirr == pytest.approx(12.0)
        assert metrics.alpha_3y > 5
        assert metrics.return_1y > 0
        assert metrics.days_underwater == 0
        assert metrics.opportunity_cost == 0.0
        assert metrics.portfolio_weight == pytest.approx(0.1)
        assert metrics.position_size == 2000.0
        assert metrics.cost_basis == pytest.approx(good_transactions[0].amount)
        assert metrics.holding_period_days == (as_of - good_transactions[0].date).days
        assert metrics.max_drawdown == 0.0

    def test_long_term_loser(self, bad_holding, bad_transactions, price_histories,
                             benchmark_history, as_of):
        report = HealthCheckService().analyze_holding(
            bad_holding, bad_transactions, price_histories["BAD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        )
        assert report.score == 0
        assert report.recommendation == Recommendation.SELL
        assert report.severity == Severity.CRITICAL
        for flag in (
            HealthFlag.NEGATIVE_RETURN_1Y,
            HealthFlag.NEGATIVE_RETURN_3Y,
            HealthFlag.NEGATIVE_RETURN_SINCE_INCEPTION,
            HealthFlag.UNDERPERFORMED_BENCHMARK_3Y,
            HealthFlag.HIGH_OPPORTUNITY_COST,
            HealthFlag.EXTENDED_UNDERWATER,
        ):
            assert flag in report.flags
        assert len(report.flag_descriptions) == len(report.flags)
        assert report.metrics.xirr < -5
        assert report.metrics.opportunity_cost > 500
        assert report.opportunity_cost_description.startswith("If invested in SPY instead")
        assert report.suggested_action.startswith("Consider selling to harvest tax losses")

    def test_holding_without_transactions(self, rising_prices, benchmark_history, as_of):
        holding = Holding(symbol="XFER", market_value=1000.0, quantity=5, last_price=200.0)
        report = HealthCheckService().analyze_holding(
            holding, [], PriceHistory("XFER", rising_prices), benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        )
        assert report.metrics.cost_basis == 0.0
        assert report.metrics.xirr == 0.0
        assert report.metrics.days_underwater == 0
        assert report.metrics.opportunity_cost == 0.0
        assert 0 <= report.score <= 100

    def test_custom_benchmark_label(self, good_holding, good_transactions, price_histories,
                                    benchmark_history, as_of):
        service = HealthCheckService(HealthCheckConfig(benchmark_symbol="^GSPTSE"))
        report = service.analyze_holding(
            good_holding, good_transactions, price_histories["GOOD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        )
        assert report.opportunity_cost_description == "Outperformed ^GSPTSE - no opportunity cost"

    def test_converter_applied_to_cost_basis(self, good_holding, good_transactions, price_histories,
                                             benchmark_history, as_of):
        service = HealthCheckService(convert=lambda currency, amount, on: amount * 2)
        metrics = service.analyze_holding(
            good_holding, good_transactions, price_histories["GOOD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        ).metrics
        assert metrics.cost_basis == pytest.approx(2 * good_transactions[0].amount)

    def test_default_converter_is_identity(self):
        assert HealthCheckService().convert is identity_converter

    def test_average_cost(self, good_holding, good_transactions, price_histories,
                          benchmark_history, as_of):
        metrics = HealthCheckService().analyze_holding(
            good_holding, good_transactions, price_histories["GOOD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        ).metrics
        assert metrics.average_cost == pytest.approx(good_transactions[0].amount / 10)

    def test_prices_after_as_of_are_ignored(self, good_holding, good_transactions, price_histories,
                                            benchmark_history, as_of):
        later = [PricePoint(as_of + timedelta(days=7), 1000.0), PricePoint(as_of + timedelta(days=8), 5.0)]
        service = HealthCheckService()
        baseline = service.analyze_holding(
            good_holding, good_transactions, price_histories["GOOD"], benchmark_history,
            LARGE_PORTFOLIO, as_of=as_of,
        )
        extended = service.analyze_holding(
            good_holding, good_transactions,
            PriceHistory(symbol="GOOD", prices=price_histories["GOOD"].prices + later),
            PriceHistory(symbol="SPY", prices=benchmark_history.prices + later),
            LARGE_PORTFOLIO, as_of=as_of,
        )
        assert extended.metrics == baseline.metrics
        assert extended.score == baseline.score


# ============================================================
# Portfolio
# ============================================================

@pytest.fixture
def portfolio(good_holding, bad_holding):
    return [
        good_holding,
        bad_holding,
        Holding(symbol="TINY", market_value=10.0),      # below the minimum weight
        Holding(symbol="CASH", market_value=500.0),     # excluded
        Holding(symbol="NOPRICE", market_value=300.0),  # no price history
    ]


@pytest.fixture
def service():
    return HealthCheckService(HealthCheckConfig(excluded_symbols=["CASH"]))


class TestAnalyzePortfolio:

    def test_skips_small_excluded_and_unpriced(self, service, portfolio, good_transactions,
                                               bad_transactions, price_histories,
                                               benchmark_history, as_of):
        summary = service.analyze_portfolio(
            portfolio, good_transactions + bad_transactions, price_histories, benchmark_history, as_of,
        )
        assert summary.holdings_reviewed == 2
        assert {r.symbol for r in summary.reports} == {"GOOD", "BAD"}

    def test_roll_up(self, service, portfolio, good_transactions, bad_transactions,
                     price_histories, benchmark_history, as_of):
        summary = service.analyze_portfolio(
            portfolio, good_transactions + bad_transactions, price_histories, benchmark_history, as_of,
        )
        # Both positions exceed the 15% concentration threshold
        bad, good = summary.reports
        assert (bad.symbol, bad.score) == ("BAD", 15)
        assert (good.symbol, good.score) == ("GOOD", 90)
        assert HealthFlag.LARGE_POSITION in good.flags

        assert summary.critical_count == 1
        assert summary.healthy_count == 1
        assert summary.warning_count == 0
        assert summary.info_count == 0
        assert summary.flagged_holdings == 2
        assert [r.symbol for r in summary.worst_performers] == ["BAD", "GOOD"]
        assert summary.biggest_drags[0].symbol == "BAD"
        assert summary.total_opportunity_cost == pytest.approx(bad.metrics.opportunity_cost)

        weights = [r.metrics.portfolio_weight for r in summary.reports]
        expected = round((15 * weights[0] + 90 * weights[1]) / sum(weights))
        assert summary.overall_score == expected

        assert summary.recommendations == [
            "You have 1 holding(s) requiring urgent attention. Review these first."
        ]
        assert summary.analysis_date == "2026-10-19"
        assert summary.benchmark_used == "SPY"
        assert summary.analysis_period_years == 3

    def test_transactions_filtered_per_symbol(self, service, good_holding, good_transactions,
                                              bad_transactions, price_histories,
                                              benchmark_history, as_of):
        with_other = service.analyze_portfolio(
            [good_holding], good_transactions + bad_transactions, price_histories, benchmark_history, as_of,
        )
        alone = service.analyze_portfolio(
            [good_holding], good_transactions, price_histories, benchmark_history, as_of,
        )
        assert with_other.reports[0].metrics == alone.reports[0].metrics

    def test_failing_holding_is_skipped(self, mocker, service, portfolio, good_transactions,
                                        bad_transactions, price_histories, benchmark_history, as_of):
        original = service.analyze_holding

        def flaky(holding, *args, **kwargs):
            if holding.symbol == "BAD":
                raise ZeroDivisionError("bad data")
            return original(holding, *args, **kwargs)

        mocker.patch.object(service, "analyze_holding", side_effect=flaky)
        summary = service.analyze_portfolio(
            portfolio, good_transactions + bad_transactions, price_histories, benchmark_history, as_of,
        )
        assert [r.symbol for r in summary.reports] == ["GOOD"]

    def test_missing_fx_rate_skips_holding(self, good_holding, good_transactions, rising_prices,
                                           price_histories, benchmark_history, as_of):
        eur_holding = Holding(symbol="EURCO", name="Euro Co", market_value=2000.0, quantity=10, xirr=0.05)
        eur_buy = Transaction(
            type=TransactionType.BUY, date=date(2021, 1, 4), shares=10, price=100.0,
            amount=1000.0, currency="EUR", symbol="EURCO",
        )
        histories = dict(price_histories, EURCO=PriceHistory(symbol="EURCO", prices=rising_prices))
        service = HealthCheckService(convert=FXRateTable(rates={}))

        summary = service.analyze_portfolio(
            [good_holding, eur_holding], good_transactions + [eur_buy], histories, benchmark_history, as_of,
        )
        assert [r.symbol for r in summary.reports] == ["GOOD"]

    def test_fx_rate_converts_cost_basis(self, good_holding, good_transactions, rising_prices,
                                         price_histories, benchmark_history, as_of):
        eur_holding = Holding(symbol="EURCO", name="Euro Co", market_value=2000.0, quantity=10, xirr=0.05)
        eur_buy = Transaction(
            type=TransactionType.BUY, date=date(2021, 1, 4), shares=10, price=100.0,
            amount=1000.0, currency="EUR", symbol="EURCO",
        )
        histories = dict(price_histories, EURCO=PriceHistory(symbol="EURCO", prices=rising_prices))
        service = HealthCheckService(convert=FXRateTable(rates={(date(2021, 1, 1), "EUR"): 1.2}))

        summary = service.analyze_portfolio(
            [good_holding, eur_holding], good_transactions + [eur_buy], histories, benchmark_history, as_of,
        )
        eur = next(r for r in summary.reports if r.symbol == "EURCO")
        assert eur.metrics.cost_basis == pytest.approx(1200.0)

    def test_empty_portfolio(self, service, benchmark_history, as_of):
        summary = service.analyze_portfolio([], [], {}, benchmark_history, as_of)
        assert summary.overall_score == 0
        assert summary.holdings_reviewed == 0
        assert summary.reports == []
        assert summary.recommendations == ["Your portfolio looks healthy! Continue monitoring periodically."]


# ============================================================
# Roll-up helpers
# ============================================================

def _report(symbol, score, weight=0.1, opportunity_cost=0.0, flags=None, severity=Severity.HEALTHY):
    return HoldingHealthReport(
        symbol=symbol, name=symbol, score=score, recommendation=Recommendation.HOLD,
        severity=severity, flags=flags or [],
        metrics=HealthMetrics(portfolio_weight=weight, opportunity_cost=opportunity_cost),
    )


class TestRollUpHelpers:

    def test_weighted_average_score(self):
        reports = [_report("A", 40, weight=0.25), _report("B", 80, weight=0.75)]
        assert weighted_average_score(reports) == 70

    def test_weighted_average_without_reports(self):
        assert weighted_average_score([]) == 0

    def test_opportunity_cost_alert(self):
        reports = [_report("A", 60, opportunity_cost=3000.0), _report("B", 60, opportunity_cost=2500.5)]
        assert portfolio_recommendations(reports) == [
            "Total opportunity cost of $5,500.50. Consider consolidating into index funds."
        ]

    def test_underwater_alert_needs_more_than_three(self):
        three = [_report(s, 60, flags=[HealthFlag.EXTENDED_UNDERWATER]) for s in "ABC"]
        four = three + [_report("D", 60, flags=[HealthFlag.EXTENDED_UNDERWATER])]
        assert portfolio_recommendations(three) == [
            "Your portfolio looks healthy! Continue monitoring periodically."
        ]
        assert portfolio_recommendations(four) == [
            "4 holdings are underwater for over a year. Review if your theses still hold."
        ]


class TestSummaryToDict:

    def test_json_safe(self, service, portfolio, good_transactions, bad_transactions,
                       price_histories, benchmark_history, as_of):
        summary = service.analyze_portfolio(
            portfolio, good_transactions + bad_transactions, price_histories, benchmark_history, as_of,
        )
        data = json.loads(json.dumps(summary_to_dict(summary)))
        first = data["reports"][0]
        assert first["symbol"] == "BAD"
        assert first["recommendation"] == "SELL"
        assert first["severity"] == "critical"
        assert "EXTENDED_UNDERWATER" in first["flags"]
        assert first["metrics"]["dividend_trend"] == "none"
        assert data["worst_performers"][0]["symbol"] == "BAD"
        assert data["analysis_date"] == "2026-10-19"
