"""WF7: Portfolio Health Check - Workflow.

Pipeline:
    prepare_health_inputs -> run_health_check

Scores each holding (0-100) on absolute return, relative return vs. the
benchmark, time underwater, risk and dividends, and returns the portfolio
summary as JSON plus headline figures.

Example local run:
    pyflyte run src/wf7_health_check/workflow.py portfolio_health_workflow \\
        --holdings_json "$(cat holdings.json)" --transactions_json "$(cat tx.json)" \\
        --prices_json "$(cat prices.json)" --benchmark_json "$(cat spy.json)" \\
        --run_date 2026-10-19
"""

from typing import Dict

from flytekit import workflow

from src.shared.config import (
    HEALTH_BENCHMARK_SYMBOL,
    HEALTH_EXCLUDED_SYMBOLS,
    HEALTH_MIN_PORTFOLIO_WEIGHT,
    HEALTH_RISK_FREE_RATE,
)
from src.shared.logging_setup import setup_logging
from src.wf7_health_check.tasks import prepare_health_inputs, run_health_check

setup_logging()


@workflow
def portfolio_health_workflow(
    holdings_json: str,
    transactions_json: str,
    prices_json: str,
    benchmark_json: str,
    run_date: str = "",
    fx_rates_json: str = "",
    benchmark_symbol: str = HEALTH_BENCHMARK_SYMBOL,
    risk_free_rate: float = HEALTH_RISK_FREE_RATE,
    min_portfolio_weight: float = HEALTH_MIN_PORTFOLIO_WEIGHT,
    excluded_symbols: str = ",".join(HEALTH_EXCLUDED_SYMBOLS),
) -> Dict[str, str]:
    """WF7: Portfolio health check workflow.

    Scoring weights and flag thresholds come from config.py / env vars;
    only the per-run knobs are workflow inputs.

    Args:
        holdings_json: JSON list of current holdings.
        transactions_json: JSON list of transactions for all symbols.
        prices_json: JSON dict symbol -> [[date, close], ...].
        benchmark_json: JSON list of [date, close] for the benchmark.
        run_date: Analysis date (YYYY-MM-DD). Empty = today.
        fx_rates_json: JSON dict currency -> [[date, rate], ...]. Empty when
            every amount is already in the base currency.
        benchmark_symbol: Benchmark label (default: SPY).
        risk_free_rate: Annualized risk-free rate for Sharpe (default: 4%).
        min_portfolio_weight: Skip holdings below this fraction (default: 1%).
        excluded_symbols: Comma-separated symbols to skip.

    Returns:
        Dict[str, str] with summary_json, overall_score, holdings_reviewed,
        critical_count, total_opportunity_cost and top_offenders.
    """
    # Step 1: Parse and validate payloads
    inputs = prepare_health_inputs(
        holdings_json=holdings_json,
        transactions_json=transactions_json,
        prices_json=prices_json,
        benchmark_json=benchmark_json,
        run_date=run_date,
        fx_rates_json=fx_rates_json,
    )

    # Step 2: Score holdings and roll up
    return run_health_check(
        inputs=inputs,
        benchmark_symbol=benchmark_symbol,
        risk_free_rate=risk_free_rate,
        min_portfolio_weight=min_portfolio_weight,
        excluded_symbols=excluded_symbols,
    )
