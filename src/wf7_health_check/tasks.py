"""WF7: Portfolio Health Check - Tasks.

Scores every holding of a portfolio against a benchmark and rolls the
reports up into a portfolio summary. Holdings, transactions and price
series come from the brokerage data collaborator as JSON.

Payload formats:
    holdings_json:      [{"symbol", "name", "market_value", "quantity",
                          "last_price", "currency", "xirr"}, ...]
    transactions_json:  [{"symbol", "type", "date", "shares", "price",
                          "amount", "currency", "split_ratio"}, ...]
    prices_json:        {symbol: [[date_str, close], ...]}
    benchmark_json:     [[date_str, close], ...]
    fx_rates_json:      {currency: [[date_str, rate], ...]}  (optional;
                        base-currency units per unit of currency)

Task DAG:
    prepare_health_inputs -> run_health_check
"""

import logging
from datetime import date
from typing import Dict, List, Tuple

from flytekit import task, Resources

from src.shared.config import (
    HEALTH_BASE_CURRENCY,
    HEALTH_BENCHMARK_SYMBOL,
    HEALTH_EXCLUDED_SYMBOLS,
    HEALTH_BENCHMARK_UNDERPERFORMANCE,
    HEALTH_LARGE_POSITION_THRESHOLD,
    HEALTH_MIN_PORTFOLIO_WEIGHT,
    HEALTH_OPPORTUNITY_COST_MIN,
    HEALTH_RISK_FREE_RATE,
    HEALTH_SMALL_POSITION_THRESHOLD,
    HEALTH_UNDERWATER_DAYS,
    HEALTH_WEIGHT_ABSOLUTE_RETURN,
    HEALTH_WEIGHT_DIVIDENDS,
    HEALTH_WEIGHT_RELATIVE_RETURN,
    HEALTH_WEIGHT_UNDERWATER,
    HEALTH_WEIGHT_VOLATILITY,
)
from src.shared.models import Holding, PricePoint, Transaction, TransactionType
from src.shared.prices import is_trading_day

logger = logging.getLogger(__name__)

# ============================================================
# Payload parsing
# ============================================================

def _load_json(payload: str, name: str, default):
    import json

    if not payload:
        return default
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {name}: {exc}") from exc


def _parse_date(value: str) -> date:
    return date.fromisoformat(str(value)[:10])


def _parse_price_pairs(pairs: list) -> List[PricePoint]:
    """[[date_str, close], ...] -> date-ascending PricePoints."""
    points = [PricePoint(date=_parse_date(d), close=float(c)) for d, c in pairs]
    return sorted(points, key=lambda p: p.date)


def _price_pairs(points: List[PricePoint]) -> list:
    return [[p.date.isoformat(), p.close] for p in points]


def _parse_transaction(row: dict) -> Transaction:
    split_ratio = row.get("split_ratio")
    return Transaction(
        type=TransactionType.parse(row["type"]),
        date=_parse_date(row["date"]),
        shares=float(row.get("shares") or 0.0),
        price=float(row.get("price") or 0.0),
        amount=float(row.get("amount") or 0.0),
        currency=row.get("currency") or "USD",
        symbol=row.get("symbol", ""),
        split_ratio=float(split_ratio) if split_ratio else None,
    )


def _transaction_to_dict(tx: Transaction) -> dict:
    return {
        "symbol": tx.symbol,
        "type": tx.type.value,
        "date": tx.date.isoformat(),
        "shares": tx.shares,
        "price": tx.price,
        "amount": tx.amount,
        "currency": tx.currency,
        "split_ratio": tx.split_ratio,
    }


def _parse_holding(row: dict) -> Holding:
    xirr = row.get("xirr")
    return Holding(
        symbol=row["symbol"],
        name=row.get("name", ""),
        market_value=float(row.get("market_value") or 0.0),
        quantity=float(row.get("quantity") or 0.0),
        last_price=float(row.get("last_price") or 0.0),
        currency=row.get("currency") or "USD",
        xirr=float(xirr) if xirr is not None else None,
    )


def _parse_fx_rates(payload: dict) -> Dict[Tuple[date, str], float]:
    """{currency: [[date_str, rate], ...]} -> FXRateTable rates.

    Rates quote base-currency units per one unit of the currency and
    must be positive.
    """
    rates = {}
    for currency, pairs in payload.items():
        for d, rate in pairs:
            rate = float(rate)
            if rate <= 0:
                raise ValueError(f"Non-positive FX rate for {currency} on {d}: {rate}")
            rates[(_parse_date(d), currency.upper())] = rate
    return rates


def _fx_rates_payload(rates: Dict[Tuple[date, str], float]) -> dict:
    payload: Dict[str, list] = {}
    for (day, currency), rate in sorted(rates.items()):
        payload.setdefault(currency, []).append([day.isoformat(), rate])
    return payload


# ============================================================
# Tasks
# ============================================================

@task(
    requests=Resources(cpu="100m", mem="256Mi"),
    limits=Resources(cpu="250m", mem="512Mi"),
)
def prepare_health_inputs(
    holdings_json: str,
    transactions_json: str,
    prices_json: str,
    benchmark_json: str,
    run_date: str = "",
    fx_rates_json: str = "",
) -> Dict[str, str]:
    """Parse, validate and normalize the health check payloads.

    Every row is parsed into the shared models once, so malformed data
    fails here and not halfway through the analysis. Price series are
    sorted by date and empty ones dropped.

    Args:
        holdings_json: JSON list of holdings.
        transactions_json: JSON list of transactions (all symbols).
        prices_json: JSON dict symbol -> [[date, close], ...].
        benchmark_json: JSON list of [date, close] for the benchmark.
        run_date: Analysis date (YYYY-MM-DD). Empty string = today.
        fx_rates_json: JSON dict currency -> [[date, rate], ...]. Empty
            means every amount is already in the base currency.

    Returns:
        Dict[str, str] with normalized JSON payloads and counts.

    Raises:
        ValueError: On invalid JSON, dates, transaction types or FX rates.
    """
    import json
    from datetime import datetime
    from dataclasses import asdict

    if not run_date:
        run_date = datetime.now().strftime("%Y-%m-%d")
    if not is_trading_day(_parse_date(run_date)):
        logger.info("run_date %s is not a trading day, using the last close before it", run_date)

    holdings = [_parse_holding(h) for h in _load_json(holdings_json, "holdings_json", [])]
    transactions = [_parse_transaction(t) for t in _load_json(transactions_json, "transactions_json", [])]

    prices = {}
    for symbol, pairs in _load_json(prices_json, "prices_json", {}).items():
        points = _parse_price_pairs(pairs)
        if points:
            prices[symbol] = _price_pairs(points)
        else:
            logger.info("Dropping empty price series for %s", symbol)

    benchmark = _price_pairs(_parse_price_pairs(_load_json(benchmark_json, "benchmark_json", [])))
    fx_rates = _parse_fx_rates(_load_json(fx_rates_json, "fx_rates_json", {}))

    # Holdings in these currencies fail conversion and are skipped later
    fx_currencies = {currency for _, currency in fx_rates}
    missing_fx = sorted({
        t.currency.upper() for t in transactions
        if t.currency and t.currency.upper() != HEALTH_BASE_CURRENCY.upper()
        and t.currency.upper() not in fx_currencies
    })
    if missing_fx:
        logger.warning("No FX rates for %s, affected holdings will be skipped", ", ".join(missing_fx))

    no_data = not holdings or not benchmark
    if no_data:
        logger.warning(
            "Health check has no data for %s: %d holdings, %d benchmark points",
            run_date, len(holdings), len(benchmark),
        )

    return {
        "run_date": run_date,
        "holdings_json": json.dumps([asdict(h) for h in holdings]),
        "transactions_json": json.dumps([_transaction_to_dict(t) for t in transactions]),
        "prices_json": json.dumps(prices),
        "benchmark_json": json.dumps(benchmark),
        "fx_rates_json": json.dumps(_fx_rates_payload(fx_rates)),
        "num_holdings": str(len(holdings)),
        "num_transactions": str(len(transactions)),
        "num_price_series": str(len(prices)),
        "num_fx_currencies": str(len(fx_currencies)),
        "no_data": "true" if no_data else "false",
    }


@task(
    requests=Resources(cpu="500m", mem="512Mi"),
    limits=Resources(cpu="1000m", mem="1024Mi"),
)
def run_health_check(
    inputs: Dict[str, str],
    benchmark_symbol: str = HEALTH_BENCHMARK_SYMBOL,
    risk_free_rate: float = HEALTH_RISK_FREE_RATE,
    weight_absolute_return: float = HEALTH_WEIGHT_ABSOLUTE_RETURN,
    weight_relative_return: float = HEALTH_WEIGHT_RELATIVE_RETURN,
    weight_underwater: float = HEALTH_WEIGHT_UNDERWATER,
    weight_volatility: float = HEALTH_WEIGHT_VOLATILITY,
    weight_dividends: float = HEALTH_WEIGHT_DIVIDENDS,
    benchmark_underperformance: float = HEALTH_BENCHMARK_UNDERPERFORMANCE,
    underwater_days: int = HEALTH_UNDERWATER_DAYS,
    opportunity_cost_min: float = HEALTH_OPPORTUNITY_COST_MIN,
    small_position_threshold: float = HEALTH_SMALL_POSITION_THRESHOLD,
    large_position_threshold: float = HEALTH_LARGE_POSITION_THRESHOLD,
    min_portfolio_weight: float = HEALTH_MIN_PORTFOLIO_WEIGHT,
    excluded_symbols: str = ",".join(HEALTH_EXCLUDED_SYMBOLS),
) -> Dict[str, str]:
    """Run the health check over the prepared inputs.

    HealthCheckConfig is constructed INSIDE the task from scalar params
    (never passed between tasks) to keep the Flyte interface flat.

    Args:
        inputs: Output from prepare_health_inputs.
        benchmark_symbol: Benchmark label used in the narrative.
        risk_free_rate: Annualized risk-free rate for Sharpe.
        weight_*: Scoring category weights.
        benchmark_underperformance: Alpha % below which to flag.
        underwater_days: Days below cost basis before flagging.
        opportunity_cost_min: $ opportunity cost before flagging.
        small_position_threshold: Portfolio fraction below which to flag.
        large_position_threshold: Portfolio fraction above which to flag.
        min_portfolio_weight: Holdings below this fraction are skipped.
        excluded_symbols: Comma-separated symbols to skip.

    Returns:
        Dict[str, str] with summary_json and headline figures.
    """
    import json
    from dataclasses import replace

    from src.shared.fx import FXRateTable
    from src.shared.health_check import HealthCheckService, summary_to_dict
    from src.shared.models import (
        HealthCheckConfig,
        HealthThresholds,
        PriceHistory,
        ScoringWeights,
    )

    config = HealthCheckConfig(
        benchmark_symbol=benchmark_symbol,
        risk_free_rate=risk_free_rate,
        weights=ScoringWeights(
            absolute_return=weight_absolute_return,
            relative_return=weight_relative_return,
            underwater=weight_underwater,
            volatility=weight_volatility,
            dividends=weight_dividends,
        ),
        thresholds=replace(
            HealthThresholds(),
            benchmark_underperformance=benchmark_underperformance,
            underwater_days=underwater_days,
            opportunity_cost_min=opportunity_cost_min,
            small_position_threshold=small_position_threshold,
            large_position_threshold=large_position_threshold,
        ),
        excluded_symbols=[s.strip() for s in excluded_symbols.split(",") if s.strip()],
        min_portfolio_weight=min_portfolio_weight,
    )

    run_date = _parse_date(inputs["run_date"])
    holdings = [_parse_holding(h) for h in json.loads(inputs.get("holdings_json", "[]"))]
    transactions = [_parse_transaction(t) for t in json.loads(inputs.get("transactions_json", "[]"))]
    price_histories = {
        symbol: PriceHistory(symbol=symbol, prices=_parse_price_pairs(pairs))
        for symbol, pairs in json.loads(inputs.get("prices_json", "{}")).items()
    }
    benchmark = PriceHistory(
        symbol=benchmark_symbol,
        prices=_parse_price_pairs(json.loads(inputs.get("benchmark_json", "[]"))),
    )

    fx_table = FXRateTable(rates=_parse_fx_rates(json.loads(inputs.get("fx_rates_json", "{}"))))

    summary = HealthCheckService(config, convert=fx_table).analyze_portfolio(
        holdings, transactions, price_histories, benchmark, as_of=run_date,
    )

    # Pipe-separated "SYMBOL (score)" of the worst holdings
    top_offenders = " | ".join(f"{r.symbol} ({r.score})" for r in summary.worst_performers)

    return {
        "run_date": run_date.isoformat(),
        "summary_json": json.dumps(summary_to_dict(summary)),
        "overall_score": str(summary.overall_score),
        "holdings_reviewed": str(summary.holdings_reviewed),
        "critical_count": str(summary.critical_count),
        "total_opportunity_cost": str(round(summary.total_opportunity_cost, 2)),
        "top_offenders": top_offenders,
        "no_data": inputs.get("no_data", "false"),
    }
