"""Benchmark comparison and opportunity cost.

Re-expresses the open lots against a benchmark price series: what the
same cash, invested on the same dates, would be worth in the index today.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from src.shared.analytics import compute_horizon_return
from src.shared.models import OpenLot, PricePoint
from src.shared.prices import latest_close, price_on_or_before, price_return


@dataclass(frozen=True)
class BenchmarkReturns:
    """Price-only benchmark returns in percent."""
    return_1y: float = 0.0
    return_3y: float = 0.0
    return_5y: float = 0.0
    return_since_inception: float = 0.0


def compute_benchmark_returns(
    benchmark: List[PricePoint],
    as_of: date,
    holding_start: Optional[date] = None,
) -> BenchmarkReturns:
    """Benchmark returns over the same horizons as the holding.

    Horizons are gated by the holding start exactly like the holding's own
    returns, and since-inception starts on the holding start date.
    Benchmarks have no dividend transactions, so these are price-only.
    """
    if holding_start is None:
        since_inception = 0.0
    else:
        since_inception = price_return(benchmark, holding_start, to_date=as_of, holding_start=holding_start)

    return BenchmarkReturns(
        return_1y=compute_horizon_return(benchmark, 1, as_of, holding_start),
        return_3y=compute_horizon_return(benchmark, 3, as_of, holding_start),
        return_5y=compute_horizon_return(benchmark, 5, as_of, holding_start),
        return_since_inception=since_inception,
    )


def compute_alpha(holding_return: float, benchmark_return: float) -> float:
    """Excess return over the benchmark, in percentage points."""
    return holding_return - benchmark_return


def calculate_benchmark_value(lots: List[OpenLot], benchmark: List[PricePoint]) -> float:
    """Value today of buying the benchmark with each open lot's cash.

    Lots whose benchmark price is not positive are skipped.
    """
    current_price = latest_close(benchmark)
    value = 0.0
    for lot in lots:
        price_then = price_on_or_before(benchmark, lot.date)
        if price_then > 0:
            value += lot.amount / price_then * current_price
    return value


def calculate_opportunity_cost(
    lots: List[OpenLot],
    market_value: float,
    benchmark: List[PricePoint],
) -> float:
    """Dollar shortfall vs. investing the open lots in the benchmark.

    opportunity_cost = max(0, benchmark_value - market_value)

    Only underperformance is costed; outperformance yields 0.0.

    Args:
        lots: Open lots (amounts in the reporting currency).
        market_value: Current market value of the holding.
        benchmark: Benchmark price points, date ascending.

    Returns:
        Opportunity cost, never negative.
    """
    if not lots or not benchmark:
        return 0.0
    return max(0.0, calculate_benchmark_value(lots, benchmark) - market_value)
