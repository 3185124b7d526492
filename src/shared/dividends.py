"""Dividend trend analysis.

Classifies a holding's dividend trajectory from its dividend and
distribution transactions. A holding that never paid ("none") is kept
apart from "suspended" and "flat" because the scoring engine redistributes
the dividend weight for it.
"""

from datetime import date
from typing import Dict, Iterable, List

from src.shared.analytics import years_before
from src.shared.models import DividendTrend, Transaction, TransactionType

GROWTH_THRESHOLD = 3.0     # +/- % per year separating growing / flat / declining

_DIVIDEND_TYPES = (TransactionType.DIVIDEND, TransactionType.DISTRIBUTION)


def dividend_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Dividend and distribution transactions, oldest first."""
    return sorted(
        (t for t in transactions if t.type in _DIVIDEND_TYPES),
        key=lambda t: t.date,
    )


def trailing_dividends(transactions: Iterable[Transaction], as_of: date) -> float:
    """Dividend cash received in the 12 months before as_of."""
    cutoff = years_before(as_of, 1)
    return sum(abs(t.amount) for t in dividend_transactions(transactions) if cutoff < t.date <= as_of)


def calculate_dividend_yield(
    transactions: Iterable[Transaction],
    quantity: float,
    last_price: float,
    as_of: date,
) -> float:
    """Trailing 12-month dividend yield in percent.

    yield = ttm_dividends / quantity / last_price * 100

    Returns:
        Yield in percent. 0.0 without dividends, shares or a price.
    """
    if not quantity or not last_price:
        return 0.0
    annual = trailing_dividends(transactions, as_of)
    if annual == 0:
        return 0.0
    return annual / quantity / last_price * 100


def yearly_dividend_totals(transactions: Iterable[Transaction]) -> Dict[int, float]:
    totals: Dict[int, float] = {}
    for t in dividend_transactions(transactions):
        totals[t.date.year] = totals.get(t.date.year, 0.0) + abs(t.amount)
    return totals


def calculate_dividend_growth(transactions: Iterable[Transaction]) -> float:
    """Annual dividend growth rate (CAGR) in percent.

    growth = (last_year_total / first_year_total) ^ (1 / years) - 1

    Uses the first and last calendar years with dividends.

    Returns:
        Growth in percent. 0.0 with fewer than two dividends or years,
        or a zero first-year total.
    """
    transactions = list(transactions)
    if len(dividend_transactions(transactions)) < 2:
        return 0.0

    totals = yearly_dividend_totals(transactions)
    years = sorted(totals)
    if len(years) < 2:
        return 0.0

    span = years[-1] - years[0]
    first, last = totals[years[0]], totals[years[-1]]
    if span == 0 or first == 0:
        return 0.0

    return ((last / first) ** (1 / span) - 1) * 100


def determine_dividend_trend(transactions: Iterable[Transaction], as_of: date) -> DividendTrend:
    """Classify the dividend trajectory.

    - none: no dividend transactions at all
    - suspended: paid before, nothing in the trailing 12 months
    - growing / declining: growth >= +3% / <= -3% per year
    - flat: otherwise
    """
    transactions = list(transactions)
    if not dividend_transactions(transactions):
        return DividendTrend.NONE

    if trailing_dividends(transactions, as_of) == 0:
        return DividendTrend.SUSPENDED

    growth = calculate_dividend_growth(transactions)
    if growth >= GROWTH_THRESHOLD:
        return DividendTrend.GROWING
    if growth <= -GROWTH_THRESHOLD:
        return DividendTrend.DECLINING
    return DividendTrend.FLAT
