"""Shared analytics functions for the Portfolio Health Check.

Pure computational functions over open lots and price series. No storage
or network access - takes and returns plain lists, dataclasses or scalars.

Conventions:
- Returns and drawdowns are percentages (12.5 = 12.5%).
- Volatility is an annualized decimal (0.25 = 25%).
- Every function returns 0.0 (or 0) instead of raising on missing data.

Lazy imports for pandas/numpy/scipy inside functions (test isolation pattern).
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from src.shared.config import HEALTH_RISK_FREE_RATE, TRADING_DAYS_PER_YEAR
from src.shared.fx import CurrencyConverter
from src.shared.models import OpenLot, PricePoint, Transaction, TransactionType
from src.shared.prices import closes, latest_close, price_return, trading_days

logger = logging.getLogger(__name__)

CashFlow = Tuple[date, float]


def years_before(as_of: date, years: int) -> date:
    """Calendar date ``years`` before ``as_of`` (Feb 29 rolls to Feb 28)."""
    import pandas as pd

    return (pd.Timestamp(as_of) - pd.DateOffset(years=years)).date()


# ============================================================
# Returns
# ============================================================

def compute_horizon_return(
    prices: List[PricePoint],
    years: int,
    as_of: date,
    holding_start: Optional[date] = None,
    dividend_yield: float = 0.0,
) -> float:
    """Trailing N-year total return approximation.

    Price return over [as_of - N years, as_of] plus N years of the
    current dividend yield. Horizons that start before the first open lot
    return 0.0.

    Args:
        prices: Date-ascending price points.
        years: Horizon length (1, 3, 5).
        as_of: Analysis date.
        holding_start: Date of the first open lot.
        dividend_yield: Trailing 12-month yield in percent.

    Returns:
        Return in percent.
    """
    return price_return(
        prices,
        years_before(as_of, years),
        to_date=as_of,
        holding_start=holding_start,
        dividend_add_on=dividend_yield * years,
    )


def compute_since_inception_return(
    market_value: float,
    cost_basis: float,
    dividend_yield: float = 0.0,
    holding_period_days: int = 0,
) -> float:
    """Unrealized gain on the open lots plus the pro-rated dividend yield.

    Returns 0.0 when the cost basis is zero.
    """
    if cost_basis <= 0:
        return 0.0
    gain_pct = (market_value - cost_basis) / cost_basis * 100
    return gain_pct + dividend_yield * holding_period_days / 365


def compute_holding_period_days(lots: List[OpenLot], as_of: date) -> int:
    """Days since the first open purchase."""
    if not lots:
        return 0
    return max((as_of - lots[0].date).days, 0)


# ============================================================
# Risk
# ============================================================

def compute_daily_returns(prices: List[PricePoint]) -> List[float]:
    """Close-to-close returns as decimals. Non-positive previous closes are skipped."""
    values = closes(prices)
    returns = []
    for prev, curr in zip(values[:-1], values[1:]):
        if prev > 0:
            returns.append((curr - prev) / prev)
    return returns


def compute_volatility(prices: List[PricePoint]) -> float:
    """Annualized volatility of daily returns.

    volatility = std(daily_returns) * sqrt(252), population std (ddof=0).

    Args:
        prices: Date-ascending price points.

    Returns:
        Annualized volatility as a decimal. 0.0 with fewer than 2 points.
    """
    import numpy as np

    returns = compute_daily_returns(prices)
    if not returns:
        return 0.0
    return float(np.std(np.array(returns), ddof=0) * np.sqrt(TRADING_DAYS_PER_YEAR))


def compute_sharpe_ratio(
    prices: List[PricePoint],
    as_of: date,
    risk_free_rate: float = HEALTH_RISK_FREE_RATE,
) -> float:
    """Sharpe ratio from the trailing 1-year price return.

    Sharpe = (return_1y - risk_free_rate) / volatility

    Price-only return, to match the price-only volatility.

    Returns:
        Sharpe ratio. 0.0 when volatility is 0.
    """
    volatility = compute_volatility(prices)
    if volatility == 0:
        return 0.0
    annual_return = price_return(prices, years_before(as_of, 1), to_date=as_of) / 100
    return (annual_return - risk_free_rate) / volatility


def compute_max_drawdown(prices: List[PricePoint]) -> float:
    """Worst peak-to-trough decline in percent (e.g. -35.0).

    Returns 0.0 with fewer than 2 points.
    """
    import numpy as np

    if len(prices) < 2:
        return 0.0
    values = np.array(closes(prices), dtype=float)
    peaks = np.maximum.accumulate(values)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(peaks > 0, (values - peaks) / peaks * 100, 0.0)
    return float(min(drawdowns.min(), 0.0))


def compute_current_drawdown(prices: List[PricePoint]) -> float:
    """Latest close vs. the all-time peak, in percent."""
    if not prices:
        return 0.0
    peak = max(closes(prices))
    if peak == 0:
        return 0.0
    return (latest_close(prices) - peak) / peak * 100


def compute_days_underwater(lots: List[OpenLot], prices: List[PricePoint]) -> int:
    """Trading days on which the open position was worth less than its cost.

    Walks calendar days from the first open lot to the last price date.
    Each lot adds its shares and amount on its own date; lots sharing a
    date accumulate. A trading day with a close for that exact date counts
    when close * shares < invested amount.

    Args:
        lots: Open lots, oldest first.
        prices: Date-ascending price points.

    Returns:
        Number of underwater trading days.
    """
    from datetime import timedelta

    if not lots or not prices:
        return 0

    lots_by_date: Dict[date, List[OpenLot]] = {}
    for lot in lots:
        lots_by_date.setdefault(lot.date, []).append(lot)
    close_by_date = {p.date: p.close for p in prices}

    start = lots[0].date
    end = prices[-1].date
    open_days = trading_days(start, end)

    invested = 0.0
    shares = 0.0
    underwater = 0
    current = start
    while current <= end:
        for lot in lots_by_date.get(current, ()):
            invested += lot.amount
            shares += lot.shares

        if current in open_days:
            close = close_by_date.get(current)
            if close and shares > 0 and close * shares < invested:
                underwater += 1

        current += timedelta(days=1)

    return underwater


# ============================================================
# XIRR
# ============================================================

_OUTFLOW_TYPES = (
    TransactionType.BUY,
    TransactionType.REINVEST,
    TransactionType.TAX,
    TransactionType.FEE,
)
_SKIPPED_TYPES = (TransactionType.SPLIT, TransactionType.TRANSFER)


def build_xirr_cash_flows(
    transactions: Iterable[Transaction],
    market_value: float,
    as_of: date,
    convert: Optional[CurrencyConverter] = None,
) -> List[CashFlow]:
    """Dated cash flows for the XIRR solver.

    Buys, reinvestments, taxes and fees are outflows (negative); sells and
    dividends are inflows. Splits and transfers carry no cash. Whenever
    the position is fully closed the history restarts, so only the
    current holding period is measured. The current market value is the
    final synthetic inflow, dated as_of.

    Returns:
        List of (date, amount) pairs, or [] when nothing is open.
    """
    flows: List[CashFlow] = []
    shares_held = 0.0

    for tx in sorted(transactions, key=lambda t: t.date):
        if tx.type in (TransactionType.BUY, TransactionType.REINVEST):
            shares_held += abs(tx.shares)
        elif tx.type == TransactionType.SELL:
            shares_held = max(shares_held - abs(tx.shares), 0.0)
        elif tx.type == TransactionType.SPLIT and tx.split_ratio:
            shares_held = shares_held / tx.split_ratio

        if tx.type in _SKIPPED_TYPES:
            continue

        amount = abs(tx.amount)
        if convert is not None and tx.currency:
            amount = convert(tx.currency, amount, tx.date)
        flows.append((tx.date, -amount if tx.type in _OUTFLOW_TYPES else amount))

        if tx.type == TransactionType.SELL and shares_held <= 1e-9:
            flows = []

    if not flows:
        return []
    flows.append((as_of, market_value))
    return flows


def compute_xirr(cash_flows: List[CashFlow]) -> Optional[float]:
    """Annualized internal rate of return over irregular dated cash flows.

    Solves NPV(r) = sum(cf / (1 + r) ** (days / 365)) = 0 with Brent's
    method on [-0.9999, 100].

    Args:
        cash_flows: (date, amount) pairs, outflows negative.

    Returns:
        Rate as a decimal (0.12 = 12%), or None when fewer than two flows,
        the flows have a single sign, or the solver does not converge.
    """
    import numpy as np
    from scipy.optimize import brentq

    if len(cash_flows) < 2:
        return None
    amounts = np.array([cf for _, cf in cash_flows], dtype=float)
    if not (np.any(amounts > 0) and np.any(amounts < 0)):
        return None

    t0 = min(d for d, _ in cash_flows)
    years = np.array([(d - t0).days / 365.0 for d, _ in cash_flows])

    def npv(rate: float) -> float:
        with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
            return float(np.sum(amounts / (1.0 + rate) ** years))

    try:
        return float(brentq(npv, -0.9999, 100.0, maxiter=500, xtol=1e-10))
    except (ValueError, RuntimeError) as exc:
        logger.warning(
            "XIRR did not converge for %d cash flows (%s to %s): %s",
            len(cash_flows), t0.isoformat(), max(d for d, _ in cash_flows).isoformat(), exc,
        )
        return None
