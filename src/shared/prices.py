"""Price-series lookups.

Pure helpers over date-ascending PricePoint lists. No gap filling: a
lookup falls back to the latest close on or before the requested date.
"""

from bisect import bisect_right
from datetime import date
from typing import List, Optional, Set

from src.shared.models import PricePoint


def closes(prices: List[PricePoint]) -> List[float]:
    return [p.close for p in prices]


def latest_close(prices: List[PricePoint]) -> float:
    """Last close in the series, 0.0 when empty."""
    return prices[-1].close if prices else 0.0


def price_on_or_before(prices: List[PricePoint], day: date) -> float:
    """Close of the latest point dated on or before ``day``.

    Falls back to the first point when the series starts after ``day``.

    Args:
        prices: Date-ascending price points.
        day: Lookup date.

    Returns:
        Close price, or 0.0 for an empty series.
    """
    if not prices:
        return 0.0
    idx = bisect_right([p.date for p in prices], day)
    if idx == 0:
        return prices[0].close
    return prices[idx - 1].close


def prices_through(prices: List[PricePoint], day: date) -> List[PricePoint]:
    """Points dated on or before ``day``."""
    return prices[:bisect_right([p.date for p in prices], day)]


def price_return(
    prices: List[PricePoint],
    from_date: date,
    to_date: Optional[date] = None,
    holding_start: Optional[date] = None,
    dividend_add_on: float = 0.0,
) -> float:
    """Percentage price return between two dates.

    return = (p(to) - p(from)) / p(from) * 100 + dividend_add_on

    A window that opens before the holding started returns 0.0, so a
    return never implies ownership before the first open lot.

    Args:
        prices: Date-ascending price points.
        from_date: Window start.
        to_date: Window end. None = latest point.
        holding_start: Date of the first open lot, if gating applies.
        dividend_add_on: Yield (%) added to approximate total return.

    Returns:
        Return in percent. 0.0 for degenerate inputs.
    """
    if len(prices) < 2:
        return 0.0
    if holding_start is not None and from_date < holding_start:
        return 0.0

    start_price = price_on_or_before(prices, from_date)
    end_price = latest_close(prices) if to_date is None else price_on_or_before(prices, to_date)
    if not start_price or not end_price:
        return 0.0

    return (end_price - start_price) / start_price * 100 + dividend_add_on


def is_trading_day(day: date) -> bool:
    """Weekday that is not a US federal holiday (NYSE/NASDAQ approximation)."""
    return day in trading_days(day, day)


def trading_days(start: date, end: date) -> Set[date]:
    """All US trading days in [start, end].

    Uses pandas business days minus USFederalHolidayCalendar.
    """
    import pandas as pd
    from pandas.tseries.holiday import USFederalHolidayCalendar

    if end < start:
        return set()
    holidays = USFederalHolidayCalendar().holidays(start=start, end=end)
    days = pd.bdate_range(start=start, end=end, freq="C", holidays=holidays)
    return {d.date() for d in days}
