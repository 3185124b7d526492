"""Shared test fixtures for the Portfolio Health Check.

Provides deterministic price series (linear, weekdays only), transaction
histories and holdings for the analytics, scoring and WF7 tests without
network or database access. Every fixture is anchored to AS_OF so results
never depend on the date the suite runs.
"""

from datetime import date, timedelta

import pytest

from src.shared.models import (
    Holding,
    PriceHistory,
    PricePoint,
    Transaction,
    TransactionType,
)

AS_OF = date(2026, 10, 19)            # Monday
SERIES_START = date(2020, 1, 1)
BUY_DATE = date(2021, 1, 4)           # Monday


def make_series(start: date, end: date, first_close: float, last_close: float):
    """Linear weekday price series from first_close to last_close."""
    days = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    step = (last_close - first_close) / (len(days) - 1)
    return [PricePoint(date=d, close=first_close + step * i) for i, d in enumerate(days)]


def close_on(prices, day: date) -> float:
    return next(p.close for p in prices if p.date == day)


def buy(day: date, shares: float, amount: float, symbol: str = "", currency: str = "USD"):
    return Transaction(
        type=TransactionType.BUY, date=day, shares=shares,
        price=amount / shares if shares else 0.0, amount=amount,
        currency=currency, symbol=symbol,
    )


def sell(day: date, shares: float, amount: float, symbol: str = ""):
    return Transaction(
        type=TransactionType.SELL, date=day, shares=shares,
        price=amount / shares if shares else 0.0, amount=amount, symbol=symbol,
    )


def dividend(day: date, amount: float, symbol: str = ""):
    return Transaction(type=TransactionType.DIVIDEND, date=day, amount=amount, symbol=symbol)


# ============================================================
# Price series
# ============================================================

@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def make_prices():
    """Factory: make_prices(start, end, first_close, last_close)."""
    return make_series


@pytest.fixture
def rising_prices():
    """Holding that doubles: 100 -> 200 over the whole series."""
    return make_series(SERIES_START, AS_OF, 100.0, 200.0)


@pytest.fixture
def falling_prices():
    """Holding that halves: 100 -> 50."""
    return make_series(SERIES_START, AS_OF, 100.0, 50.0)


@pytest.fixture
def benchmark_prices():
    """Benchmark gaining 50%: 100 -> 150."""
    return make_series(SERIES_START, AS_OF, 100.0, 150.0)


@pytest.fixture
def benchmark_history(benchmark_prices):
    return PriceHistory(symbol="SPY", prices=benchmark_prices)


# ============================================================
# Holdings + transactions
# ============================================================

@pytest.fixture
def good_transactions(rising_prices):
    """10 shares of GOOD bought at the close on BUY_DATE."""
    return [buy(BUY_DATE, 10, 10 * close_on(rising_prices, BUY_DATE), symbol="GOOD")]


@pytest.fixture
def bad_transactions(falling_prices):
    """20 shares of BAD bought at the close on BUY_DATE."""
    return [buy(BUY_DATE, 20, 20 * close_on(falling_prices, BUY_DATE), symbol="BAD")]


@pytest.fixture
def good_holding(rising_prices):
    """Compounding winner with a supplied 12% XIRR."""
    return Holding(
        symbol="GOOD", name="Good Corp", market_value=2000.0, quantity=10,
        last_price=rising_prices[-1].close, xirr=0.12,
    )


@pytest.fixture
def bad_holding(falling_prices):
    """Long-term loser; XIRR is computed from its transactions."""
    return Holding(
        symbol="BAD", name="Bad Inc", market_value=1000.0, quantity=20,
        last_price=falling_prices[-1].close,
    )


@pytest.fixture
def price_histories(rising_prices, falling_prices):
    return {
        "GOOD": PriceHistory(symbol="GOOD", prices=rising_prices),
        "BAD": PriceHistory(symbol="BAD", prices=falling_prices),
    }


# ============================================================
# WF7 payloads
# ============================================================

@pytest.fixture
def wf7_payloads(good_holding, bad_holding, good_transactions, bad_transactions,
                 rising_prices, falling_prices, benchmark_prices):
    """JSON payloads as produced by the data collaborator."""
    import json

    def pairs(points):
        return [[p.date.isoformat(), p.close] for p in points]

    def tx_row(t):
        return {
            "symbol": t.symbol, "type": t.type.value.upper(), "date": t.date.isoformat(),
            "shares": t.shares, "price": t.price, "amount": t.amount, "currency": t.currency,
        }

    holdings = [
        {"symbol": h.symbol, "name": h.name, "market_value": h.market_value,
         "quantity": h.quantity, "last_price": h.last_price, "xirr": h.xirr}
        for h in (good_holding, bad_holding)
    ]
    return {
        "holdings_json": json.dumps(holdings),
        "transactions_json": json.dumps([tx_row(t) for t in good_transactions + bad_transactions]),
        # Reversed on purpose: prepare_health_inputs sorts each series
        "prices_json": json.dumps({
            "GOOD": pairs(rising_prices)[::-1],
            "BAD": pairs(falling_prices),
            "EMPTY": [],
        }),
        "benchmark_json": json.dumps(pairs(benchmark_prices)),
    }
