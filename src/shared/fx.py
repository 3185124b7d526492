"""Currency conversion helpers.

The engine only depends on the converter signature
``(currency, amount, date) -> amount in the reporting currency``.
Converters must be pure: the same lot is priced several times per analysis.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Tuple

from src.shared.config import HEALTH_BASE_CURRENCY

CurrencyConverter = Callable[[str, float, date], float]


def identity_converter(currency: str, amount: float, on: date) -> float:
    """Pass-through converter for single-currency portfolios."""
    return amount


@dataclass
class FXRateTable:
    """Look up FX conversion rates to the base currency.

    Rates are keyed by (date, currency) and quote base-currency units per
    one unit of ``currency``. Lookups fall back to the latest rate on or
    before the requested date.
    """

    rates: Dict[Tuple[date, str], float] = field(default_factory=dict)
    base_currency: str = HEALTH_BASE_CURRENCY

    def rate(self, on: date, currency: str) -> float:
        """Return the conversion rate from ``currency`` to the base currency."""
        currency = currency.upper()
        if not currency or currency == self.base_currency.upper():
            return 1.0
        candidates = [d for (d, c) in self.rates if c == currency and d <= on]
        if not candidates:
            raise KeyError(f"Missing FX rate for {currency}->{self.base_currency} on {on.isoformat()}")
        return self.rates[(max(candidates), currency)]

    def convert(self, currency: str, amount: float, on: date) -> float:
        return amount * self.rate(on, currency)

    __call__ = convert
