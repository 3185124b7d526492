"""Open-lot matching for cost-basis reconstruction.

Turns a symbol's raw transaction list into the buy lots that are still
open today, using FIFO matching for sells and rescaling for splits. The
resulting lots are the single source of truth for cost basis, the holding
start date and the benchmark counterfactual.
"""

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, Tuple

from src.shared.fx import CurrencyConverter
from src.shared.models import OpenLot, Transaction, TransactionType

logger = logging.getLogger(__name__)

_LOT_TYPES = (
    TransactionType.BUY,
    TransactionType.SELL,
    TransactionType.REINVEST,
    TransactionType.SPLIT,
)


class LotMatchingError(ValueError):
    """Raised in strict mode when sells exceed the shares on hand."""


def _opens_lot(tx: Transaction) -> bool:
    if tx.type == TransactionType.BUY:
        return True
    return tx.type == TransactionType.REINVEST and tx.shares > 0


def match_open_lots(
    transactions: Iterable[Transaction],
    convert: Optional[CurrencyConverter] = None,
    strict: bool = False,
) -> List[OpenLot]:
    """Calculate open lots - buys that haven't been fully sold yet.

    FIFO rules:
    - BUY (and REINVEST with positive shares) opens a lot with the full
      shares and the amount converted to the reporting currency.
    - SELL consumes the oldest lots first. A fully consumed lot is removed;
      a partially consumed one keeps shares - sold and its amount reduced
      proportionally.
    - SPLIT divides shares of every open lot by split_ratio. Cost basis is
      unchanged.
    - Everything else is ignored.

    Sells that exceed the open shares stop at zero. The shortfall is logged,
    or raised as LotMatchingError when strict=True.

    Args:
        transactions: All transactions for one symbol, in any order.
        convert: Optional (currency, amount, date) -> base amount converter.
        strict: Raise instead of logging on oversell.

    Returns:
        Open lots, oldest first.
    """
    ordered = sorted(
        (t for t in transactions if t.type in _LOT_TYPES),
        key=lambda t: t.date,
    )
    lots: Deque[OpenLot] = deque()

    for tx in ordered:
        if _opens_lot(tx):
            amount = abs(tx.amount)
            if convert is not None and tx.currency:
                amount = convert(tx.currency, amount, tx.date)
            lots.append(OpenLot(transaction=tx, shares=abs(tx.shares), amount=amount))

        elif tx.type == TransactionType.SELL:
            to_sell = abs(tx.shares)
            while to_sell > 0 and lots:
                oldest = lots[0]
                if oldest.shares <= to_sell:
                    to_sell -= oldest.shares
                    lots.popleft()
                else:
                    proportion = to_sell / oldest.shares
                    oldest.shares -= to_sell
                    oldest.amount -= oldest.amount * proportion
                    to_sell = 0.0
            if to_sell > 1e-9:
                message = (
                    f"Sell of {abs(tx.shares):g} {tx.symbol or 'shares'} on "
                    f"{tx.date.isoformat()} exceeds open lots by {to_sell:g} shares"
                )
                if strict:
                    raise LotMatchingError(message)
                logger.warning(message)

        elif tx.type == TransactionType.SPLIT and tx.split_ratio:
            for lot in lots:
                lot.shares = lot.shares / tx.split_ratio

    return list(lots)


def find_oversold_sells(transactions: Iterable[Transaction]) -> List[Tuple[Transaction, float]]:
    """Consistency check: sells that could not be fully matched.

    An oversell usually means missing transfer or split transactions.

    Returns:
        List of (sell transaction, unmatched shares) pairs, oldest first.
    """
    ordered = sorted(
        (t for t in transactions if t.type in _LOT_TYPES),
        key=lambda t: t.date,
    )
    held = 0.0
    oversold = []
    for tx in ordered:
        if _opens_lot(tx):
            held += abs(tx.shares)
        elif tx.type == TransactionType.SELL:
            sold = abs(tx.shares)
            if sold > held + 1e-9:
                oversold.append((tx, sold - held))
            held = max(held - sold, 0.0)
        elif tx.type == TransactionType.SPLIT and tx.split_ratio:
            held = held / tx.split_ratio
    return oversold


def total_open_shares(lots: List[OpenLot]) -> float:
    return sum(lot.shares for lot in lots)


def total_cost_basis(lots: List[OpenLot]) -> float:
    """Sum of remaining amounts across open lots."""
    return sum(lot.amount for lot in lots)


def average_cost_per_share(lots: List[OpenLot]) -> float:
    """Average cost per open share. Returns 0.0 with no open shares."""
    shares = total_open_shares(lots)
    if shares <= 0:
        return 0.0
    return total_cost_basis(lots) / shares
