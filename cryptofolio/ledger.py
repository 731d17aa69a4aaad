"""Average-cost ledger aggregation and per-asset performance."""

import logging
from typing import Iterable

from .config import HUNDRED, ZERO
from .models import (
    AssetLedgerState,
    AssetPerformance,
    CurrentPriceMap,
    Transaction,
    quote_price,
)

logger = logging.getLogger(__name__)


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Sort by date; same-day transactions keep their input order."""
    return sorted(transactions, key=lambda t: t.date)


def apply_transaction(state: AssetLedgerState, txn: Transaction) -> None:
    """Fold one transaction into ``state`` using the average-cost method.

    A sell removes cost in proportion to the running average cost before the
    sale. Quantities that fall below the dust threshold, including negative
    ones from overselling, reset the state to zero.
    """
    if txn.is_buy:
        state.total_quantity += txn.quantity
        state.total_invested += txn.total_value
    else:
        avg_cost = state.average_cost
        state.total_invested -= txn.quantity * avg_cost
        state.total_quantity -= txn.quantity
    state.snap_to_zero()


def aggregate_ledger(transactions: Iterable[Transaction]) -> dict[str, AssetLedgerState]:
    """Replay the full history and return holdings per asset, in first-seen order."""
    ledger: dict[str, AssetLedgerState] = {}
    for txn in sort_transactions(transactions):
        state = ledger.setdefault(txn.asset, AssetLedgerState())
        apply_transaction(state, txn)
    return ledger


def compute_performance(
    transactions: Iterable[Transaction],
    prices: CurrentPriceMap,
) -> list[AssetPerformance]:
    """Current value and unrealized P/L for every asset still held.

    Args:
        transactions: Full transaction history, in any order.
        prices: Live quotes by symbol. A missing quote values the asset at 0.

    Returns:
        One AssetPerformance per asset with positive holdings.
    """
    performance: list[AssetPerformance] = []

    for symbol, state in aggregate_ledger(transactions).items():
        if state.total_quantity <= 0:
            continue

        price = quote_price(prices, symbol)
        if price is None:
            logger.debug("No live quote for %s, valuing holdings at 0", symbol)
            price = ZERO

        current_value = state.total_quantity * price
        profit_loss = current_value - state.total_invested
        variation = (
            profit_loss / state.total_invested * HUNDRED
            if state.total_invested > 0
            else ZERO
        )
        performance.append(
            AssetPerformance(
                symbol=symbol,
                total_invested=state.total_invested,
                current_value=current_value,
                profit_loss=profit_loss,
                variation=variation,
                total_quantity=state.total_quantity,
            )
        )

    return performance
