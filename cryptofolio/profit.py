"""Realized/unrealized profit analysis per asset.

Independent of the ledger: totals bought and sold only ever grow, and the
average buy price is a buy-only weighted average that sells never touch. Once
an asset has been sold these figures differ from the ledger's average cost.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from .config import HUNDRED, ZERO
from .ledger import sort_transactions
from .models import (
    CurrentPriceMap,
    ProfitAnalysisData,
    ProfitMetrics,
    Transaction,
    quote_price,
)


@dataclass
class _LifetimeTotals:
    total_bought: Decimal = ZERO
    total_sold: Decimal = ZERO
    average_buy_price: Decimal = ZERO
    realized_profit: Decimal = ZERO

    @property
    def remaining_quantity(self) -> Decimal:
        return self.total_bought - self.total_sold


def compute_profit_analysis(
    transactions: Iterable[Transaction],
    prices: CurrentPriceMap,
) -> list[ProfitAnalysisData]:
    """Profit breakdown for every asset ever traded, in first-seen order."""
    totals: dict[str, _LifetimeTotals] = {}

    for txn in sort_transactions(transactions):
        asset = totals.setdefault(txn.asset, _LifetimeTotals())
        if txn.is_buy:
            new_total_bought = asset.total_bought + txn.quantity
            asset.average_buy_price = (
                asset.average_buy_price * asset.total_bought + txn.total_value
            ) / new_total_bought
            asset.total_bought = new_total_bought
        else:
            asset.total_sold += txn.quantity
            asset.realized_profit += txn.quantity * (txn.unit_price - asset.average_buy_price)

    rows: list[ProfitAnalysisData] = []
    for symbol, asset in totals.items():
        current_price = quote_price(prices, symbol) or ZERO
        remaining = asset.remaining_quantity
        unrealized = remaining * (current_price - asset.average_buy_price)
        total_profit = asset.realized_profit + unrealized
        cost_basis = asset.total_bought * asset.average_buy_price
        rows.append(
            ProfitAnalysisData(
                symbol=symbol,
                total_bought=asset.total_bought,
                total_sold=asset.total_sold,
                remaining_quantity=remaining,
                average_buy_price=asset.average_buy_price,
                current_price=current_price,
                realized_profit=asset.realized_profit,
                unrealized_profit=unrealized,
                total_profit=total_profit,
                total_variation=total_profit / cost_basis * HUNDRED if cost_basis > 0 else ZERO,
            )
        )

    return rows


def compute_profit_metrics(rows: Sequence[ProfitAnalysisData]) -> ProfitMetrics:
    """Aggregate win rate and best/worst asset.

    The win rate counts only assets with at least one sell. Ties for best or
    worst go to the earliest row.
    """
    if not rows:
        return ProfitMetrics(total_assets=0, win_rate=ZERO, best_asset=None, worst_asset=None)

    closed = [row for row in rows if row.total_sold > 0]
    winners = [row for row in closed if row.realized_profit > 0]
    win_rate = Decimal(len(winners)) / Decimal(len(closed)) * HUNDRED if closed else ZERO

    best = worst = rows[0]
    for row in rows[1:]:
        if row.total_profit > best.total_profit:
            best = row
        if row.total_profit < worst.total_profit:
            worst = row

    return ProfitMetrics(
        total_assets=len(rows),
        win_rate=win_rate,
        best_asset=best,
        worst_asset=worst,
    )
