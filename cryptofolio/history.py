"""Daily reconstruction of portfolio value and multi-asset comparisons."""

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Sequence

from .config import HUNDRED, ZERO
from .ledger import sort_transactions
from .models import (
    AssetLedgerState,
    ComparisonPoint,
    CurrentPriceMap,
    HistoricalPriceMap,
    PortfolioHistoryPoint,
    ProfitAnalysisData,
    Transaction,
    quote_price,
)

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def _date_range(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += ONE_DAY


def _apply_to_holdings(holdings: dict[str, AssetLedgerState], txn: Transaction) -> Decimal:
    """Apply ``txn`` and return the change in committed capital.

    Cost removed on a sell never exceeds what is still invested in the asset.
    """
    state = holdings.setdefault(txn.asset, AssetLedgerState())
    if txn.is_buy:
        state.total_quantity += txn.quantity
        state.total_invested += txn.total_value
        delta = txn.total_value
    else:
        cost_of_sale = txn.quantity * state.average_cost
        removed = min(cost_of_sale, state.total_invested)
        state.total_invested -= removed
        state.total_quantity -= txn.quantity
        delta = -removed
    state.snap_to_zero()
    return delta


def _price_on(
    symbol: str,
    day: date,
    today: date,
    historical_prices: HistoricalPriceMap,
    prices: CurrentPriceMap,
) -> Optional[Decimal]:
    """Live price for today, historical close otherwise. Non-positive prices count as missing."""
    if day == today:
        price = quote_price(prices, symbol)
    else:
        price = historical_prices.get(symbol, {}).get(day)
    if price is None or price <= 0:
        return None
    return price


def _replay(
    transactions: Sequence[Transaction],
    today: date,
) -> Iterator[tuple[date, dict[str, AssetLedgerState], Decimal]]:
    """Yield (day, holdings, invested) for every day from the first transaction to today."""
    by_date: dict[date, list[Transaction]] = defaultdict(list)
    for txn in transactions:
        by_date[txn.date].append(txn)

    holdings: dict[str, AssetLedgerState] = {}
    invested = ZERO
    for day in _date_range(transactions[0].date, today):
        for txn in by_date.get(day, ()):
            invested += _apply_to_holdings(holdings, txn)
        yield day, holdings, invested


def compute_history(
    transactions: Iterable[Transaction],
    historical_prices: HistoricalPriceMap,
    prices: CurrentPriceMap,
    today: Optional[date] = None,
) -> list[PortfolioHistoryPoint]:
    """Build a dense daily (invested, market value) series up to ``today``.

    A zero point is prepended the day before the first transaction. On days
    where a held asset has no price, its cost basis stands in for its market
    value so gaps in price data don't show up as drops to zero.

    Args:
        transactions: Transactions to replay; pre-filter for a single asset.
        historical_prices: Daily closes by symbol and date.
        prices: Live quotes, used for today's point.
        today: Last day of the grid. Defaults to the current date.

    Returns:
        One point per calendar day, the zero point included. ``price`` is only
        set when all transactions belong to one symbol.
    """
    sorted_txns = sort_transactions(transactions)
    if not sorted_txns:
        return []

    today = today or date.today()
    single_asset = len({txn.asset for txn in sorted_txns}) == 1
    points = [
        PortfolioHistoryPoint(
            date=sorted_txns[0].date - ONE_DAY,
            invested_value=ZERO,
            market_value=ZERO,
        )
    ]

    for day, holdings, invested in _replay(sorted_txns, today):
        market_value = ZERO
        point_price: Optional[Decimal] = None
        for symbol, state in holdings.items():
            if state.total_quantity <= 0:
                continue
            price = _price_on(symbol, day, today, historical_prices, prices)
            if price is None:
                market_value += state.total_invested
                continue
            market_value += state.total_quantity * price
            if single_asset:
                point_price = price

        points.append(
            PortfolioHistoryPoint(
                date=day,
                invested_value=invested,
                market_value=market_value,
                price=point_price,
            )
        )

    logger.debug("Reconstructed %d history points", len(points))
    return points


def compute_asset_history(
    symbol: str,
    transactions: Iterable[Transaction],
    historical_prices: HistoricalPriceMap,
    prices: CurrentPriceMap,
    today: Optional[date] = None,
) -> list[PortfolioHistoryPoint]:
    """History of a single asset, with its price on each point."""
    asset_txns = [txn for txn in transactions if txn.asset == symbol]
    return compute_history(asset_txns, historical_prices, prices, today=today)


def compute_asset_values_history(
    transactions: Iterable[Transaction],
    historical_prices: HistoricalPriceMap,
    prices: CurrentPriceMap,
    today: Optional[date] = None,
) -> dict[str, dict[date, Decimal]]:
    """Market value of each held asset per day, with the same cost-basis fallback."""
    transactions = list(transactions)
    values: dict[str, dict[date, Decimal]] = {txn.asset: {} for txn in transactions}
    sorted_txns = sort_transactions(transactions)
    if not sorted_txns:
        return values

    today = today or date.today()
    for day, holdings, _ in _replay(sorted_txns, today):
        for symbol, state in holdings.items():
            if state.total_quantity <= 0:
                continue
            price = _price_on(symbol, day, today, historical_prices, prices)
            values[symbol][day] = (
                state.total_quantity * price if price is not None else state.total_invested
            )

    return values


def _dates_in_range(
    symbols: Sequence[str],
    historical_prices: HistoricalPriceMap,
    range_days: Optional[int],
    today: Optional[date],
) -> list[date]:
    dates = sorted({day for symbol in symbols for day in historical_prices.get(symbol, {})})
    if range_days:
        cutoff = (today or date.today()) - timedelta(days=range_days)
        dates = [day for day in dates if day >= cutoff]
    return dates


def compute_normalized_comparison(
    symbols: Sequence[str],
    historical_prices: HistoricalPriceMap,
    range_days: Optional[int] = None,
    today: Optional[date] = None,
) -> list[ComparisonPoint]:
    """Percent change of each symbol from its first price inside the range.

    Days on which none of the symbols has a positive price are skipped.
    """
    baselines: dict[str, Decimal] = {}
    points: list[ComparisonPoint] = []

    for day in _dates_in_range(symbols, historical_prices, range_days, today):
        point = ComparisonPoint(date=day)
        for symbol in symbols:
            price = historical_prices.get(symbol, {}).get(day)
            if price is None or price <= 0:
                continue
            baseline = baselines.setdefault(symbol, price)
            point.values[symbol] = (price / baseline - 1) * HUNDRED
            point.prices[symbol] = price
        if point.values:
            points.append(point)

    return points


def compute_cost_basis_comparison(
    symbols: Sequence[str],
    profit_analysis: Sequence[ProfitAnalysisData],
    historical_prices: HistoricalPriceMap,
    range_days: Optional[int] = None,
    today: Optional[date] = None,
) -> list[ComparisonPoint]:
    """Percent deviation of each day's price from the symbol's average buy price."""
    analysis_by_symbol = {row.symbol: row for row in profit_analysis}
    points: list[ComparisonPoint] = []

    for day in _dates_in_range(symbols, historical_prices, range_days, today):
        point = ComparisonPoint(date=day)
        for symbol in symbols:
            analysis = analysis_by_symbol.get(symbol)
            price = historical_prices.get(symbol, {}).get(day)
            if analysis is None or analysis.average_buy_price <= 0 or price is None:
                continue
            point.values[symbol] = (price / analysis.average_buy_price - 1) * HUNDRED
            point.prices[symbol] = price
        if point.values:
            points.append(point)

    return points
