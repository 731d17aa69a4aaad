"""Counterfactual value series for a fixed target allocation.

The simulated portfolio buys the target mix with the first positive invested
capital, lets the holdings float with market prices, and re-buys the target
mix from scratch whenever the actual invested capital changes (a deposit or
withdrawal).
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Sequence

import numpy as np

from .config import SIMULATED_VALUE_QUANTUM, VALUE_EPSILON_FIAT
from .models import (
    HistoricalPriceMap,
    PortfolioHistoryPoint,
    SimulatedPoint,
    TargetAllocation,
)

logger = logging.getLogger(__name__)


def _prices_on(
    symbols: list[str],
    day: date,
    historical_prices: HistoricalPriceMap,
) -> np.ndarray:
    """Prices for ``day`` ordered by symbols; missing or non-positive prices are NaN."""
    prices = np.full(len(symbols), np.nan)
    for i, symbol in enumerate(symbols):
        price = historical_prices.get(symbol, {}).get(day)
        if price is not None and price > 0:
            prices[i] = float(price)
    return prices


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value)).quantize(SIMULATED_VALUE_QUANTUM)


def simulate_allocation_history(
    actual_history: Sequence[PortfolioHistoryPoint],
    target_allocation: TargetAllocation,
    historical_prices: HistoricalPriceMap,
) -> list[SimulatedPoint]:
    """Replay ``target_allocation`` against the actual invested-capital schedule.

    Args:
        actual_history: Portfolio history as returned by compute_history.
        target_allocation: Target percentages by symbol (0-100).
        historical_prices: Daily closes by symbol and date.

    Returns:
        List of SimulatedPoint starting on the first day with positive invested
        capital. Empty if there is no such day, the history has fewer than two
        points, or the target is empty.

    The replay runs on float vectors; every value, the first one included, is
    rounded to SIMULATED_VALUE_QUANTUM on the way back to Decimal.
    """
    if len(actual_history) < 2 or not target_allocation:
        return []

    first_index = next(
        (i for i, point in enumerate(actual_history) if point.invested_value > 0), None
    )
    if first_index is None:
        return []

    symbols = list(target_allocation)
    weights = np.array([float(target_allocation[s]) / 100 for s in symbols])

    first_point = actual_history[first_index]
    initial_investment = float(first_point.invested_value)

    first_prices = _prices_on(symbols, first_point.date, historical_prices)
    priced = ~np.isnan(first_prices)
    quantities = np.zeros(len(symbols))
    quantities[priced] = initial_investment * weights[priced] / first_prices[priced]
    last_known = first_prices.copy()

    simulated = [SimulatedPoint(date=first_point.date, market_value=_to_decimal(initial_investment))]

    for i in range(first_index + 1, len(actual_history)):
        point = actual_history[i]
        prev_point = actual_history[i - 1]

        today_prices = _prices_on(symbols, point.date, historical_prices)
        fresh = ~np.isnan(today_prices)
        last_known[fresh] = today_prices[fresh]
        known = ~np.isnan(last_known)

        market_value = float(np.sum(quantities[known] * last_known[known]))

        capital_change = point.invested_value - prev_point.invested_value
        if abs(capital_change) > VALUE_EPSILON_FIAT:
            market_value += float(capital_change)
            # Symbols never priced keep their previous quantity.
            quantities[known] = market_value * weights[known] / last_known[known]

        simulated.append(SimulatedPoint(date=point.date, market_value=_to_decimal(market_value)))

    logger.debug("Simulated %d points for %s", len(simulated), ", ".join(symbols))
    return simulated
