"""Target-allocation rebalancing.

Anchored assets keep their current quantity: their value is carved out of the
portfolio before percentages are applied and they never receive orders.
Locked assets keep a fixed target percentage but are still traded to reach
it; the helpers at the bottom of this module keep the remaining (unlocked)
targets summing to whatever budget is left.
"""

import logging
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from .config import (
    ALLOCATION_SUM_TOLERANCE_PCT,
    HUNDRED,
    VALUE_EPSILON_FIAT,
    ZERO,
)
from .models import (
    AssetPerformance,
    CurrentPriceMap,
    RebalanceSuggestion,
    TargetAllocation,
    quote_price,
)

logger = logging.getLogger(__name__)

Flags = Mapping[str, bool]


def _sort_suggestions(suggestions: list[RebalanceSuggestion]) -> list[RebalanceSuggestion]:
    """Sells before buys, larger amounts first. Ties keep their original order."""
    return sorted(suggestions, key=lambda s: (s.action != "sell", -s.amount))


def _liquidation_suggestions(
    performance: Sequence[AssetPerformance],
    anchored: Flags,
    total_value: Decimal,
) -> list[RebalanceSuggestion]:
    """Sell every non-anchored holding outright."""
    return _sort_suggestions(
        [
            RebalanceSuggestion(
                symbol=asset.symbol,
                action="sell",
                amount=asset.current_value,
                quantity=asset.total_quantity,
                current_value=asset.current_value,
                target_value=ZERO,
                current_allocation=(
                    asset.current_value / total_value * HUNDRED if total_value > 0 else ZERO
                ),
                target_allocation=ZERO,
            )
            for asset in performance
            if not anchored.get(asset.symbol) and asset.current_value > 0
        ]
    )


def compute_rebalance_suggestions(
    performance: Sequence[AssetPerformance],
    target_allocations: TargetAllocation,
    prices: CurrentPriceMap,
    capital_change: Decimal = ZERO,
    anchored: Optional[Flags] = None,
) -> list[RebalanceSuggestion]:
    """Calculate the orders that move the portfolio to its target allocation.

    Args:
        performance: Current holdings, as returned by compute_performance.
        target_allocations: Target percentages by symbol. Non-anchored targets
            are renormalized to 100% of the rebalanceable value.
        prices: Live quotes, used to size orders for symbols not yet held.
        capital_change: Cash injected (positive) or withdrawn (negative).
        anchored: Symbols excluded from rebalancing.

    Returns:
        List of RebalanceSuggestion, sells first, then by amount descending.
    """
    anchored = anchored or {}

    total_value = sum((asset.current_value for asset in performance), start=ZERO)
    anchored_value = sum(
        (asset.current_value for asset in performance if anchored.get(asset.symbol)),
        start=ZERO,
    )
    rebalanceable_target = total_value + capital_change - anchored_value

    if rebalanceable_target <= 0:
        logger.info(
            "Rebalanceable value %s is not positive, liquidating unanchored assets",
            rebalanceable_target,
        )
        return _liquidation_suggestions(performance, anchored, total_value)

    target_pct_sum = sum(
        (pct or ZERO for symbol, pct in target_allocations.items() if not anchored.get(symbol)),
        start=ZERO,
    )

    by_symbol = {asset.symbol: asset for asset in performance}
    symbols = list(dict.fromkeys([*by_symbol, *target_allocations]))
    suggestions: list[RebalanceSuggestion] = []

    for symbol in symbols:
        if anchored.get(symbol):
            continue

        asset = by_symbol.get(symbol)
        current_value = asset.current_value if asset else ZERO
        current_allocation = current_value / total_value * HUNDRED if total_value > 0 else ZERO
        target_pct = target_allocations.get(symbol) or ZERO

        target_value = ZERO
        if target_pct_sum > 0:
            target_value = rebalanceable_target * target_pct / target_pct_sum

        difference = target_value - current_value

        if asset is not None and asset.total_quantity > 0:
            price = asset.current_value / asset.total_quantity
        else:
            price = quote_price(prices, symbol)

        if not price and difference > 0:
            logger.warning("Cannot suggest buying %s without price data", symbol)
            continue

        if abs(difference) <= VALUE_EPSILON_FIAT:
            continue  # Already at target

        quantity = difference / price if price and price > 0 else ZERO
        suggestions.append(
            RebalanceSuggestion(
                symbol=symbol,
                action="buy" if difference > 0 else "sell",
                amount=abs(difference),
                quantity=abs(quantity),
                current_value=current_value,
                target_value=target_value,
                current_allocation=current_allocation,
                target_allocation=target_pct,
            )
        )

    return _sort_suggestions(suggestions)


def anchored_percentage(
    performance: Sequence[AssetPerformance],
    anchored: Flags,
    capital_change: Decimal = ZERO,
) -> Decimal:
    """Share of the post-cash-flow portfolio held by anchored assets, in percent."""
    new_total = sum((asset.current_value for asset in performance), start=ZERO) + capital_change
    if new_total <= 0:
        return ZERO
    return sum(
        (
            asset.current_value / new_total * HUNDRED
            for asset in performance
            if anchored.get(asset.symbol)
        ),
        start=ZERO,
    )


def locked_percentage(target_allocations: TargetAllocation, locked: Flags) -> Decimal:
    return sum(
        (pct or ZERO for symbol, pct in target_allocations.items() if locked.get(symbol)),
        start=ZERO,
    )


def _unlocked_symbols(target_allocations: TargetAllocation, locked: Flags, anchored: Flags) -> list[str]:
    return [s for s in target_allocations if not locked.get(s) and not anchored.get(s)]


def balance_unlocked_allocations(
    target_allocations: TargetAllocation,
    locked: Flags,
    anchored: Flags,
    anchored_pct: Decimal = ZERO,
) -> dict[str, Decimal]:
    """Rescale unlocked targets to fill the budget left by anchored and locked assets.

    Unlocked targets that currently sum to zero share the budget equally.
    """
    result = dict(target_allocations)
    budget = HUNDRED - anchored_pct - locked_percentage(target_allocations, locked)
    if budget < 0 or not target_allocations:
        return result

    unlocked = _unlocked_symbols(target_allocations, locked, anchored)
    if not unlocked:
        return result

    current_sum = sum((target_allocations[s] or ZERO for s in unlocked), start=ZERO)
    if abs(current_sum - budget) < ALLOCATION_SUM_TOLERANCE_PCT:
        return result

    if current_sum == 0 and budget > 0:
        share = budget / len(unlocked)
        for symbol in unlocked:
            result[symbol] = share
    else:
        scale = budget / current_sum if current_sum > 0 else ZERO
        for symbol in unlocked:
            result[symbol] = max(ZERO, (target_allocations[symbol] or ZERO) * scale)

    return result


def adjust_allocation(
    target_allocations: TargetAllocation,
    symbol: str,
    percentage: Decimal,
    locked: Flags,
    anchored: Flags,
    anchored_pct: Decimal = ZERO,
) -> dict[str, Decimal]:
    """Set one unlocked target and redistribute the rest of the unlocked budget.

    The new percentage is clamped to the unlocked budget. Other unlocked
    targets are scaled proportionally, or split equally when they were all
    zero. Locked and anchored symbols can't be adjusted and are returned
    unchanged.
    """
    result = dict(target_allocations)
    if locked.get(symbol) or anchored.get(symbol):
        return result

    budget = HUNDRED - anchored_pct - locked_percentage(target_allocations, locked)
    percentage = max(ZERO, min(percentage, budget))
    result[symbol] = percentage

    others = [s for s in _unlocked_symbols(result, locked, anchored) if s != symbol]
    if others:
        previous_sum = sum((target_allocations.get(s) or ZERO for s in others), start=ZERO)
        remaining = budget - percentage
        if abs(previous_sum) < Decimal("0.001"):
            split = remaining / len(others) if remaining > 0 else ZERO
            for other in others:
                result[other] = max(ZERO, split)
        else:
            scale = remaining / previous_sum if remaining > 0 else ZERO
            for other in others:
                result[other] = max(ZERO, (target_allocations.get(other) or ZERO) * scale)

    final_sum = sum((result[s] or ZERO for s in _unlocked_symbols(result, locked, anchored)), start=ZERO)
    if abs(final_sum - budget) > ALLOCATION_SUM_TOLERANCE_PCT and final_sum > 0:
        scale = budget / final_sum
        for other in _unlocked_symbols(result, locked, anchored):
            result[other] *= scale

    return result
