"""Price alerts on single assets and portfolio-wide totals."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence, Union

from .config import ZERO
from .models import AssetPerformance, CurrentPriceMap, ProfitAnalysisData

logger = logging.getLogger(__name__)

PORTFOLIO_TOTAL_SENTINEL = "__PORTFOLIO_TOTAL__"
UNREALIZED_PROFIT_SENTINEL = "__UNREALIZED_PROFIT__"


@dataclass(frozen=True)
class ConcreteAsset:
    symbol: str

    @property
    def label(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class PortfolioTotal:
    label = "Total portfolio value"


@dataclass(frozen=True)
class UnrealizedProfitTotal:
    label = "Total unrealized profit"


AssetRef = Union[ConcreteAsset, PortfolioTotal, UnrealizedProfitTotal]


class AlertKind(str, Enum):
    PRICE = "price"
    CHANGE_24H = "change24h"


class AlertCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"


def parse_asset_ref(value: str) -> AssetRef:
    """Convert a stored asset string, including the legacy sentinels, to an AssetRef."""
    if value == PORTFOLIO_TOTAL_SENTINEL:
        return PortfolioTotal()
    if value == UNREALIZED_PROFIT_SENTINEL:
        return UnrealizedProfitTotal()
    return ConcreteAsset(value.strip().upper())


def asset_ref_to_str(ref: AssetRef) -> str:
    if isinstance(ref, PortfolioTotal):
        return PORTFOLIO_TOTAL_SENTINEL
    if isinstance(ref, UnrealizedProfitTotal):
        return UNREALIZED_PROFIT_SENTINEL
    return ref.symbol


def resolve_asset_ref(
    ref: AssetRef,
    kind: AlertKind,
    prices: CurrentPriceMap,
    performance: Sequence[AssetPerformance],
    profit_analysis: Sequence[ProfitAnalysisData],
) -> Optional[Decimal]:
    """Current numeric value an alert on ``ref`` is compared against.

    Portfolio-wide references always resolve to a fiat total. Concrete assets
    resolve to their live price or 24h change, or None without a quote.
    """
    if isinstance(ref, PortfolioTotal):
        return sum((asset.current_value for asset in performance), start=ZERO)
    if isinstance(ref, UnrealizedProfitTotal):
        return sum((row.unrealized_profit for row in profit_analysis), start=ZERO)

    quote = prices.get(ref.symbol)
    if quote is None:
        return None
    return quote.price if kind == AlertKind.PRICE else quote.percent_change_24h


@dataclass(frozen=True)
class PriceAlert:
    id: str
    asset: AssetRef
    kind: AlertKind
    condition: AlertCondition
    target_value: Decimal
    recurring: bool = False
    triggered: bool = False
    triggered_at: Optional[datetime] = None

    @property
    def effective_target(self) -> Decimal:
        """24h targets are stored as magnitudes; a BELOW condition means a drop."""
        if self.kind == AlertKind.CHANGE_24H and self.condition == AlertCondition.BELOW:
            return -self.target_value
        return self.target_value

    def is_met(self, value: Decimal) -> bool:
        if self.condition == AlertCondition.ABOVE:
            return value >= self.effective_target
        return value <= self.effective_target


@dataclass(frozen=True)
class AlertEvaluation:
    alert: PriceAlert
    fired: bool = False
    rearmed: bool = False
    message: str = ""

    @property
    def changed(self) -> bool:
        return self.fired or self.rearmed


def _trigger_message(alert: PriceAlert, value: Decimal) -> str:
    name = alert.asset.label
    if alert.kind == AlertKind.PRICE:
        verb = "reached" if alert.condition == AlertCondition.ABOVE else "fell to"
        return f"ALERT: {name} {verb} {alert.target_value:,.2f}. Current value: {value:,.2f}"
    sign = ">" if alert.condition == AlertCondition.ABOVE else "<"
    return f"24H ALERT: {name} moved {value:.2f}%. Target: {sign} {alert.effective_target:.2f}%"


def evaluate_alerts(
    alerts: Sequence[PriceAlert],
    prices: CurrentPriceMap,
    performance: Sequence[AssetPerformance],
    profit_analysis: Sequence[ProfitAnalysisData],
    now: Optional[datetime] = None,
) -> list[AlertEvaluation]:
    """Check every alert against current data.

    An armed alert whose condition is met fires once and becomes triggered.
    Non-recurring triggered alerts are left alone; recurring ones re-arm as
    soon as their condition clears. Alerts without data are unchanged.

    Returns:
        One AlertEvaluation per alert, in input order.
    """
    now = now or datetime.now()
    results: list[AlertEvaluation] = []

    for alert in alerts:
        if alert.triggered and not alert.recurring:
            results.append(AlertEvaluation(alert))
            continue

        value = resolve_asset_ref(alert.asset, alert.kind, prices, performance, profit_analysis)
        concrete_price = isinstance(alert.asset, ConcreteAsset) and alert.kind == AlertKind.PRICE
        if value is None or (concrete_price and value <= 0):
            logger.debug("No data for alert %s on %s", alert.id, alert.asset.label)
            results.append(AlertEvaluation(alert))
            continue

        met = alert.is_met(value)
        if met and not alert.triggered:
            fired = replace(alert, triggered=True, triggered_at=now)
            results.append(AlertEvaluation(fired, fired=True, message=_trigger_message(alert, value)))
        elif not met and alert.triggered:
            results.append(
                AlertEvaluation(replace(alert, triggered=False, triggered_at=None), rearmed=True)
            )
        else:
            results.append(AlertEvaluation(alert))

    return results
