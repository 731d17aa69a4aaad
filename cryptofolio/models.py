"""Data models for the portfolio calculation engine."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Literal, Mapping, Optional

from .config import QUANTITY_EPSILON, ZERO, TransactionType
from .exceptions import InvalidTransactionDateError


@dataclass(frozen=True)
class Transaction:
    """A single buy or sell of an asset, priced in the portfolio's fiat unit."""

    id: int
    type: TransactionType
    date: date
    asset: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def total_value(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def is_buy(self) -> bool:
        return self.type == TransactionType.BUY


@dataclass(frozen=True)
class PriceQuote:
    """Live quote for a symbol."""

    price: Decimal
    percent_change_24h: Decimal = ZERO


CurrentPriceMap = Mapping[str, PriceQuote]
HistoricalPriceMap = Mapping[str, Mapping[date, Decimal]]
TargetAllocation = Mapping[str, Decimal]


def quote_price(prices: CurrentPriceMap, symbol: str) -> Optional[Decimal]:
    """Live price for ``symbol``, or None when the quote is missing."""
    quote = prices.get(symbol)
    return quote.price if quote is not None else None


def coerce_date(value: object, transaction_id: object = None) -> date:
    """Return ``value`` as a date, parsing ISO strings.

    Raises:
        InvalidTransactionDateError: If the value is not a date or ISO date string.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidTransactionDateError(value, transaction_id)


@dataclass
class AssetLedgerState:
    """Running holdings and cost basis of one asset."""

    total_quantity: Decimal = ZERO
    total_invested: Decimal = ZERO

    @property
    def average_cost(self) -> Decimal:
        if self.total_quantity > 0:
            return self.total_invested / self.total_quantity
        return ZERO

    def snap_to_zero(self) -> None:
        """Reset both fields once the quantity drops below the dust threshold."""
        if self.total_quantity < QUANTITY_EPSILON:
            self.total_quantity = ZERO
            self.total_invested = ZERO


@dataclass(frozen=True)
class AssetPerformance:
    symbol: str
    total_invested: Decimal
    current_value: Decimal
    profit_loss: Decimal
    variation: Decimal
    total_quantity: Decimal


@dataclass(frozen=True)
class ProfitAnalysisData:
    """Lifetime buy/sell statistics and profit split for one asset."""

    symbol: str
    total_bought: Decimal
    total_sold: Decimal
    remaining_quantity: Decimal
    average_buy_price: Decimal
    current_price: Decimal
    realized_profit: Decimal
    unrealized_profit: Decimal
    total_profit: Decimal
    total_variation: Decimal


@dataclass(frozen=True)
class ProfitMetrics:
    total_assets: int
    win_rate: Decimal
    best_asset: Optional[ProfitAnalysisData]
    worst_asset: Optional[ProfitAnalysisData]


@dataclass(frozen=True)
class PortfolioHistoryPoint:
    date: date
    invested_value: Decimal
    market_value: Decimal
    price: Optional[Decimal] = None


@dataclass(frozen=True)
class ComparisonPoint:
    """One day of a multi-asset comparison: percent values and raw prices by symbol."""

    date: date
    values: dict[str, Decimal] = field(default_factory=dict)
    prices: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class RebalanceSuggestion:
    """Represents a buy/sell order that moves an asset to its target value."""

    symbol: str
    action: Literal["buy", "sell"]
    amount: Decimal
    quantity: Decimal
    current_value: Decimal
    target_value: Decimal
    current_allocation: Decimal
    target_allocation: Decimal

    def __str__(self) -> str:
        return (
            f"{self.action.upper()} {self.quantity:.8f} {self.symbol} "
            f"({self.amount:.2f}, target: {self.target_value:.2f}, "
            f"{self.current_allocation:.2f}% -> {self.target_allocation:.2f}%)"
        )


@dataclass
class MonthlyTaxReport:
    month: int
    year: int
    total_sales: Decimal = ZERO
    realized_profit: Decimal = ZERO
    is_exempt: bool = True
    tax_due: Decimal = ZERO


@dataclass
class AnnualTaxReport:
    year: int
    total_tax_due: Decimal
    total_taxable_sales: Decimal
    taxable_months_count: int
    monthly_reports: list[MonthlyTaxReport]


@dataclass(frozen=True)
class SimulatedPoint:
    date: date
    market_value: Decimal
