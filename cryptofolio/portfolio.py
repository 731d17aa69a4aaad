import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from .alerts import AlertEvaluation, PriceAlert, evaluate_alerts
from .config import BRAZIL_CRYPTO_POLICY, HUNDRED, ZERO, TaxPolicy
from .history import compute_asset_history, compute_history
from .ledger import compute_performance
from .models import (
    AnnualTaxReport,
    AssetPerformance,
    CurrentPriceMap,
    HistoricalPriceMap,
    PortfolioHistoryPoint,
    PriceQuote,
    ProfitAnalysisData,
    ProfitMetrics,
    RebalanceSuggestion,
    SimulatedPoint,
    TargetAllocation,
    Transaction,
)
from .profit import compute_profit_analysis, compute_profit_metrics
from .providers import (
    HistoricalPriceProvider,
    KeyValueStore,
    QuoteProvider,
    fetch_history_for_transactions_sync,
)
from .rebalance import compute_rebalance_suggestions
from .simulation import simulate_allocation_history
from .tax import compute_tax_report

logger = logging.getLogger(__name__)


class Portfolio:
    """A transaction ledger plus the price data needed to analyze it.

    Every method recomputes from the stored snapshot, so a Portfolio can be
    shared freely; replace it with a new one when transactions or prices change.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction],
        prices: Optional[CurrentPriceMap] = None,
        historical_prices: Optional[HistoricalPriceMap] = None,
    ) -> None:
        self.transactions: tuple[Transaction, ...] = tuple(transactions)
        self.prices: CurrentPriceMap = dict(prices or {})
        self.historical_prices: HistoricalPriceMap = dict(historical_prices or {})
        self.fetch_errors: list[str] = []

    def performance(self) -> list[AssetPerformance]:
        return compute_performance(self.transactions, self.prices)

    def profit_analysis(self) -> list[ProfitAnalysisData]:
        return compute_profit_analysis(self.transactions, self.prices)

    def profit_metrics(self) -> ProfitMetrics:
        return compute_profit_metrics(self.profit_analysis())

    def total_value(self) -> Decimal:
        return sum((asset.current_value for asset in self.performance()), start=ZERO)

    def total_invested(self) -> Decimal:
        return sum((asset.total_invested for asset in self.performance()), start=ZERO)

    def current_allocation(self) -> dict[str, Decimal]:
        """Current allocation in percent by symbol; empty when the portfolio is worth 0."""
        performance = self.performance()
        total = sum((asset.current_value for asset in performance), start=ZERO)
        if total == 0:
            return {}

        return {
            asset.symbol: asset.current_value / total * HUNDRED
            for asset in performance
        }

    def history(self, today: Optional[date] = None) -> list[PortfolioHistoryPoint]:
        return compute_history(self.transactions, self.historical_prices, self.prices, today=today)

    def asset_history(self, symbol: str, today: Optional[date] = None) -> list[PortfolioHistoryPoint]:
        return compute_asset_history(
            symbol, self.transactions, self.historical_prices, self.prices, today=today
        )

    def tax_report(self, year: int, policy: TaxPolicy = BRAZIL_CRYPTO_POLICY) -> AnnualTaxReport:
        return compute_tax_report(self.transactions, year, policy=policy)

    def rebalance(
        self,
        target_allocation: TargetAllocation,
        capital_change: Decimal = ZERO,
        anchored: Optional[Mapping[str, bool]] = None,
    ) -> list[RebalanceSuggestion]:
        """Calculate orders needed to move the portfolio to ``target_allocation``.

        Args:
            target_allocation: Target percentages by symbol.
            capital_change: Cash to inject (positive) or withdraw (negative).
            anchored: Symbols whose current quantity must not change.

        Returns:
            List of RebalanceSuggestion objects.
        """
        if not target_allocation:
            raise ValueError("No target allocation given.")

        return compute_rebalance_suggestions(
            self.performance(),
            target_allocation,
            self.prices,
            capital_change=capital_change,
            anchored=anchored,
        )

    def simulate(
        self, target_allocation: TargetAllocation, today: Optional[date] = None
    ) -> list[SimulatedPoint]:
        """Value the portfolio would have had following ``target_allocation``."""
        return simulate_allocation_history(
            self.history(today=today), target_allocation, self.historical_prices
        )

    def check_alerts(
        self, alerts: Sequence[PriceAlert], now: Optional[datetime] = None
    ) -> list[AlertEvaluation]:
        return evaluate_alerts(
            alerts, self.prices, self.performance(), self.profit_analysis(), now=now
        )

    @classmethod
    def from_providers(
        cls,
        transactions: Iterable[Transaction],
        quote_provider: QuoteProvider,
        history_provider: Optional[HistoricalPriceProvider] = None,
        store: Optional[KeyValueStore] = None,
        today: Optional[date] = None,
        extra_symbols: Sequence[str] = (),
    ) -> "Portfolio":
        """Create a Portfolio with prices fetched from providers.

        Args:
            transactions: The ledger.
            quote_provider: Source of live quotes for every traded symbol.
            history_provider: Optional source of daily closes, fetched from each
                symbol's first transaction date through ``today``.
            store: Cache for the history provider (in-memory by default).
            today: Last day of history to fetch. Defaults to the current date.
            extra_symbols: Symbols to quote besides the traded ones, e.g. new
                rebalance targets or alert assets.

        Returns:
            Portfolio whose ``fetch_errors`` lists the symbols whose history
            could not be fetched.
        """
        transactions = list(transactions)
        traded = list(dict.fromkeys(txn.asset for txn in transactions))
        symbols = list(dict.fromkeys([*traded, *extra_symbols]))

        async def _quotes() -> dict[str, PriceQuote]:
            try:
                return await quote_provider.fetch_quotes(symbols)
            finally:
                await quote_provider.close()

        prices = asyncio.run(_quotes())
        missing = [s for s in traded if s not in prices]
        if missing:
            logger.warning("No live quote for %s", ", ".join(missing))

        if history_provider is None:
            return cls(transactions, prices=prices)

        fetched = fetch_history_for_transactions_sync(
            history_provider, transactions, end=today, store=store
        )
        portfolio = cls(transactions, prices=prices, historical_prices=fetched.prices)
        portfolio.fetch_errors = fetched.errors
        return portfolio

    def __repr__(self) -> str:
        symbols = list(dict.fromkeys(txn.asset for txn in self.transactions))
        return (
            f"Portfolio(transactions={len(self.transactions)}, "
            f"symbols={symbols}, "
            f"quoted={list(self.prices)})"
        )
