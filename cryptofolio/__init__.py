"""
cryptofolio - Calculation engine for a personal crypto portfolio tracker.

Exports:
    Transaction: Dataclass for a single buy or sell
    PriceQuote: Dataclass for a live quote
    Portfolio: Facade running every calculation over one ledger snapshot
    compute_performance: Average-cost holdings and unrealized P/L
    compute_profit_analysis / compute_profit_metrics: Realized/unrealized profit
    compute_history / compute_asset_history: Daily portfolio value series
    compute_normalized_comparison / compute_cost_basis_comparison: Multi-asset charts
    compute_tax_report: Monthly capital-gains tax simulation
    compute_rebalance_suggestions: Orders to reach a target allocation
    simulate_allocation_history: Counterfactual series for a fixed allocation
    PriceAlert / AssetRef / evaluate_alerts: Alerts on assets and portfolio totals
    QuoteProvider / HistoricalPriceProvider: Async price data sources
    fetch_history_for_transactions_sync: Cached history fetch with per-symbol errors
"""

from .alerts import (
    AlertCondition,
    AlertEvaluation,
    AlertKind,
    AssetRef,
    ConcreteAsset,
    PortfolioTotal,
    PriceAlert,
    UnrealizedProfitTotal,
    evaluate_alerts,
    parse_asset_ref,
)
from .config import TaxPolicy, TransactionType, BRAZIL_CRYPTO_POLICY
from .exceptions import (
    CryptofolioError,
    InvalidTransactionDateError,
    TaxReportError,
    TransactionValidationError,
)
from .models import (
    AnnualTaxReport,
    AssetPerformance,
    ComparisonPoint,
    MonthlyTaxReport,
    PortfolioHistoryPoint,
    PriceQuote,
    ProfitAnalysisData,
    ProfitMetrics,
    RebalanceSuggestion,
    SimulatedPoint,
    Transaction,
)
from .ledger import compute_performance
from .profit import compute_profit_analysis, compute_profit_metrics
from .history import (
    compute_asset_history,
    compute_asset_values_history,
    compute_cost_basis_comparison,
    compute_history,
    compute_normalized_comparison,
)
from .tax import compute_tax_report
from .rebalance import compute_rebalance_suggestions
from .simulation import simulate_allocation_history
from .providers import (
    CachedHistoricalPriceProvider,
    HistoricalPriceProvider,
    HistoryFetchResult,
    InMemoryStore,
    KeyValueStore,
    QuoteProvider,
    StaticHistoricalPriceProvider,
    StaticQuoteProvider,
    fetch_history_for_transactions_sync,
)
from .portfolio import Portfolio

__all__ = [
    "TaxPolicy",
    "TransactionType",
    "BRAZIL_CRYPTO_POLICY",
    "CryptofolioError",
    "InvalidTransactionDateError",
    "TaxReportError",
    "TransactionValidationError",
    "AnnualTaxReport",
    "AssetPerformance",
    "ComparisonPoint",
    "MonthlyTaxReport",
    "PortfolioHistoryPoint",
    "PriceQuote",
    "ProfitAnalysisData",
    "ProfitMetrics",
    "RebalanceSuggestion",
    "SimulatedPoint",
    "Transaction",
    "compute_performance",
    "compute_profit_analysis",
    "compute_profit_metrics",
    "compute_history",
    "compute_asset_history",
    "compute_asset_values_history",
    "compute_normalized_comparison",
    "compute_cost_basis_comparison",
    "compute_tax_report",
    "compute_rebalance_suggestions",
    "simulate_allocation_history",
    "AlertCondition",
    "AlertEvaluation",
    "AlertKind",
    "AssetRef",
    "ConcreteAsset",
    "PortfolioTotal",
    "PriceAlert",
    "UnrealizedProfitTotal",
    "evaluate_alerts",
    "parse_asset_ref",
    "QuoteProvider",
    "HistoricalPriceProvider",
    "CachedHistoricalPriceProvider",
    "HistoryFetchResult",
    "KeyValueStore",
    "InMemoryStore",
    "StaticQuoteProvider",
    "StaticHistoricalPriceProvider",
    "fetch_history_for_transactions_sync",
    "Portfolio",
]
