"""JSON snapshot of the engine's outputs, used as grounding context for an LLM client."""

import dataclasses
import json
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from .config import ZERO, ContextConfig
from .history import compute_asset_values_history, compute_history
from .ledger import compute_performance
from .models import CurrentPriceMap, HistoricalPriceMap, Transaction
from .profit import compute_profit_analysis


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _jsonable(value: Any) -> Any:
    """Convert engine output into plain JSON types with camelCase keys."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            _camel(f.name): _jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {
            (k.isoformat() if isinstance(k, date) else str(k)): _jsonable(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def build_portfolio_context(
    transactions: Iterable[Transaction],
    prices: CurrentPriceMap,
    historical_prices: HistoricalPriceMap,
    account_names: Sequence[str] = (),
    watchlist: Sequence[str] = (),
    today: Optional[date] = None,
    config: Optional[ContextConfig] = None,
) -> dict[str, Any]:
    """Snapshot of performance, profit and recent history as JSON-ready data.

    Transactions and history are trimmed to the windows in ContextConfig to
    keep the payload small.
    """
    config = config or ContextConfig()
    today = today or date.today()
    transactions = list(transactions)

    performance = compute_performance(transactions, prices)
    profit_analysis = compute_profit_analysis(transactions, prices)
    history = compute_history(transactions, historical_prices, prices, today=today)
    asset_values = compute_asset_values_history(transactions, historical_prices, prices, today=today)

    tx_cutoff = today - timedelta(days=config.TRANSACTION_WINDOW_DAYS)
    history_cutoff = today - timedelta(days=config.HISTORY_WINDOW_DAYS)

    context = {
        "currentDate": today,
        "generalSummary": {
            "totalPortfolioValue": sum((p.current_value for p in performance), start=ZERO),
            "totalInvested": sum((p.total_invested for p in performance), start=ZERO),
            "totalProfit": sum((row.total_profit for row in profit_analysis), start=ZERO),
            "analyzedAccounts": ", ".join(account_names),
        },
        "assetPerformance": performance,
        "profitAnalysis": profit_analysis,
        "transactions": [txn for txn in transactions if txn.date >= tx_cutoff],
        "portfolioHistory": [point for point in history if point.date >= history_cutoff],
        "watchlist": list(watchlist),
        "historicalAssetValues": {
            symbol: {day: value for day, value in values.items() if day >= history_cutoff}
            for symbol, values in asset_values.items()
        },
    }
    return _jsonable(context)


def context_to_json(context: dict[str, Any]) -> str:
    return json.dumps(_jsonable(context), indent=2)
