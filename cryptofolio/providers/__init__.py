"""Collaborator interfaces for price data and their snapshot/cached implementations."""

from .base import HistoricalPriceProvider, QuoteProvider
from .cached import (
    CachedHistoricalPriceProvider,
    HistoryFetchResult,
    earliest_transaction_dates,
    fetch_history_for_transactions_sync,
)
from .static import StaticHistoricalPriceProvider, StaticQuoteProvider
from .store import InMemoryStore, KeyValueStore

__all__ = [
    "QuoteProvider",
    "HistoricalPriceProvider",
    "CachedHistoricalPriceProvider",
    "HistoryFetchResult",
    "StaticQuoteProvider",
    "StaticHistoricalPriceProvider",
    "KeyValueStore",
    "InMemoryStore",
    "earliest_transaction_dates",
    "fetch_history_for_transactions_sync",
]
