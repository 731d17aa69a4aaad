"""Historical price provider that only fetches what the cache is missing."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from ..models import Transaction
from .base import HistoricalPriceProvider
from .store import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)


def earliest_transaction_dates(transactions: Iterable[Transaction]) -> dict[str, date]:
    """First transaction date per asset; history is needed from there on."""
    earliest: dict[str, date] = {}
    for txn in transactions:
        current = earliest.get(txn.asset)
        if current is None or txn.date < current:
            earliest[txn.asset] = txn.date
    return earliest


class CachedHistoricalPriceProvider(HistoricalPriceProvider):
    """Wraps a provider with a per-symbol cache kept in a KeyValueStore.

    A symbol is re-fetched when it has no cached entry, an empty one, or one
    that starts after the requested start date. A failure for one symbol is
    logged and recorded in ``errors``; the other symbols are still returned.
    """

    KEY_PREFIX = "history:"

    def __init__(self, provider: HistoricalPriceProvider, store: KeyValueStore) -> None:
        self.provider = provider
        self.store = store
        self.errors: list[str] = []

    def _key(self, symbol: str) -> str:
        return f"{self.KEY_PREFIX}{symbol}"

    def _cached(self, symbol: str) -> Optional[dict[date, Decimal]]:
        return self.store.get(self._key(symbol)) if self.store.has(self._key(symbol)) else None

    def needs_fetch(self, symbol: str, start: date) -> bool:
        cached = self._cached(symbol)
        if not cached:
            return True
        return start < min(cached)

    async def _fetch(
        self,
        symbols: Sequence[str],
        start: date,
        end: date,
    ) -> dict[str, dict[date, Decimal]]:
        result: dict[str, dict[date, Decimal]] = {}

        for symbol in symbols:
            if self.needs_fetch(symbol, start):
                try:
                    fetched = await self.provider.fetch_history([symbol], start, end)
                except Exception as e:
                    logger.warning("Failed to fetch history for %s: %s", symbol, e)
                    self.errors.append(f"{symbol}: {e}")
                    continue
                if symbol in fetched:
                    self.store.set(self._key(symbol), fetched[symbol])

            cached = self._cached(symbol)
            if cached:
                result[symbol] = {d: p for d, p in cached.items() if start <= d <= end}

        return result

    async def fetch_history(
        self,
        symbols: Sequence[str],
        start: date,
        end: date,
    ) -> dict[str, dict[date, Decimal]]:
        self.errors = []
        return await self._fetch(symbols, start, end)

    async def fetch_history_since(
        self,
        starts: Mapping[str, date],
        end: date,
    ) -> dict[str, dict[date, Decimal]]:
        """Fetch each symbol from its own start date.

        ``errors`` is reset once and collects failures across all symbols.
        """
        self.errors = []
        history: dict[str, dict[date, Decimal]] = {}
        for symbol, start in starts.items():
            history.update(await self._fetch([symbol], start, end))
        return history

    async def close(self) -> None:
        await self.provider.close()


@dataclass
class HistoryFetchResult:
    """Prices that could be fetched, plus one ``"SYMBOL: reason"`` entry per failure."""

    prices: dict[str, dict[date, Decimal]] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def fetch_history_for_transactions_sync(
    provider: HistoricalPriceProvider,
    transactions: Iterable[Transaction],
    end: Optional[date] = None,
    store: Optional[KeyValueStore] = None,
) -> HistoryFetchResult:
    """Fetch each traded symbol's history from its first transaction date to ``end``.

    A provider that isn't already cached is wrapped in a
    CachedHistoricalPriceProvider backed by ``store`` (in-memory by default),
    so a failing symbol doesn't stop the others. The provider is closed
    afterwards.

    Returns:
        HistoryFetchResult with the prices and the per-symbol errors, which
        callers can show and retry.
    """
    end = end or date.today()
    starts = earliest_transaction_dates(transactions)
    if isinstance(provider, CachedHistoricalPriceProvider):
        cached = provider
    else:
        cached = CachedHistoricalPriceProvider(provider, store or InMemoryStore())

    async def _run() -> HistoryFetchResult:
        try:
            prices = await cached.fetch_history_since(starts, end)
        finally:
            await cached.close()
        return HistoryFetchResult(prices=prices, errors=list(cached.errors))

    result = asyncio.run(_run())
    if result.errors:
        logger.info("History fetch finished with %d failed symbols", len(result.errors))
    return result
