"""Providers backed by an in-memory snapshot, e.g. loaded from JSON files."""

from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

from ..models import HistoricalPriceMap, PriceQuote
from .base import HistoricalPriceProvider, QuoteProvider


class StaticQuoteProvider(QuoteProvider):
    def __init__(self, quotes: Mapping[str, PriceQuote]) -> None:
        self._quotes = dict(quotes)

    async def fetch_quotes(self, symbols: Sequence[str]) -> dict[str, PriceQuote]:
        return {s: self._quotes[s] for s in symbols if s in self._quotes}


class StaticHistoricalPriceProvider(HistoricalPriceProvider):
    def __init__(self, history: HistoricalPriceMap) -> None:
        self._history = {symbol: dict(closes) for symbol, closes in history.items()}

    async def fetch_history(
        self,
        symbols: Sequence[str],
        start: date,
        end: date,
    ) -> dict[str, dict[date, Decimal]]:
        return {
            symbol: {d: p for d, p in self._history[symbol].items() if start <= d <= end}
            for symbol in symbols
            if symbol in self._history
        }
