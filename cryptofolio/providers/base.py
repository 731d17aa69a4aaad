"""Abstract base classes for price data providers."""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Sequence

from ..models import PriceQuote


class QuoteProvider(ABC):
    """Source of live quotes for a set of symbols."""

    @abstractmethod
    async def fetch_quotes(self, symbols: Sequence[str]) -> dict[str, PriceQuote]:
        """Fetch current quotes.

        Args:
            symbols: Ticker symbols to quote.

        Returns:
            Dictionary mapping symbols to quotes. Symbols the source doesn't
            know are left out rather than raising.
        """
        pass

    async def close(self) -> None:
        """Clean up resources (sessions, connections, etc.)."""


class HistoricalPriceProvider(ABC):
    """Source of daily closing prices."""

    @abstractmethod
    async def fetch_history(
        self,
        symbols: Sequence[str],
        start: date,
        end: date,
    ) -> dict[str, dict[date, Decimal]]:
        """Fetch daily closes between ``start`` and ``end`` inclusive.

        Returns:
            Dictionary mapping symbols to {date: close}. Both levels may be sparse.
        """
        pass

    async def close(self) -> None:
        """Clean up resources (sessions, connections, etc.)."""
