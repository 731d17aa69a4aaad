from datetime import date
from decimal import Decimal
from itertools import count

import pytest

from cryptofolio.config import TransactionType
from cryptofolio.models import PriceQuote, Transaction


@pytest.fixture
def tx():
    """Factory for transactions: tx("buy", "2024-01-01", "BTC", "1", "100")."""
    ids = count(1)

    def _make(kind: str, day: str, asset: str, quantity: str, unit_price: str) -> Transaction:
        return Transaction(
            id=next(ids),
            type=TransactionType(kind),
            date=date.fromisoformat(day),
            asset=asset,
            quantity=Decimal(quantity),
            unit_price=Decimal(unit_price),
        )

    return _make


@pytest.fixture
def quotes():
    """Factory for price maps: quotes(BTC="500", ETH="20")."""

    def _make(**prices: str) -> dict[str, PriceQuote]:
        return {symbol: PriceQuote(Decimal(price)) for symbol, price in prices.items()}

    return _make
