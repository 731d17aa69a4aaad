"""Configuration constants for the portfolio calculation engine."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

# Holdings below this are treated as fully liquidated.
QUANTITY_EPSILON = Decimal("1e-8")

# Smallest fiat amount worth trading or treating as a cash flow.
VALUE_EPSILON_FIAT = Decimal("0.01")

ALLOCATION_SUM_TOLERANCE_PCT = Decimal("0.01")

# Simulated values are computed in floats and rounded to this.
SIMULATED_VALUE_QUANTUM = Decimal("1e-8")

HUNDRED = Decimal("100")
ZERO = Decimal("0")


class TransactionType(str, Enum):
    """Ledger transaction types."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class TaxPolicy:
    """Monthly capital-gains rule: sales above the threshold pay `rate` on profit."""

    exemption_threshold: Decimal = Decimal("35000")
    rate: Decimal = Decimal("0.15")


BRAZIL_CRYPTO_POLICY = TaxPolicy()


@dataclass(frozen=True)
class ContextConfig:
    """Trimming windows for the LLM grounding snapshot."""

    TRANSACTION_WINDOW_DAYS: int = 180
    HISTORY_WINDOW_DAYS: int = 30
