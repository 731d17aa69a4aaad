"""Errors raised for structural misuse of the calculation engine."""

from typing import Optional


class CryptofolioError(ValueError):
    """Base class for all cryptofolio errors."""


class InvalidTransactionDateError(CryptofolioError):
    """A transaction date is neither a date nor an ISO ``YYYY-MM-DD`` string."""

    def __init__(self, value: object, transaction_id: object = None) -> None:
        self.value = value
        self.transaction_id = transaction_id
        where = f" (transaction {transaction_id})" if transaction_id is not None else ""
        super().__init__(f"Invalid transaction date{where}: {value!r}")


class TaxReportError(CryptofolioError):
    """The tax report was requested with unusable arguments."""


class TransactionValidationError(CryptofolioError):
    """A raw transaction record failed boundary validation."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        self.index = index
        if index is not None:
            message = f"Record {index}: {message}"
        super().__init__(message)
