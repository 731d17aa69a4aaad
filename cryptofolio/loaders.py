"""Loaders for importing ledger and price data from JSON files.

This is the validation boundary: records are checked here so the
calculation modules can trust their input.
"""

import json
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Optional

from .alerts import AlertCondition, AlertKind, PriceAlert, parse_asset_ref
from .config import ZERO, TransactionType
from .exceptions import InvalidTransactionDateError, TransactionValidationError
from .models import PriceQuote, Transaction, coerce_date

logger = logging.getLogger(__name__)


def _read_json(path: str | Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a JSON number or numeric string, or return None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def parse_transaction(record: dict[str, Any], index: Optional[int] = None) -> Transaction:
    """Validate one raw transaction record.

    Accepts ``unitPrice``, ``unit_price`` or the legacy ``value`` key for the
    price per unit.

    Raises:
        TransactionValidationError: If a field is missing or invalid.
    """
    try:
        txn_type = TransactionType(str(record.get("type", "")).strip().lower())
    except ValueError:
        raise TransactionValidationError(f"Unknown transaction type: {record.get('type')!r}", index)

    asset = str(record.get("asset") or "").strip().upper()
    if not asset:
        raise TransactionValidationError("Missing asset symbol", index)

    quantity = parse_decimal(record.get("quantity"))
    if quantity is None or quantity <= ZERO:
        raise TransactionValidationError(
            f"Quantity must be a positive number, got {record.get('quantity')!r}", index
        )

    raw_price = next(
        (record[k] for k in ("unitPrice", "unit_price", "value") if k in record), None
    )
    unit_price = parse_decimal(raw_price)
    if unit_price is None or unit_price <= ZERO:
        raise TransactionValidationError(
            f"Unit price must be a positive number, got {raw_price!r}", index
        )

    try:
        txn_date = coerce_date(record.get("date"), record.get("id"))
    except InvalidTransactionDateError as e:
        raise TransactionValidationError(str(e), index) from e

    return Transaction(
        id=record.get("id", index),
        type=txn_type,
        date=txn_date,
        asset=asset,
        quantity=quantity,
        unit_price=unit_price,
    )


def parse_transactions(records: Iterable[dict[str, Any]]) -> list[Transaction]:
    return [parse_transaction(record, index) for index, record in enumerate(records)]


def load_transactions(path: str | Path) -> list[Transaction]:
    """Load a JSON array of transaction records.

    Raises:
        TransactionValidationError: If the file isn't an array or a record is invalid.
    """
    data = _read_json(path)
    if not isinstance(data, list):
        raise TransactionValidationError(f"Expected a JSON array of transactions in {path}")
    transactions = parse_transactions(data)
    logger.info("Loaded %d transactions from %s", len(transactions), path)
    return transactions


def parse_prices(data: dict[str, Any]) -> dict[str, PriceQuote]:
    """Parse ``{symbol: {price, percentChange24h}}``, skipping unusable entries."""
    quotes: dict[str, PriceQuote] = {}
    for symbol, entry in data.items():
        if not isinstance(entry, dict):
            entry = {"price": entry}
        price = parse_decimal(entry.get("price"))
        if price is None:
            logger.warning("Skipping quote for %s without a price", symbol)
            continue
        change = next(
            (entry[k] for k in ("percentChange24h", "percent_change_24h") if k in entry), None
        )
        quotes[symbol.upper()] = PriceQuote(
            price=price, percent_change_24h=parse_decimal(change) or ZERO
        )
    return quotes


def load_prices(path: str | Path) -> dict[str, PriceQuote]:
    return parse_prices(_read_json(path))


def parse_historical_prices(data: dict[str, Any]) -> dict[str, dict[date, Decimal]]:
    """Parse ``{symbol: {"YYYY-MM-DD": close}}``, skipping unparseable entries."""
    history: dict[str, dict[date, Decimal]] = {}
    for symbol, closes in data.items():
        parsed: dict[date, Decimal] = {}
        for raw_date, raw_price in (closes or {}).items():
            price = parse_decimal(raw_price)
            try:
                day = date.fromisoformat(raw_date)
            except (TypeError, ValueError):
                logger.warning("Skipping %s close with bad date %r", symbol, raw_date)
                continue
            if price is not None:
                parsed[day] = price
        history[symbol.upper()] = parsed
    return history


def load_historical_prices(path: str | Path) -> dict[str, dict[date, Decimal]]:
    return parse_historical_prices(_read_json(path))


def load_target_allocation(path: str | Path) -> dict[str, Decimal]:
    """Load ``{symbol: percent}`` target allocations.

    Raises:
        ValueError: If a percentage is not a number between 0 and 100.
    """
    allocation: dict[str, Decimal] = {}
    for symbol, raw in _read_json(path).items():
        pct = parse_decimal(raw)
        if pct is None or pct < 0 or pct > 100:
            raise ValueError(f"Allocation for {symbol} must be between 0 and 100, got {raw!r}")
        allocation[symbol.upper()] = pct
    return allocation


def parse_alert(record: dict[str, Any]) -> PriceAlert:
    """Validate one stored alert.

    ``asset`` may be a symbol or one of the portfolio-wide sentinels; ``type``
    is ``"price"`` or ``"change24h"``.

    Raises:
        ValueError: If the kind, condition, target value or asset is invalid.
    """
    try:
        kind = AlertKind(record.get("type", AlertKind.PRICE.value))
        condition = AlertCondition(record.get("condition"))
    except ValueError:
        raise ValueError(
            f"Alert {record.get('id')!r}: unknown type or condition "
            f"({record.get('type')!r}, {record.get('condition')!r})"
        )

    target = parse_decimal(record.get("targetValue", record.get("target_value")))
    if target is None:
        raise ValueError(f"Alert {record.get('id')!r}: target value must be a number")

    asset = str(record.get("asset") or "").strip()
    if not asset:
        raise ValueError(f"Alert {record.get('id')!r}: missing asset")

    return PriceAlert(
        id=str(record.get("id", "")),
        asset=parse_asset_ref(asset),
        kind=kind,
        condition=condition,
        target_value=target,
        recurring=bool(record.get("recurring", False)),
        triggered=bool(record.get("triggered", False)),
    )


def load_alerts(path: str | Path) -> list[PriceAlert]:
    data = _read_json(path)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of alerts in {path}")
    return [parse_alert(record) for record in data]
