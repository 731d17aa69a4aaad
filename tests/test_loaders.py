import json
from datetime import date
from decimal import Decimal

import pytest

from cryptofolio.alerts import AlertKind, ConcreteAsset, UnrealizedProfitTotal
from cryptofolio.config import TransactionType
from cryptofolio.exceptions import TransactionValidationError
from cryptofolio.loaders import (
    load_alerts,
    load_historical_prices,
    load_prices,
    load_target_allocation,
    load_transactions,
    parse_alert,
    parse_decimal,
    parse_prices,
    parse_transaction,
)


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data))
    return path


VALID = {
    "id": 1,
    "type": "BUY",
    "date": "2024-01-15",
    "asset": "btc",
    "quantity": "0.5",
    "unitPrice": 42000,
}


class TestParseDecimal:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1,234.5", Decimal("1234.5")),
            (3, Decimal("3")),
            (0.1, Decimal("0.1")),
            (" 7 ", Decimal("7")),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_decimal(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, "abc", "", "NaN", "Infinity"])
    def test_invalid(self, raw):
        assert parse_decimal(raw) is None


class TestParseTransaction:
    def test_valid_record(self):
        txn = parse_transaction(VALID)
        assert txn.id == 1
        assert txn.type == TransactionType.BUY
        assert txn.date == date(2024, 1, 15)
        assert txn.asset == "BTC"
        assert txn.quantity == Decimal("0.5")
        assert txn.unit_price == Decimal("42000")

    @pytest.mark.parametrize("key", ["unit_price", "value"])
    def test_alternate_price_keys(self, key):
        record = {k: v for k, v in VALID.items() if k != "unitPrice"}
        record[key] = "100"
        assert parse_transaction(record).unit_price == Decimal("100")

    def test_missing_id_uses_index(self):
        record = {k: v for k, v in VALID.items() if k != "id"}
        assert parse_transaction(record, 4).id == 4

    @pytest.mark.parametrize(
        "field, value, match",
        [
            ("type", "transfer", "Unknown transaction type"),
            ("asset", "", "Missing asset"),
            ("quantity", "0", "Quantity"),
            ("quantity", "-1", "Quantity"),
            ("unitPrice", "abc", "Unit price"),
            ("date", "15/01/2024", "date"),
        ],
    )
    def test_invalid_fields(self, field, value, match):
        record = {**VALID, field: value}
        with pytest.raises(TransactionValidationError, match=match):
            parse_transaction(record, 2)

    def test_error_names_record(self):
        with pytest.raises(TransactionValidationError, match="Record 3"):
            parse_transaction({**VALID, "quantity": None}, 3)


class TestLoadFiles:
    def test_load_transactions(self, tmp_path):
        path = _write(tmp_path, "tx.json", [VALID, {**VALID, "id": 2, "type": "sell"}])
        transactions = load_transactions(path)
        assert [t.type for t in transactions] == [TransactionType.BUY, TransactionType.SELL]

    def test_load_transactions_requires_array(self, tmp_path):
        path = _write(tmp_path, "tx.json", {"not": "a list"})
        with pytest.raises(TransactionValidationError):
            load_transactions(path)

    def test_load_prices(self, tmp_path):
        path = _write(
            tmp_path,
            "prices.json",
            {
                "btc": {"price": 60000, "percentChange24h": -2.5},
                "ETH": {"price": "3000", "percent_change_24h": "1.5"},
                "SOL": 150,
                "DOGE": {"percentChange24h": 4},
            },
        )
        prices = load_prices(path)
        assert list(prices) == ["BTC", "ETH", "SOL"]
        assert prices["BTC"].price == Decimal("60000")
        assert prices["BTC"].percent_change_24h == Decimal("-2.5")
        assert prices["ETH"].percent_change_24h == Decimal("1.5")
        assert prices["SOL"].percent_change_24h == 0

    def test_parse_prices_empty(self):
        assert parse_prices({}) == {}

    def test_load_historical_prices(self, tmp_path):
        path = _write(
            tmp_path,
            "history.json",
            {"btc": {"2024-01-01": 42000, "2024-01-02": "43000", "yesterday": 1, "2024-01-03": None}},
        )
        history = load_historical_prices(path)
        assert history == {
            "BTC": {date(2024, 1, 1): Decimal("42000"), date(2024, 1, 2): Decimal("43000")}
        }

    def test_load_target_allocation(self, tmp_path):
        path = _write(tmp_path, "targets.json", {"btc": 60, "ETH": "40"})
        assert load_target_allocation(path) == {"BTC": Decimal("60"), "ETH": Decimal("40")}

    @pytest.mark.parametrize("value", [101, -1, "lots"])
    def test_load_target_allocation_rejects_bad_percentages(self, tmp_path, value):
        path = _write(tmp_path, "targets.json", {"BTC": value})
        with pytest.raises(ValueError):
            load_target_allocation(path)


class TestAlerts:
    def test_load_alerts(self, tmp_path):
        path = _write(
            tmp_path,
            "alerts.json",
            [
                {"id": 1, "asset": "btc", "type": "price", "condition": "above", "targetValue": 70000},
                {
                    "id": 2,
                    "asset": "__UNREALIZED_PROFIT__",
                    "type": "change24h",
                    "condition": "below",
                    "targetValue": "5",
                    "recurring": True,
                },
            ],
        )
        first, second = load_alerts(path)
        assert first.asset == ConcreteAsset("BTC")
        assert first.target_value == Decimal("70000")
        assert first.id == "1"
        assert second.asset == UnrealizedProfitTotal()
        assert second.kind == AlertKind.CHANGE_24H
        assert second.recurring

    @pytest.mark.parametrize(
        "record",
        [
            {"asset": "BTC", "condition": "sideways", "targetValue": 1},
            {"asset": "BTC", "type": "volume", "condition": "above", "targetValue": 1},
            {"asset": "BTC", "condition": "above", "targetValue": "high"},
            {"asset": "", "condition": "above", "targetValue": 1},
        ],
    )
    def test_invalid_alert(self, record):
        with pytest.raises(ValueError):
            parse_alert(record)

    def test_alerts_file_must_be_array(self, tmp_path):
        with pytest.raises(ValueError):
            load_alerts(_write(tmp_path, "alerts.json", {"id": 1}))
