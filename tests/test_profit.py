import random
from decimal import Decimal

import pytest

from cryptofolio.ledger import aggregate_ledger
from cryptofolio.profit import compute_profit_analysis, compute_profit_metrics


class TestProfitAnalysis:
    def test_average_cost_scenario(self, tx, quotes):
        txns = [
            tx("buy", "2024-01-01", "BTC", "1", "100"),
            tx("buy", "2024-01-02", "BTC", "1", "300"),
        ]
        [row] = compute_profit_analysis(txns, quotes(BTC="400"))
        assert row.average_buy_price == Decimal("200")
        assert row.total_bought == Decimal("2")

        txns.append(tx("sell", "2024-01-03", "BTC", "1", "500"))
        [row] = compute_profit_analysis(txns, quotes(BTC="400"))
        assert row.realized_profit == Decimal("300")
        assert row.remaining_quantity == Decimal("1")
        assert row.average_buy_price == Decimal("200")
        assert row.unrealized_profit == Decimal("200")
        assert row.total_profit == Decimal("500")
        # 500 / (2 * 200) * 100
        assert row.total_variation == Decimal("125")

    def test_profit_decomposition(self, tx, quotes):
        rows = compute_profit_analysis(
            [
                tx("buy", "2024-01-01", "BTC", "0.3", "101.7"),
                tx("sell", "2024-01-04", "BTC", "0.1", "90.2"),
                tx("buy", "2024-01-05", "ETH", "3", "12.5"),
                tx("buy", "2024-01-06", "BTC", "0.8", "130"),
                tx("sell", "2024-01-09", "ETH", "3", "15"),
            ],
            quotes(BTC="120", ETH="14"),
        )
        for row in rows:
            assert row.total_profit == row.realized_profit + row.unrealized_profit

    def test_totals_survive_liquidation_and_reentry(self, tx, quotes):
        [row] = compute_profit_analysis(
            [
                tx("buy", "2024-01-01", "ETH", "2", "10"),
                tx("sell", "2024-01-02", "ETH", "2", "20"),
                tx("buy", "2024-01-03", "ETH", "2", "30"),
            ],
            quotes(ETH="30"),
        )
        assert row.total_bought == Decimal("4")
        assert row.total_sold == Decimal("2")
        assert row.remaining_quantity == Decimal("2")
        assert row.average_buy_price == Decimal("20")
        assert row.realized_profit == Decimal("20")

    def test_missing_quote_uses_zero_price(self, tx):
        [row] = compute_profit_analysis([tx("buy", "2024-01-01", "XYZ", "2", "5")], {})
        assert row.current_price == 0
        assert row.unrealized_profit == Decimal("-10")

    def test_sell_only_has_no_variation(self, tx, quotes):
        [row] = compute_profit_analysis([tx("sell", "2024-01-01", "BTC", "1", "50")], quotes(BTC="60"))
        assert row.average_buy_price == 0
        assert row.realized_profit == Decimal("50")
        assert row.total_variation == 0

    def test_agrees_with_ledger_cost_basis_without_sells(self, tx, quotes):
        txns = [
            tx("buy", "2024-01-01", "BTC", "0.123", "98765.43"),
            tx("buy", "2024-01-02", "BTC", "1.7", "12345.67"),
            tx("buy", "2024-01-03", "BTC", "0.0004", "55555.55"),
        ]
        [row] = compute_profit_analysis(txns, quotes(BTC="1"))
        state = aggregate_ledger(txns)["BTC"]
        assert abs(row.average_buy_price - state.average_cost) < Decimal("1e-18")

    @pytest.mark.parametrize("seed", range(25))
    def test_agrees_with_ledger_on_random_buy_sequences(self, tx, quotes, seed):
        rng = random.Random(seed)
        txns = [
            tx(
                "buy",
                f"2024-01-{rng.randint(1, 28):02d}",
                rng.choice(["BTC", "ETH", "SOL"]),
                str(Decimal(rng.randint(1, 10**10)).scaleb(-8)),
                str(Decimal(rng.randint(1, 10**9)).scaleb(-2)),
            )
            for _ in range(rng.randint(1, 40))
        ]

        ledger = aggregate_ledger(txns)
        rows = compute_profit_analysis(txns, quotes())

        assert [row.symbol for row in rows] == list(ledger)
        for row in rows:
            state = ledger[row.symbol]
            assert row.total_bought == state.total_quantity
            assert row.remaining_quantity == state.total_quantity
            assert abs(row.average_buy_price - state.average_cost) <= state.average_cost * Decimal("1e-20")


class TestProfitMetrics:
    def test_empty(self):
        metrics = compute_profit_metrics([])
        assert metrics.total_assets == 0
        assert metrics.win_rate == 0
        assert metrics.best_asset is None
        assert metrics.worst_asset is None

    def test_win_rate_zero_without_sells(self, tx, quotes):
        rows = compute_profit_analysis(
            [tx("buy", "2024-01-01", "BTC", "1", "100"), tx("buy", "2024-01-01", "ETH", "1", "10")],
            quotes(BTC="200", ETH="5"),
        )
        assert compute_profit_metrics(rows).win_rate == 0

    def test_win_rate_counts_only_sold_assets(self, tx, quotes):
        rows = compute_profit_analysis(
            [
                tx("buy", "2024-01-01", "BTC", "1", "100"),
                tx("sell", "2024-01-02", "BTC", "0.5", "150"),
                tx("buy", "2024-01-01", "ETH", "1", "10"),
                tx("sell", "2024-01-02", "ETH", "0.5", "5"),
                tx("buy", "2024-01-01", "SOL", "1", "1"),
            ],
            quotes(BTC="100", ETH="10", SOL="100"),
        )
        metrics = compute_profit_metrics(rows)
        assert metrics.total_assets == 3
        assert metrics.win_rate == Decimal("50")
        assert 0 <= metrics.win_rate <= 100
        assert metrics.best_asset.symbol == "SOL"
        assert metrics.worst_asset.symbol == "ETH"

    def test_ties_go_to_first_row(self, tx, quotes):
        rows = compute_profit_analysis(
            [tx("buy", "2024-01-01", "AAA", "1", "10"), tx("buy", "2024-01-01", "BBB", "1", "10")],
            quotes(AAA="10", BBB="10"),
        )
        metrics = compute_profit_metrics(rows)
        assert metrics.best_asset.symbol == "AAA"
        assert metrics.worst_asset.symbol == "AAA"
