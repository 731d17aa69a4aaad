from decimal import Decimal

from cryptofolio.ledger import compute_performance
from cryptofolio.rebalance import (
    adjust_allocation,
    anchored_percentage,
    balance_unlocked_allocations,
    compute_rebalance_suggestions,
    locked_percentage,
)

D = Decimal


def _holdings(tx, *rows):
    return [tx("buy", "2024-01-01", symbol, qty, price) for symbol, qty, price in rows]


class TestComputeRebalanceSuggestions:
    def test_balanced_portfolio_needs_no_orders(self, tx, quotes):
        prices = quotes(A="100", B="100")
        performance = compute_performance(_holdings(tx, ("A", "1", "100"), ("B", "1", "100")), prices)
        assert compute_rebalance_suggestions(performance, {"A": D(50), "B": D(50)}, prices) == []

    def test_capital_injection_buys_new_asset(self, tx, quotes):
        prices = quotes(A="100", B="50")
        performance = compute_performance(_holdings(tx, ("A", "1", "100")), prices)

        suggestions = compute_rebalance_suggestions(
            performance, {"A": D(50), "B": D(50)}, prices, capital_change=D(100)
        )

        assert len(suggestions) == 1
        order = suggestions[0]
        assert order.symbol == "B"
        assert order.action == "buy"
        assert order.amount == D(100)
        assert order.quantity == D(2)
        assert order.current_value == 0
        assert order.current_allocation == 0
        assert order.target_allocation == D(50)

    def test_sells_priced_from_holdings(self, tx, quotes):
        prices = quotes(A="200", B="100")
        performance = compute_performance(_holdings(tx, ("A", "2", "100"), ("B", "1", "100")), prices)

        suggestions = compute_rebalance_suggestions(performance, {"A": D(50), "B": D(50)}, prices)

        sell, buy = suggestions
        assert (sell.symbol, sell.action, sell.amount, sell.quantity) == ("A", "sell", D(150), D("0.75"))
        assert (buy.symbol, buy.action, buy.amount, buy.quantity) == ("B", "buy", D(150), D("1.5"))
        assert sell.target_value == buy.target_value == D(250)

    def test_sells_before_buys_then_by_amount(self, tx, quotes):
        prices = quotes(A="100", B="100", C="100", D="100")
        performance = compute_performance(
            _holdings(tx, ("A", "5", "100"), ("B", "3", "100"), ("C", "1", "100"), ("D", "1", "100")),
            prices,
        )
        suggestions = compute_rebalance_suggestions(
            performance, {"A": D(10), "B": D(20), "C": D(30), "D": D(40)}, prices
        )
        assert [(s.action, s.symbol) for s in suggestions] == [
            ("sell", "A"),
            ("sell", "B"),
            ("buy", "D"),
            ("buy", "C"),
        ]

    def test_anchored_asset_is_left_alone(self, tx, quotes):
        prices = quotes(A="100", B="100", C="10")
        performance = compute_performance(_holdings(tx, ("A", "1", "100"), ("B", "1", "100")), prices)

        suggestions = compute_rebalance_suggestions(
            performance,
            {"A": D(50), "B": D(25), "C": D(25)},
            prices,
            anchored={"A": True},
        )

        assert [(s.action, s.symbol, s.amount) for s in suggestions] == [
            ("sell", "B", D(50)),
            ("buy", "C", D(50)),
        ]
        assert suggestions[1].quantity == D(5)

    def test_untargeted_holding_is_sold(self, tx, quotes):
        prices = quotes(A="100", B="100")
        performance = compute_performance(_holdings(tx, ("A", "1", "100"), ("B", "1", "100")), prices)
        suggestions = compute_rebalance_suggestions(performance, {"A": D(100)}, prices)
        assert [(s.action, s.symbol, s.amount) for s in suggestions] == [
            ("sell", "B", D(100)),
            ("buy", "A", D(100)),
        ]

    def test_missing_price_skips_buy(self, tx, quotes):
        prices = quotes(A="100")
        performance = compute_performance(_holdings(tx, ("A", "1", "100")), prices)
        suggestions = compute_rebalance_suggestions(performance, {"A": D(50), "X": D(50)}, prices)
        assert [(s.action, s.symbol) for s in suggestions] == [("sell", "A")]

    def test_tiny_differences_ignored(self, tx, quotes):
        prices = quotes(A="100.01", B="100")
        performance = compute_performance(_holdings(tx, ("A", "1", "100"), ("B", "1", "100")), prices)
        assert compute_rebalance_suggestions(performance, {"A": D(50), "B": D(50)}, prices) == []

    def test_withdrawal_beyond_value_liquidates(self, tx, quotes):
        prices = quotes(A="100", B="300")
        performance = compute_performance(
            _holdings(tx, ("A", "1", "100"), ("B", "1", "300"), ("C", "1", "50")), prices
        )
        suggestions = compute_rebalance_suggestions(
            performance,
            {"A": D(50), "B": D(50)},
            prices,
            capital_change=D(-500),
            anchored={"A": True},
        )
        assert len(suggestions) == 1
        order = suggestions[0]
        assert (order.symbol, order.action, order.amount, order.quantity) == ("B", "sell", D(300), D(1))
        assert order.target_value == 0
        assert order.current_allocation == D(75)

    def test_string_form(self, tx, quotes):
        prices = quotes(A="100", B="50")
        performance = compute_performance(_holdings(tx, ("A", "1", "100")), prices)
        order = compute_rebalance_suggestions(
            performance, {"A": D(50), "B": D(50)}, prices, capital_change=D(100)
        )[0]
        assert str(order) == "BUY 2.00000000 B (100.00, target: 100.00, 0.00% -> 50.00%)"


class TestAllocationHelpers:
    def test_anchored_percentage(self, tx, quotes):
        prices = quotes(A="100", B="100")
        performance = compute_performance(_holdings(tx, ("A", "1", "100"), ("B", "1", "100")), prices)
        assert anchored_percentage(performance, {"A": True}) == D(50)
        assert anchored_percentage(performance, {"A": True}, capital_change=D(200)) == D(25)
        assert anchored_percentage(performance, {"A": True}, capital_change=D(-200)) == 0

    def test_locked_percentage(self):
        targets = {"A": D(30), "B": D(20), "C": D(50)}
        assert locked_percentage(targets, {"A": True, "C": True}) == D(80)
        assert locked_percentage(targets, {}) == 0

    def test_balance_scales_unlocked(self):
        result = balance_unlocked_allocations(
            {"A": D(30), "B": D(10), "C": D(10)}, locked={"A": True}, anchored={}
        )
        assert result == {"A": D(30), "B": D(35), "C": D(35)}

    def test_balance_splits_equally_when_unlocked_are_zero(self):
        result = balance_unlocked_allocations(
            {"A": D(30), "B": D(0), "C": D(0)}, locked={"A": True}, anchored={}
        )
        assert result == {"A": D(30), "B": D(35), "C": D(35)}

    def test_balance_respects_anchored_budget(self):
        result = balance_unlocked_allocations(
            {"A": D(10), "B": D(10), "C": D(40)},
            locked={},
            anchored={"C": True},
            anchored_pct=D(40),
        )
        assert result["A"] == result["B"] == D(30)
        assert result["C"] == D(40)

    def test_balance_noop_when_already_summing(self):
        targets = {"A": D(30), "B": D(70)}
        assert balance_unlocked_allocations(targets, locked={"A": True}, anchored={}) == targets

    def test_adjust_redistributes_others(self):
        result = adjust_allocation(
            {"A": D(30), "B": D(35), "C": D(35)}, "B", D(50), locked={"A": True}, anchored={}
        )
        assert result["A"] == D(30)
        assert result["B"] == D(50)
        assert abs(result["C"] - D(20)) < D("1e-20")

    def test_adjust_clamps_to_budget(self):
        result = adjust_allocation(
            {"A": D(30), "B": D(35), "C": D(35)}, "B", D(90), locked={"A": True}, anchored={}
        )
        assert result == {"A": D(30), "B": D(70), "C": D(0)}

    def test_adjust_splits_zero_others(self):
        result = adjust_allocation(
            {"A": D(100), "B": D(0), "C": D(0)}, "A", D(40), locked={}, anchored={}
        )
        assert result == {"A": D(40), "B": D(30), "C": D(30)}

    def test_locked_symbol_cannot_be_adjusted(self):
        targets = {"A": D(30), "B": D(70)}
        assert adjust_allocation(targets, "A", D(10), locked={"A": True}, anchored={}) == targets
