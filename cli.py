#!/usr/bin/env python3
import argparse
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from cryptofolio import (
    AlertEvaluation,
    AlertKind,
    AnnualTaxReport,
    AssetPerformance,
    Portfolio,
    PortfolioHistoryPoint,
    PriceAlert,
    ProfitAnalysisData,
    ProfitMetrics,
    RebalanceSuggestion,
    StaticHistoricalPriceProvider,
    StaticQuoteProvider,
)
from cryptofolio.context import build_portfolio_context, context_to_json
from cryptofolio.loaders import (
    load_alerts,
    load_historical_prices,
    load_prices,
    load_target_allocation,
    load_transactions,
)

logger = logging.getLogger(__name__)
console = Console()

VIEWS: list[str] = ["performance", "profit", "history", "tax", "rebalance", "alerts", "context"]
VIEW_LABELS: dict[str, str] = {
    "performance": "Holdings & unrealized P/L",
    "profit": "Realized / unrealized profit",
    "history": "Recent portfolio history",
    "tax": "Monthly tax simulation",
    "rebalance": "Rebalance orders",
    "alerts": "Price alerts",
    "context": "AI context snapshot (JSON)",
}
DEFAULT_HISTORY_DAYS = 14


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _pl_text(value: Decimal, suffix: str = "") -> Text:
    """Green for gains, red for losses."""
    style = "green" if value > 0 else "red" if value < 0 else "dim"
    return Text(f"{value:+,.2f}{suffix}", style=style)


def performance_table(performance: list[AssetPerformance], allocation: dict[str, Decimal]) -> Table:
    """Build a Rich table showing holdings, cost basis and unrealized P/L."""
    t = Table(title="Holdings", box=box.ROUNDED, title_style="bold white")
    t.add_column("Asset", style="cyan")
    t.add_column("Quantity", justify="right")
    t.add_column("Invested", justify="right")
    t.add_column("Value", justify="right")
    t.add_column("P/L", justify="right")
    t.add_column("Var", justify="right")
    t.add_column("Alloc", justify="right", style="yellow")

    total_invested = total_value = Decimal(0)
    for p in sorted(performance, key=lambda p: p.current_value, reverse=True):
        total_invested += p.total_invested
        total_value += p.current_value
        t.add_row(
            p.symbol,
            f"{p.total_quantity:,.8f}",
            _money(p.total_invested),
            _money(p.current_value),
            _pl_text(p.profit_loss),
            _pl_text(p.variation, "%"),
            f"{allocation.get(p.symbol, Decimal(0)):.1f}%",
        )

    t.add_section()
    t.add_row(
        "",
        "Total",
        f"[bold]{_money(total_invested)}[/bold]",
        f"[bold]{_money(total_value)}[/bold]",
        _pl_text(total_value - total_invested),
        "",
        "",
    )
    return t


def profit_table(rows: list[ProfitAnalysisData], metrics: ProfitMetrics) -> Table:
    """Build a Rich table showing lifetime profit per asset."""
    t = Table(
        title="Profit Analysis",
        box=box.ROUNDED,
        title_style="bold white",
        caption=(
            f"Win rate {metrics.win_rate:.1f}% · "
            f"best {metrics.best_asset.symbol if metrics.best_asset else '-'} · "
            f"worst {metrics.worst_asset.symbol if metrics.worst_asset else '-'}"
        ),
        caption_style="dim",
    )
    t.add_column("Asset", style="cyan")
    t.add_column("Bought", justify="right")
    t.add_column("Sold", justify="right")
    t.add_column("Avg buy", justify="right")
    t.add_column("Price", justify="right")
    t.add_column("Realized", justify="right")
    t.add_column("Unrealized", justify="right")
    t.add_column("Total", justify="right")
    t.add_column("Var", justify="right")

    for row in sorted(rows, key=lambda r: r.total_profit, reverse=True):
        t.add_row(
            row.symbol,
            f"{row.total_bought:,.8f}",
            f"{row.total_sold:,.8f}",
            _money(row.average_buy_price),
            _money(row.current_price),
            _pl_text(row.realized_profit),
            _pl_text(row.unrealized_profit),
            _pl_text(row.total_profit),
            _pl_text(row.total_variation, "%"),
        )
    return t


def history_table(points: list[PortfolioHistoryPoint], days: int) -> Table:
    """Build a Rich table with the last ``days`` history points."""
    t = Table(title=f"Last {days} days", box=box.ROUNDED, title_style="bold white")
    t.add_column("Date", style="cyan")
    t.add_column("Invested", justify="right")
    t.add_column("Market value", justify="right")
    t.add_column("P/L", justify="right")

    for point in points[-days:]:
        t.add_row(
            point.date.isoformat(),
            _money(point.invested_value),
            _money(point.market_value),
            _pl_text(point.market_value - point.invested_value),
        )
    return t


def tax_table(report: AnnualTaxReport) -> Table:
    """Build a Rich table with the monthly tax simulation."""
    t = Table(title=f"Tax report {report.year}", box=box.ROUNDED, title_style="bold white")
    t.add_column("Month", style="cyan")
    t.add_column("Sales", justify="right")
    t.add_column("Realized", justify="right")
    t.add_column("Status", justify="center")
    t.add_column("Tax due", justify="right")

    for month in report.monthly_reports:
        if month.total_sales == 0:
            continue
        status = Text("exempt", style="green") if month.is_exempt else Text("taxable", style="red")
        t.add_row(
            f"{month.year}-{month.month:02d}",
            _money(month.total_sales),
            _pl_text(month.realized_profit),
            status,
            _money(month.tax_due),
        )

    t.add_section()
    t.add_row(
        "Total",
        _money(report.total_taxable_sales),
        "",
        f"{report.taxable_months_count} taxable",
        f"[bold]{_money(report.total_tax_due)}[/bold]",
    )
    return t


def orders_table(
    suggestions: list[RebalanceSuggestion],
    capital_change: Decimal = Decimal("0"),
) -> Table:
    """Build a Rich table showing rebalance orders."""
    t = Table(title="Rebalance Orders", box=box.ROUNDED, title_style="bold white")
    t.add_column("Action", no_wrap=True)
    t.add_column("Asset", style="cyan")
    t.add_column("Quantity", justify="right")
    t.add_column("Amount", justify="right")
    t.add_column("Alloc", justify="right", style="yellow")
    t.add_column("Target", justify="right", style="green")

    buy_total = sell_total = Decimal(0)
    for s in suggestions:
        style = "green" if s.action == "buy" else "red"
        if s.action == "buy":
            buy_total += s.amount
        else:
            sell_total += s.amount
        t.add_row(
            Text(s.action.upper(), style=f"bold {style}"),
            s.symbol,
            f"{s.quantity:,.8f}",
            _money(s.amount),
            f"{s.current_allocation:.1f}%",
            f"{s.target_allocation:.1f}%",
        )

    t.add_section()
    if capital_change != 0:
        label = "Cash injected" if capital_change > 0 else "Cash withdrawn"
        t.add_row("", f"[dim]{label}[/dim]", "", f"[dim]{_money(abs(capital_change))}[/dim]", "", "")
    t.add_row(
        "",
        "[bold]Trades[/bold]",
        "",
        f"[green]+{_money(buy_total)}[/green]  [red]-{_money(sell_total)}[/red]",
        "",
        "",
    )
    return t


def alerts_table(evaluations: list[AlertEvaluation]) -> Table:
    """Build a Rich table with the state of each alert after evaluation."""
    t = Table(title="Price Alerts", box=box.ROUNDED, title_style="bold white")
    t.add_column("Asset", style="cyan")
    t.add_column("Type")
    t.add_column("Condition")
    t.add_column("Target", justify="right")
    t.add_column("Status", justify="center")
    t.add_column("Message")

    for evaluation in evaluations:
        alert = evaluation.alert
        if evaluation.fired:
            status = Text("FIRED", style="bold red")
        elif alert.triggered:
            status = Text("triggered", style="yellow")
        else:
            status = Text("armed", style="green")
        suffix = "%" if alert.kind == AlertKind.CHANGE_24H else ""
        t.add_row(
            alert.asset.label,
            alert.kind.value,
            alert.condition.value,
            f"{alert.effective_target:,.2f}{suffix}",
            status,
            evaluation.message,
        )
    return t


def _decimal_arg(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}")


def _prompt_decimal(label: str, default: str = "0") -> Decimal:
    while True:
        raw = Prompt.ask(label, default=default)
        try:
            return Decimal(raw)
        except InvalidOperation:
            console.print(f"  [red]Not a number: {raw}[/red]")


def display_view(
    view: str,
    portfolio: Portfolio,
    args: argparse.Namespace,
    today: date,
    targets: Optional[dict[str, Decimal]] = None,
    alerts: Sequence[PriceAlert] = (),
) -> None:
    """Render one view of the portfolio."""
    if view == "performance":
        console.print(performance_table(portfolio.performance(), portfolio.current_allocation()))
    elif view == "profit":
        rows = portfolio.profit_analysis()
        console.print(profit_table(rows, portfolio.profit_metrics()))
    elif view == "history":
        console.print(history_table(portfolio.history(today=today), args.days))
    elif view == "tax":
        year = args.year or IntPrompt.ask("  Tax year", default=today.year)
        console.print(tax_table(portfolio.tax_report(year)))
    elif view == "rebalance":
        if not targets:
            console.print("[yellow]  No target allocation file given (--targets).[/yellow]")
            return
        capital_change = args.capital_change
        if capital_change is None:
            capital_change = _prompt_decimal("  Cash to inject (negative to withdraw)")
        anchored = {symbol.upper(): True for symbol in args.anchor}
        suggestions = portfolio.rebalance(targets, capital_change=capital_change, anchored=anchored)
        if not suggestions:
            console.print("[green]  Already balanced, no trades needed.[/green]")
            return
        console.print(orders_table(suggestions, capital_change))
    elif view == "alerts":
        if not alerts:
            console.print("[yellow]  No alerts file given (--alerts).[/yellow]")
            return
        evaluations = portfolio.check_alerts(alerts)
        console.print(alerts_table(evaluations))
        for evaluation in evaluations:
            if evaluation.fired:
                console.print(f"  [bold red]{evaluation.message}[/bold red]")
    elif view == "context":
        context = build_portfolio_context(
            portfolio.transactions,
            portfolio.prices,
            portfolio.historical_prices,
            today=today,
        )
        console.print_json(context_to_json(context))


def run_cli_loop(
    portfolio: Portfolio,
    args: argparse.Namespace,
    today: date,
    targets: Optional[dict[str, Decimal]] = None,
    alerts: Sequence[PriceAlert] = (),
) -> None:
    while True:
        console.print()
        for i, view in enumerate(VIEWS, start=1):
            console.print(f"  [bold cyan]{i}[/bold cyan] {VIEW_LABELS[view]}")
        choice = Prompt.ask("  View", choices=[str(i) for i in range(1, len(VIEWS) + 1)], default="1")

        console.print()
        display_view(VIEWS[int(choice) - 1], portfolio, args, today, targets, alerts)

        console.print()
        if not Confirm.ask("  Show another view?", default=True):
            break


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crypto portfolio analytics")
    parser.add_argument("transactions", help="JSON array of transactions")
    parser.add_argument("--prices", help="JSON map of live quotes by symbol")
    parser.add_argument("--history", help="JSON map of daily closes by symbol and date")
    parser.add_argument("--targets", help="JSON map of target allocation percentages")
    parser.add_argument("--alerts", help="JSON array of price alerts")
    parser.add_argument("--anchor", action="append", default=[], help="Symbol to keep out of rebalancing")
    parser.add_argument("--capital-change", type=_decimal_arg, default=None)
    parser.add_argument("--year", type=int, default=None, help="Tax report year")
    parser.add_argument("--days", type=int, default=DEFAULT_HISTORY_DAYS)
    parser.add_argument("--view", choices=VIEWS, help="Print one view and exit")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the CLI application."""
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    today = date.today()

    try:
        transactions = load_transactions(args.transactions)
        prices = load_prices(args.prices) if args.prices else {}
        history = load_historical_prices(args.history) if args.history else None
        targets = load_target_allocation(args.targets) if args.targets else None
        alerts = load_alerts(args.alerts) if args.alerts else []
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not load portfolio: {e}[/red]")
        return 1

    portfolio = Portfolio.from_providers(
        transactions,
        StaticQuoteProvider(prices),
        StaticHistoricalPriceProvider(history) if history is not None else None,
        today=today,
        extra_symbols=list(prices),
    )
    logger.debug("Loaded %r", portfolio)
    for error in portfolio.fetch_errors:
        console.print(f"[yellow]  Price history unavailable for {error}[/yellow]")

    if args.view:
        display_view(args.view, portfolio, args, today, targets, alerts)
        return 0

    console.print()
    console.print(Panel("[bold]Crypto Portfolio[/bold] · performance, taxes & rebalancing", box=box.DOUBLE))
    run_cli_loop(portfolio, args, today, targets, alerts)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
