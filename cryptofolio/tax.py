"""Monthly capital-gains tax simulation.

Sales in a month are tax exempt while their total proceeds stay at or below
the policy threshold. Above it, the policy rate applies to the month's
realized profit; loss months owe nothing. Cost basis is the running average
cost carried across all earlier years.
"""

import logging
from datetime import date
from typing import Iterable

from .config import BRAZIL_CRYPTO_POLICY, ZERO, TaxPolicy
from .exceptions import TaxReportError
from .models import (
    AnnualTaxReport,
    AssetLedgerState,
    MonthlyTaxReport,
    Transaction,
    coerce_date,
)

logger = logging.getLogger(__name__)


def _dated(transactions: Iterable[Transaction]) -> list[tuple[date, Transaction]]:
    """Pair each transaction with its parsed date, sorted by it."""
    dated = [(coerce_date(txn.date, txn.id), txn) for txn in transactions]
    dated.sort(key=lambda pair: pair[0])
    return dated


def compute_tax_report(
    transactions: Iterable[Transaction],
    year: int,
    policy: TaxPolicy = BRAZIL_CRYPTO_POLICY,
) -> AnnualTaxReport:
    """Simulate the tax owed for each month of ``year``.

    Args:
        transactions: Full transaction history; earlier years set the cost basis.
        year: Calendar year to report on.
        policy: Exemption threshold and rate.

    Returns:
        AnnualTaxReport with all twelve months.

    Raises:
        InvalidTransactionDateError: If a transaction date can't be parsed.
        TaxReportError: If ``year`` is not an integer.
    """
    if isinstance(year, bool) or not isinstance(year, int):
        raise TaxReportError(f"Tax year must be an integer, got {year!r}")

    monthly = [MonthlyTaxReport(month=month, year=year) for month in range(1, 13)]
    basis: dict[str, AssetLedgerState] = {}

    for txn_date, txn in _dated(transactions):
        if txn_date.year > year:
            break

        state = basis.setdefault(txn.asset, AssetLedgerState())
        if txn.is_buy:
            state.total_invested += txn.total_value
            state.total_quantity += txn.quantity
            continue

        cost_of_sale = txn.quantity * state.average_cost
        if txn_date.year == year:
            report = monthly[txn_date.month - 1]
            report.total_sales += txn.total_value
            report.realized_profit += txn.total_value - cost_of_sale

        state.total_invested -= cost_of_sale
        state.total_quantity -= txn.quantity
        state.snap_to_zero()

    total_tax_due = ZERO
    total_taxable_sales = ZERO
    taxable_months = 0

    for report in monthly:
        if report.total_sales <= policy.exemption_threshold:
            continue
        report.is_exempt = False
        if report.realized_profit > 0:
            report.tax_due = report.realized_profit * policy.rate
            total_tax_due += report.tax_due
        total_taxable_sales += report.total_sales
        taxable_months += 1

    logger.debug(
        "Tax report %d: %d taxable months, %s due", year, taxable_months, total_tax_due
    )
    return AnnualTaxReport(
        year=year,
        total_tax_due=total_tax_due,
        total_taxable_sales=total_taxable_sales,
        taxable_months_count=taxable_months,
        monthly_reports=monthly,
    )
