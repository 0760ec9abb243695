"""Monthly cash report as delimited text for spreadsheet tools."""

import csv
import io
from datetime import tzinfo
from decimal import Decimal
from typing import Iterable, NamedTuple

from src.models.bill import Bill
from src.models.customer import Customer
from src.models.transaction import Transaction
from src.services.arrears import calculate_arrears
from src.services.billing_period import as_utc, validate_period
from src.services.ledger import customer_display_name, ledger_entries, summarize
from src.services.localizer import t


class ReportRow(NamedTuple):
    customer_name: str
    previous_reading: int
    current_reading: int
    charge: Decimal
    penalty: Decimal
    arrears: Decimal
    is_paid: bool


class MonthlyReport(NamedTuple):
    period: str
    total_inflow: Decimal
    total_outflow: Decimal
    period_balance: Decimal
    lifetime_balance: Decimal
    rows: list[ReportRow]


def build_monthly_report(
    customers: Iterable[Customer],
    bills: Iterable[Bill],
    transactions: Iterable[Transaction],
    period: str,
    tz: tzinfo,
) -> MonthlyReport:
    """Project a period's ledger and bills into report rows.

    Charge is the pre-penalty amount (base + usage fee). Arrears are the
    customer's unpaid bills created before each bill, as they stand now.
    Rows are sorted by customer name.
    """
    validate_period(period)
    bills = list(bills)
    customers_by_id = {customer.id: customer for customer in customers}
    entries = ledger_entries(bills, transactions, customers_by_id)
    period_summary = summarize(entries, period, tz)
    lifetime_summary = summarize(entries, None, tz)

    rows = []
    for bill in sorted(
        (bill for bill in bills if bill.period == period),
        key=lambda bill: (
            customer_display_name(customers_by_id, bill.customer_id).casefold(),
            as_utc(bill.created_at),
        ),
    ):
        rows.append(
            ReportRow(
                customer_name=customer_display_name(customers_by_id, bill.customer_id),
                previous_reading=bill.previous_reading,
                current_reading=bill.current_reading,
                charge=bill.base_fee + bill.usage_fee,
                penalty=bill.penalty,
                arrears=calculate_arrears(bills, bill.customer_id, bill.created_at).total,
                is_paid=bill.is_paid,
            )
        )

    return MonthlyReport(
        period=period,
        total_inflow=period_summary.inflow,
        total_outflow=period_summary.outflow,
        period_balance=period_summary.balance,
        lifetime_balance=lifetime_summary.balance,
        rows=rows,
    )


def _money(value: Decimal) -> str:
    return str(value.quantize(Decimal(1)) if value == value.to_integral_value() else value)


def render_csv(report: MonthlyReport, delimiter: str = ",") -> str:
    """Summary block, blank line, then one row per bill."""
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, lineterminator="\n")

    writer.writerow([t("report.title")])
    writer.writerow([t("report.period"), report.period])
    writer.writerow([t("report.total_inflow"), _money(report.total_inflow)])
    writer.writerow([t("report.total_outflow"), _money(report.total_outflow)])
    writer.writerow([t("report.period_balance"), _money(report.period_balance)])
    writer.writerow([t("report.lifetime_balance"), _money(report.lifetime_balance)])
    writer.writerow([])
    writer.writerow(
        [
            t("report.customer"),
            t("report.previous_reading"),
            t("report.current_reading"),
            t("report.charge"),
            t("report.penalty"),
            t("report.arrears"),
            t("report.status"),
        ]
    )
    for row in report.rows:
        writer.writerow(
            [
                row.customer_name,
                row.previous_reading,
                row.current_reading,
                _money(row.charge),
                _money(row.penalty),
                _money(row.arrears),
                t("bill.status_paid") if row.is_paid else t("bill.status_unpaid"),
            ]
        )
    return output.getvalue()


def report_filename(period: str) -> str:
    return t("report.filename", period=validate_period(period))


__all__ = [
    "MonthlyReport",
    "ReportRow",
    "build_monthly_report",
    "render_csv",
    "report_filename",
]
