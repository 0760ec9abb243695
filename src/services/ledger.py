"""Cash ledger: manual transactions plus income from settled bills.

Paid bills are never copied into the transactions table. They appear here
as computed inflow entries dated at their settlement timestamp, so the
ledger cannot drift from the bills' paid flag and amount. A bill counts
as income in the period it was paid, not the period it covers.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from math import ceil
from typing import Iterable, Mapping, NamedTuple

from src.models.bill import Bill
from src.models.customer import Customer
from src.models.transaction import Transaction, TransactionDirection
from src.services.billing_period import as_utc, period_of
from src.services.localizer import t

ZERO = Decimal(0)


class LedgerEntry(NamedTuple):
    """One line of the cash book."""

    key: str
    direction: TransactionDirection
    description: str
    amount: Decimal
    occurred_at: datetime
    is_manual: bool
    transaction_id: int | None = None
    source_bill_id: int | None = None


class LedgerSummary(NamedTuple):
    inflow: Decimal
    outflow: Decimal
    balance: Decimal


class LedgerPage(NamedTuple):
    entries: list[LedgerEntry]
    page: int
    total_pages: int


def customer_display_name(customers: Mapping[int, Customer], customer_id: int) -> str:
    """Customer name, or a placeholder for a bill whose customer is missing."""
    customer = customers.get(customer_id)
    if customer is None:
        return t("ledger.unknown_customer")
    return customer.name


def manual_entries(transactions: Iterable[Transaction]) -> list[LedgerEntry]:
    """Entries for stored rows.

    Rows tied to a bill are skipped; the bill itself is the income source.
    """
    return [
        LedgerEntry(
            key=f"tx-{tx.id}",
            direction=TransactionDirection(tx.direction),
            description=tx.description,
            amount=tx.amount,
            occurred_at=as_utc(tx.occurred_at),
            is_manual=tx.is_manual,
            transaction_id=tx.id,
            source_bill_id=tx.source_bill_id,
        )
        for tx in transactions
        if tx.source_bill_id is None
    ]


def bill_entries(bills: Iterable[Bill], customers: Mapping[int, Customer]) -> list[LedgerEntry]:
    """Inflow entries for paid bills, dated at settlement."""
    entries = []
    for bill in bills:
        if not bill.is_paid:
            continue
        # Rows settled before paid_at existed fall back to creation time
        occurred_at = bill.paid_at or bill.created_at
        entries.append(
            LedgerEntry(
                key=f"bill-{bill.id}",
                direction=TransactionDirection.INFLOW,
                description=t(
                    "ledger.bill_income",
                    name=customer_display_name(customers, bill.customer_id),
                ),
                amount=bill.amount,
                occurred_at=as_utc(occurred_at),
                is_manual=False,
                source_bill_id=bill.id,
            )
        )
    return entries


def ledger_entries(
    bills: Iterable[Bill],
    transactions: Iterable[Transaction],
    customers: Mapping[int, Customer],
) -> list[LedgerEntry]:
    """All cash-book entries, newest first."""
    entries = manual_entries(transactions) + bill_entries(bills, customers)
    entries.sort(key=lambda entry: (entry.occurred_at, entry.key), reverse=True)
    return entries


def entries_in_period(
    entries: Iterable[LedgerEntry], period: str | None, tz: tzinfo
) -> list[LedgerEntry]:
    """Entries whose date falls in period; all entries when period is None."""
    if period is None:
        return list(entries)
    return [entry for entry in entries if period_of(entry.occurred_at, tz) == period]


def summarize(entries: Iterable[LedgerEntry], period: str | None, tz: tzinfo) -> LedgerSummary:
    """Inflow, outflow and balance for a period, or lifetime when period is None."""
    inflow = ZERO
    outflow = ZERO
    for entry in entries_in_period(entries, period, tz):
        if entry.direction == TransactionDirection.INFLOW:
            inflow += entry.amount
        else:
            outflow += entry.amount
    return LedgerSummary(inflow=inflow, outflow=outflow, balance=inflow - outflow)


def period_summaries(entries: Iterable[LedgerEntry], tz: tzinfo) -> dict[str, LedgerSummary]:
    """Summary for every period that has at least one entry, oldest first."""
    by_period: dict[str, list[LedgerEntry]] = {}
    for entry in entries:
        by_period.setdefault(period_of(entry.occurred_at, tz), []).append(entry)
    return {
        period: summarize(period_entries, None, tz)
        for period, period_entries in sorted(by_period.items())
    }


def paginate(entries: list[LedgerEntry], page: int, per_page: int) -> LedgerPage:
    """Slice entries into pages (1-based); page is clamped to the valid range."""
    total_pages = max(1, ceil(len(entries) / per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page
    return LedgerPage(entries=entries[start : start + per_page], page=page, total_pages=total_pages)


__all__ = [
    "LedgerEntry",
    "LedgerPage",
    "LedgerSummary",
    "bill_entries",
    "customer_display_name",
    "entries_in_period",
    "ledger_entries",
    "manual_entries",
    "paginate",
    "period_summaries",
    "summarize",
]
