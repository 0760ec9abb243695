"""Outstanding balance of a customer's earlier unpaid bills.

Always recomputed from the full bill set; there is no stored running
balance to keep in sync.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, NamedTuple

from src.models.bill import Bill
from src.services.billing_period import as_utc


class Arrears(NamedTuple):
    """Unpaid bills created before a cutoff."""

    bill_count: int
    total: Decimal


def unpaid_bills_before(bills: Iterable[Bill], customer_id: int, cutoff: datetime) -> list[Bill]:
    """Unpaid bills of one customer created strictly before cutoff, oldest first."""
    cutoff = as_utc(cutoff)
    unpaid = [
        bill
        for bill in bills
        if bill.customer_id == customer_id
        and not bill.is_paid
        and as_utc(bill.created_at) < cutoff
    ]
    unpaid.sort(key=lambda bill: as_utc(bill.created_at))
    return unpaid


def calculate_arrears(bills: Iterable[Bill], customer_id: int, cutoff: datetime) -> Arrears:
    """Sum amounts of a customer's unpaid bills created before cutoff.

    Zero (not an error) when there are none.
    """
    unpaid = unpaid_bills_before(bills, customer_id, cutoff)
    return Arrears(
        bill_count=len(unpaid),
        total=sum((bill.amount for bill in unpaid), Decimal(0)),
    )


__all__ = ["Arrears", "calculate_arrears", "unpaid_bills_before"]
