"""Paid/unpaid transitions of a bill.

Each transition is computed as a SettlementChange holding all four
fields that move together (is_paid, penalty, amount, paid_at). Stores
must write a change as one unit; a reader never sees is_paid flipped
with a stale amount.
"""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from src.models.bill import Bill
from src.models.customer import CustomerCategory
from src.services.billing_period import as_utc
from src.services.penalty_policy import PenaltyPolicy


class SettlementChange(NamedTuple):
    """Field values a bill takes after a transition."""

    is_paid: bool
    penalty: Decimal
    amount: Decimal
    paid_at: datetime | None

    def as_values(self) -> dict:
        return self._asdict()


def expected_amount(bill: Bill, penalty: Decimal | None = None) -> Decimal:
    """base_fee + usage_fee + penalty (the bill's own penalty by default)."""
    if penalty is None:
        penalty = bill.penalty
    return bill.base_fee + bill.usage_fee + penalty


def is_consistent(bill: Bill) -> bool:
    """True when the stored amount matches its breakdown."""
    return bill.amount == expected_amount(bill)


def plan_mark_paid(
    bill: Bill,
    category: CustomerCategory,
    policy: PenaltyPolicy,
    now: datetime,
) -> SettlementChange | None:
    """Compute the paid state, or None if the bill is already paid."""
    if bill.is_paid:
        return None
    penalty = policy.penalty_at_settlement(bill, category, now)
    return SettlementChange(
        is_paid=True,
        penalty=penalty,
        amount=expected_amount(bill, penalty),
        paid_at=as_utc(now),
    )


def plan_mark_unpaid(bill: Bill) -> SettlementChange | None:
    """Compute the reverted state, or None if the bill is already unpaid.

    Reverting always clears the penalty, whatever the active policy.
    """
    if not bill.is_paid:
        return None
    penalty = Decimal(0)
    return SettlementChange(
        is_paid=False,
        penalty=penalty,
        amount=expected_amount(bill, penalty),
        paid_at=None,
    )


def apply_change(bill: Bill, change: SettlementChange | None) -> Bill:
    """Copy a change onto an in-memory bill (no-op for None)."""
    if change is not None:
        bill.is_paid = change.is_paid
        bill.penalty = change.penalty
        bill.amount = change.amount
        bill.paid_at = change.paid_at
    return bill


def mark_paid(
    bill: Bill, category: CustomerCategory, policy: PenaltyPolicy, now: datetime
) -> Bill:
    return apply_change(bill, plan_mark_paid(bill, category, policy, now))


def mark_unpaid(bill: Bill) -> Bill:
    return apply_change(bill, plan_mark_unpaid(bill))


__all__ = [
    "SettlementChange",
    "apply_change",
    "expected_amount",
    "is_consistent",
    "mark_paid",
    "mark_unpaid",
    "plan_mark_paid",
    "plan_mark_unpaid",
]
