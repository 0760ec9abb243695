"""Full-collection snapshots and change notifications.

Every committed mutation is followed by a publish: subscribers receive the
complete current customers/bills/transactions contents, never a diff.
Engine functions are run against a snapshot and keep no state between
snapshots, so re-running them on each publish is always safe.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.bill import Bill
from src.models.customer import Customer
from src.models.transaction import Transaction
from src.services.settlement import is_consistent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time contents of the three collections."""

    customers: tuple[Customer, ...] = ()
    bills: tuple[Bill, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    customers_by_id: dict[int, Customer] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "customers_by_id", {customer.id: customer for customer in self.customers}
        )


SnapshotCallback = Callable[[Snapshot], None]


class SnapshotService:
    """Load snapshots from the store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self) -> Snapshot:
        """Read all customers, bills and transactions.

        Rows are re-read from the database even if already in the session,
        so a concurrent edit by another operator is always visible.
        """
        customers = await self._all(
            select(Customer).order_by(Customer.name.asc(), Customer.created_at.asc())
        )
        bills = await self._all(select(Bill).order_by(Bill.created_at.desc(), Bill.id.desc()))
        transactions = await self._all(
            select(Transaction).order_by(Transaction.occurred_at.desc(), Transaction.id.desc())
        )

        for bill in bills:
            if not is_consistent(bill):
                logger.warning(
                    "Bill %s amount %s does not match breakdown %s + %s + %s",
                    bill.id,
                    bill.amount,
                    bill.base_fee,
                    bill.usage_fee,
                    bill.penalty,
                )

        return Snapshot(
            customers=tuple(customers),
            bills=tuple(bills),
            transactions=tuple(transactions),
        )

    async def _all(self, stmt) -> list:
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())


class ChangeFeed:
    """Push-based subscription delivering a fresh snapshot after each change."""

    def __init__(self):
        self._subscribers: list[SnapshotCallback] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, session: AsyncSession) -> Snapshot | None:
        """Load a snapshot and deliver it to every subscriber.

        A subscriber that raises is logged and skipped; the others still
        receive the snapshot.
        """
        if not self._subscribers:
            return None

        snapshot = await SnapshotService(session).load()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber %r failed", callback)
        return snapshot


__all__ = ["ChangeFeed", "Snapshot", "SnapshotCallback", "SnapshotService"]
