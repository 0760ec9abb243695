"""Mark bills paid or unpaid in the store."""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.bill import Bill
from src.models.customer import Customer
from src.services.audit_service import AuditService
from src.services.bills_service import utcnow
from src.services.config import BillingSettings, get_settings
from src.services.db import commit_or_raise
from src.services.errors import InconsistentStateError, NotFoundError, StaleWriteError, StoreError
from src.services.penalty_policy import PenaltyPolicy, get_penalty_policy
from src.services.settlement import SettlementChange, plan_mark_paid, plan_mark_unpaid
from src.services.snapshot_service import ChangeFeed

logger = logging.getLogger(__name__)


class SettlementService:
    """Settle and revert bills.

    Each transition is written as a single UPDATE of is_paid, penalty,
    amount and paid_at, guarded on the bill still being in the state the
    change was computed from. Marking a bill that already is in the
    requested state is a no-op, also when another operator got there first.
    """

    def __init__(
        self,
        session: AsyncSession,
        feed: ChangeFeed | None = None,
        settings: BillingSettings | None = None,
        policy: PenaltyPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.feed = feed
        self.settings = settings or get_settings()
        self.policy = policy or get_penalty_policy(self.settings)
        self.clock = clock

    async def _get_bill(self, bill_id: int) -> Bill:
        bill = await self.session.get(Bill, bill_id, populate_existing=True)
        if bill is None:
            raise NotFoundError("Bill", bill_id)
        return bill

    async def mark_paid(self, bill_id: int, actor: str | None = None) -> Bill:
        """Settle a bill, fixing its final penalty and amount.

        Raises:
            NotFoundError: If the bill does not exist
            InconsistentStateError: If the bill's customer no longer exists
            StaleWriteError: If another operator changed the bill meanwhile
            StoreError: If the write failed
        """
        bill = await self._get_bill(bill_id)
        if bill.is_paid:
            logger.debug("Bill %d already paid, nothing to do", bill_id)
            return bill

        customer = await self.session.get(Customer, bill.customer_id, populate_existing=True)
        if customer is None:
            raise InconsistentStateError(
                f"Bill {bill_id} references missing customer {bill.customer_id}"
            )

        change = plan_mark_paid(bill, customer.category, self.policy, self.clock())
        return await self._write(bill, change, "mark_paid", actor)

    async def mark_unpaid(self, bill_id: int, actor: str | None = None) -> Bill:
        """Revert a settled bill; penalty is cleared and amount recomputed.

        Raises:
            NotFoundError: If the bill does not exist
            StaleWriteError: If another operator changed the bill meanwhile
            StoreError: If the write failed
        """
        bill = await self._get_bill(bill_id)
        change = plan_mark_unpaid(bill)
        if change is None:
            logger.debug("Bill %d already unpaid, nothing to do", bill_id)
            return bill
        return await self._write(bill, change, "mark_unpaid", actor)

    async def _write(
        self, bill: Bill, change: SettlementChange, action: str, actor: str | None
    ) -> Bill:
        # Rollback expires the instance; keep the key for messages and the re-read
        bill_id = bill.id
        previous = {
            "is_paid": bill.is_paid,
            "penalty": str(bill.penalty),
            "amount": str(bill.amount),
        }
        try:
            result = await self.session.execute(
                update(Bill)
                .where(Bill.id == bill_id, Bill.is_paid == (not change.is_paid))
                .values(**change.as_values())
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to %s bill %d: %s", action, bill_id, e)
            raise StoreError(f"Failed to update bill {bill_id}, please retry") from e

        if result.rowcount != 1:
            await self.session.rollback()
            return await self._settled_meanwhile(bill_id, change, action)

        AuditService.log(
            session=self.session,
            entity_type="bill",
            entity_id=bill_id,
            action=action,
            actor=actor,
            changes={
                "before": previous,
                "after": {
                    "is_paid": change.is_paid,
                    "penalty": change.penalty,
                    "amount": change.amount,
                    "paid_at": change.paid_at,
                },
            },
        )
        await commit_or_raise(self.session, "bill settlement")
        await self.session.refresh(bill)

        logger.info(
            "Bill %d %s: penalty=%s amount=%s",
            bill.id,
            action,
            bill.penalty,
            bill.amount,
        )

        if self.feed:
            await self.feed.publish(self.session)
        return bill

    async def _settled_meanwhile(
        self, bill_id: int, change: SettlementChange, action: str
    ) -> Bill:
        """Resolve a guarded update that matched no row.

        Another operator already moving the bill to the requested state makes
        this call a no-op; anything else is a stale write.
        """
        bill = await self.session.get(Bill, bill_id, populate_existing=True)
        if bill is None:
            raise NotFoundError("Bill", bill_id)
        if bill.is_paid == change.is_paid:
            logger.info("Bill %d: %s already applied by another operator", bill_id, action)
            return bill
        raise StaleWriteError(f"Bill {bill_id} changed concurrently, please retry")


__all__ = ["SettlementService"]
