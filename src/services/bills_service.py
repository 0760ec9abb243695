"""Meter recording and bill queries against the store."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.bill import Bill
from src.models.customer import Customer
from src.services.arrears import Arrears, calculate_arrears
from src.services.audit_service import AuditService
from src.services.bill_compiler import BillPreview, compile_bill, preview_bill, validate_reading
from src.services.billing_period import validate_period
from src.services.config import BillingSettings, get_settings
from src.services.db import commit_or_raise, flush_or_raise
from src.services.errors import NotFoundError, StaleWriteError, StoreError
from src.services.penalty_policy import PenaltyPolicy, get_penalty_policy
from src.services.snapshot_service import ChangeFeed
from src.services.tariff import TariffTable

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BillStatusFilter(str, Enum):
    ALL = "all"
    PAID = "paid"
    UNPAID = "unpaid"


class BillsService:
    """Async service for bill database operations.

    Recording a reading creates the bill and advances the customer's last
    reading in one database transaction. The advance is guarded by the
    reading the bill was computed from, so two operators recording the same
    meter at once cannot both succeed.
    """

    def __init__(
        self,
        session: AsyncSession,
        feed: ChangeFeed | None = None,
        settings: BillingSettings | None = None,
        policy: PenaltyPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize with async database session."""
        self.session = session
        self.feed = feed
        self.settings = settings or get_settings()
        self.tariffs = TariffTable.from_settings(self.settings)
        self.policy = policy or get_penalty_policy(self.settings, self.tariffs)
        self.clock = clock

    async def _get_customer(self, customer_id: int) -> Customer:
        customer = await self.session.get(Customer, customer_id, populate_existing=True)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    async def get_bill(self, bill_id: int) -> Bill:
        """Get bill by ID.

        Raises:
            NotFoundError: If no such bill exists
        """
        bill = await self.session.get(Bill, bill_id, populate_existing=True)
        if bill is None:
            raise NotFoundError("Bill", bill_id)
        return bill

    async def get_customer_bills(self, customer_id: int) -> list[Bill]:
        result = await self.session.execute(
            select(Bill)
            .where(Bill.customer_id == customer_id)
            .order_by(Bill.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_bills(
        self,
        status: BillStatusFilter = BillStatusFilter.ALL,
        period: str | None = None,
    ) -> list[Bill]:
        """List bills newest first, filtered by paid status and period."""
        stmt = select(Bill).order_by(Bill.created_at.desc(), Bill.id.desc())
        if status == BillStatusFilter.PAID:
            stmt = stmt.where(Bill.is_paid.is_(True))
        elif status == BillStatusFilter.UNPAID:
            stmt = stmt.where(Bill.is_paid.is_(False))
        if period is not None:
            stmt = stmt.where(Bill.period == validate_period(period))
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def preview_reading(self, customer_id: int, new_reading: int) -> BillPreview:
        """Compute what recording new_reading would charge, without writing."""
        customer = await self._get_customer(customer_id)
        bills = await self.get_customer_bills(customer_id)
        return preview_bill(
            customer,
            new_reading,
            bills,
            self.clock(),
            self.tariffs,
            self.policy,
            self.settings.tzinfo,
        )

    async def arrears_for(self, bill: Bill) -> Arrears:
        """Unpaid bills of the bill's customer created before it."""
        bills = await self.get_customer_bills(bill.customer_id)
        return calculate_arrears(bills, bill.customer_id, bill.created_at)

    async def record_reading(
        self,
        customer_id: int,
        new_reading: int,
        actor: str | None = None,
    ) -> Bill:
        """Create a bill from a new meter reading and advance the customer's meter.

        Args:
            customer_id: Customer whose meter was read
            new_reading: Reading on the meter (m3), >= customer's last reading
            actor: Operator recording the reading (for audit)

        Returns:
            Created unpaid Bill

        Raises:
            NotFoundError: If the customer does not exist
            InvalidReadingError: If new_reading is below the last reading
            StaleWriteError: If the meter was advanced concurrently
            StoreError: If the write failed
        """
        customer = await self._get_customer(customer_id)
        validate_reading(customer, new_reading)

        now = self.clock()
        bill = compile_bill(
            customer, new_reading, now, self.tariffs, self.policy, self.settings.tzinfo
        )
        previous_reading = customer.last_reading

        try:
            result = await self.session.execute(
                update(Customer)
                .where(Customer.id == customer_id, Customer.last_reading == previous_reading)
                .values(last_reading=new_reading)
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to advance meter for customer %d: %s", customer_id, e)
            raise StoreError("Failed to save meter reading, please retry") from e

        if result.rowcount != 1:
            await self.session.rollback()
            raise StaleWriteError(
                f"Meter of customer {customer_id} changed while recording, please retry"
            )

        self.session.add(bill)
        await flush_or_raise(self.session, "bill")

        AuditService.log(
            session=self.session,
            entity_type="bill",
            entity_id=bill.id,
            action="create",
            actor=actor,
            changes={
                "customer_id": customer_id,
                "period": bill.period,
                "previous_reading": bill.previous_reading,
                "current_reading": bill.current_reading,
                "usage": bill.usage,
                "penalty": str(bill.penalty),
                "amount": str(bill.amount),
            },
        )
        await commit_or_raise(self.session, "bill")

        logger.info(
            "Recorded reading %d for customer %d: bill %d usage=%d amount=%s",
            new_reading,
            customer_id,
            bill.id,
            bill.usage,
            bill.amount,
        )

        if self.feed:
            await self.feed.publish(self.session)
        return bill


__all__ = ["BillStatusFilter", "BillsService", "utcnow"]
