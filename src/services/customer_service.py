"""Customer roster operations."""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.customer import Customer, CustomerCategory
from src.services.audit_service import AuditService
from src.services.db import commit_or_raise, flush_or_raise
from src.services.errors import BillingValidationError, MissingFieldError, NotFoundError
from src.services.snapshot_service import ChangeFeed

logger = logging.getLogger(__name__)

_UNSET = object()


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise MissingFieldError("name")
    return cleaned


def _escape_like(text: str) -> str:
    """Match %, _ and backslash literally in a LIKE pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _clean_reading(reading: int) -> int:
    if isinstance(reading, bool) or not isinstance(reading, int) or reading < 0:
        raise BillingValidationError("Meter reading must be a non-negative integer")
    return reading


class CustomerService:
    """Create, update and list customers."""

    def __init__(self, session: AsyncSession, feed: ChangeFeed | None = None):
        self.session = session
        self.feed = feed

    async def get(self, customer_id: int) -> Customer:
        """Get customer by ID.

        Raises:
            NotFoundError: If no such customer exists
        """
        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    async def list_customers(self, search: str | None = None) -> list[Customer]:
        """List customers by name, optionally filtered by name/address substring."""
        stmt = select(Customer).order_by(func.lower(Customer.name), Customer.created_at)
        if search and search.strip():
            pattern = f"%{_escape_like(search.strip().lower())}%"
            stmt = stmt.where(
                or_(
                    func.lower(Customer.name).like(pattern, escape="\\"),
                    func.lower(Customer.address).like(pattern, escape="\\"),
                )
            )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_customer(
        self,
        name: str,
        address: str = "",
        phone: str | None = None,
        category: CustomerCategory = CustomerCategory.STANDARD,
        initial_reading: int = 0,
        actor: str | None = None,
    ) -> Customer:
        """Add a customer to the roster.

        Raises:
            MissingFieldError: If name is empty
            BillingValidationError: If initial_reading is negative
            StoreError: If the write failed
        """
        customer = Customer(
            name=_clean_name(name),
            address=(address or "").strip(),
            phone=(phone or "").strip() or None,
            category=CustomerCategory(category),
            last_reading=_clean_reading(initial_reading),
        )
        self.session.add(customer)
        await flush_or_raise(self.session, "customer")

        AuditService.log(
            session=self.session,
            entity_type="customer",
            entity_id=customer.id,
            action="create",
            actor=actor,
            changes={
                "name": customer.name,
                "category": customer.category.value,
                "last_reading": customer.last_reading,
            },
        )
        await commit_or_raise(self.session, "customer")
        logger.info("Created customer %d (%s)", customer.id, customer.name)

        if self.feed:
            await self.feed.publish(self.session)
        return customer

    async def update_customer(
        self,
        customer_id: int,
        *,
        name=_UNSET,
        address=_UNSET,
        phone=_UNSET,
        category=_UNSET,
        last_reading=_UNSET,
        actor: str | None = None,
    ) -> Customer:
        """Update roster fields; omitted fields keep their value.

        last_reading may be corrected here by an operator; bills already
        recorded keep their own readings.
        """
        customer = await self.get(customer_id)
        changes: dict = {}

        if name is not _UNSET:
            changes["name"] = _clean_name(name)
        if address is not _UNSET:
            changes["address"] = (address or "").strip()
        if phone is not _UNSET:
            changes["phone"] = (phone or "").strip() or None
        if category is not _UNSET:
            changes["category"] = CustomerCategory(category)
        if last_reading is not _UNSET:
            changes["last_reading"] = _clean_reading(last_reading)

        for field_name, value in changes.items():
            setattr(customer, field_name, value)

        AuditService.log(
            session=self.session,
            entity_type="customer",
            entity_id=customer.id,
            action="update",
            actor=actor,
            changes=changes,
        )
        await commit_or_raise(self.session, "customer")
        logger.info("Updated customer %d fields=%s", customer.id, sorted(changes))

        if self.feed:
            await self.feed.publish(self.session)
        return customer


__all__ = ["CustomerService"]
