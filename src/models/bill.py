"""Bill ORM model for metered water charges."""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class BillDetails(NamedTuple):
    """Charge breakdown of a bill."""

    base_fee: Decimal
    usage_fee: Decimal
    penalty: Decimal
    per_unit_rate: Decimal


class Bill(Base, BaseModel):
    """
    One meter reading turned into a charge for a billing period.

    Readings, usage and record_penalty never change after creation. Only
    penalty, amount, is_paid and paid_at move, and always together through
    settlement, so amount == base_fee + usage_fee + penalty holds for every
    stored row.
    """

    __tablename__ = "bills"

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"),
        nullable=False,
        index=True,
        comment="Owning customer",
    )
    period: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        index=True,
        comment="Billing period YYYY-MM",
    )

    previous_reading: Mapped[int] = mapped_column(Integer, nullable=False)
    current_reading: Mapped[int] = mapped_column(Integer, nullable=False)
    usage: Mapped[int] = mapped_column(Integer, nullable=False, comment="Usage in m3")

    # Charge breakdown
    base_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    usage_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    penalty: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal(0))
    record_penalty: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Penalty decided when the reading was recorded",
    )
    per_unit_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="base_fee + usage_fee + penalty",
    )

    # Settlement
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Settlement timestamp, cleared on revert",
    )

    customer: Mapped["Customer"] = relationship(  # noqa: F821
        "Customer",
        back_populates="bills",
        foreign_keys=[customer_id],
    )

    __table_args__ = (
        Index("idx_bill_customer_paid", "customer_id", "is_paid"),
        Index("idx_bill_period_paid", "period", "is_paid"),
    )

    @property
    def details(self) -> BillDetails:
        return BillDetails(
            base_fee=self.base_fee,
            usage_fee=self.usage_fee,
            penalty=self.penalty,
            per_unit_rate=self.per_unit_rate,
        )

    def __repr__(self) -> str:
        return (
            f"<Bill(id={self.id}, customer_id={self.customer_id}, period={self.period}, "
            f"usage={self.usage}, amount={self.amount}, is_paid={self.is_paid})>"
        )


__all__ = ["Bill", "BillDetails"]
