"""Transaction ORM model for manual cash-book entries."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class TransactionDirection(str, Enum):
    """Direction of cash movement."""

    INFLOW = "in"
    OUTFLOW = "out"


class Transaction(Base, BaseModel):
    """Model representing a cash movement entered by an operator.

    Only manual entries are stored. Income from settled bills is derived
    from the bills table by the ledger and never written here, so
    is_manual is True for every row created by this system; the column and
    source_bill_id exist for rows imported from older data. Rows with a
    source_bill_id are left out of the ledger, since the paid bill already
    counts as income.
    """

    __tablename__ = "transactions"

    direction: Mapped[TransactionDirection] = mapped_column(
        nullable=False,
        index=True,
        comment="in = income, out = expense",
    )
    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="What the money was for",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Positive amount",
    )
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="When the cash moved",
    )
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    source_bill_id: Mapped[int | None] = mapped_column(
        ForeignKey("bills.id"),
        nullable=True,
        comment="Bill this entry was synthesized from, if any",
    )

    __table_args__ = (Index("idx_transaction_direction_date", "direction", "occurred_at"),)

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, direction={self.direction}, amount={self.amount}, "
            f"occurred_at={self.occurred_at})>"
        )


__all__ = ["Transaction", "TransactionDirection"]
