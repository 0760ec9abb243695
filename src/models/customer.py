"""Customer ORM model for the water connection roster."""

from enum import Enum

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class CustomerCategory(str, Enum):
    """Tariff category of a water connection."""

    STANDARD = "standard"
    """Household connection"""

    BUSINESS = "business"
    """Commercial connection, higher per-unit rate"""

    SOCIAL = "social"
    """Places of worship, schools etc: base fee only, no penalty"""


class Customer(Base, BaseModel):
    """
    A metered water connection.

    last_reading is advanced by the bill compiler every time a new reading
    is recorded; operators may also correct it directly. Customers are
    never deleted.
    """

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Customer full name",
    )
    address: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
        comment="Address / hamlet",
    )
    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Free-form phone number, normalized only when notifying",
    )
    category: Mapped[CustomerCategory] = mapped_column(
        nullable=False,
        default=CustomerCategory.STANDARD,
        comment="Tariff category",
    )
    last_reading: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Last recorded meter reading (m3)",
    )

    bills: Mapped[list["Bill"]] = relationship(  # noqa: F821
        "Bill",
        back_populates="customer",
        foreign_keys="Bill.customer_id",
    )

    __table_args__ = (Index("idx_customer_name", "name"),)

    def __repr__(self) -> str:
        return (
            f"<Customer(id={self.id}, name={self.name}, category={self.category}, "
            f"last_reading={self.last_reading})>"
        )


__all__ = ["Customer", "CustomerCategory"]
