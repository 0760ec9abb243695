"""Tariff table: per-category usage rate and base fee."""

from decimal import Decimal
from typing import Mapping, NamedTuple

from src.models.customer import CustomerCategory
from src.services.config import BillingSettings


class Tariff(NamedTuple):
    """Charges applying to one customer category."""

    per_unit_rate: Decimal
    base_fee: Decimal


class TariffTable:
    """Static lookup from customer category to tariff.

    Also carries the late-payment constants (penalty amount and due day)
    used by the penalty policy.
    """

    def __init__(
        self,
        tariffs: Mapping[CustomerCategory, Tariff],
        penalty_amount: Decimal,
        due_day: int,
    ):
        self._tariffs = dict(tariffs)
        self.penalty_amount = penalty_amount
        self.due_day = due_day

    @classmethod
    def from_settings(cls, settings: BillingSettings) -> "TariffTable":
        return cls(
            {
                CustomerCategory.STANDARD: Tariff(settings.standard_rate, settings.base_fee),
                CustomerCategory.BUSINESS: Tariff(settings.business_rate, settings.base_fee),
                CustomerCategory.SOCIAL: Tariff(settings.social_rate, settings.base_fee),
            },
            penalty_amount=settings.penalty_amount,
            due_day=settings.penalty_due_day,
        )

    def lookup(self, category: CustomerCategory) -> Tariff:
        """Get tariff for a category.

        Raises:
            KeyError: For a category the table does not define
        """
        try:
            return self._tariffs[CustomerCategory(category)]
        except (KeyError, ValueError):
            raise KeyError(f"No tariff defined for category {category!r}") from None

    def categories(self) -> list[CustomerCategory]:
        return list(self._tariffs)


__all__ = ["Tariff", "TariffTable"]
