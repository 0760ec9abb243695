"""Late-payment penalty policies.

Exactly one policy is active for the whole system (``PENALTY_POLICY``
setting). Bill creation and settlement both ask the same policy object,
so the two can never disagree about when a penalty is decided.

- record: penalty is decided from the day of month the reading was
  recorded and kept on the bill as record_penalty. Settlement restores
  that value, so later changes to the customer category or to the
  penalty settings do not affect bills already recorded.
- settlement: bills are created without penalty. On settlement the
  penalty applies if the bill's period is already over, or if it is paid
  in its own period after the due day.

Social connections never pay a penalty.
"""

from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from decimal import Decimal

from src.models.bill import Bill
from src.models.customer import CustomerCategory
from src.services.billing_period import local_time, period_of
from src.services.config import BillingSettings, PenaltyPolicyMode, get_settings
from src.services.tariff import TariffTable

ZERO = Decimal(0)


class PenaltyPolicy(ABC):
    """Decides the penalty for a bill at a given instant."""

    mode: PenaltyPolicyMode

    def __init__(self, tariffs: TariffTable, tz: tzinfo):
        self.tariffs = tariffs
        self.tz = tz

    def is_exempt(self, category: CustomerCategory) -> bool:
        return CustomerCategory(category) == CustomerCategory.SOCIAL

    def is_past_due_day(self, instant: datetime) -> bool:
        return local_time(instant, self.tz).day > self.tariffs.due_day

    @abstractmethod
    def penalty_at_record(self, category: CustomerCategory, recorded_at: datetime) -> Decimal:
        """Penalty to put on a bill being created at recorded_at."""

    @abstractmethod
    def penalty_at_settlement(
        self, bill: Bill, category: CustomerCategory, settled_at: datetime
    ) -> Decimal:
        """Penalty the bill carries once marked paid at settled_at."""


class RecordTimePenaltyPolicy(PenaltyPolicy):
    mode = PenaltyPolicyMode.RECORD

    def penalty_at_record(self, category: CustomerCategory, recorded_at: datetime) -> Decimal:
        if self.is_exempt(category):
            return ZERO
        return self.tariffs.penalty_amount if self.is_past_due_day(recorded_at) else ZERO

    def penalty_at_settlement(
        self, bill: Bill, category: CustomerCategory, settled_at: datetime
    ) -> Decimal:
        if bill.record_penalty is not None:
            return bill.record_penalty
        # Rows recorded before record_penalty existed
        return self.penalty_at_record(category, bill.created_at)


class SettlementTimePenaltyPolicy(PenaltyPolicy):
    mode = PenaltyPolicyMode.SETTLEMENT

    def penalty_at_record(self, category: CustomerCategory, recorded_at: datetime) -> Decimal:
        return ZERO

    def penalty_at_settlement(
        self, bill: Bill, category: CustomerCategory, settled_at: datetime
    ) -> Decimal:
        if self.is_exempt(category):
            return ZERO

        settlement_period = period_of(settled_at, self.tz)
        if bill.period < settlement_period:
            return self.tariffs.penalty_amount
        if bill.period == settlement_period and self.is_past_due_day(settled_at):
            return self.tariffs.penalty_amount
        return ZERO


_POLICIES: dict[PenaltyPolicyMode, type[PenaltyPolicy]] = {
    PenaltyPolicyMode.RECORD: RecordTimePenaltyPolicy,
    PenaltyPolicyMode.SETTLEMENT: SettlementTimePenaltyPolicy,
}


def get_penalty_policy(
    settings: BillingSettings | None = None,
    tariffs: TariffTable | None = None,
) -> PenaltyPolicy:
    """Build the configured system-wide penalty policy."""
    settings = settings or get_settings()
    tariffs = tariffs or TariffTable.from_settings(settings)
    return _POLICIES[settings.penalty_policy](tariffs, settings.tzinfo)


__all__ = [
    "PenaltyPolicy",
    "RecordTimePenaltyPolicy",
    "SettlementTimePenaltyPolicy",
    "get_penalty_policy",
]
