"""Turn a new meter reading into a candidate bill."""

from datetime import datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, NamedTuple

from src.models.bill import Bill
from src.models.customer import Customer
from src.services.arrears import calculate_arrears
from src.services.billing_period import as_utc, period_of
from src.services.errors import InvalidReadingError
from src.services.penalty_policy import PenaltyPolicy
from src.services.tariff import TariffTable

CENT = Decimal("0.01")


class BillPreview(NamedTuple):
    """What recording a reading would produce, including arrears."""

    previous_reading: int
    current_reading: int
    usage: int
    per_unit_rate: Decimal
    base_fee: Decimal
    usage_fee: Decimal
    penalty: Decimal
    amount: Decimal
    arrears_count: int
    arrears_total: Decimal
    total_payable: Decimal


def validate_reading(customer: Customer, new_reading: int) -> int:
    """Reject readings that would give negative usage.

    Raises:
        InvalidReadingError: If new_reading is negative or below last_reading
    """
    if isinstance(new_reading, bool) or not isinstance(new_reading, int):
        raise InvalidReadingError(new_reading, customer.last_reading)
    if new_reading < 0 or new_reading < customer.last_reading:
        raise InvalidReadingError(new_reading, customer.last_reading)
    return new_reading


def compile_bill(
    customer: Customer,
    new_reading: int,
    now: datetime,
    tariffs: TariffTable,
    policy: PenaltyPolicy,
    tz: tzinfo,
) -> Bill:
    """Build an unpaid, unsaved Bill for a new reading.

    Formula: amount = base_fee + usage × per_unit_rate + penalty

    The customer is not modified; advancing last_reading is the caller's
    job and must be committed together with the bill.

    Raises:
        InvalidReadingError: If new_reading is below the customer's last reading
    """
    validate_reading(customer, new_reading)

    tariff = tariffs.lookup(customer.category)
    usage = new_reading - customer.last_reading
    usage_fee = (Decimal(usage) * tariff.per_unit_rate).quantize(CENT, rounding=ROUND_HALF_UP)
    penalty = policy.penalty_at_record(customer.category, now)

    return Bill(
        customer_id=customer.id,
        period=period_of(now, tz),
        previous_reading=customer.last_reading,
        current_reading=new_reading,
        usage=usage,
        base_fee=tariff.base_fee,
        usage_fee=usage_fee,
        penalty=penalty,
        record_penalty=penalty,
        per_unit_rate=tariff.per_unit_rate,
        amount=tariff.base_fee + usage_fee + penalty,
        is_paid=False,
        paid_at=None,
        created_at=as_utc(now),
    )


def preview_bill(
    customer: Customer,
    new_reading: int,
    bills: Iterable[Bill],
    now: datetime,
    tariffs: TariffTable,
    policy: PenaltyPolicy,
    tz: tzinfo,
) -> BillPreview:
    """Compile without saving and add the customer's arrears at now."""
    bill = compile_bill(customer, new_reading, now, tariffs, policy, tz)
    arrears = calculate_arrears(bills, customer.id, now)
    return BillPreview(
        previous_reading=bill.previous_reading,
        current_reading=bill.current_reading,
        usage=bill.usage,
        per_unit_rate=bill.per_unit_rate,
        base_fee=bill.base_fee,
        usage_fee=bill.usage_fee,
        penalty=bill.penalty,
        amount=bill.amount,
        arrears_count=arrears.bill_count,
        arrears_total=arrears.total,
        total_payable=bill.amount + arrears.total,
    )


__all__ = ["BillPreview", "compile_bill", "preview_bill", "validate_reading"]
