"""Bill notices for customers.

Only the content and destination are built here; delivery is left to a
MessageSender. The default sender produces a WhatsApp click-to-chat link,
which is how the cooperative's operators send bills from their phones.
"""

import logging
import re
from typing import Callable, Protocol
from urllib.parse import quote

from src.models.bill import Bill
from src.models.customer import Customer
from src.services.arrears import Arrears
from src.services.config import BillingSettings, get_settings
from src.services.localizer import t
from src.services.locale_service import format_amount, format_period, pad_meter

logger = logging.getLogger(__name__)

# Shorter digit strings are local extensions, not dialable numbers
MIN_PREFIXABLE_DIGITS = 6


def normalize_phone(phone: str | None, country_code: str) -> str | None:
    """Convert a free-form phone number to international digits.

    Examples:
        >>> normalize_phone("0812-3456-789", "62")
        '628123456789'
        >>> normalize_phone("+62 812 3456 789", "62")
        '628123456789'
        >>> normalize_phone("", "62") is None
        True
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return None
    if digits.startswith("0"):
        return country_code + digits[1:]
    if not digits.startswith(country_code) and len(digits) >= MIN_PREFIXABLE_DIGITS:
        return country_code + digits
    return digits


def build_bill_notice(
    customer: Customer,
    bill: Bill,
    arrears: Arrears,
    organization: str,
) -> str:
    """Compose the bill message sent to a customer."""
    lines = [
        t("notice.header", organization=organization),
        "",
        t("notice.greeting", name=customer.name),
        t("notice.period", period=format_period(bill.period)),
        t("notice.category", category=t(f"category.{customer.category.value}")),
        "",
        t("notice.meter_title"),
        t("notice.previous_reading", value=pad_meter(bill.previous_reading)),
        t("notice.current_reading", value=pad_meter(bill.current_reading)),
        t("notice.usage", usage=bill.usage),
        "",
        t("notice.charges_title"),
        t("notice.base_fee", amount=format_amount(bill.base_fee)),
        t("notice.usage_fee", amount=format_amount(bill.usage_fee)),
        t("notice.usage_formula", usage=bill.usage, rate=format_amount(bill.per_unit_rate)),
    ]
    if bill.penalty > 0:
        lines.append(t("notice.penalty", amount=format_amount(bill.penalty)))

    if arrears.total > 0:
        lines.append(t("notice.separator"))
        lines.append(t("notice.current_bill", amount=format_amount(bill.amount)))
        lines.append(
            t("notice.arrears", count=arrears.bill_count, amount=format_amount(arrears.total))
        )

    lines.append("")
    lines.append(t("notice.total", amount=format_amount(bill.amount + arrears.total)))
    lines.append("")
    lines.append(t("notice.closing", organization=organization))
    return "\n".join(lines)


class MessageSender(Protocol):
    def send(self, destination: str, text: str) -> str | None:
        """Hand a message over for delivery; no confirmation is awaited."""


class WhatsAppLinkSender:
    """Turn a message into a wa.me link and pass it to an opener."""

    BASE_URL = "https://wa.me"

    def __init__(self, opener: Callable[[str], None] | None = None):
        self.opener = opener

    def build_link(self, destination: str, text: str) -> str:
        return f"{self.BASE_URL}/{destination}?text={quote(text, safe='')}"

    def send(self, destination: str, text: str) -> str:
        link = self.build_link(destination, text)
        if self.opener is not None:
            self.opener(link)
        else:
            logger.info("Bill notice link for %s: %s", destination, link)
        return link


class NotificationService:
    """Send bill notices to customers that have a phone number."""

    def __init__(
        self,
        sender: MessageSender | None = None,
        settings: BillingSettings | None = None,
    ):
        self.sender = sender or WhatsAppLinkSender()
        self.settings = settings or get_settings()

    def destination_for(self, customer: Customer) -> str | None:
        return normalize_phone(customer.phone, self.settings.country_code)

    def notify_new_bill(self, customer: Customer, bill: Bill, arrears: Arrears) -> str | None:
        """Send the notice for a freshly recorded bill.

        Returns:
            Whatever the sender returned, or None when the customer has no phone
        """
        destination = self.destination_for(customer)
        if destination is None:
            logger.debug("Customer %s has no phone, bill %s not sent", customer.id, bill.id)
            return None

        text = build_bill_notice(customer, bill, arrears, self.settings.organization_name)
        result = self.sender.send(destination, text)
        logger.info("Sent bill %s notice to customer %s", bill.id, customer.id)
        return result


__all__ = [
    "MessageSender",
    "NotificationService",
    "WhatsAppLinkSender",
    "build_bill_notice",
    "normalize_phone",
]
