"""Unit tests for bill notices and phone normalization."""

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from src.models.bill import Bill
from src.models.customer import Customer, CustomerCategory
from src.services.arrears import Arrears
from src.services.config import BillingSettings
from src.services.notification_service import (
    NotificationService,
    WhatsAppLinkSender,
    build_bill_notice,
    normalize_phone,
)

JAKARTA = ZoneInfo("Asia/Jakarta")
NO_ARREARS = Arrears(bill_count=0, total=Decimal(0))


class RecordingSender:
    def __init__(self):
        self.sent = []

    def send(self, destination, text):
        self.sent.append((destination, text))
        return "sent"


def _customer(phone="0812-3456-789") -> Customer:
    return Customer(
        id=1, name="Budi", phone=phone, category=CustomerCategory.STANDARD, last_reading=115
    )


def _bill(penalty="0") -> Bill:
    penalty = Decimal(penalty)
    return Bill(
        id=10,
        customer_id=1,
        period="2024-01",
        previous_reading=100,
        current_reading=115,
        usage=15,
        base_fee=Decimal("7000"),
        usage_fee=Decimal("22500"),
        penalty=penalty,
        per_unit_rate=Decimal("1500"),
        amount=Decimal("29500") + penalty,
        is_paid=False,
        created_at=datetime(2024, 1, 5, 9, tzinfo=JAKARTA),
    )


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "phone,expected",
        [
            ("0812-3456-789", "628123456789"),
            ("+62 812 3456 789", "628123456789"),
            ("628123456789", "628123456789"),
            ("8123456789", "628123456789"),
            ("12345", "12345"),
        ],
    )
    def test_normalize(self, phone, expected):
        assert normalize_phone(phone, "62") == expected

    @pytest.mark.parametrize("phone", ["", None, "n/a", " - "])
    def test_no_digits(self, phone):
        assert normalize_phone(phone, "62") is None


class TestBuildBillNotice:
    def test_content(self):
        text = build_bill_notice(_customer(), _bill(), NO_ARREARS, "PAMSIMAS PUNGKURAN")

        assert text.startswith("*TAGIHAN PAMSIMAS PUNGKURAN*")
        assert "Yth. Budi" in text
        assert "Periode: Januari 2024" in text
        assert "Tipe: Umum" in text
        assert "Meteran Lama : 00100" in text
        assert "Meteran Baru : 00115" in text
        assert "*Penggunaan Air : 15 m³*" in text
        assert "*TOTAL TAGIHAN : Rp29.500*" in text
        assert "Denda" not in text
        assert "Tunggakan" not in text

    def test_penalty_and_arrears_lines(self):
        arrears = Arrears(bill_count=1, total=Decimal("29500"))

        text = build_bill_notice(_customer(), _bill(penalty="5000"), arrears, "PAMSIMAS")

        assert "Denda Keterlambatan : Rp5.000" in text
        assert "Tagihan Bulan Ini : Rp34.500" in text
        assert "Tunggakan (1 bln) : Rp29.500" in text
        assert "*TOTAL TAGIHAN : Rp64.000*" in text


class TestWhatsAppLinkSender:
    def test_build_link_encodes_text(self):
        link = WhatsAppLinkSender().build_link("628123456789", "Yth. Budi\n*TOTAL*")
        assert link == "https://wa.me/628123456789?text=Yth.%20Budi%0A%2ATOTAL%2A"

    def test_send_passes_link_to_opener(self):
        opened = []
        sender = WhatsAppLinkSender(opener=opened.append)

        link = sender.send("628123456789", "hi")

        assert opened == [link]
        assert link == "https://wa.me/628123456789?text=hi"


class TestNotificationService:
    def test_notify_uses_normalized_destination(self):
        sender = RecordingSender()
        service = NotificationService(sender=sender, settings=BillingSettings())

        result = service.notify_new_bill(_customer(), _bill(), NO_ARREARS)

        assert result == "sent"
        ((destination, text),) = sender.sent
        assert destination == "628123456789"
        assert "Yth. Budi" in text

    def test_customer_without_phone_is_skipped(self):
        sender = RecordingSender()
        service = NotificationService(sender=sender, settings=BillingSettings())

        assert service.notify_new_bill(_customer(phone=None), _bill(), NO_ARREARS) is None
        assert sender.sent == []

    def test_country_code_from_settings(self):
        service = NotificationService(
            sender=RecordingSender(), settings=BillingSettings(country_code="60")
        )
        assert service.destination_for(_customer(phone="012-345 6789")) == "60123456789"
