"""Unit tests for locale formatting and translations."""

from decimal import Decimal

from src.services.locale_service import format_amount, format_period, get_locale, pad_meter
from src.services.localizer import current_language, t


class TestFormatting:
    def test_format_amount(self):
        assert format_amount(Decimal("29500")) == "Rp29.500"
        assert format_amount(Decimal("29500.00")) == "Rp29.500"

    def test_format_amount_without_symbol(self):
        assert format_amount(Decimal("1500"), include_symbol=False) == "1.500"

    def test_format_period(self):
        assert format_period("2024-01") == "Januari 2024"

    def test_pad_meter(self):
        assert pad_meter(100) == "00100"
        assert pad_meter(123456) == "123456"
        assert pad_meter(None) == ""

    def test_invalid_locale_falls_back(self, monkeypatch):
        monkeypatch.setenv("LOCALE", "zz_ZZ")
        assert get_locale() == "id_ID"


class TestLocalizer:
    def test_default_language(self):
        assert current_language() == "id"
        assert t("bill.status_paid") == "Lunas"

    def test_english(self, monkeypatch):
        monkeypatch.setenv("LOCALE", "en_US")
        assert current_language() == "en"
        assert t("ledger.bill_income", name="Budi") == "Water bill: Budi"

    def test_explicit_language(self):
        assert t("bill.status_unpaid", language="en") == "Unpaid"

    def test_missing_key_returns_key(self):
        assert t("report.nonexistent") == "report.nonexistent"
        assert t("report") == "report"
