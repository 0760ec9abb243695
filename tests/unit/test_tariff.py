"""Unit tests for the tariff table."""

from decimal import Decimal

import pytest

from src.models.customer import CustomerCategory
from src.services.config import BillingSettings
from src.services.tariff import Tariff, TariffTable


class TestTariffTable:
    """Test category lookups built from settings."""

    def test_default_rates(self):
        tariffs = TariffTable.from_settings(BillingSettings())

        assert tariffs.lookup(CustomerCategory.STANDARD) == Tariff(Decimal("1500"), Decimal("7000"))
        assert tariffs.lookup(CustomerCategory.BUSINESS) == Tariff(Decimal("3000"), Decimal("7000"))
        assert tariffs.lookup(CustomerCategory.SOCIAL) == Tariff(Decimal("0"), Decimal("7000"))
        assert tariffs.penalty_amount == Decimal("5000")
        assert tariffs.due_day == 10

    def test_lookup_accepts_category_value(self):
        tariffs = TariffTable.from_settings(BillingSettings())
        assert tariffs.lookup("business").per_unit_rate == Decimal("3000")

    def test_rates_follow_settings(self):
        settings = BillingSettings(standard_rate=Decimal("2000"), base_fee=Decimal("5000"))
        tariffs = TariffTable.from_settings(settings)
        assert tariffs.lookup(CustomerCategory.STANDARD) == Tariff(Decimal("2000"), Decimal("5000"))

    def test_unknown_category_raises_key_error(self):
        tariffs = TariffTable(
            {CustomerCategory.STANDARD: Tariff(Decimal("1500"), Decimal("7000"))},
            penalty_amount=Decimal("5000"),
            due_day=10,
        )
        with pytest.raises(KeyError):
            tariffs.lookup(CustomerCategory.BUSINESS)
        with pytest.raises(KeyError):
            tariffs.lookup("industrial")

    def test_categories(self):
        tariffs = TariffTable.from_settings(BillingSettings())
        assert set(tariffs.categories()) == set(CustomerCategory)
