"""Unit tests for calendar period helpers."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from src.services.billing_period import as_utc, period_bounds, period_of, validate_period
from src.services.errors import BillingValidationError

JAKARTA = ZoneInfo("Asia/Jakarta")


class TestPeriodOf:
    def test_local_month(self):
        assert period_of(datetime(2024, 1, 15, 12, tzinfo=JAKARTA), JAKARTA) == "2024-01"

    def test_utc_instant_in_next_local_month(self):
        # 18:00 UTC on Jan 31 is already Feb 1 in Jakarta
        instant = datetime(2024, 1, 31, 18, 0, tzinfo=timezone.utc)
        assert period_of(instant, JAKARTA) == "2024-02"
        assert period_of(instant, timezone.utc) == "2024-01"

    def test_naive_instant_is_utc(self):
        assert period_of(datetime(2024, 1, 31, 18, 0), JAKARTA) == "2024-02"


class TestAsUtc:
    def test_naive_gets_utc(self):
        assert as_utc(datetime(2024, 1, 1, 3)) == datetime(2024, 1, 1, 3, tzinfo=timezone.utc)

    def test_aware_is_converted(self):
        converted = as_utc(datetime(2024, 1, 1, 10, tzinfo=JAKARTA))
        assert converted.tzinfo == timezone.utc
        assert converted.hour == 3


class TestValidatePeriod:
    @pytest.mark.parametrize("period", ["2024-01", "1999-12"])
    def test_valid(self, period):
        assert validate_period(period) == period

    @pytest.mark.parametrize("period", ["2024-13", "2024-1", "24-01", "2024/01", "", None])
    def test_invalid(self, period):
        with pytest.raises(BillingValidationError, match="expected YYYY-MM"):
            validate_period(period)

    def test_bounds(self):
        assert period_bounds("2024-03") == (2024, 3)
