"""Calendar period helpers.

A billing period is a ``YYYY-MM`` string in the cooperative's local
timezone. Lexicographic order of period strings equals calendar order,
so periods are compared as plain strings throughout the engine.
"""

import re
from datetime import datetime, timezone, tzinfo

from src.services.errors import BillingValidationError

_PERIOD_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def as_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime.

    SQLite hands back naive datetimes for DateTime(timezone=True) columns;
    those were written as UTC, so naive values are read as UTC.
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def local_time(instant: datetime, tz: tzinfo) -> datetime:
    return as_utc(instant).astimezone(tz)


def period_of(instant: datetime, tz: tzinfo) -> str:
    """Calendar period (YYYY-MM) containing instant in the given timezone."""
    return local_time(instant, tz).strftime("%Y-%m")


def validate_period(period: str) -> str:
    """Check a YYYY-MM string.

    Raises:
        BillingValidationError: If the value is not a valid period
    """
    if not isinstance(period, str) or not _PERIOD_RE.match(period):
        raise BillingValidationError(f"Invalid period '{period}', expected YYYY-MM")
    return period


def period_bounds(period: str) -> tuple[int, int]:
    """Split a period into (year, month)."""
    match = _PERIOD_RE.match(validate_period(period))
    return int(match.group(1)), int(match.group(2))


__all__ = ["as_utc", "local_time", "period_of", "validate_period", "period_bounds"]
