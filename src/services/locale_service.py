"""Locale helpers for currency, period names and meter numbers.

Uses babel with the LOCALE / CURRENCY settings (default id_ID / IDR).
Rupiah amounts are shown without fraction digits, as on the receipts the
cooperative hands out.

Example:
    >>> format_amount(Decimal("29500"))
    'Rp29.500'
    >>> format_period("2026-10")
    'Oktober 2026'
"""

import logging
from datetime import date
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.dates import format_date as babel_format_date
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal as babel_format_decimal

from src.services.billing_period import period_bounds
from src.services.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "id_ID"
METER_DIGITS = 5


def get_locale() -> str:
    """Get locale from settings with validation and fallback."""
    locale_str = get_settings().locale
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Invalid LOCALE '%s': %s. Falling back to '%s'", locale_str, e, DEFAULT_LOCALE)
        return DEFAULT_LOCALE


def format_amount(amount: Decimal | int, include_symbol: bool = True) -> str:
    """Format monetary amount with grouping and no fraction digits.

    Example:
        >>> format_amount(Decimal("1500"))
        'Rp1.500'
        >>> format_amount(Decimal("1500"), include_symbol=False)
        '1.500'
    """
    locale = get_locale()
    if include_symbol:
        return babel_format_currency(
            Decimal(amount),
            get_settings().currency,
            format="¤#,##0",
            locale=locale,
            currency_digits=False,
        )
    return babel_format_decimal(Decimal(amount), format="#,##0", locale=locale)


def format_period(period: str) -> str:
    """Human-readable month name for a YYYY-MM period."""
    year, month = period_bounds(period)
    return babel_format_date(date(year, month, 1), format="MMMM yyyy", locale=get_locale())


def pad_meter(value: int | None) -> str:
    """Zero-pad a meter reading to the width printed on the meter."""
    if value is None:
        return ""
    return str(int(value)).zfill(METER_DIGITS)


__all__ = ["format_amount", "format_period", "get_locale", "pad_meter"]
