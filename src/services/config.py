"""Billing configuration from environment variables and .env file.

Tariff constants, penalty policy and locale all live here so that the
engine never reads the environment directly.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class PenaltyPolicyMode(str, Enum):
    """When the late-payment penalty is decided."""

    RECORD = "record"
    """Fixed when the meter reading is recorded; settlement keeps it"""

    SETTLEMENT = "settlement"
    """Decided when the bill is marked paid; reverting clears it"""


class BillingSettings(BaseSettings):
    """Billing configuration loaded from environment variables.

    Pydantic loads values from:
    1. OS environment variables (at instantiation time)
    2. .env file in the working directory
    """

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite:///./pamsimas.db"
    timezone: str = "Asia/Jakarta"
    locale: str = "id_ID"
    currency: str = "IDR"
    organization_name: str = "PAMSIMAS PUNGKURAN"

    # Tariff table
    base_fee: Decimal = Field(default=Decimal("7000"), ge=0)
    standard_rate: Decimal = Field(default=Decimal("1500"), ge=0)
    business_rate: Decimal = Field(default=Decimal("3000"), ge=0)
    social_rate: Decimal = Field(default=Decimal("0"), ge=0)

    # Penalty policy
    penalty_amount: Decimal = Field(default=Decimal("5000"), ge=0)
    penalty_due_day: int = Field(default=10, ge=1, le=28)
    penalty_policy: PenaltyPolicyMode = PenaltyPolicyMode.SETTLEMENT

    # Messaging and export
    country_code: str = "62"
    export_delimiter: str = Field(default=",", min_length=1, max_length=1)
    cashbook_page_size: int = Field(default=5, ge=1)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @field_validator("country_code")
    @classmethod
    def _validate_country_code(cls, value: str) -> str:
        if not value.isdigit():
            raise ValueError("country_code must contain digits only")
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def async_database_url(self) -> str:
        """Database URL with the async SQLite driver substituted."""
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return self.database_url


_settings_instance: Optional[BillingSettings] = None


def get_settings() -> BillingSettings:
    """Get or create the settings instance.

    Lazy so that tests can adjust the environment before first use.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = BillingSettings()
        logger.debug(
            "Settings loaded: policy=%s due_day=%d timezone=%s",
            _settings_instance.penalty_policy.value,
            _settings_instance.penalty_due_day,
            _settings_instance.timezone,
        )
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings_instance
    _settings_instance = None


__all__ = ["BillingSettings", "PenaltyPolicyMode", "get_settings", "reset_settings"]
