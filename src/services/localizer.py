"""Simple localization module.

Loads translations from static/translations.json once at import time.
Strings are grouped by language code; the language comes from the LOCALE
setting (``id_ID`` → ``id``) and falls back to Indonesian.

Usage:
    from src.services.localizer import t

    # Simple lookup
    label = t("bill.status_paid")

    # With placeholder substitution
    description = t("ledger.bill_income", name="Budi")
"""

import json
import logging
from pathlib import Path
from typing import Any

from src.services.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "id"

# Load translations once at import time
_TRANSLATIONS_PATH = Path(__file__).parent.parent / "static" / "translations.json"
_TRANSLATIONS: dict[str, Any] = {}

try:
    with open(_TRANSLATIONS_PATH, encoding="utf-8") as f:
        _TRANSLATIONS = json.load(f)
except (FileNotFoundError, json.JSONDecodeError) as e:
    logger.error("Failed to load translations from %s: %s", _TRANSLATIONS_PATH, e)


def current_language() -> str:
    language = get_settings().locale.split("_")[0].lower()
    return language if language in _TRANSLATIONS else DEFAULT_LANGUAGE


def t(key: str, language: str | None = None, **kwargs: Any) -> str:
    """Get translation for a key with optional placeholder substitution.

    Args:
        key: Dot-notation key (e.g., "report.title", "notice.greeting")
        language: Language code overriding the LOCALE setting
        **kwargs: Placeholder values for string formatting

    Returns:
        Translated string with placeholders replaced, or the key itself if not found.
    """
    value: Any = _TRANSLATIONS.get(language or current_language(), {})

    for part in key.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            logger.warning("Translation key not found: %s", key)
            return key

    if not isinstance(value, str):
        logger.warning("Translation value is not a string for key: %s", key)
        return key

    if kwargs:
        try:
            return value.format(**kwargs)
        except KeyError as e:
            logger.warning("Missing placeholder %s for key: %s", e, key)
            return value

    return value


__all__ = ["t", "current_language"]
