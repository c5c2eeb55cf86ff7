"""Calendar-date helpers for the user's local reference."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional, Union

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidInput

logger = logging.getLogger(__name__)


def normalise_timezone(raw: Optional[str]) -> str:
    if raw is None or not raw.strip():
        return "UTC"
    trimmed = raw.strip()
    try:
        return ZoneInfo(trimmed).key
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Ignoring unsupported timezone value: %s", trimmed)
        return "UTC"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_today(tz_name: str = "UTC") -> date:
    return datetime.now(ZoneInfo(normalise_timezone(tz_name))).date()


def parse_calendar_date(value: Union[str, date, None]) -> Optional[date]:
    """Accept ``YYYY-MM-DD`` strings or dates; anything else is ``InvalidInput``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        raise InvalidInput("Expected a calendar date, not a timestamp.")
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise InvalidInput(f"Malformed calendar date: {value!r}") from exc


__all__ = ["local_today", "normalise_timezone", "parse_calendar_date", "utc_now"]
