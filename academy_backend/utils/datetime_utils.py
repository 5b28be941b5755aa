"""
Datetime utility functions.
Provides replacements for deprecated datetime functions.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to a naive datetime read back from the store.

    Some drivers (SQLite) drop tzinfo on DateTime(timezone=True) columns;
    every timestamp this service writes is UTC, so a naive value is UTC.

    Args:
        value: Datetime or None

    Returns:
        Timezone-aware datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a stored timestamp as an ISO-8601 UTC string."""
    value = ensure_utc(value)
    return value.isoformat() if value else None
