"""
Clock helpers.

All departure, expiry and cutoff comparisons are done on timezone-aware UTC
datetimes. Some backends (SQLite) hand back naive values for
``DateTime(timezone=True)`` columns; those are treated as UTC.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
