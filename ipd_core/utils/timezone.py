# FILE: ipd_core/utils/timezone.py
from __future__ import annotations

from datetime import datetime, timezone


def now_utc_naive() -> datetime:
    """
    Returns a *naive* datetime in UTC.
    DateTime columns are naive; every timestamp written by the service is UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime | None) -> datetime | None:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
