"""Datetime utilities for consistent timezone handling across the application."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    """Get current UTC time as naive datetime for database operations.

    Note:
        Subscription dates are stored as TIMESTAMP WITHOUT TIME ZONE in UTC, so
        every comparison against stored dates must use this helper.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware or naive datetime to naive UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
