"""Date helpers so every component agrees on UTC and whole-day arithmetic."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def days_between(earlier: Optional[datetime], later: datetime) -> Optional[int]:
    """Whole days from ``earlier`` to ``later``, floored; None when absent."""
    if earlier is None:
        return None
    return (ensure_utc(later) - ensure_utc(earlier)).days


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Use the supplied reference time (as UTC) or the current time."""
    return ensure_utc(now) if now is not None else utc_now()


def age_days(moment: datetime, now: datetime) -> float:
    """Fractional days elapsed from ``moment`` to ``now``."""
    return (ensure_utc(now) - ensure_utc(moment)).total_seconds() / 86400
