"""Lightweight validation helpers for handler input."""

from datetime import datetime
from typing import Any, Optional

from utils.dates import ensure_utc
from utils.error_handling import ValidationError


def ensure_present(value: Any, field: str) -> None:
    """Raise ValidationError if value is falsy."""
    if value in (None, "", []):
        raise ValidationError(f"{field} is required")


def parse_int(
    value: Optional[str],
    field: str,
    default: int,
    minimum: int = 1,
    maximum: int = 60,
) -> int:
    """Parse an optional integer query parameter within bounds."""
    if value in (None, ""):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if parsed < minimum or parsed > maximum:
        raise ValidationError(f"{field} must be between {minimum} and {maximum}")
    return parsed


def parse_float(value: Optional[str], field: str, default: float = 0.0) -> float:
    """Parse an optional non-negative float query parameter."""
    if value in (None, ""):
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if parsed < 0:
        raise ValidationError(f"{field} must not be negative")
    return parsed


def parse_datetime(value: Optional[str], field: str) -> Optional[datetime]:
    """Parse an optional ISO-8601 query parameter; naive values are UTC."""
    if value in (None, ""):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")
    return ensure_utc(parsed)


def parse_bool(value: Optional[str]) -> bool:
    return str(value).lower() in ("1", "true", "yes")


def parse_enum(value: Optional[str], field: str, enum_cls, default=None):
    """Parse an optional enum query parameter by value, case-insensitively."""
    if value in (None, ""):
        return default
    try:
        return enum_cls(value.upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}")
