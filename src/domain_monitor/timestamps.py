"""
Timestamp helpers shared by the models, classifier and repository.

All timestamps inside the system are timezone-aware UTC datetimes. Wire and
storage formats are ISO 8601 strings; date-only strings (YYYY-MM-DD, the
format WHOIS expiry dates are usually reported in) are read as midnight UTC.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp from a datetime, date or string.

    Never raises: absent, empty or malformed values return None so that
    callers can treat them as "unknown".

    Args:
        value: datetime, date, ISO 8601 string or YYYY-MM-DD string

    Returns:
        Aware UTC datetime or None
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    return parse_timestamp(parsed)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize an optional datetime to an ISO 8601 string."""
    if value is None:
        return None
    return parse_timestamp(value).isoformat()
