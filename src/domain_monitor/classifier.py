"""
Expiry Classifier for the domain monitor system.

Buckets a domain or certificate expiry timestamp relative to "now" into a
severity tier. Classification is pure and total: absent or malformed input
classifies as UNKNOWN and never raises.

Tiers by days remaining:
- < 0: EXPIRED
- == 0: EXPIRES_TODAY
- 1..7: CRITICAL
- 8..30: WARNING
- > 30: VALID
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from .enums import ExpirySeverity, LogSeverity
from .i18n import get_message
from .timestamps import parse_timestamp


CRITICAL_DAYS = 7
WARNING_DAYS = 30

# Dates further out than this are shown as a date rather than a day count
DAY_COUNT_DISPLAY_LIMIT = 90

_DAY = timedelta(days=1)
_MICROSECOND = timedelta(microseconds=1)
_DAY_MICROSECONDS = _DAY // _MICROSECOND


@dataclass(frozen=True)
class SeverityStyle:
    """Presentation attributes of one severity tier."""

    label_key: str
    color: str
    icon: str
    badge_variant: str
    log_severity: LogSeverity


# The single presentation table for every tier. Log severities derived from
# a classification come from here too.
SEVERITY_STYLES: dict[ExpirySeverity, SeverityStyle] = {
    ExpirySeverity.VALID: SeverityStyle(
        label_key="expiry.days",
        color="green",
        icon="shield",
        badge_variant="default",
        log_severity=LogSeverity.INFO,
    ),
    ExpirySeverity.WARNING: SeverityStyle(
        label_key="expiry.days",
        color="orange",
        icon="shield-alert",
        badge_variant="secondary",
        log_severity=LogSeverity.WARNING,
    ),
    ExpirySeverity.CRITICAL: SeverityStyle(
        label_key="expiry.days",
        color="red",
        icon="shield-alert",
        badge_variant="destructive",
        log_severity=LogSeverity.CRITICAL,
    ),
    ExpirySeverity.EXPIRES_TODAY: SeverityStyle(
        label_key="expiry.expires_today",
        color="red",
        icon="shield-alert",
        badge_variant="destructive",
        log_severity=LogSeverity.CRITICAL,
    ),
    ExpirySeverity.EXPIRED: SeverityStyle(
        label_key="expiry.expired",
        color="red",
        icon="shield-x",
        badge_variant="destructive",
        log_severity=LogSeverity.CRITICAL,
    ),
    ExpirySeverity.UNKNOWN: SeverityStyle(
        label_key="expiry.unknown",
        color="gray",
        icon="clock",
        badge_variant="secondary",
        log_severity=LogSeverity.INFO,
    ),
}


@dataclass(frozen=True)
class ExpiryClassification:
    """Result of classifying one expiry value."""

    severity: ExpirySeverity
    days_remaining: Optional[int]
    expiry: Optional[datetime]

    @property
    def style(self) -> SeverityStyle:
        return SEVERITY_STYLES[self.severity]


def days_remaining(expiry: datetime, now: datetime) -> int:
    """
    Whole days from now until expiry.

    Non-negative differences round up, so 23.5 hours remaining is 1 day and
    only an expiry exactly at now gives 0. Any instant before now gives a
    negative count (rounded down), so it is never mistaken for "today".

    Args:
        expiry: Aware expiry datetime
        now: Aware reference datetime

    Returns:
        Signed day count
    """
    micros = (expiry - now) // _MICROSECOND
    if micros >= 0:
        return -(-micros // _DAY_MICROSECONDS)
    return micros // _DAY_MICROSECONDS


def severity_for_days(days: int) -> ExpirySeverity:
    """Map a signed day count to its tier."""
    if days < 0:
        return ExpirySeverity.EXPIRED
    if days == 0:
        return ExpirySeverity.EXPIRES_TODAY
    if days <= CRITICAL_DAYS:
        return ExpirySeverity.CRITICAL
    if days <= WARNING_DAYS:
        return ExpirySeverity.WARNING
    return ExpirySeverity.VALID


def classify_expiry(expiry: Any, now: Any) -> ExpiryClassification:
    """
    Classify an expiry value and keep the intermediate results.

    Args:
        expiry: datetime, date, ISO 8601 string or None
        now: Reference time (same accepted forms)

    Returns:
        ExpiryClassification with severity, days remaining and parsed expiry
    """
    parsed_expiry = parse_timestamp(expiry)
    parsed_now = parse_timestamp(now)
    if parsed_expiry is None or parsed_now is None:
        return ExpiryClassification(ExpirySeverity.UNKNOWN, None, parsed_expiry)

    days = days_remaining(parsed_expiry, parsed_now)
    return ExpiryClassification(severity_for_days(days), days, parsed_expiry)


def classify(expiry: Any, now: Any) -> ExpirySeverity:
    """Classify an expiry value relative to now. Never raises."""
    return classify_expiry(expiry, now).severity


def describe_expiry(expiry: Any, now: Any, language: Optional[str] = None) -> str:
    """
    Human-readable remaining time: "Expired", "Expires today", "N days" or,
    for dates far out, the date itself.
    """
    result = classify_expiry(expiry, now)
    if result.severity == ExpirySeverity.UNKNOWN:
        return get_message("expiry.unknown", language)
    if result.severity == ExpirySeverity.EXPIRED:
        return get_message("expiry.expired", language)
    if result.severity == ExpirySeverity.EXPIRES_TODAY:
        return get_message("expiry.expires_today", language)
    if result.days_remaining == 1:
        return get_message("expiry.one_day", language)
    if result.days_remaining <= DAY_COUNT_DISPLAY_LIMIT:
        return get_message("expiry.days", language, days=result.days_remaining)
    return result.expiry.date().isoformat()
