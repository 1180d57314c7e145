"""
Enumeration types for the domain monitor system.

These enums provide type-safe constants for expiry tiers, log categories,
alert channels and dispatch states throughout the system.
"""

from enum import Enum


class ExpirySeverity(Enum):
    """Severity tier of an expiry date relative to now."""

    VALID = "valid"
    WARNING = "warning"
    CRITICAL = "critical"
    EXPIRES_TODAY = "expires_today"
    EXPIRED = "expired"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        """Ordering used for monotonicity checks; higher is more severe."""
        return _EXPIRY_RANKS[self]

    @property
    def is_expiring_soon(self) -> bool:
        """True for the tiers counted as "expiring soon" on dashboards."""
        return self in (
            ExpirySeverity.WARNING,
            ExpirySeverity.CRITICAL,
            ExpirySeverity.EXPIRES_TODAY,
        )


_EXPIRY_RANKS = {
    ExpirySeverity.UNKNOWN: 0,
    ExpirySeverity.VALID: 1,
    ExpirySeverity.WARNING: 2,
    ExpirySeverity.CRITICAL: 3,
    ExpirySeverity.EXPIRES_TODAY: 4,
    ExpirySeverity.EXPIRED: 5,
}


class DomainStatus(Enum):
    """Uptime check outcome."""

    ONLINE = "Online"
    OFFLINE = "Offline"
    UNKNOWN = "Unknown"


class SSLStatus(Enum):
    """Certificate state as last observed."""

    VALID = "valid"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class CheckType(Enum):
    """Kind of check that produced a result."""

    WHOIS = "whois"
    SSL = "ssl"
    UPTIME = "uptime"
    DNS = "dns"


class LogType(Enum):
    """Category of a monitoring log entry."""

    DOMAIN_EXPIRY = "domain_expiry"
    SSL_EXPIRY = "ssl_expiry"
    DOMAIN_STATUS = "domain_status"
    MONITORING_ERROR = "monitoring_error"


class LogSeverity(Enum):
    """Severity of a monitoring log entry."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    ERROR = "error"


class AlertType(Enum):
    """Kind of expiry an alert is about."""

    DOMAIN_EXPIRY = "domain_expiry"
    SSL_EXPIRY = "ssl_expiry"
    DOMAIN_STATUS = "domain_status"


class AlertChannelType(Enum):
    """Delivery channel for an alert."""

    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"


class DispatchStatus(Enum):
    """State of a single alert delivery attempt record."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RETRY = "retry"

    @property
    def is_terminal(self) -> bool:
        return self in (DispatchStatus.SENT, DispatchStatus.FAILED)


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DomainValidationErrorCode(Enum):
    """Error codes for domain validation failures."""

    FORBIDDEN_CHARS = "forbidden_chars"
    INVALID_TLD = "invalid_tld"
    IDNA_ERROR = "idna_error"
    EMPTY_INPUT = "empty_input"


class CheckErrorCode(Enum):
    """Error codes for checker operations."""

    NETWORK_ERROR = "network_error"
    TLS_ERROR = "tls_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NOT_FOUND = "not_found"
