"""
Data models for the domain monitor system.

This module defines the monitored domain record, monitoring log entries,
notification settings, alert dispatch records, raw check results and the
dashboard projections. Models that are persisted or sent over the wire
provide to_dict()/from_dict() using the camelCase field names of the
monitoring API contract.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from .enums import (
    AlertChannelType,
    AlertType,
    CheckType,
    DispatchStatus,
    DomainStatus,
    LogSeverity,
    LogType,
    SSLStatus,
)
from .timestamps import parse_timestamp, to_iso


# Alerting lead times in days, in evaluation order
THRESHOLD_DAYS = (30, 15, 7, 1)


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


@dataclass
class DomainRecord:
    """One monitored domain."""

    id: str
    domain: str  # Canonical FQDN, unique per owner
    registrar: str = ""
    auto_renew: bool = False
    domain_expiry: Optional[datetime] = None
    cert_expiry: Optional[datetime] = None
    last_whois_check: Optional[datetime] = None  # Last successful WHOIS/RDAP check
    last_ssl_check: Optional[datetime] = None  # Last successful TLS check
    last_checked: Optional[datetime] = None  # Last attempted check of any kind
    status: DomainStatus = DomainStatus.UNKNOWN
    ssl_status: SSLStatus = SSLStatus.UNKNOWN
    is_active: bool = True  # Included in scheduled monitoring runs
    nameservers: list[str] = field(default_factory=list)
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "domain": self.domain,
            "registrar": self.registrar,
            "autoRenew": self.auto_renew,
            "expiry_date": to_iso(self.domain_expiry),
            "ssl_expiry": to_iso(self.cert_expiry),
            "lastWhoisCheck": to_iso(self.last_whois_check),
            "lastSslCheck": to_iso(self.last_ssl_check),
            "lastCheck": to_iso(self.last_checked),
            "status": self.status.value,
            "ssl_status": self.ssl_status.value,
            "isActive": self.is_active,
            "nameservers": list(self.nameservers),
            "userId": self.owner_id,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DomainRecord":
        return cls(
            id=str(data["id"]),
            domain=data["domain"],
            registrar=data.get("registrar") or "",
            auto_renew=bool(data.get("autoRenew", False)),
            domain_expiry=parse_timestamp(data.get("expiry_date")),
            cert_expiry=parse_timestamp(data.get("ssl_expiry")),
            last_whois_check=parse_timestamp(data.get("lastWhoisCheck")),
            last_ssl_check=parse_timestamp(data.get("lastSslCheck")),
            last_checked=parse_timestamp(data.get("lastCheck")),
            status=_enum_or_default(DomainStatus, data.get("status"), DomainStatus.UNKNOWN),
            ssl_status=_enum_or_default(SSLStatus, data.get("ssl_status"), SSLStatus.UNKNOWN),
            is_active=bool(data.get("isActive", True)),
            nameservers=list(data.get("nameservers") or []),
            owner_id=data.get("userId"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class LogDetails:
    """Structured details of a log entry; shape depends on the log type."""

    days_until_expiry: Optional[int] = None
    expiry_date: Optional[str] = None
    ssl_expiry_date: Optional[str] = None
    ssl_status: Optional[str] = None
    previous_status: Optional[str] = None
    current_status: Optional[str] = None
    error: Optional[str] = None

    _WIRE_NAMES = (
        ("days_until_expiry", "daysUntilExpiry"),
        ("expiry_date", "expiryDate"),
        ("ssl_expiry_date", "sslExpiryDate"),
        ("ssl_status", "sslStatus"),
        ("previous_status", "previousStatus"),
        ("current_status", "currentStatus"),
        ("error", "error"),
    )

    def to_dict(self) -> dict:
        return {
            wire: getattr(self, attr)
            for attr, wire in self._WIRE_NAMES
            if getattr(self, attr) is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LogDetails":
        data = data or {}
        return cls(**{attr: data.get(wire) for attr, wire in cls._WIRE_NAMES})


@dataclass(frozen=True)
class MonitoringLogEntry:
    """
    Immutable record of one check outcome.

    Only alert_sent/alert_channels change after creation, through
    with_alert_sent(), which returns a new entry.
    """

    id: str
    domain: str
    log_type: LogType
    severity: LogSeverity
    message: str
    created_at: datetime
    details: LogDetails = field(default_factory=LogDetails)
    alert_sent: bool = False
    alert_channels: tuple[AlertChannelType, ...] = ()
    domain_id: Optional[str] = None

    def with_alert_sent(
        self, channels: tuple[AlertChannelType, ...]
    ) -> "MonitoringLogEntry":
        merged = tuple(dict.fromkeys(self.alert_channels + tuple(channels)))
        return replace(self, alert_sent=True, alert_channels=merged)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "domain": self.domain,
            "logType": self.log_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details.to_dict(),
            "alertSent": self.alert_sent,
            "alertChannels": [c.value for c in self.alert_channels],
            "createdAt": to_iso(self.created_at),
            "domainId": self.domain_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MonitoringLogEntry":
        return cls(
            id=str(data["id"]),
            domain=data["domain"],
            log_type=LogType(data["logType"]),
            severity=LogSeverity(data["severity"]),
            message=data.get("message", ""),
            created_at=parse_timestamp(data["createdAt"]),
            details=LogDetails.from_dict(data.get("details")),
            alert_sent=bool(data.get("alertSent", False)),
            alert_channels=tuple(
                AlertChannelType(c) for c in data.get("alertChannels") or []
            ),
            domain_id=data.get("domainId"),
        )


@dataclass
class ThresholdToggles:
    """Per-threshold alert switches for one kind of expiry."""

    thirty_days: bool = True
    fifteen_days: bool = True
    seven_days: bool = True
    one_day: bool = True

    def is_enabled(self, threshold_day: int) -> bool:
        return {
            30: self.thirty_days,
            15: self.fifteen_days,
            7: self.seven_days,
            1: self.one_day,
        }.get(threshold_day, False)

    def enabled_thresholds(self) -> tuple[int, ...]:
        return tuple(t for t in THRESHOLD_DAYS if self.is_enabled(t))

    def to_dict(self) -> dict:
        return {
            "thirtyDays": self.thirty_days,
            "fifteenDays": self.fifteen_days,
            "sevenDays": self.seven_days,
            "oneDay": self.one_day,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ThresholdToggles":
        data = data or {}
        return cls(
            thirty_days=bool(data.get("thirtyDays", True)),
            fifteen_days=bool(data.get("fifteenDays", True)),
            seven_days=bool(data.get("sevenDays", True)),
            one_day=bool(data.get("oneDay", True)),
        )


@dataclass
class NotificationSettings:
    """Per-user notification configuration."""

    id: str = "default"
    user_id: Optional[str] = None
    domain_expiration: ThresholdToggles = field(default_factory=ThresholdToggles)
    certificate_expiration: ThresholdToggles = field(default_factory=ThresholdToggles)
    webhook_url: str = ""
    slack_webhook_url: str = ""
    email_notifications: bool = True
    email_recipient: str = ""
    updated_at: Optional[datetime] = None

    def toggles_for(self, alert_type: AlertType) -> ThresholdToggles:
        if alert_type == AlertType.SSL_EXPIRY:
            return self.certificate_expiration
        return self.domain_expiration

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "domainExpiration": self.domain_expiration.to_dict(),
            "certificateExpiration": self.certificate_expiration.to_dict(),
            "webhookUrl": self.webhook_url,
            "slackWebhookUrl": self.slack_webhook_url,
            "emailNotifications": self.email_notifications,
            "emailRecipient": self.email_recipient,
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NotificationSettings":
        return cls(
            id=data.get("id", "default"),
            user_id=data.get("userId"),
            domain_expiration=ThresholdToggles.from_dict(data.get("domainExpiration")),
            certificate_expiration=ThresholdToggles.from_dict(
                data.get("certificateExpiration")
            ),
            webhook_url=data.get("webhookUrl") or "",
            slack_webhook_url=data.get("slackWebhookUrl") or "",
            email_notifications=bool(data.get("emailNotifications", True)),
            email_recipient=data.get("emailRecipient") or "",
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class AlertToFire:
    """An eligible, non-duplicate threshold alert."""

    entity_id: str
    domain: str
    alert_type: AlertType
    threshold_day: int
    days_remaining: int
    expiry: datetime
    message: str


@dataclass(frozen=True)
class FiredAlertKey:
    """
    Identity of an alert that has already fired.

    Keyed on the expiry value too, so a renewal (new expiry) makes every
    threshold eligible again.
    """

    entity_id: str
    alert_type: str
    threshold_day: int
    expiry_value: str

    def to_list(self) -> list:
        return [self.entity_id, self.alert_type, self.threshold_day, self.expiry_value]

    @classmethod
    def from_list(cls, data: list) -> "FiredAlertKey":
        return cls(str(data[0]), str(data[1]), int(data[2]), str(data[3]))


@dataclass
class AlertDispatchRecord:
    """One delivery of an alert to one channel, updated across retries."""

    id: str
    log_id: str
    domain: str
    alert_type: AlertType
    channel: AlertChannelType
    recipient: str
    status: DispatchStatus = DispatchStatus.PENDING
    sent_at: Optional[datetime] = None
    error: Optional[str] = None
    retry_count: int = 0
    created_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "logId": self.log_id,
            "domain": self.domain,
            "alertType": self.alert_type.value,
            "channel": self.channel.value,
            "recipient": self.recipient,
            "status": self.status.value,
            "sentAt": to_iso(self.sent_at),
            "error": self.error,
            "retryCount": self.retry_count,
            "createdAt": to_iso(self.created_at),
            "nextAttemptAt": to_iso(self.next_attempt_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlertDispatchRecord":
        return cls(
            id=str(data["id"]),
            log_id=str(data["logId"]),
            domain=data["domain"],
            alert_type=AlertType(data["alertType"]),
            channel=AlertChannelType(data["channel"]),
            recipient=data.get("recipient") or "",
            status=DispatchStatus(data.get("status", "pending")),
            sent_at=parse_timestamp(data.get("sentAt")),
            error=data.get("error"),
            retry_count=int(data.get("retryCount", 0)),
            created_at=parse_timestamp(data.get("createdAt")),
            next_attempt_at=parse_timestamp(data.get("nextAttemptAt")),
        )


@dataclass
class CheckResult:
    """Raw outcome of one check run against one domain."""

    check_type: CheckType
    domain_id: str
    domain: str
    success: bool
    checked_at: datetime
    expiry: Optional[datetime] = None  # WHOIS/RDAP and SSL checks
    registrar: Optional[str] = None
    nameservers: list[str] = field(default_factory=list)
    status: Optional[DomainStatus] = None  # Uptime checks
    ssl_status: Optional[SSLStatus] = None
    records: dict[str, list[str]] = field(default_factory=dict)  # DNS checks
    error: Optional[str] = None
    error_code: Optional[str] = None
    duration_ms: float = 0.0

    @classmethod
    def failure(
        cls,
        check_type: CheckType,
        domain_id: str,
        domain: str,
        error: str,
        checked_at: datetime,
        error_code: Optional[str] = None,
    ) -> "CheckResult":
        return cls(
            check_type=check_type,
            domain_id=domain_id,
            domain=domain,
            success=False,
            checked_at=checked_at,
            error=error,
            error_code=error_code,
        )


@dataclass
class DomainMonitoringUpdate:
    """Field changes produced by a check, to be merged into a DomainRecord."""

    domain_id: str
    domain: str
    status: Optional[DomainStatus] = None
    expiry_date: Optional[datetime] = None
    ssl_expiry: Optional[datetime] = None
    ssl_status: Optional[SSLStatus] = None
    registrar: Optional[str] = None
    nameservers: Optional[list[str]] = None
    last_whois_check: Optional[datetime] = None
    last_ssl_check: Optional[datetime] = None
    checked_at: Optional[datetime] = None
    preserve_expiry_date: bool = True  # Never overwrite a known expiry with None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "domainId": self.domain_id,
            "domain": self.domain,
            "lastWhoisCheck": to_iso(self.last_whois_check),
            "lastSslCheck": to_iso(self.last_ssl_check),
            "status": self.status.value if self.status else DomainStatus.UNKNOWN.value,
            "preserveExpiryDate": self.preserve_expiry_date,
        }
        if self.expiry_date is not None:
            data["expiry_date"] = to_iso(self.expiry_date)
        if self.ssl_expiry is not None:
            data["ssl_expiry"] = to_iso(self.ssl_expiry)
        if self.ssl_status is not None:
            data["ssl_status"] = self.ssl_status.value
        if self.registrar is not None:
            data["registrar"] = self.registrar
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DomainMonitoringUpdate":
        status = data.get("status")
        ssl_status = data.get("ssl_status")
        return cls(
            domain_id=str(data["domainId"]),
            domain=data["domain"],
            status=_enum_or_default(DomainStatus, status, None) if status else None,
            expiry_date=parse_timestamp(data.get("expiry_date")),
            ssl_expiry=parse_timestamp(data.get("ssl_expiry")),
            ssl_status=_enum_or_default(SSLStatus, ssl_status, None) if ssl_status else None,
            registrar=data.get("registrar"),
            last_whois_check=parse_timestamp(data.get("lastWhoisCheck")),
            last_ssl_check=parse_timestamp(data.get("lastSslCheck")),
            preserve_expiry_date=bool(data.get("preserveExpiryDate", True)),
        )


@dataclass
class MonitoringStats:
    """Summary statistics shown on the dashboard."""

    total_domains: int
    active_domains: int
    domains_expiring_soon: int
    ssl_expiring_soon: int
    critical_alerts: int
    last_monitoring_run: Optional[datetime] = None
    next_monitoring_run: Optional[datetime] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "totalDomains": self.total_domains,
            "activeDomains": self.active_domains,
            "domainsExpiringSoon": self.domains_expiring_soon,
            "sslExpiringSoon": self.ssl_expiring_soon,
            "criticalAlerts": self.critical_alerts,
        }
        if self.last_monitoring_run is not None:
            data["lastMonitoringRun"] = to_iso(self.last_monitoring_run)
        if self.next_monitoring_run is not None:
            data["nextMonitoringRun"] = to_iso(self.next_monitoring_run)
        return data


@dataclass
class LogQuery:
    """Filter and pagination options for monitoring log queries."""

    domain: Optional[str] = None  # Case-insensitive substring
    log_type: Optional[LogType] = None
    severity: Optional[LogSeverity] = None
    alert_sent: Optional[bool] = None
    page: int = 1
    limit: int = 50
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "LogQuery":
        """Build a query from GetLogsQuery-style params; bad values are dropped."""
        log_type = data.get("logType")
        severity = data.get("severity")
        alert_sent = data.get("alertSent")
        if isinstance(alert_sent, str):
            alert_sent = alert_sent.strip().lower() in ("1", "true", "yes")
        return cls(
            domain=data.get("domain") or None,
            log_type=_enum_or_default(LogType, log_type, None) if log_type else None,
            severity=_enum_or_default(LogSeverity, severity, None) if severity else None,
            alert_sent=alert_sent,
            page=_int_or_default(data.get("page"), 1),
            limit=_int_or_default(data.get("limit"), 50),
            start_date=parse_timestamp(data.get("startDate")),
            end_date=parse_timestamp(data.get("endDate")),
        )


def _int_or_default(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class LogPage:
    """One page of a log query."""

    logs: list[MonitoringLogEntry]
    total: int
    page: int
    total_pages: int

    def to_dict(self) -> dict:
        return {
            "logs": [log.to_dict() for log in self.logs],
            "total": self.total,
            "page": self.page,
            "totalPages": self.total_pages,
        }


@dataclass
class RegistrarAccount:
    """A registrar API account the user has connected."""

    id: str
    name: str  # Key into the registrar configuration table
    connected: bool = False
    credentials: dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "connected": self.connected,
            "credentials": dict(self.credentials),
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RegistrarAccount":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            connected=bool(data.get("connected", False)),
            credentials=dict(data.get("credentials") or {}),
            created_at=parse_timestamp(data.get("createdAt")),
        )
