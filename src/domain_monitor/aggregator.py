"""
Monitoring Log Aggregator.

Turns raw check results into immutable monitoring log entries, merges check
results into domain records, computes the dashboard statistics and answers
filtered, paginated log queries.

Invariants:
- A failed check produces a monitoring_error entry with severity error,
  whatever the last known expiry looks like.
- A failed check never clears a known domain or certificate expiry; the
  last known value is always preferred over no value.
- Log queries are ordered newest first with a stable tie-break on the log
  id, so pagination is deterministic.
"""

import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from .classifier import SEVERITY_STYLES, classify, classify_expiry
from .enums import (
    AlertType,
    CheckType,
    DomainStatus,
    ExpirySeverity,
    LogSeverity,
    LogType,
    SSLStatus,
)
from .i18n import get_message
from .models import (
    AlertToFire,
    CheckResult,
    DomainMonitoringUpdate,
    DomainRecord,
    LogDetails,
    LogPage,
    LogQuery,
    MonitoringLogEntry,
    MonitoringStats,
)
from .timestamps import to_iso


MAX_PAGE_SIZE = 500
DEFAULT_CRITICAL_WINDOW = timedelta(days=30)
DEFAULT_RETENTION_DAYS = 90

_CHECK_LABELS = {
    CheckType.WHOIS: "WHOIS",
    CheckType.SSL: "SSL",
    CheckType.UPTIME: "Uptime",
    CheckType.DNS: "DNS",
}

_STATUS_SEVERITIES = {
    DomainStatus.ONLINE: LogSeverity.INFO,
    DomainStatus.UNKNOWN: LogSeverity.INFO,
    DomainStatus.OFFLINE: LogSeverity.WARNING,
}

# Message key prefix per expiry log type
_EXPIRY_PREFIXES = {
    LogType.DOMAIN_EXPIRY: "log.domain",
    LogType.SSL_EXPIRY: "log.ssl",
}


def _new_log_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RecordOutcome:
    """Log entry and domain update produced by one check result."""

    log_entry: MonitoringLogEntry
    update: DomainMonitoringUpdate


class LogAggregator:
    """
    Builds log entries and domain updates from check results.

    Args:
        language: Language of the generated log messages
        id_factory: Callable producing new log ids (uuid4 hex by default)
    """

    def __init__(
        self,
        language: Optional[str] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self._language = language
        self._id_factory = id_factory or _new_log_id

    def record(
        self,
        check_result: CheckResult,
        domain: DomainRecord,
        now: datetime,
    ) -> RecordOutcome:
        """
        Build the log entry and the domain update for a check result.

        Args:
            check_result: Raw outcome of the check
            domain: Domain record as it was before the check
            now: Time the entry is created at

        Returns:
            RecordOutcome with the new log entry and the update to merge
        """
        if not check_result.success:
            return self._record_failure(check_result, domain, now)

        if check_result.check_type == CheckType.WHOIS:
            return self._record_whois(check_result, domain, now)
        if check_result.check_type == CheckType.SSL:
            return self._record_ssl(check_result, domain, now)
        if check_result.check_type == CheckType.UPTIME:
            return self._record_uptime(check_result, domain, now)
        return self._record_dns(check_result, domain, now)

    def _entry(
        self,
        domain: DomainRecord,
        log_type: LogType,
        severity: LogSeverity,
        message: str,
        details: LogDetails,
        now: datetime,
    ) -> MonitoringLogEntry:
        return MonitoringLogEntry(
            id=self._id_factory(),
            domain=domain.domain,
            domain_id=domain.id,
            log_type=log_type,
            severity=severity,
            message=message,
            details=details,
            created_at=now,
        )

    def _record_failure(
        self,
        check_result: CheckResult,
        domain: DomainRecord,
        now: datetime,
    ) -> RecordOutcome:
        error = check_result.error or "unknown error"
        entry = self._entry(
            domain,
            LogType.MONITORING_ERROR,
            LogSeverity.ERROR,
            get_message(
                "log.check_failed",
                self._language,
                check=_CHECK_LABELS[check_result.check_type],
                domain=domain.domain,
                error=error,
            ),
            LogDetails(error=error),
            now,
        )
        # Nothing to overwrite: only the attempt time is recorded
        update = DomainMonitoringUpdate(
            domain_id=domain.id,
            domain=domain.domain,
            checked_at=now,
        )
        return RecordOutcome(entry, update)

    def _expiry_message(
        self,
        log_type: LogType,
        severity: ExpirySeverity,
        days: Optional[int],
        domain: str,
    ) -> str:
        prefix = _EXPIRY_PREFIXES[log_type]
        if severity == ExpirySeverity.UNKNOWN:
            key = f"{prefix}_expiry_unknown"
        elif severity == ExpirySeverity.EXPIRED:
            key = f"{prefix}_expired"
        elif severity == ExpirySeverity.EXPIRES_TODAY:
            key = f"{prefix}_expires_today"
        else:
            key = f"{prefix}_expires_in"
        return get_message(key, self._language, domain=domain, days=days)

    def _record_whois(
        self,
        check_result: CheckResult,
        domain: DomainRecord,
        now: datetime,
    ) -> RecordOutcome:
        result = classify_expiry(check_result.expiry, now)
        entry = self._entry(
            domain,
            LogType.DOMAIN_EXPIRY,
            SEVERITY_STYLES[result.severity].log_severity,
            self._expiry_message(
                LogType.DOMAIN_EXPIRY, result.severity, result.days_remaining, domain.domain
            ),
            LogDetails(
                days_until_expiry=result.days_remaining,
                expiry_date=to_iso(result.expiry),
            ),
            now,
        )
        update = DomainMonitoringUpdate(
            domain_id=domain.id,
            domain=domain.domain,
            expiry_date=result.expiry,
            registrar=check_result.registrar or None,
            nameservers=list(check_result.nameservers) or None,
            last_whois_check=now,
            checked_at=now,
        )
        return RecordOutcome(entry, update)

    def _record_ssl(
        self,
        check_result: CheckResult,
        domain: DomainRecord,
        now: datetime,
    ) -> RecordOutcome:
        result = classify_expiry(check_result.expiry, now)
        ssl_status = check_result.ssl_status
        if ssl_status is None:
            if result.severity == ExpirySeverity.UNKNOWN:
                ssl_status = SSLStatus.UNKNOWN
            elif result.severity == ExpirySeverity.EXPIRED:
                ssl_status = SSLStatus.EXPIRED
            else:
                ssl_status = SSLStatus.VALID

        details = LogDetails(
            days_until_expiry=result.days_remaining,
            ssl_expiry_date=to_iso(result.expiry),
            ssl_status=ssl_status.value,
        )
        if domain.ssl_status != ssl_status:
            details = replace(details, previous_status=domain.ssl_status.value)

        entry = self._entry(
            domain,
            LogType.SSL_EXPIRY,
            SEVERITY_STYLES[result.severity].log_severity,
            self._expiry_message(
                LogType.SSL_EXPIRY, result.severity, result.days_remaining, domain.domain
            ),
            details,
            now,
        )
        update = DomainMonitoringUpdate(
            domain_id=domain.id,
            domain=domain.domain,
            ssl_expiry=result.expiry,
            ssl_status=ssl_status,
            last_ssl_check=now,
            checked_at=now,
        )
        return RecordOutcome(entry, update)

    def _record_uptime(
        self,
        check_result: CheckResult,
        domain: DomainRecord,
        now: datetime,
    ) -> RecordOutcome:
        current = check_result.status or DomainStatus.UNKNOWN
        previous = domain.status

        if previous != current and previous != DomainStatus.UNKNOWN:
            message = get_message(
                "log.status_changed",
                self._language,
                domain=domain.domain,
                previous=previous.value,
                current=current.value,
            )
        else:
            message = get_message(
                "log.status", self._language, domain=domain.domain, status=current.value
            )

        entry = self._entry(
            domain,
            LogType.DOMAIN_STATUS,
            _STATUS_SEVERITIES[current],
            message,
            LogDetails(previous_status=previous.value, current_status=current.value),
            now,
        )
        update = DomainMonitoringUpdate(
            domain_id=domain.id,
            domain=domain.domain,
            status=current,
            checked_at=now,
        )
        return RecordOutcome(entry, update)

    def _record_dns(
        self,
        check_result: CheckResult,
        domain: DomainRecord,
        now: datetime,
    ) -> RecordOutcome:
        nameservers = check_result.records.get("NS") or check_result.nameservers
        entry = self._entry(
            domain,
            LogType.DOMAIN_STATUS,
            LogSeverity.INFO,
            get_message("log.records_resolved", self._language, domain=domain.domain),
            LogDetails(current_status=domain.status.value),
            now,
        )
        update = DomainMonitoringUpdate(
            domain_id=domain.id,
            domain=domain.domain,
            nameservers=list(nameservers) or None,
            checked_at=now,
        )
        return RecordOutcome(entry, update)

    def alert_entry(
        self,
        alert: AlertToFire,
        domain: DomainRecord,
        now: datetime,
    ) -> MonitoringLogEntry:
        """
        Build the log entry an alert is delivered for when no check of this
        run produced one (e.g. the check failed and the stored expiry fired).
        """
        result = classify_expiry(alert.expiry, now)
        if alert.alert_type == AlertType.SSL_EXPIRY:
            log_type = LogType.SSL_EXPIRY
            details = LogDetails(
                days_until_expiry=alert.days_remaining,
                ssl_expiry_date=to_iso(alert.expiry),
            )
        else:
            log_type = LogType.DOMAIN_EXPIRY
            details = LogDetails(
                days_until_expiry=alert.days_remaining,
                expiry_date=to_iso(alert.expiry),
            )

        return self._entry(
            domain,
            log_type,
            SEVERITY_STYLES[result.severity].log_severity,
            alert.message,
            details,
            now,
        )

    def registrar_override_entry(
        self,
        domain: DomainRecord,
        whois_registrar: str,
        resolved: str,
        now: datetime,
    ) -> MonitoringLogEntry:
        """Informational entry noting that a WHOIS registrar was replaced by an account name."""
        return self._entry(
            domain,
            LogType.MONITORING_ERROR,
            LogSeverity.INFO,
            get_message(
                "log.registrar_overridden",
                self._language,
                whois=whois_registrar,
                resolved=resolved,
            ),
            LogDetails(),
            now,
        )


def record(
    check_result: CheckResult,
    domain: DomainRecord,
    now: datetime,
    language: Optional[str] = None,
) -> RecordOutcome:
    """Shortcut for LogAggregator(language).record(...)."""
    return LogAggregator(language).record(check_result, domain, now)


def apply_update(domain: DomainRecord, update: DomainMonitoringUpdate) -> DomainRecord:
    """
    Merge a monitoring update into a domain record.

    Absent values in the update leave the record unchanged. Expiry values
    are only cleared when the update explicitly disables preservation.

    Returns:
        A new DomainRecord; the input is not modified
    """
    changes = {}

    if update.expiry_date is not None or not update.preserve_expiry_date:
        changes["domain_expiry"] = update.expiry_date
    if update.ssl_expiry is not None or not update.preserve_expiry_date:
        changes["cert_expiry"] = update.ssl_expiry
    if update.ssl_status is not None:
        changes["ssl_status"] = update.ssl_status
    if update.registrar is not None:
        changes["registrar"] = update.registrar
    if update.nameservers is not None:
        changes["nameservers"] = list(update.nameservers)
    if update.last_whois_check is not None:
        changes["last_whois_check"] = update.last_whois_check
    if update.last_ssl_check is not None:
        changes["last_ssl_check"] = update.last_ssl_check
    if update.status is not None:
        changes["status"] = update.status
    if update.checked_at is not None:
        changes["last_checked"] = update.checked_at
        changes["updated_at"] = update.checked_at

    return replace(domain, **changes)


def stats(
    logs: Iterable[MonitoringLogEntry],
    domains: Iterable[DomainRecord],
    now: datetime,
    critical_window: Optional[timedelta] = DEFAULT_CRITICAL_WINDOW,
    last_run: Optional[datetime] = None,
    next_run: Optional[datetime] = None,
) -> MonitoringStats:
    """
    Dashboard statistics over the current domains and logs.

    Args:
        logs: Monitoring log entries
        domains: All domain records of the account
        now: Reference time for classification and the critical window
        critical_window: Only critical entries newer than now - window count;
            None counts all history
        last_run: Time of the last monitoring run, if known
        next_run: Time of the next scheduled run, if known

    Returns:
        MonitoringStats
    """
    domains = list(domains)
    cutoff = now - critical_window if critical_window is not None else None

    critical_alerts = sum(
        1 for log in logs
        if log.severity == LogSeverity.CRITICAL
        and (cutoff is None or log.created_at >= cutoff)
    )

    return MonitoringStats(
        total_domains=len(domains),
        active_domains=sum(1 for d in domains if d.status == DomainStatus.ONLINE),
        domains_expiring_soon=sum(
            1 for d in domains if classify(d.domain_expiry, now).is_expiring_soon
        ),
        ssl_expiring_soon=sum(
            1 for d in domains if classify(d.cert_expiry, now).is_expiring_soon
        ),
        critical_alerts=critical_alerts,
        last_monitoring_run=last_run,
        next_monitoring_run=next_run,
    )


def _matches(log: MonitoringLogEntry, log_query: LogQuery) -> bool:
    if log_query.domain and log_query.domain.lower() not in log.domain.lower():
        return False
    if log_query.log_type is not None and log.log_type != log_query.log_type:
        return False
    if log_query.severity is not None and log.severity != log_query.severity:
        return False
    if log_query.alert_sent is not None and log.alert_sent != log_query.alert_sent:
        return False
    if log_query.start_date is not None and log.created_at < log_query.start_date:
        return False
    if log_query.end_date is not None and log.created_at > log_query.end_date:
        return False
    return True


def query(logs: Iterable[MonitoringLogEntry], log_query: LogQuery) -> LogPage:
    """
    Filter, order and paginate monitoring logs.

    Pages are 1-based; a page below 1 is read as 1 and the limit is
    clamped to 1..MAX_PAGE_SIZE.
    """
    page = max(1, log_query.page)
    limit = min(max(1, log_query.limit), MAX_PAGE_SIZE)

    matching = [log for log in logs if _matches(log, log_query)]
    matching.sort(key=lambda log: (log.created_at, log.id), reverse=True)

    offset = (page - 1) * limit
    return LogPage(
        logs=matching[offset:offset + limit],
        total=len(matching),
        page=page,
        total_pages=math.ceil(len(matching) / limit),
    )


def expired_logs(
    logs: Iterable[MonitoringLogEntry],
    now: datetime,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> list[MonitoringLogEntry]:
    """Entries older than the retention period, i.e. what a cleanup removes."""
    cutoff = now - timedelta(days=retention_days)
    return [log for log in logs if log.created_at <= cutoff]
