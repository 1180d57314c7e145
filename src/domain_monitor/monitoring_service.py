"""
Monitoring service for the domain monitor system.

Coordinates the components for one monitoring run:
- Checkers (RDAP expiry, TLS certificate, uptime) with a per-check timeout
- Log aggregation and merging of results into the domain records
- Registrar name resolution against connected registrar accounts
- Threshold alert evaluation and delivery through the alert dispatcher
- Retries of failed alert deliveries, log cleanup and dashboard stats

Domains are processed in batches; domains within a batch run concurrently.
Every read-merge-write of a domain record, including the fired-alert
history cycle, happens under a per-domain asyncio.Lock.
"""

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .aggregator import LogAggregator, apply_update, expired_logs, query, stats
from .audit_logger import AuditLogger
from .checkers import Checker, RDAPExpiryClient, TLSCertificateClient, UptimeClient
from .config import SystemConfig
from .domain_validator import DomainValidator
from .eligibility import EligibilityEngine, history_key
from .enums import AlertType, CheckErrorCode, CheckType, LogLevel, LogType
from .exceptions import CheckError, DomainMonitorError, NotFoundError
from .models import (
    AlertDispatchRecord,
    AlertToFire,
    CheckResult,
    DomainRecord,
    LogPage,
    LogQuery,
    MonitoringLogEntry,
    MonitoringStats,
    NotificationSettings,
)
from .notifications import AlertDispatcher, build_channels
from .registrars import resolve_registrar_name
from .repository import MonitoringRepository
from .retry_policy import DispatchRetryPolicy
from .scheduler import CronParser
from .timestamps import to_iso, utc_now


_ALERT_LOG_TYPES = {
    AlertType.DOMAIN_EXPIRY: LogType.DOMAIN_EXPIRY,
    AlertType.SSL_EXPIRY: LogType.SSL_EXPIRY,
}


@dataclass
class DomainRunResult:
    """Outcome of monitoring one domain."""

    domain_id: str
    domain: str
    log_entries: list[MonitoringLogEntry] = field(default_factory=list)
    alerts: list[AlertToFire] = field(default_factory=list)
    dispatch_records: list[AlertDispatchRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    """Outcome of a monitoring run over all active domains."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    results: list[DomainRunResult] = field(default_factory=list)
    skipped: bool = False

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)


class MonitoringService:
    """
    Main orchestrator for domain monitoring.

    Storage is injected; checkers and the alert dispatcher are built from
    the configuration unless passed in explicitly.
    """

    def __init__(
        self,
        config: SystemConfig,
        repository: MonitoringRepository,
        checkers: Optional[list[Checker]] = None,
        dispatcher: Optional[AlertDispatcher] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        """
        Initialize the monitoring service.

        Args:
            config: System configuration
            repository: Storage for domains, logs, dispatch records and history
            checkers: Checkers to run per domain; built from config if None
            dispatcher: Alert dispatcher; built from the notification
                settings on every run if None
            logger: Optional audit logger for logging
            clock: Source of the current time
            sleep: Coroutine used for batch and per-domain delays
            id_factory: Callable producing new ids (uuid4 hex by default)
        """
        self._config = config
        self._repository = repository
        self._logger = logger
        self._clock = clock
        self._sleep = sleep
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

        self._checkers = checkers if checkers is not None else self._default_checkers()
        self._dispatcher = dispatcher
        self._retry_policy = DispatchRetryPolicy(config.retry)

        language = config.language
        self._aggregator = LogAggregator(language, self._id_factory)
        self._eligibility = EligibilityEngine(language)
        self._domain_validator = DomainValidator(language=language)
        self._monitoring_schedule = CronParser().parse(config.monitoring.monitoring_schedule)

        self._locks: dict[str, asyncio.Lock] = {}
        self._running = False

    async def __aenter__(self) -> "MonitoringService":
        """Async context manager entry; connects the repository."""
        self._repository.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit; closes checkers and the repository."""
        for checker in self._checkers:
            close = getattr(checker, "close", None)
            if close is not None:
                await close()
        self._repository.disconnect()

    def _default_checkers(self) -> list[Checker]:
        monitoring = self._config.monitoring
        simulation = self._config.simulation_mode
        checkers: list[Checker] = []
        if monitoring.check_whois:
            checkers.append(RDAPExpiryClient(
                timeout=monitoring.check_timeout_seconds, simulation_mode=simulation
            ))
        if monitoring.check_ssl:
            checkers.append(TLSCertificateClient(
                timeout=monitoring.check_timeout_seconds, simulation_mode=simulation
            ))
        if monitoring.check_uptime:
            checkers.append(UptimeClient(
                timeout=monitoring.check_timeout_seconds, simulation_mode=simulation
            ))
        return checkers

    def _dispatcher_for(self, settings: NotificationSettings) -> AlertDispatcher:
        if self._dispatcher is not None:
            return self._dispatcher
        return AlertDispatcher(
            self._retry_policy,
            build_channels(
                settings, self._config.notifications, self._config.simulation_mode
            ),
            logger=self._logger,
            language=self._config.language,
            id_factory=self._id_factory,
        )

    def _lock_for(self, domain_id: str) -> asyncio.Lock:
        return self._locks.setdefault(domain_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Domains
    # ------------------------------------------------------------------

    def add_domain(
        self,
        raw_domain: str,
        registrar: str = "",
        auto_renew: bool = False,
        owner_id: Optional[str] = None,
    ) -> DomainRecord:
        """
        Validate, normalize and store a new domain.

        Raises:
            ValidationError: If the domain is invalid
            PersistenceError: If the domain is already monitored
        """
        canonical = self._domain_validator.validate_or_raise(raw_domain)
        now = self._clock()
        record = DomainRecord(
            id=self._id_factory(),
            domain=canonical,
            registrar=registrar,
            auto_renew=auto_renew,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        self._repository.save_domain(record)
        self._repository.flush()

        self._log_info(
            "MonitoringService",
            f"Domain added: {canonical}",
            {"domain": canonical, "raw_domain": raw_domain, "domain_id": record.id},
        )
        return record

    def remove_domain(self, name_or_id: str) -> bool:
        """Delete a domain by id or name. Returns False if it did not exist."""
        record = self._repository.get_domain(name_or_id) or self._find(name_or_id)
        if record is None:
            return False

        self._repository.delete_domain(record.id)
        self._repository.flush()
        self._locks.pop(record.id, None)
        self._log_info(
            "MonitoringService",
            f"Domain removed: {record.domain}",
            {"domain": record.domain, "domain_id": record.id},
        )
        return True

    def _find(self, name: str) -> Optional[DomainRecord]:
        result = self._domain_validator.validate(name)
        if not result.valid:
            return None
        return self._repository.find_domain(result.canonical_domain)

    def get_domain(self, name_or_id: str) -> DomainRecord:
        """
        Look up a domain by id or name.

        Raises:
            NotFoundError: If no such domain is monitored
        """
        record = self._repository.get_domain(name_or_id) or self._find(name_or_id)
        if record is None:
            raise NotFoundError("domain", name_or_id)
        return record

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    async def monitor_domain(
        self,
        domain_id: str,
        dispatcher: Optional[AlertDispatcher] = None,
    ) -> DomainRunResult:
        """
        Run every checker against one domain and process the results.

        Args:
            domain_id: Id of the domain to check
            dispatcher: Dispatcher to use; built from the settings if None

        Returns:
            DomainRunResult with the new log entries, fired alerts and
            dispatch records

        Raises:
            NotFoundError: If the domain does not exist
        """
        async with self._lock_for(domain_id):
            domain = self.get_domain(domain_id)
            now = self._clock()

            self._log_info(
                "MonitoringService",
                f"Starting checks for domain: {domain.domain}",
                {"domain": domain.domain, "checks": [c.check_type.value for c in self._checkers]},
            )

            results = await asyncio.gather(
                *(self._run_check(checker, domain, now) for checker in self._checkers)
            )
            return await self._process(domain, list(results), now, dispatcher)

    async def ingest(
        self,
        check_result: CheckResult,
        dispatcher: Optional[AlertDispatcher] = None,
    ) -> DomainRunResult:
        """
        Process a check result produced outside the service (e.g. DNS).

        Raises:
            NotFoundError: If the result's domain does not exist
        """
        async with self._lock_for(check_result.domain_id):
            domain = self.get_domain(check_result.domain_id)
            return await self._process(domain, [check_result], self._clock(), dispatcher)

    async def _run_check(
        self,
        checker: Checker,
        domain: DomainRecord,
        now: datetime,
    ) -> CheckResult:
        timeout = self._config.monitoring.check_timeout_seconds
        try:
            return await asyncio.wait_for(checker.check(domain, now), timeout=timeout)
        except asyncio.TimeoutError:
            error = CheckError(
                code=CheckErrorCode.TIMEOUT.value,
                message=f"Check timed out after {timeout}s",
                check_type=checker.check_type.value,
            )
        except CheckError as e:
            error = e
            if error.check_type is None:
                error.check_type = checker.check_type.value
        except Exception as e:
            # Unexpected checker failures (malformed payloads, library errors)
            # are recorded like any other failed check
            error = CheckError(
                code=CheckErrorCode.PARSE_ERROR.value,
                message=f"Unexpected {type(e).__name__}: {e}",
                details={"error_type": type(e).__name__},
                check_type=checker.check_type.value,
            )

        if self._logger:
            self._logger.log_error(
                "MonitoringService",
                f"{checker.check_type.value} check failed for {domain.domain}",
                error=error,
                domain=domain.domain,
                additional_data={"check": checker.check_type.value, **error.details},
            )
        return CheckResult.failure(
            checker.check_type, domain.id, domain.domain, error.message, now, error.code
        )

    async def _process(
        self,
        domain: DomainRecord,
        results: list[CheckResult],
        now: datetime,
        dispatcher: Optional[AlertDispatcher],
    ) -> DomainRunResult:
        entries: list[MonitoringLogEntry] = []

        for check_result in results:
            outcome = self._aggregator.record(check_result, domain, now)
            domain = apply_update(domain, outcome.update)
            entries.append(outcome.log_entry)

            if (
                check_result.success
                and check_result.check_type == CheckType.WHOIS
                and check_result.registrar
            ):
                domain = self._resolve_registrar(domain, check_result.registrar, entries, now)

        self._repository.save_domain(domain)
        for entry in entries:
            self._repository.append_log(entry)

        run_result = DomainRunResult(domain_id=domain.id, domain=domain.domain)

        settings = self._repository.get_settings()
        alerts = self._eligibility.evaluate(
            domain, settings, self._repository.fired_alerts(domain.id), now
        )
        if alerts:
            dispatcher = dispatcher or self._dispatcher_for(settings)
        for alert in alerts:
            entry = self._entry_for_alert(alert, domain, entries, now)
            outcome = await dispatcher.dispatch(entry, now)
            for record in outcome.records:
                self._repository.save_dispatch(record)
            if outcome.log_entry != entry:
                self._repository.update_log(outcome.log_entry)
                entries[entries.index(entry)] = outcome.log_entry
            self._repository.record_fired_alert(history_key(alert))

            run_result.alerts.append(alert)
            run_result.dispatch_records.extend(outcome.records)
            self._log_info(
                "MonitoringService",
                f"Alert fired for {domain.domain}",
                {"domain": domain.domain, "alert_type": alert.alert_type.value,
                 "threshold_day": alert.threshold_day,
                 "alert_sent": outcome.log_entry.alert_sent},
            )

        self._repository.flush()
        run_result.log_entries = entries
        return run_result

    def _resolve_registrar(
        self,
        domain: DomainRecord,
        whois_registrar: str,
        entries: list[MonitoringLogEntry],
        now: datetime,
    ) -> DomainRecord:
        resolved = resolve_registrar_name(
            whois_registrar, self._repository.list_registrar_accounts()
        )
        if resolved == whois_registrar:
            return domain

        entries.append(
            self._aggregator.registrar_override_entry(domain, whois_registrar, resolved, now)
        )
        return replace(domain, registrar=resolved)

    def _entry_for_alert(
        self,
        alert: AlertToFire,
        domain: DomainRecord,
        entries: list[MonitoringLogEntry],
        now: datetime,
    ) -> MonitoringLogEntry:
        """Log entry of this run the alert belongs to; created if there is none."""
        log_type = _ALERT_LOG_TYPES[alert.alert_type]
        expiry = to_iso(alert.expiry)
        for entry in entries:
            if entry.log_type != log_type:
                continue
            logged = entry.details.expiry_date or entry.details.ssl_expiry_date
            if logged == expiry:
                return entry

        entry = self._aggregator.alert_entry(alert, domain, now)
        self._repository.append_log(entry)
        entries.append(entry)
        return entry

    async def run_all(self) -> RunSummary:
        """
        Monitor every active domain.

        Domains are processed in batches of config.monitoring.batch_size;
        starts within a batch are staggered by domain_delay_seconds and
        batches are separated by batch_delay_seconds. A run requested while
        another is in progress is skipped.

        Returns:
            RunSummary with one DomainRunResult per processed domain
        """
        started_at = self._clock()
        if self._running:
            self._log_info(
                "MonitoringService",
                "Monitoring run already in progress, skipping",
                {"requested_at": to_iso(started_at)},
            )
            return RunSummary(started_at=started_at, finished_at=started_at, skipped=True)

        self._running = True
        summary = RunSummary(started_at=started_at)
        try:
            monitoring = self._config.monitoring
            domains = [d for d in self._repository.list_domains() if d.is_active]
            dispatcher = self._dispatcher_for(self._repository.get_settings())
            batch_size = max(1, monitoring.batch_size)

            self._log_info(
                "MonitoringService",
                f"Starting monitoring run for {len(domains)} domains",
                {"domains": len(domains), "batch_size": batch_size},
            )

            for start in range(0, len(domains), batch_size):
                batch = domains[start:start + batch_size]
                batch_results = await asyncio.gather(*(
                    self._monitor_staggered(
                        d.id, dispatcher, index * monitoring.domain_delay_seconds
                    )
                    for index, d in enumerate(batch)
                ))
                summary.results.extend(batch_results)

                if start + batch_size < len(domains):
                    await self._sleep(monitoring.batch_delay_seconds)

            self._repository.set_last_run(started_at)
            self._repository.flush()
        finally:
            self._running = False

        summary.finished_at = self._clock()
        self._log_info(
            "MonitoringService",
            "Monitoring run completed",
            {"total": summary.total, "succeeded": summary.succeeded},
        )
        return summary

    async def _monitor_staggered(
        self,
        domain_id: str,
        dispatcher: AlertDispatcher,
        delay: float,
    ) -> DomainRunResult:
        if delay > 0:
            await self._sleep(delay)
        try:
            return await self.monitor_domain(domain_id, dispatcher)
        except DomainMonitorError as e:
            self._log_error(
                "MonitoringService",
                f"Monitoring failed for domain {domain_id}",
                {"domain_id": domain_id, "error": e.to_dict()},
            )
            domain = self._repository.get_domain(domain_id)
            return DomainRunResult(
                domain_id=domain_id,
                domain=domain.domain if domain else "",
                error=e.message,
            )

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Alert retries, cleanup, stats and logs
    # ------------------------------------------------------------------

    async def retry_failed_alerts(self) -> list[AlertDispatchRecord]:
        """
        Redeliver every dispatch record whose retry is due.

        Returns:
            The updated records
        """
        now = self._clock()
        due = [
            r for r in self._repository.list_dispatches()
            if self._retry_policy.is_due(r, now)
        ]
        if not due:
            return []

        dispatcher = self._dispatcher_for(self._repository.get_settings())
        updated = []
        for record in due:
            entry = self._repository.get_log(record.log_id)
            if entry is None:
                new_record = self._retry_policy.record_failure(
                    record, "log entry no longer exists", now
                )
            else:
                outcome = await dispatcher.redeliver(record, entry, now)
                new_record = outcome.records[0]
                if outcome.log_entry != entry:
                    self._repository.update_log(outcome.log_entry)

            self._repository.save_dispatch(new_record)
            updated.append(new_record)

        self._repository.flush()
        self._log_info(
            "MonitoringService",
            f"Retried {len(updated)} alert deliveries",
            {"retried": len(updated),
             "sent": sum(1 for r in updated if r.sent_at is not None)},
        )
        return updated

    def cleanup_logs(self, retention_days: Optional[int] = None) -> int:
        """
        Delete log entries older than the retention period.

        Returns:
            Number of deleted entries
        """
        days = (
            retention_days if retention_days is not None
            else self._config.monitoring.log_retention_days
        )
        expired = expired_logs(self._repository.list_logs(), self._clock(), days)
        deleted = self._repository.delete_logs(log.id for log in expired)
        self._repository.flush()

        self._log_info(
            "MonitoringService",
            f"Cleaned up {deleted} old monitoring logs",
            {"deleted": deleted, "retention_days": days},
        )
        return deleted

    def next_run(self, after: Optional[datetime] = None) -> Optional[datetime]:
        """Next scheduled monitoring run."""
        return self._monitoring_schedule.next_run(after or self._clock())

    def get_stats(self) -> MonitoringStats:
        """Dashboard statistics for the current state."""
        now = self._clock()
        window_days = self._config.monitoring.critical_window_days
        return stats(
            self._repository.list_logs(),
            self._repository.list_domains(),
            now,
            critical_window=timedelta(days=window_days) if window_days is not None else None,
            last_run=self._repository.get_last_run(),
            next_run=self.next_run(now),
        )

    def get_logs(self, log_query: Optional[LogQuery] = None) -> LogPage:
        """Filtered, paginated monitoring logs, newest first."""
        return query(self._repository.list_logs(), log_query or LogQuery())

    # ------------------------------------------------------------------
    # Logging helpers
    # ------------------------------------------------------------------

    def _log_info(self, component: str, message: str, data: dict) -> None:
        """Log an info message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.INFO, component, message, data)

    def _log_error(self, component: str, message: str, data: dict) -> None:
        """Log an error message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.ERROR, component, message, data)

    @property
    def repository(self) -> MonitoringRepository:
        return self._repository

    @property
    def config(self) -> SystemConfig:
        """Get the system configuration."""
        return self._config
