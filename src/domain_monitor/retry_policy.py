"""
Retry policy for alert dispatch records.

Each (log entry, channel) pair has one AlertDispatchRecord that moves
through these states:

    pending -> sent | retry | failed
    retry   -> sent | retry | failed
    sent, failed: terminal

The first delivery attempt happens in state pending. Every later attempt
happens in state retry and increments retry_count, so a record is tried at
most 1 + max_retries times. Failed attempts schedule the next one with
exponential backoff (base_delay * 2^retry_count, capped at max_delay) in
next_attempt_at; the monitoring service picks due records up on its next
run.
"""

from dataclasses import replace
from datetime import datetime, timedelta

from .config import RetryConfig
from .enums import AlertChannelType, AlertType, DispatchStatus, LogType
from .exceptions import DispatchStateError
from .models import AlertDispatchRecord, MonitoringLogEntry


ALLOWED_TRANSITIONS: dict[DispatchStatus, frozenset[DispatchStatus]] = {
    DispatchStatus.PENDING: frozenset(
        {DispatchStatus.SENT, DispatchStatus.RETRY, DispatchStatus.FAILED}
    ),
    DispatchStatus.RETRY: frozenset(
        {DispatchStatus.SENT, DispatchStatus.RETRY, DispatchStatus.FAILED}
    ),
    DispatchStatus.SENT: frozenset(),
    DispatchStatus.FAILED: frozenset(),
}

_ALERT_TYPES = {
    LogType.DOMAIN_EXPIRY: AlertType.DOMAIN_EXPIRY,
    LogType.SSL_EXPIRY: AlertType.SSL_EXPIRY,
}


def can_transition(current: DispatchStatus, target: DispatchStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class DispatchRetryPolicy:
    """
    Applies delivery outcomes to dispatch records.

    All methods return new records; the input record is never modified.
    """

    def __init__(self, config: RetryConfig) -> None:
        """
        Initialize the retry policy.

        Args:
            config: Retry configuration with max_retries and delays
        """
        self._config = config

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    def calculate_delay(self, retry_count: int) -> float:
        """
        Calculate wait time with exponential backoff.

        Args:
            retry_count: Retries performed so far

        Returns:
            The delay in seconds before the next attempt
        """
        delay = self._config.base_delay_seconds * (2 ** retry_count)
        return min(delay, self._config.max_delay_seconds)

    def new_record(
        self,
        record_id: str,
        log: MonitoringLogEntry,
        channel: AlertChannelType,
        recipient: str,
        now: datetime,
    ) -> AlertDispatchRecord:
        """Create the pending record for delivering a log entry via a channel."""
        return AlertDispatchRecord(
            id=record_id,
            log_id=log.id,
            domain=log.domain,
            alert_type=_ALERT_TYPES.get(log.log_type, AlertType.DOMAIN_STATUS),
            channel=channel,
            recipient=recipient,
            status=DispatchStatus.PENDING,
            created_at=now,
        )

    def is_due(self, record: AlertDispatchRecord, now: datetime) -> bool:
        """True if the record waits for a retry whose time has come."""
        if record.status != DispatchStatus.RETRY:
            return False
        return record.next_attempt_at is None or record.next_attempt_at <= now

    def record_success(
        self, record: AlertDispatchRecord, now: datetime
    ) -> AlertDispatchRecord:
        """
        Apply a successful delivery attempt.

        Raises:
            DispatchStateError: If the record is already terminal
        """
        self._check_transition(record, DispatchStatus.SENT)
        return replace(
            record,
            status=DispatchStatus.SENT,
            sent_at=now,
            error=None,
            retry_count=self._attempt_count(record),
            next_attempt_at=None,
        )

    def record_failure(
        self,
        record: AlertDispatchRecord,
        error: str,
        now: datetime,
    ) -> AlertDispatchRecord:
        """
        Apply a failed delivery attempt.

        The record goes to retry while the retry budget lasts and to
        failed afterwards.

        Raises:
            DispatchStateError: If the record is already terminal
        """
        retry_count = self._attempt_count(record)
        if retry_count >= self._config.max_retries:
            self._check_transition(record, DispatchStatus.FAILED)
            return replace(
                record,
                status=DispatchStatus.FAILED,
                error=error,
                retry_count=retry_count,
                next_attempt_at=None,
            )

        self._check_transition(record, DispatchStatus.RETRY)
        return replace(
            record,
            status=DispatchStatus.RETRY,
            error=error,
            retry_count=retry_count,
            next_attempt_at=now + timedelta(seconds=self.calculate_delay(retry_count)),
        )

    def _attempt_count(self, record: AlertDispatchRecord) -> int:
        # Attempts made from state retry count as retries
        if record.status == DispatchStatus.RETRY:
            return record.retry_count + 1
        return record.retry_count

    def _check_transition(
        self, record: AlertDispatchRecord, target: DispatchStatus
    ) -> None:
        if not can_transition(record.status, target):
            raise DispatchStateError(record.id, record.status.value, target.value)
