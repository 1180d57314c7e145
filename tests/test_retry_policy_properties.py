"""
Property-based tests for the alert dispatch retry policy.

Uses Hypothesis to verify exponential backoff, the retry budget and the
dispatch status state machine.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.config import RetryConfig
from domain_monitor.enums import AlertChannelType, AlertType, DispatchStatus, LogSeverity, LogType
from domain_monitor.exceptions import DispatchStateError
from domain_monitor.models import MonitoringLogEntry
from domain_monitor.retry_policy import DispatchRetryPolicy, can_transition


NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


# Strategies for generating test data

@st.composite
def retry_config_strategy(draw) -> RetryConfig:
    """Generate valid RetryConfig objects."""
    base_delay = draw(st.floats(min_value=1.0, max_value=120.0))
    return RetryConfig(
        max_retries=draw(st.integers(min_value=0, max_value=8)),
        base_delay_seconds=base_delay,
        max_delay_seconds=draw(st.floats(min_value=base_delay, max_value=7200.0)),
    )


def make_log(log_type: LogType = LogType.DOMAIN_EXPIRY) -> MonitoringLogEntry:
    return MonitoringLogEntry(
        id="log-1",
        domain="example.com",
        log_type=log_type,
        severity=LogSeverity.WARNING,
        message="Domain example.com expires in 30 day(s)",
        created_at=NOW,
    )


def new_record(policy: DispatchRetryPolicy):
    return policy.new_record(
        "rec-1", make_log(), AlertChannelType.WEBHOOK, "https://hooks.example.com", NOW
    )


class TestExponentialBackoffProperty:
    """
    Property 12: Retry delays grow exponentially up to the cap.

    **Feature: domain-monitor, Property 12: Exponential backoff**
    """

    @given(config=retry_config_strategy(), retry_count=st.integers(min_value=0, max_value=10))
    @settings(max_examples=100)
    def test_delay_is_base_times_power_of_two_capped(
        self, config: RetryConfig, retry_count: int
    ) -> None:
        """
        *For any* retry count n, the delay SHALL be
        min(base * 2^n, max_delay).
        """
        policy = DispatchRetryPolicy(config)
        expected = min(config.base_delay_seconds * (2 ** retry_count), config.max_delay_seconds)

        assert abs(policy.calculate_delay(retry_count) - expected) < 1e-9

    @given(config=retry_config_strategy())
    @settings(max_examples=100)
    def test_failure_schedules_next_attempt(self, config: RetryConfig) -> None:
        """
        *For any* config with a retry budget, a failed first attempt SHALL
        move the record to retry with next_attempt_at = now + base delay.
        """
        if config.max_retries == 0:
            return
        policy = DispatchRetryPolicy(config)

        failed = policy.record_failure(new_record(policy), "HTTP 500", NOW)

        assert failed.status == DispatchStatus.RETRY
        assert failed.retry_count == 0
        assert failed.next_attempt_at == NOW + timedelta(seconds=config.base_delay_seconds)
        assert failed.error == "HTTP 500"


class TestRetryBudgetProperty:
    """
    Property 13: A record is attempted at most 1 + max_retries times.

    **Feature: domain-monitor, Property 13: Retry budget**
    """

    @given(config=retry_config_strategy())
    @settings(max_examples=100)
    def test_persistent_failure_ends_failed_after_budget(self, config: RetryConfig) -> None:
        """
        *For any* max_retries, repeated failures SHALL end in failed after
        exactly 1 + max_retries attempts, with retry_count == max_retries.
        """
        policy = DispatchRetryPolicy(config)
        record = new_record(policy)

        attempts = 0
        while not record.status.is_terminal:
            record = policy.record_failure(record, "down", NOW)
            attempts += 1
            assert attempts <= config.max_retries + 1

        assert record.status == DispatchStatus.FAILED
        assert attempts == config.max_retries + 1
        assert record.retry_count == config.max_retries
        assert record.next_attempt_at is None

    @given(config=retry_config_strategy(), failures=st.integers(min_value=0, max_value=8))
    @settings(max_examples=100)
    def test_success_after_failures_is_sent(self, config: RetryConfig, failures: int) -> None:
        """
        *For any* number of failures within the budget, a later success
        SHALL mark the record sent and clear the error.
        """
        if failures > config.max_retries:
            return
        policy = DispatchRetryPolicy(config)
        record = new_record(policy)
        for _ in range(failures):
            record = policy.record_failure(record, "down", NOW)

        sent = policy.record_success(record, NOW)

        assert sent.status == DispatchStatus.SENT
        assert sent.sent_at == NOW
        assert sent.error is None
        assert sent.retry_count == failures


class TestStateMachineProperty:
    """
    Property 14: Terminal dispatch states cannot be left.

    **Feature: domain-monitor, Property 14: Dispatch state machine**
    """

    @given(
        current=st.sampled_from(list(DispatchStatus)),
        target=st.sampled_from(list(DispatchStatus)),
    )
    @settings(max_examples=50)
    def test_terminal_states_have_no_transitions(
        self, current: DispatchStatus, target: DispatchStatus
    ) -> None:
        """*For any* terminal state, no transition SHALL be allowed."""
        if current.is_terminal:
            assert not can_transition(current, target)
        elif target != DispatchStatus.PENDING:
            assert can_transition(current, target)

    def test_sent_record_rejects_further_outcomes(self) -> None:
        policy = DispatchRetryPolicy(RetryConfig())
        sent = policy.record_success(new_record(policy), NOW)

        try:
            policy.record_failure(sent, "late failure", NOW)
            assert False, "Expected DispatchStateError"
        except DispatchStateError as e:
            assert e.code == "illegal_transition"
            assert (e.record_id, e.from_status, e.to_status) == (sent.id, "sent", "retry")

    def test_is_due_only_for_elapsed_retries(self) -> None:
        policy = DispatchRetryPolicy(RetryConfig(base_delay_seconds=60.0))
        record = policy.record_failure(new_record(policy), "down", NOW)

        assert not policy.is_due(record, NOW)
        assert policy.is_due(record, NOW + timedelta(seconds=60))
        assert not policy.is_due(new_record(policy), NOW + timedelta(days=1))

    def test_new_record_takes_alert_type_from_log(self) -> None:
        policy = DispatchRetryPolicy(RetryConfig())
        record = policy.new_record(
            "r", make_log(LogType.SSL_EXPIRY), AlertChannelType.EMAIL, "ops@example.com", NOW
        )

        assert record.alert_type == AlertType.SSL_EXPIRY
        assert record.status == DispatchStatus.PENDING
        assert record.log_id == "log-1"
