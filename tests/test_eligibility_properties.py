"""
Property-based tests for the Notification Eligibility Engine.

Uses Hypothesis to verify exact-threshold firing, fire-once suppression
through the fired-alert history and re-arming after a renewal.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.classifier import classify
from domain_monitor.eligibility import (
    EligibilityEngine,
    enabled_channels,
    evaluate,
    history_key,
)
from domain_monitor.enums import AlertChannelType, AlertType, ExpirySeverity
from domain_monitor.models import (
    THRESHOLD_DAYS,
    DomainRecord,
    NotificationSettings,
    ThresholdToggles,
)


@st.composite
def now_strategy(draw) -> datetime:
    """Generate aware UTC datetimes."""
    return draw(
        st.datetimes(min_value=datetime(2020, 1, 1), max_value=datetime(2034, 1, 1))
    ).replace(tzinfo=timezone.utc)


@st.composite
def toggles_strategy(draw) -> ThresholdToggles:
    """Generate arbitrary threshold switch combinations."""
    return ThresholdToggles(
        thirty_days=draw(st.booleans()),
        fifteen_days=draw(st.booleans()),
        seven_days=draw(st.booleans()),
        one_day=draw(st.booleans()),
    )


def make_domain(domain_expiry=None, cert_expiry=None) -> DomainRecord:
    return DomainRecord(
        id="d1",
        domain="example.com",
        domain_expiry=domain_expiry,
        cert_expiry=cert_expiry,
    )


class TestExactThresholdProperty:
    """
    Property 5: Alerts fire exactly on enabled thresholds.

    **Feature: domain-monitor, Property 5: Exact threshold firing**
    """

    @given(
        now=now_strategy(),
        days=st.integers(min_value=-5, max_value=60),
        toggles=toggles_strategy(),
    )
    @settings(max_examples=100)
    def test_fires_only_when_days_equal_enabled_threshold(
        self, now: datetime, days: int, toggles: ThresholdToggles
    ) -> None:
        """
        *For any* expiry N days out, a domain expiry alert SHALL fire if and
        only if N is one of the enabled thresholds.
        """
        domain = make_domain(domain_expiry=now + timedelta(days=days))
        settings_ = NotificationSettings(domain_expiration=toggles)

        alerts = evaluate(domain, settings_, set(), now)

        if days in toggles.enabled_thresholds():
            assert len(alerts) == 1
            assert alerts[0].threshold_day == days
            assert alerts[0].days_remaining == days
            assert alerts[0].alert_type == AlertType.DOMAIN_EXPIRY
        else:
            assert alerts == []

    @given(now=now_strategy(), threshold=st.sampled_from(THRESHOLD_DAYS))
    @settings(max_examples=100)
    def test_domain_and_certificate_are_independent(
        self, now: datetime, threshold: int
    ) -> None:
        """
        *For any* threshold, domain and certificate expiries on the same
        day SHALL each produce their own alert, domain expiry first.
        """
        expiry = now + timedelta(days=threshold)
        domain = make_domain(domain_expiry=expiry, cert_expiry=expiry)

        alerts = evaluate(domain, NotificationSettings(), set(), now)

        assert [a.alert_type for a in alerts] == [
            AlertType.DOMAIN_EXPIRY,
            AlertType.SSL_EXPIRY,
        ]

    @given(now=now_strategy(), threshold=st.sampled_from(THRESHOLD_DAYS))
    @settings(max_examples=100)
    def test_certificate_toggles_do_not_affect_domain_alerts(
        self, now: datetime, threshold: int
    ) -> None:
        """
        *For any* threshold, switching all certificate thresholds off SHALL
        not suppress the domain expiry alert.
        """
        expiry = now + timedelta(days=threshold)
        domain = make_domain(domain_expiry=expiry, cert_expiry=expiry)
        settings_ = NotificationSettings(
            certificate_expiration=ThresholdToggles(False, False, False, False)
        )

        alerts = evaluate(domain, settings_, set(), now)

        assert [a.alert_type for a in alerts] == [AlertType.DOMAIN_EXPIRY]

    @given(now=now_strategy())
    @settings(max_examples=50)
    def test_unknown_expiry_never_fires(self, now: datetime) -> None:
        """*For any* time, a domain without expiry values SHALL fire nothing."""
        assert evaluate(make_domain(), NotificationSettings(), set(), now) == []

    def test_thirty_day_warning_scenario(self) -> None:
        """
        A domain expiring 2025-12-31 checked on 2025-12-01 is 30 days out:
        tier warning and exactly one 30-day alert.
        """
        now = datetime(2025, 12, 1, tzinfo=timezone.utc)
        expiry = datetime(2025, 12, 31, tzinfo=timezone.utc)
        domain = make_domain(domain_expiry=expiry)

        alerts = evaluate(domain, NotificationSettings(), set(), now)

        assert classify(expiry, now) == ExpirySeverity.WARNING
        assert len(alerts) == 1
        assert alerts[0].threshold_day == 30
        assert alerts[0].message == (
            "Domain example.com expires in 30 day(s) on 2025-12-31"
        )


class TestFireOnceProperty:
    """
    Property 6: A fired alert is not repeated for the same expiry.

    **Feature: domain-monitor, Property 6: Fire once per expiry**
    """

    @given(now=now_strategy(), threshold=st.sampled_from(THRESHOLD_DAYS))
    @settings(max_examples=100)
    def test_recorded_alert_is_suppressed(self, now: datetime, threshold: int) -> None:
        """
        *For any* alert that was recorded in the history, evaluating again
        with the same expiry SHALL return nothing.
        """
        domain = make_domain(domain_expiry=now + timedelta(days=threshold))
        engine = EligibilityEngine()

        first = engine.evaluate(domain, NotificationSettings(), set(), now)
        history = {history_key(a) for a in first}
        second = engine.evaluate(domain, NotificationSettings(), history, now)

        assert len(first) == 1
        assert second == []

    @given(
        now=now_strategy(),
        threshold=st.sampled_from(THRESHOLD_DAYS),
        extension=st.integers(min_value=1, max_value=3650),
    )
    @settings(max_examples=100)
    def test_renewal_rearms_thresholds(
        self, now: datetime, threshold: int, extension: int
    ) -> None:
        """
        *For any* renewal that moves the expiry, a threshold that already
        fired for the old expiry SHALL fire again for the new one.
        """
        old_expiry = now + timedelta(days=threshold)
        engine = EligibilityEngine()
        history = {
            history_key(a)
            for a in engine.evaluate(
                make_domain(domain_expiry=old_expiry), NotificationSettings(), set(), now
            )
        }

        renewed_expiry = old_expiry + timedelta(days=extension)
        later = renewed_expiry - timedelta(days=threshold)
        alerts = engine.evaluate(
            make_domain(domain_expiry=renewed_expiry), NotificationSettings(), history, later
        )

        assert len(alerts) == 1
        assert history_key(alerts[0]) not in history

    def test_history_of_other_domain_does_not_suppress(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        expiry = now + timedelta(days=7)
        other = DomainRecord(id="d2", domain="other.com", domain_expiry=expiry)
        history = {history_key(a) for a in evaluate(other, NotificationSettings(), set(), now)}

        alerts = evaluate(make_domain(domain_expiry=expiry), NotificationSettings(), history, now)

        assert len(alerts) == 1


class TestEnabledChannels:
    """Channel selection from the notification settings."""

    def test_email_only_by_default(self) -> None:
        assert enabled_channels(NotificationSettings()) == [AlertChannelType.EMAIL]

    def test_urls_enable_webhook_and_slack(self) -> None:
        settings_ = NotificationSettings(
            email_notifications=False,
            webhook_url="https://hooks.example.com/x",
            slack_webhook_url="https://hooks.slack.com/services/T/B/C",
        )
        assert enabled_channels(settings_) == [
            AlertChannelType.WEBHOOK,
            AlertChannelType.SLACK,
        ]

    def test_blank_urls_are_ignored(self) -> None:
        settings_ = NotificationSettings(email_notifications=False, webhook_url="   ")
        assert enabled_channels(settings_) == []
