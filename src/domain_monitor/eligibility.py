"""
Notification Eligibility Engine for expiry alerts.

Decides which threshold alerts (30/15/7/1 days before expiry) should fire
for a domain right now. Domain registration expiry and certificate expiry
are evaluated independently, each against its own toggle set.

Rules:
- A threshold fires when the days remaining equal the threshold exactly.
  Under a daily check cadence this fires once per boundary instead of
  every day after crossing it.
- An alert that is already in the fired-alert history for the same expiry
  value is suppressed silently.
- The history is keyed on the expiry value, so a renewal (new expiry date)
  makes every threshold eligible again.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from .classifier import classify_expiry
from .enums import AlertChannelType, AlertType, ExpirySeverity
from .i18n import get_message
from .models import AlertToFire, DomainRecord, FiredAlertKey, NotificationSettings
from .timestamps import to_iso


class EligibilityEngine:
    """
    Evaluates threshold alerts for one domain at a time.

    The engine holds no state; the fired-alert history is passed in and the
    caller records history_key(alert) for every alert it actually sends.
    """

    def __init__(self, language: Optional[str] = None):
        self._language = language

    def evaluate(
        self,
        entity: DomainRecord,
        settings: NotificationSettings,
        history: Iterable[FiredAlertKey],
        now: datetime,
    ) -> list[AlertToFire]:
        """
        Determine the alerts that should fire now.

        Args:
            entity: Domain with its current expiry values
            settings: Per-user threshold toggles
            history: Keys of alerts that already fired
            now: Reference time

        Returns:
            Alerts to fire, domain expiry first, then certificate expiry
        """
        fired = set(history)
        alerts: list[AlertToFire] = []

        tracked = (
            (AlertType.DOMAIN_EXPIRY, entity.domain_expiry),
            (AlertType.SSL_EXPIRY, entity.cert_expiry),
        )
        for alert_type, expiry in tracked:
            alerts.extend(
                self._evaluate_date(entity, settings, alert_type, expiry, fired, now)
            )

        return alerts

    def _evaluate_date(
        self,
        entity: DomainRecord,
        settings: NotificationSettings,
        alert_type: AlertType,
        expiry: Optional[datetime],
        fired: set[FiredAlertKey],
        now: datetime,
    ) -> list[AlertToFire]:
        result = classify_expiry(expiry, now)
        if result.severity == ExpirySeverity.UNKNOWN:
            return []

        alerts = []
        for threshold in settings.toggles_for(alert_type).enabled_thresholds():
            if result.days_remaining != threshold:
                continue

            alert = AlertToFire(
                entity_id=entity.id,
                domain=entity.domain,
                alert_type=alert_type,
                threshold_day=threshold,
                days_remaining=result.days_remaining,
                expiry=result.expiry,
                message=get_message(
                    f"alert.{alert_type.value}",
                    self._language,
                    domain=entity.domain,
                    days=result.days_remaining,
                    date=result.expiry.date().isoformat(),
                ),
            )
            if history_key(alert) in fired:
                continue
            alerts.append(alert)

        return alerts


def history_key(alert: AlertToFire) -> FiredAlertKey:
    """Key under which a fired alert is recorded in the history."""
    return FiredAlertKey(
        entity_id=alert.entity_id,
        alert_type=alert.alert_type.value,
        threshold_day=alert.threshold_day,
        expiry_value=to_iso(alert.expiry),
    )


def enabled_channels(settings: NotificationSettings) -> list[AlertChannelType]:
    """
    Channels an alert is delivered to under the given settings.

    Email is used when email notifications are switched on; webhook and
    Slack when their URL is set.
    """
    channels = []
    if settings.email_notifications:
        channels.append(AlertChannelType.EMAIL)
    if settings.webhook_url.strip():
        channels.append(AlertChannelType.WEBHOOK)
    if settings.slack_webhook_url.strip():
        channels.append(AlertChannelType.SLACK)
    return channels


def evaluate(
    entity: DomainRecord,
    settings: NotificationSettings,
    history: Iterable[FiredAlertKey],
    now: datetime,
    language: Optional[str] = None,
) -> list[AlertToFire]:
    """Shortcut for EligibilityEngine(language).evaluate(...)."""
    return EligibilityEngine(language).evaluate(entity, settings, history, now)
