"""
Alert delivery for the domain monitor system.

Provides the notification channels (Email, Webhook, Slack) and the
AlertDispatcher that delivers a monitoring log entry to every configured
channel and keeps one AlertDispatchRecord per (log entry, channel).

Channels are independent: a failure on one channel never prevents delivery
on the others, and a log entry counts as alerted when any channel
succeeded. Failed deliveries are not retried inline; the dispatch record
goes to retry and is picked up by a later run.
"""

import asyncio
import smtplib
import ssl
import uuid
from abc import abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional, Protocol, runtime_checkable

import httpx

from .config import EmailConfig, NotificationConfig, SlackConfig, WebhookConfig
from .eligibility import enabled_channels
from .enums import AlertChannelType, LogLevel
from .i18n import get_message
from .models import AlertDispatchRecord, MonitoringLogEntry, NotificationSettings
from .retry_policy import DispatchRetryPolicy
from .timestamps import parse_timestamp, to_iso, utc_now


SOURCE_NAME = "Domain Monitor"
USER_AGENT = "Domain-Monitor/1.0"

SEVERITY_COLORS = {
    "critical": "#ff0000",
    "warning": "#ff9900",
    "info": "#0099ff",
    "error": "#cc0000",
}

SEVERITY_EMOJIS = {
    "critical": "🚨",
    "warning": "⚠️",
    "info": "ℹ️",
    "error": "❌",
}


def format_timestamp(iso_timestamp: str, language: str = "en") -> str:
    """
    Format an ISO timestamp to a human-readable format.

    Args:
        iso_timestamp: ISO 8601 timestamp string
        language: 'de' for German, 'en' for English

    Returns:
        Formatted timestamp string
    """
    dt = parse_timestamp(iso_timestamp)
    if dt is None:
        return iso_timestamp

    if language == "de":
        # German format: 10.12.2025, 05:29 Uhr
        return dt.strftime("%d.%m.%Y, %H:%M Uhr")
    # English format: Dec 10, 2025, 05:29 AM
    return dt.strftime("%b %d, %Y, %I:%M %p")


@dataclass
class AlertMessage:
    """Channel-independent content of one alert."""

    log_id: str
    domain: str
    alert_type: str
    severity: str
    message: str
    timestamp: str
    details: dict = field(default_factory=dict)
    language: str = "en"

    @classmethod
    def from_log(cls, entry: MonitoringLogEntry, language: str = "en") -> "AlertMessage":
        return cls(
            log_id=entry.id,
            domain=entry.domain,
            alert_type=entry.log_type.value,
            severity=entry.severity.value,
            message=entry.message,
            timestamp=to_iso(entry.created_at),
            details=entry.details.to_dict(),
            language=language,
        )

    def get_formatted_timestamp(self) -> str:
        """Get timestamp formatted for the configured language."""
        return format_timestamp(self.timestamp, self.language)


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol defining the interface for notification channels."""

    @abstractmethod
    async def send(self, message: AlertMessage) -> bool:
        """
        Send an alert.

        Args:
            message: The alert to send

        Returns:
            True if delivery was successful, False otherwise
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        """Channel name; one of the AlertChannelType values."""
        ...

    @abstractmethod
    def get_recipient(self) -> str:
        """Address, URL or id the channel delivers to."""
        ...


class EmailChannel:
    """Email notification channel using SMTP."""

    def __init__(
        self,
        config: EmailConfig,
        recipients: Optional[list[str]] = None,
        simulation_mode: bool = False,
    ) -> None:
        """
        Initialize Email channel.

        Args:
            config: Email configuration with SMTP settings
            recipients: Overrides config.to_addresses when given
            simulation_mode: If True, no real network requests are made
        """
        self._smtp_host = config.smtp_host
        self._smtp_port = config.smtp_port
        self._username = config.username
        self._password = config.password
        self._from_address = config.from_address
        self._to_addresses = list(recipients or config.to_addresses)
        self._use_tls = config.use_tls
        self._simulation_mode = simulation_mode

    async def send(self, message: AlertMessage) -> bool:
        """Send the alert as a plain-text email."""
        if self._simulation_mode:
            return True

        if not self._to_addresses:
            return False

        # Run SMTP in executor to avoid blocking
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._send_sync, self._format_email(message)
        )

    async def send_test(self, language: str = "en") -> bool:
        """Send a test email."""
        return await self.send(_test_message(language))

    def _send_sync(self, msg: MIMEMultipart) -> bool:
        try:
            with smtplib.SMTP(self._smtp_host, self._smtp_port, timeout=30) as server:
                if self._use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self._username:
                    server.login(self._username, self._password)
                server.sendmail(self._from_address, self._to_addresses, msg.as_string())
            return True
        except (smtplib.SMTPException, OSError):
            return False

    def get_name(self) -> str:
        """Return channel name."""
        return AlertChannelType.EMAIL.value

    def get_recipient(self) -> str:
        return ", ".join(self._to_addresses)

    def _format_email(self, message: AlertMessage) -> MIMEMultipart:
        """Format the alert as an email message."""
        lang = message.language
        body_lines = [
            message.message,
            "",
            f"{get_message('alert.domain_label', lang)}: {message.domain}",
            f"{get_message('alert.type_label', lang)}: {message.alert_type}",
            f"{get_message('alert.severity_label', lang)}: {message.severity.upper()}",
            f"{get_message('alert.time_label', lang)}: {message.get_formatted_timestamp()}",
        ]
        for key, value in message.details.items():
            body_lines.append(f"{key}: {value}")

        msg = MIMEMultipart()
        msg["From"] = self._from_address
        msg["To"] = ", ".join(self._to_addresses)
        msg["Subject"] = get_message(
            "alert.email_subject",
            lang,
            severity=message.severity.upper(),
            domain=message.domain,
        )
        msg.attach(MIMEText("\n".join(body_lines) + "\n", "plain", "utf-8"))

        return msg


class WebhookChannel:
    """Generic webhook notification channel using HTTP POST."""

    def __init__(
        self,
        config: WebhookConfig,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize Webhook channel.

        Args:
            config: Webhook configuration with URL and optional headers
            simulation_mode: If True, no real network requests are made
            transport: Optional httpx transport (used by tests)
        """
        self._url = config.url
        self._headers = config.headers.copy()
        self._timeout = config.timeout_seconds
        self._simulation_mode = simulation_mode
        self._transport = transport

    def build_payload(self, message: AlertMessage) -> dict:
        return {
            "timestamp": message.timestamp,
            "domain": message.domain,
            "type": message.alert_type,
            "severity": message.severity,
            "message": message.message,
            "details": message.details,
            "source": SOURCE_NAME,
        }

    async def send(self, message: AlertMessage) -> bool:
        """Send the alert as a JSON POST."""
        if self._simulation_mode:
            return True
        return await self._post(self.build_payload(message))

    async def send_test(self, language: str = "en") -> bool:
        """POST a test payload to check connectivity."""
        if self._simulation_mode:
            return True
        return await self._post({
            "test": True,
            "message": get_message("alert.test_message", language),
            "timestamp": to_iso(utc_now()),
            "source": SOURCE_NAME,
        })

    async def _post(self, data: dict) -> bool:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        headers.update(self._headers)

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.post(
                    self._url,
                    json=data,
                    headers=headers,
                    timeout=self._timeout,
                )
                return 200 <= response.status_code < 300
            except httpx.HTTPError:
                return False

    def get_name(self) -> str:
        """Return channel name."""
        return AlertChannelType.WEBHOOK.value

    def get_recipient(self) -> str:
        return self._url


class SlackChannel:
    """Slack notification channel using an incoming webhook."""

    def __init__(
        self,
        config: SlackConfig,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize Slack channel.

        Args:
            config: Slack configuration with the incoming webhook URL
            simulation_mode: If True, no real network requests are made
            transport: Optional httpx transport (used by tests)
        """
        self._webhook_url = config.webhook_url
        self._timeout = config.timeout_seconds
        self._simulation_mode = simulation_mode
        self._transport = transport

    def build_payload(self, message: AlertMessage) -> dict:
        """Format the alert as a Slack message with one attachment."""
        created = parse_timestamp(message.timestamp)
        fields = [
            {"title": "Domain", "value": message.domain, "short": True},
            {
                "title": "Alert Type",
                "value": message.alert_type.replace("_", " ").upper(),
                "short": True,
            },
            {"title": "Severity", "value": message.severity.upper(), "short": True},
            {"title": "Message", "value": message.message, "short": False},
        ]
        if message.details.get("daysUntilExpiry") is not None:
            fields.append({
                "title": "Days Until Expiry",
                "value": str(message.details["daysUntilExpiry"]),
                "short": True,
            })
        expiry = message.details.get("expiryDate") or message.details.get("sslExpiryDate")
        if expiry:
            fields.append({"title": "Expiry Date", "value": expiry, "short": True})

        return {
            "text": f"{SEVERITY_EMOJIS.get(message.severity, '📋')} {SOURCE_NAME} Alert",
            "attachments": [
                {
                    "color": SEVERITY_COLORS.get(message.severity, "#999999"),
                    "fields": fields,
                    "footer": SOURCE_NAME,
                    "ts": int(created.timestamp()) if created else 0,
                }
            ],
        }

    async def send(self, message: AlertMessage) -> bool:
        """Send the alert to Slack."""
        if self._simulation_mode:
            return True
        return await self._post(self.build_payload(message))

    async def send_test(self, language: str = "en") -> bool:
        """Post a test message to check the webhook."""
        if self._simulation_mode:
            return True
        return await self._post({
            "text": f"✅ {SOURCE_NAME} Test Notification",
            "attachments": [
                {
                    "color": "#00ff00",
                    "fields": [
                        {
                            "title": "Status",
                            "value": get_message("alert.test_message", language),
                            "short": False,
                        }
                    ],
                    "footer": SOURCE_NAME,
                    "ts": int(utc_now().timestamp()),
                }
            ],
        })

    async def _post(self, data: dict) -> bool:
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.post(
                    self._webhook_url,
                    json=data,
                    headers={"Content-Type": "application/json"},
                    timeout=self._timeout,
                )
                return 200 <= response.status_code < 300
            except httpx.HTTPError:
                return False

    def get_name(self) -> str:
        """Return channel name."""
        return AlertChannelType.SLACK.value

    def get_recipient(self) -> str:
        return self._webhook_url


def _test_message(language: str) -> AlertMessage:
    return AlertMessage(
        log_id="test",
        domain="example.com",
        alert_type="test",
        severity="info",
        message=get_message("alert.test_message", language),
        timestamp=to_iso(utc_now()),
        language=language,
    )


def build_channels(
    settings: NotificationSettings,
    config: NotificationConfig,
    simulation_mode: bool = False,
) -> list[NotificationChannel]:
    """
    Create the channels alerts are delivered to.

    URLs from the user's notification settings take precedence over the
    configuration file. Email additionally needs SMTP settings in the
    configuration; the recipient from the settings overrides the
    configured addresses.

    Args:
        settings: Per-user notification settings
        config: Channel configuration
        simulation_mode: Passed to every channel

    Returns:
        Channels in the order email, webhook, slack
    """
    effective = replace(
        settings,
        webhook_url=settings.webhook_url or (config.webhook.url if config.webhook else ""),
        slack_webhook_url=settings.slack_webhook_url
        or (config.slack.webhook_url if config.slack else ""),
    )

    channels: list[NotificationChannel] = []
    for channel_type in enabled_channels(effective):
        if channel_type == AlertChannelType.EMAIL:
            if config.email is None:
                continue
            recipients = [settings.email_recipient] if settings.email_recipient else None
            channels.append(EmailChannel(config.email, recipients, simulation_mode))
        elif channel_type == AlertChannelType.WEBHOOK:
            headers = config.webhook.headers if config.webhook else {}
            channels.append(WebhookChannel(
                WebhookConfig(url=effective.webhook_url, headers=headers),
                simulation_mode,
            ))
        elif channel_type == AlertChannelType.SLACK:
            channels.append(SlackChannel(
                SlackConfig(webhook_url=effective.slack_webhook_url),
                simulation_mode,
            ))
    return channels


@dataclass
class DispatchOutcome:
    """Result of delivering one log entry."""

    log_entry: MonitoringLogEntry
    records: list[AlertDispatchRecord]

    @property
    def alert_sent(self) -> bool:
        return self.log_entry.alert_sent


class AlertDispatcher:
    """
    Delivers log entries to the registered channels.

    Every channel is attempted once per call; outcomes are folded into the
    dispatch records by the retry policy.
    """

    def __init__(
        self,
        retry_policy: DispatchRetryPolicy,
        channels: Optional[list[NotificationChannel]] = None,
        logger: Optional["AuditLogger"] = None,
        language: str = "en",
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            retry_policy: Policy applied to delivery outcomes
            channels: Channels to deliver to
            logger: Optional audit logger
            language: Language of alert texts
            id_factory: Callable producing dispatch record ids
        """
        self._policy = retry_policy
        self._channels: list[NotificationChannel] = list(channels or [])
        self._logger = logger
        self._language = language
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    def register_channel(self, channel: NotificationChannel) -> None:
        self._channels.append(channel)

    @property
    def channels(self) -> list[NotificationChannel]:
        """Get list of registered channels."""
        return self._channels.copy()

    def get_channel(self, channel_type: AlertChannelType) -> Optional[NotificationChannel]:
        for channel in self._channels:
            if channel.get_name() == channel_type.value:
                return channel
        return None

    async def dispatch(self, entry: MonitoringLogEntry, now: datetime) -> DispatchOutcome:
        """
        Deliver a log entry to every channel.

        Args:
            entry: The log entry to alert about
            now: Time of the attempt

        Returns:
            DispatchOutcome with the (possibly alert-flagged) entry and one
            record per channel
        """
        message = AlertMessage.from_log(entry, self._language)
        records = []
        succeeded = []

        for channel in self._channels:
            channel_type = AlertChannelType(channel.get_name())
            record = self._policy.new_record(
                self._id_factory(), entry, channel_type, channel.get_recipient(), now
            )
            record = await self._attempt(channel, record, message, now)
            records.append(record)
            if record.sent_at is not None:
                succeeded.append(channel_type)

        if succeeded:
            entry = entry.with_alert_sent(tuple(succeeded))
        return DispatchOutcome(entry, records)

    async def redeliver(
        self,
        record: AlertDispatchRecord,
        entry: MonitoringLogEntry,
        now: datetime,
    ) -> DispatchOutcome:
        """
        Retry one dispatch record.

        Args:
            record: Record in state retry
            entry: The log entry the record belongs to
            now: Time of the attempt

        Returns:
            DispatchOutcome with the updated entry and the single record
        """
        channel = self.get_channel(record.channel)
        if channel is None:
            updated = self._policy.record_failure(record, "channel not configured", now)
        else:
            message = AlertMessage.from_log(entry, self._language)
            updated = await self._attempt(channel, record, message, now)

        if updated.sent_at is not None:
            entry = entry.with_alert_sent((record.channel,))
        return DispatchOutcome(entry, [updated])

    async def _attempt(
        self,
        channel: NotificationChannel,
        record: AlertDispatchRecord,
        message: AlertMessage,
        now: datetime,
    ) -> AlertDispatchRecord:
        try:
            success = await channel.send(message)
            error = None if success else "Channel returned failure"
        except Exception as e:
            success = False
            error = str(e) or type(e).__name__

        if success:
            return self._policy.record_success(record, now)

        updated = self._policy.record_failure(record, error, now)
        self._log_failure(updated)
        return updated

    def _log_failure(self, record: AlertDispatchRecord) -> None:
        if self._logger is None:
            return

        self._logger.log(
            level=LogLevel.ERROR if record.status.is_terminal else LogLevel.WARN,
            component="AlertDispatcher",
            message=f"Alert delivery via '{record.channel.value}' failed",
            data={
                "channel": record.channel.value,
                "domain": record.domain,
                "log_id": record.log_id,
                "status": record.status.value,
                "retry_count": record.retry_count,
                "next_attempt_at": to_iso(record.next_attempt_at),
                "error": record.error,
            },
        )


# Type hint for circular import avoidance
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .audit_logger import AuditLogger
