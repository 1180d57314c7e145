"""
Configuration dataclasses for the domain monitor system.

This module defines all configuration structures used throughout the system,
including retry logic for alert delivery, notification channels,
persistence, logging and the monitoring run parameters. Values from a
configuration file can be overridden from the environment (or a .env file)
through DOMAIN_MONITOR_* variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


ENV_PREFIX = "DOMAIN_MONITOR_"


@dataclass
class RetryConfig:
    """Alert dispatch retry configuration."""

    max_retries: int = 5
    base_delay_seconds: float = 60.0
    max_delay_seconds: float = 3600.0


@dataclass
class EmailConfig:
    """Email notification channel configuration."""

    smtp_host: str
    smtp_port: int
    username: str
    password: str
    from_address: str
    to_addresses: list[str] = field(default_factory=list)
    use_tls: bool = True


@dataclass
class WebhookConfig:
    """Generic webhook notification channel configuration."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 10.0


@dataclass
class SlackConfig:
    """Slack incoming-webhook channel configuration."""

    webhook_url: str
    timeout_seconds: float = 10.0


@dataclass
class NotificationConfig:
    """Notification channels configuration."""

    email: Optional[EmailConfig] = None
    webhook: Optional[WebhookConfig] = None
    slack: Optional[SlackConfig] = None


@dataclass
class PersistenceConfig:
    """Persistence and state storage configuration."""

    state_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class MonitoringConfig:
    """Parameters of a monitoring run and of the dashboard projections."""

    check_timeout_seconds: float = 15.0
    batch_size: int = 5
    batch_delay_seconds: float = 10.0
    domain_delay_seconds: float = 2.0
    critical_window_days: Optional[int] = 30  # None counts all history
    log_retention_days: int = 90
    monitoring_schedule: str = "0 2 * * *"
    cleanup_schedule: str = "0 3 * * 0"
    check_uptime: bool = True
    check_ssl: bool = True
    check_whois: bool = True


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    retry: RetryConfig
    notifications: NotificationConfig
    persistence: PersistenceConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    language: str = "en"  # 'en' or 'de'
    simulation_mode: bool = False


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def apply_env_overrides(
    config: SystemConfig,
    dotenv_path: Optional[Path] = None,
) -> SystemConfig:
    """
    Override configuration values from the environment.

    A .env file is loaded first (without replacing variables that are
    already set). Recognized variables:

    - DOMAIN_MONITOR_LANGUAGE, DOMAIN_MONITOR_SIMULATION_MODE
    - DOMAIN_MONITOR_STATE_FILE, DOMAIN_MONITOR_HMAC_SECRET
    - DOMAIN_MONITOR_LOG_LEVEL, DOMAIN_MONITOR_LOG_FORMAT
    - DOMAIN_MONITOR_MAX_RETRIES
    - DOMAIN_MONITOR_CHECK_TIMEOUT, DOMAIN_MONITOR_BATCH_SIZE
    - DOMAIN_MONITOR_WEBHOOK_URL, DOMAIN_MONITOR_SLACK_WEBHOOK_URL
    - DOMAIN_MONITOR_SMTP_HOST, DOMAIN_MONITOR_SMTP_PORT,
      DOMAIN_MONITOR_SMTP_USERNAME, DOMAIN_MONITOR_SMTP_PASSWORD,
      DOMAIN_MONITOR_EMAIL_FROM, DOMAIN_MONITOR_EMAIL_TO (comma separated)

    Args:
        config: Configuration to update in place
        dotenv_path: Optional path of the .env file (defaults to lookup
            from the working directory)

    Returns:
        The same configuration object, for chaining
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)

    language = _env("LANGUAGE")
    if language in ("en", "de"):
        config.language = language
    config.simulation_mode = _env_bool("SIMULATION_MODE", config.simulation_mode)

    state_file = _env("STATE_FILE")
    if state_file:
        config.persistence.state_file_path = Path(state_file)
    config.persistence.hmac_secret = _env("HMAC_SECRET") or config.persistence.hmac_secret

    config.logging.level = _env("LOG_LEVEL") or config.logging.level
    config.logging.output_format = _env("LOG_FORMAT") or config.logging.output_format

    config.retry.max_retries = _env_int("MAX_RETRIES", config.retry.max_retries)
    config.monitoring.check_timeout_seconds = _env_float(
        "CHECK_TIMEOUT", config.monitoring.check_timeout_seconds
    )
    config.monitoring.batch_size = _env_int("BATCH_SIZE", config.monitoring.batch_size)

    webhook_url = _env("WEBHOOK_URL")
    if webhook_url:
        config.notifications.webhook = WebhookConfig(url=webhook_url)

    slack_url = _env("SLACK_WEBHOOK_URL")
    if slack_url:
        config.notifications.slack = SlackConfig(webhook_url=slack_url)

    smtp_host = _env("SMTP_HOST")
    if smtp_host:
        recipients = _env("EMAIL_TO") or ""
        config.notifications.email = EmailConfig(
            smtp_host=smtp_host,
            smtp_port=_env_int("SMTP_PORT", 587),
            username=_env("SMTP_USERNAME") or "",
            password=_env("SMTP_PASSWORD") or "",
            from_address=_env("EMAIL_FROM") or "",
            to_addresses=[r.strip() for r in recipients.split(",") if r.strip()],
        )

    return config
