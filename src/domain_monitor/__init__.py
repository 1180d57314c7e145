"""
Domain Monitor - Domain registration and SSL certificate expiry monitoring.

This package classifies expiry dates into severity tiers, decides which
threshold alerts (30/15/7/1 days) should fire, delivers them by email,
webhook and Slack, and keeps an append-only monitoring log with dashboard
statistics.
"""

__version__ = "0.1.0"
__author__ = "Domain Monitor Team"

from domain_monitor.exceptions import (
    DomainMonitorError,
    ValidationError,
    CheckError,
    PersistenceError,
    TamperingError,
    NotFoundError,
    NotificationError,
    DispatchStateError,
)
from domain_monitor.enums import (
    ExpirySeverity,
    DomainStatus,
    SSLStatus,
    CheckType,
    LogType,
    LogSeverity,
    AlertType,
    AlertChannelType,
    DispatchStatus,
    LogLevel,
    DomainValidationErrorCode,
    CheckErrorCode,
)
from domain_monitor.timestamps import parse_timestamp, to_iso, utc_now
from domain_monitor.config import (
    RetryConfig,
    EmailConfig,
    WebhookConfig,
    SlackConfig,
    NotificationConfig,
    PersistenceConfig,
    LoggingConfig,
    MonitoringConfig,
    SystemConfig,
    apply_env_overrides,
)
from domain_monitor.models import (
    THRESHOLD_DAYS,
    DomainRecord,
    LogDetails,
    MonitoringLogEntry,
    ThresholdToggles,
    NotificationSettings,
    AlertToFire,
    FiredAlertKey,
    AlertDispatchRecord,
    CheckResult,
    DomainMonitoringUpdate,
    MonitoringStats,
    LogQuery,
    LogPage,
    RegistrarAccount,
)
from domain_monitor.classifier import (
    SEVERITY_STYLES,
    SeverityStyle,
    ExpiryClassification,
    classify,
    classify_expiry,
    days_remaining,
    describe_expiry,
)
from domain_monitor.eligibility import (
    EligibilityEngine,
    evaluate,
    enabled_channels,
    history_key,
)
from domain_monitor.aggregator import (
    LogAggregator,
    RecordOutcome,
    record,
    apply_update,
    stats,
    query,
    expired_logs,
)
from domain_monitor.domain_validator import (
    DomainValidator,
    DomainValidationResult,
    DomainValidationError,
)
from domain_monitor.registrars import (
    CredentialField,
    RegistrarConfig,
    REGISTRAR_REGISTRY,
    get_registrar_config,
    resolve_registrar_name,
    validate_credentials,
)
from domain_monitor.repository import (
    MonitoringRepository,
    InMemoryRepository,
    JsonFileRepository,
)
from domain_monitor.retry_policy import DispatchRetryPolicy
from domain_monitor.audit_logger import AuditLogger, LogEntry
from domain_monitor.notifications import (
    AlertMessage,
    NotificationChannel,
    EmailChannel,
    WebhookChannel,
    SlackChannel,
    AlertDispatcher,
    DispatchOutcome,
    build_channels,
)
from domain_monitor.checkers import (
    Checker,
    RDAPExpiryClient,
    TLSCertificateClient,
    UptimeClient,
)
from domain_monitor.i18n import (
    get_message,
    get_all_message_keys,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from domain_monitor.scheduler import (
    Scheduler,
    CronSchedule,
    CronField,
    CronParser,
    CronParseError,
    ScheduledTask,
)
from domain_monitor.monitoring_service import (
    MonitoringService,
    DomainRunResult,
    RunSummary,
)
from domain_monitor.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "DomainMonitorError",
    "ValidationError",
    "CheckError",
    "PersistenceError",
    "TamperingError",
    "NotFoundError",
    "NotificationError",
    "DispatchStateError",
    # Enums
    "ExpirySeverity",
    "DomainStatus",
    "SSLStatus",
    "CheckType",
    "LogType",
    "LogSeverity",
    "AlertType",
    "AlertChannelType",
    "DispatchStatus",
    "LogLevel",
    "DomainValidationErrorCode",
    "CheckErrorCode",
    # Timestamps
    "parse_timestamp",
    "to_iso",
    "utc_now",
    # Config
    "RetryConfig",
    "EmailConfig",
    "WebhookConfig",
    "SlackConfig",
    "NotificationConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "MonitoringConfig",
    "SystemConfig",
    "apply_env_overrides",
    # Models
    "THRESHOLD_DAYS",
    "DomainRecord",
    "LogDetails",
    "MonitoringLogEntry",
    "ThresholdToggles",
    "NotificationSettings",
    "AlertToFire",
    "FiredAlertKey",
    "AlertDispatchRecord",
    "CheckResult",
    "DomainMonitoringUpdate",
    "MonitoringStats",
    "LogQuery",
    "LogPage",
    "RegistrarAccount",
    # Expiry Classifier
    "SEVERITY_STYLES",
    "SeverityStyle",
    "ExpiryClassification",
    "classify",
    "classify_expiry",
    "days_remaining",
    "describe_expiry",
    # Eligibility Engine
    "EligibilityEngine",
    "evaluate",
    "enabled_channels",
    "history_key",
    # Log Aggregator
    "LogAggregator",
    "RecordOutcome",
    "record",
    "apply_update",
    "stats",
    "query",
    "expired_logs",
    # Domain Validator
    "DomainValidator",
    "DomainValidationResult",
    "DomainValidationError",
    # Registrars
    "CredentialField",
    "RegistrarConfig",
    "REGISTRAR_REGISTRY",
    "get_registrar_config",
    "resolve_registrar_name",
    "validate_credentials",
    # Repository
    "MonitoringRepository",
    "InMemoryRepository",
    "JsonFileRepository",
    # Retry Policy
    "DispatchRetryPolicy",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Notifications
    "AlertMessage",
    "NotificationChannel",
    "EmailChannel",
    "WebhookChannel",
    "SlackChannel",
    "AlertDispatcher",
    "DispatchOutcome",
    "build_channels",
    # Checkers
    "Checker",
    "RDAPExpiryClient",
    "TLSCertificateClient",
    "UptimeClient",
    # I18n
    "get_message",
    "get_all_message_keys",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Scheduler
    "Scheduler",
    "CronSchedule",
    "CronField",
    "CronParser",
    "CronParseError",
    "ScheduledTask",
    # Monitoring Service
    "MonitoringService",
    "DomainRunResult",
    "RunSummary",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
