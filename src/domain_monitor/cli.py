"""
Command-line interface for the domain monitor system.

This module provides the main CLI entry point with commands for:
- add / remove / list: Manage monitored domains
- check: Check a single domain now
- run / retry: Monitoring run and redelivery of failed alerts
- logs / stats: Monitoring log queries and dashboard statistics
- cleanup: Delete old monitoring logs
- settings / test-webhook: Notification settings and connectivity tests
- registrar: Registrar API accounts used to resolve WHOIS registrar names
- schedule: Run the cron scheduler in the foreground
- config: Configuration management
"""

import argparse
import asyncio
import json
import sys
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Awaitable, Callable, Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    EmailConfig,
    LoggingConfig,
    MonitoringConfig,
    NotificationConfig,
    PersistenceConfig,
    RetryConfig,
    SlackConfig,
    SystemConfig,
    WebhookConfig,
    apply_env_overrides,
)
from .enums import LogSeverity, LogType
from .exceptions import DomainMonitorError, PersistenceError
from .i18n import SUPPORTED_LANGUAGES, get_message
from .models import LogQuery, RegistrarAccount, ThresholdToggles
from .monitoring_service import MonitoringService
from .notifications import build_channels
from .registrars import get_display_names, get_registrar_config, validate_credentials
from .repository import JsonFileRepository
from .scheduler import CronParseError, CronParser, Scheduler
from .timestamps import to_iso, utc_now


DEFAULT_CONFIG_DIR = Path.home() / ".domain_monitor"
DEFAULT_HMAC_SECRET = "default-secret-change-me"


def create_default_config(
    simulation_mode: bool = False,
    language: str = "en",
    state_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no real network requests)
        language: Output language ('de' or 'en')
        state_file: Path to state file for persistence
        hmac_secret: Secret for HMAC protection

    Returns:
        SystemConfig with default settings
    """
    if state_file is None:
        state_file = DEFAULT_CONFIG_DIR / "state.json"

    return SystemConfig(
        retry=RetryConfig(),
        notifications=NotificationConfig(),
        persistence=PersistenceConfig(
            state_file_path=state_file,
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(level="info", output_format="text"),
        monitoring=MonitoringConfig(),
        language=language,
        simulation_mode=simulation_mode,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        retry_data = data.get("retry", {})
        retry = RetryConfig(
            max_retries=retry_data.get("max_retries", 5),
            base_delay_seconds=retry_data.get("base_delay_seconds", 60.0),
            max_delay_seconds=retry_data.get("max_delay_seconds", 3600.0),
        )

        persistence_data = data.get("persistence", {})
        state_file_path = persistence_data.get("state_file_path")
        persistence = PersistenceConfig(
            state_file_path=(
                Path(state_file_path) if state_file_path
                else DEFAULT_CONFIG_DIR / "state.json"
            ),
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        defaults = MonitoringConfig()
        monitoring_data = data.get("monitoring", {})
        monitoring = MonitoringConfig(
            check_timeout_seconds=monitoring_data.get(
                "check_timeout_seconds", defaults.check_timeout_seconds
            ),
            batch_size=monitoring_data.get("batch_size", defaults.batch_size),
            batch_delay_seconds=monitoring_data.get(
                "batch_delay_seconds", defaults.batch_delay_seconds
            ),
            domain_delay_seconds=monitoring_data.get(
                "domain_delay_seconds", defaults.domain_delay_seconds
            ),
            critical_window_days=monitoring_data.get(
                "critical_window_days", defaults.critical_window_days
            ),
            log_retention_days=monitoring_data.get(
                "log_retention_days", defaults.log_retention_days
            ),
            monitoring_schedule=monitoring_data.get(
                "monitoring_schedule", defaults.monitoring_schedule
            ),
            cleanup_schedule=monitoring_data.get(
                "cleanup_schedule", defaults.cleanup_schedule
            ),
            check_uptime=monitoring_data.get("check_uptime", True),
            check_ssl=monitoring_data.get("check_ssl", True),
            check_whois=monitoring_data.get("check_whois", True),
        )

        notifications_data = data.get("notifications", {})
        notifications = NotificationConfig()

        # Email
        email_data = notifications_data.get("email", {})
        if email_data.get("enabled") and email_data.get("smtp_host"):
            notifications.email = EmailConfig(
                smtp_host=email_data["smtp_host"],
                smtp_port=email_data.get("smtp_port", 587),
                username=email_data.get("username", ""),
                password=email_data.get("password", ""),
                from_address=email_data.get("from_address", ""),
                to_addresses=email_data.get("to_addresses", []),
                use_tls=email_data.get("use_tls", True),
            )

        # Webhook
        webhook_data = notifications_data.get("webhook", {})
        if webhook_data.get("enabled") and webhook_data.get("url"):
            notifications.webhook = WebhookConfig(
                url=webhook_data["url"],
                headers=webhook_data.get("headers", {}),
            )

        # Slack
        slack_data = notifications_data.get("slack", {})
        if slack_data.get("enabled") and slack_data.get("webhook_url"):
            notifications.slack = SlackConfig(webhook_url=slack_data["webhook_url"])

        return SystemConfig(
            retry=retry,
            notifications=notifications,
            persistence=persistence,
            logging=logging_config,
            monitoring=monitoring,
            language=data.get("language", "en"),
            simulation_mode=data.get("simulation_mode", False),
        )

    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    notifications = config.notifications
    email = notifications.email
    webhook = notifications.webhook
    slack = notifications.slack
    monitoring = config.monitoring

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "retry": {
                "max_retries": config.retry.max_retries,
                "base_delay_seconds": config.retry.base_delay_seconds,
                "max_delay_seconds": config.retry.max_delay_seconds,
            },
            "notifications": {
                "email": {
                    "enabled": True,
                    "smtp_host": email.smtp_host,
                    "smtp_port": email.smtp_port,
                    "username": email.username,
                    "password": email.password,
                    "from_address": email.from_address,
                    "to_addresses": email.to_addresses,
                    "use_tls": email.use_tls,
                } if email else {"enabled": False},
                "webhook": {
                    "enabled": True,
                    "url": webhook.url,
                    "headers": webhook.headers,
                } if webhook else {"enabled": False},
                "slack": {
                    "enabled": True,
                    "webhook_url": slack.webhook_url,
                } if slack else {"enabled": False},
            },
            "persistence": {
                "state_file_path": str(config.persistence.state_file_path),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
            "monitoring": {
                "check_timeout_seconds": monitoring.check_timeout_seconds,
                "batch_size": monitoring.batch_size,
                "batch_delay_seconds": monitoring.batch_delay_seconds,
                "domain_delay_seconds": monitoring.domain_delay_seconds,
                "critical_window_days": monitoring.critical_window_days,
                "log_retention_days": monitoring.log_retention_days,
                "monitoring_schedule": monitoring.monitoring_schedule,
                "cleanup_schedule": monitoring.cleanup_schedule,
                "check_uptime": monitoring.check_uptime,
                "check_ssl": monitoring.check_ssl,
                "check_whois": monitoring.check_whois,
            },
            "language": config.language,
            "simulation_mode": config.simulation_mode,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the configuration for a command and apply env and CLI overrides."""
    config = None
    if args.config:
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None

    if config is None:
        config = create_default_config()

    apply_env_overrides(config)

    if args.language:
        config.language = args.language
    if args.dry_run:
        config.simulation_mode = True
    return config


def _create_logger(config: SystemConfig, verbose: bool) -> Optional[AuditLogger]:
    if not verbose:
        return None
    return AuditLogger.from_level_name(
        config.logging.level, output_format=config.logging.output_format
    )


def _create_service(config: SystemConfig, verbose: bool) -> MonitoringService:
    repository = JsonFileRepository(
        file_path=config.persistence.state_file_path,
        hmac_secret=config.persistence.hmac_secret,
    )
    return MonitoringService(config, repository, logger=_create_logger(config, verbose))


def _run_with_service(
    args: argparse.Namespace,
    action: Callable[[MonitoringService, SystemConfig], Awaitable[int]],
) -> int:
    """Resolve the config, open the service and run an async command body."""
    config = _resolve_config(args)
    if config is None:
        return 1

    if config.simulation_mode:
        print(get_message("cli.simulation_enabled", config.language))

    async def _main() -> int:
        async with _create_service(config, args.verbose) as service:
            return await action(service, config)

    try:
        return asyncio.run(_main())
    except DomainMonitorError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


def _parse_thresholds(text: str) -> ThresholdToggles:
    """Parse "30,15,7,1"-style threshold lists; "none" disables all."""
    if text.strip().lower() == "none":
        enabled: set[int] = set()
    else:
        try:
            enabled = {int(part) for part in text.split(",") if part.strip()}
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid threshold list: {text}")
    unknown = enabled - {30, 15, 7, 1}
    if unknown:
        raise argparse.ArgumentTypeError(
            f"Unsupported thresholds: {', '.join(str(t) for t in sorted(unknown))}"
        )
    return ThresholdToggles(
        thirty_days=30 in enabled,
        fifteen_days=15 in enabled,
        seven_days=7 in enabled,
        one_day=1 in enabled,
    )


def _format_thresholds(toggles: ThresholdToggles) -> str:
    enabled = toggles.enabled_thresholds()
    return ", ".join(f"{t}d" for t in enabled) if enabled else "none"


# ============================================================================
# Domain commands
# ============================================================================

def cmd_add(args: argparse.Namespace) -> int:
    """Handle the 'add' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        try:
            record = service.add_domain(
                args.domain, registrar=args.registrar or "", auto_renew=args.auto_renew
            )
        except PersistenceError as e:
            if e.code != "duplicate_domain":
                raise
            print(
                get_message("cli.domain_exists", config.language, domain=e.details["domain"]),
                file=sys.stderr,
            )
            return 1
        print(get_message("cli.domain_added", config.language, domain=record.domain))
        return 0

    return _run_with_service(args, action)


def cmd_remove(args: argparse.Namespace) -> int:
    """Handle the 'remove' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        if service.remove_domain(args.domain):
            print(get_message("cli.domain_removed", config.language, domain=args.domain))
            return 0
        print(
            get_message("cli.domain_not_found", config.language, domain=args.domain),
            file=sys.stderr,
        )
        return 1

    return _run_with_service(args, action)


def cmd_list(args: argparse.Namespace) -> int:
    """Handle the 'list' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        domains = service.repository.list_domains()
        if args.json:
            print(json.dumps([d.to_dict() for d in domains], indent=2, ensure_ascii=False))
            return 0

        if not domains:
            print(get_message("cli.no_domains", config.language))
            return 0

        for d in domains:
            expiry = d.domain_expiry.date().isoformat() if d.domain_expiry else "-"
            ssl_expiry = d.cert_expiry.date().isoformat() if d.cert_expiry else "-"
            active = "" if d.is_active else " (paused)"
            print(
                f"{d.domain:<40} {d.status.value:<8} expires {expiry:<10} "
                f"ssl {ssl_expiry:<10} {d.registrar}{active}"
            )
        return 0

    return _run_with_service(args, action)


# ============================================================================
# Monitoring commands
# ============================================================================

def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        record = service.get_domain(args.domain)
        print(get_message("cli.checking_domain", config.language, domain=record.domain))

        result = await service.monitor_domain(record.id)
        for entry in result.log_entries:
            marker = " 📨" if entry.alert_sent else ""
            print(f"  [{entry.severity.value.upper()}] {entry.message}{marker}")

        errors = [e for e in result.log_entries if e.severity == LogSeverity.ERROR]
        return 1 if errors else 0

    return _run_with_service(args, action)


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        summary = await service.run_all()
        if summary.skipped:
            print(get_message("cli.run_already_running", config.language))
            return 1

        print(get_message(
            "cli.run_completed",
            config.language,
            success=summary.succeeded,
            total=summary.total,
        ))

        retried = await service.retry_failed_alerts()
        if retried:
            print(get_message("cli.retry_completed", config.language, count=len(retried)))
        return 0 if summary.succeeded == summary.total else 1

    return _run_with_service(args, action)


def cmd_retry(args: argparse.Namespace) -> int:
    """Handle the 'retry' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        retried = await service.retry_failed_alerts()
        print(get_message("cli.retry_completed", config.language, count=len(retried)))
        return 0

    return _run_with_service(args, action)


def cmd_logs(args: argparse.Namespace) -> int:
    """Handle the 'logs' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        alert_sent = None
        if args.alert_sent is not None:
            alert_sent = args.alert_sent == "yes"

        page = service.get_logs(LogQuery(
            domain=args.domain,
            log_type=LogType(args.type) if args.type else None,
            severity=LogSeverity(args.severity) if args.severity else None,
            alert_sent=alert_sent,
            page=args.page,
            limit=args.limit,
        ))

        if args.json:
            print(json.dumps(page.to_dict(), indent=2, ensure_ascii=False))
            return 0

        for entry in page.logs:
            marker = " 📨" if entry.alert_sent else ""
            print(
                f"{to_iso(entry.created_at)} [{entry.severity.value.upper():<8}] "
                f"{entry.log_type.value:<16} {entry.domain}: {entry.message}{marker}"
            )
        print(f"Page {page.page}/{max(page.total_pages, 1)} ({page.total} entries)")
        return 0

    return _run_with_service(args, action)


def cmd_stats(args: argparse.Namespace) -> int:
    """Handle the 'stats' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        stats = service.get_stats()
        if args.json:
            print(json.dumps(stats.to_dict(), indent=2, ensure_ascii=False))
            return 0

        print(f"Total domains:        {stats.total_domains}")
        print(f"Online domains:       {stats.active_domains}")
        print(f"Domains expiring:     {stats.domains_expiring_soon}")
        print(f"Certificates expiring: {stats.ssl_expiring_soon}")
        print(f"Critical alerts:      {stats.critical_alerts}")
        print(f"Last run:             {to_iso(stats.last_monitoring_run) or '-'}")
        print(f"Next run:             {to_iso(stats.next_monitoring_run) or '-'}")
        return 0

    return _run_with_service(args, action)


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Handle the 'cleanup' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        days = args.days if args.days is not None else config.monitoring.log_retention_days
        deleted = service.cleanup_logs(days)
        print(get_message("cli.cleanup_completed", config.language, count=deleted, days=days))
        return 0

    return _run_with_service(args, action)


# ============================================================================
# Notification commands
# ============================================================================

def cmd_settings(args: argparse.Namespace) -> int:
    """Handle the 'settings' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        repository = service.repository
        settings = repository.get_settings()

        changes = {}
        if args.webhook_url is not None:
            changes["webhook_url"] = args.webhook_url
        if args.slack_webhook_url is not None:
            changes["slack_webhook_url"] = args.slack_webhook_url
        if args.email is not None:
            changes["email_notifications"] = args.email
        if args.email_recipient is not None:
            changes["email_recipient"] = args.email_recipient
        if args.domain_thresholds is not None:
            changes["domain_expiration"] = args.domain_thresholds
        if args.ssl_thresholds is not None:
            changes["certificate_expiration"] = args.ssl_thresholds

        if changes:
            settings = replace(settings, updated_at=utc_now(), **changes)
            repository.save_settings(settings)
            repository.flush()
            print(get_message("cli.settings_updated", config.language))

        print(f"  Domain expiry alerts: {_format_thresholds(settings.domain_expiration)}")
        print(f"  SSL expiry alerts:    {_format_thresholds(settings.certificate_expiration)}")
        print(f"  Email notifications:  {settings.email_notifications}")
        print(f"  Email recipient:      {settings.email_recipient or '-'}")
        print(f"  Webhook URL:          {'set' if settings.webhook_url else '-'}")
        print(f"  Slack webhook URL:    {'set' if settings.slack_webhook_url else '-'}")
        return 0

    return _run_with_service(args, action)


def cmd_test_webhook(args: argparse.Namespace) -> int:
    """Handle the 'test-webhook' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        channels = build_channels(
            service.repository.get_settings(),
            config.notifications,
            config.simulation_mode,
        )
        if args.channel != "all":
            channels = [c for c in channels if c.get_name() == args.channel]

        if not channels:
            print(
                get_message("cli.test_failed", config.language, channel=args.channel),
                file=sys.stderr,
            )
            return 1

        failed = 0
        for channel in channels:
            if await channel.send_test(config.language):
                print(get_message("cli.test_succeeded", config.language, channel=channel.get_name()))
            else:
                failed += 1
                print(
                    get_message("cli.test_failed", config.language, channel=channel.get_name()),
                    file=sys.stderr,
                )
        return 1 if failed else 0

    return _run_with_service(args, action)


def _parse_credential(text: str) -> tuple[str, str]:
    """Parse a KEY=VALUE credential argument."""
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got: {text}")
    return key.strip(), value


def cmd_registrar(args: argparse.Namespace) -> int:
    """Handle the 'registrar' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        repository = service.repository
        accounts = {a.name: a for a in repository.list_registrar_accounts()}

        if args.action == "list":
            for name, display_name in get_display_names():
                account = accounts.get(name)
                state = "connected" if account is not None and account.connected else "-"
                print(f"{display_name:<20} {name:<32} {state}")
            return 0

        registrar = get_registrar_config(args.name or "")
        if registrar is None:
            print(
                get_message("cli.registrar_unknown", config.language, registrar=args.name),
                file=sys.stderr,
            )
            return 1

        if args.action == "disconnect":
            account = accounts.get(registrar.name)
            if account is None or not repository.delete_registrar_account(account.id):
                print(
                    get_message("cli.registrar_unknown", config.language, registrar=args.name),
                    file=sys.stderr,
                )
                return 1
            repository.flush()
            print(get_message(
                "cli.registrar_disconnected", config.language, registrar=registrar.display_name
            ))
            return 0

        credentials = dict(args.credential or [])
        missing = validate_credentials(registrar.name, credentials)
        if missing:
            print(
                get_message(
                    "cli.registrar_missing_credentials",
                    config.language,
                    registrar=registrar.display_name,
                    fields=", ".join(missing),
                ),
                file=sys.stderr,
            )
            return 1

        existing = accounts.get(registrar.name)
        repository.save_registrar_account(RegistrarAccount(
            id=existing.id if existing is not None else uuid.uuid4().hex,
            name=registrar.name,
            connected=True,
            credentials=credentials,
            created_at=existing.created_at if existing is not None else utc_now(),
        ))
        repository.flush()
        print(get_message(
            "cli.registrar_connected", config.language, registrar=registrar.display_name
        ))
        return 0

    return _run_with_service(args, action)


# ============================================================================
# Scheduler
# ============================================================================

def cmd_schedule(args: argparse.Namespace) -> int:
    """Handle the 'schedule' command."""
    async def action(service: MonitoringService, config: SystemConfig) -> int:
        language = config.language
        scheduler = Scheduler(logger=_create_logger(config, args.verbose))

        async def monitoring_task() -> None:
            summary = await service.run_all()
            if not summary.skipped:
                print(get_message(
                    "cli.run_completed", language,
                    success=summary.succeeded, total=summary.total,
                ))
            await service.retry_failed_alerts()

        async def cleanup_task() -> None:
            deleted = service.cleanup_logs()
            print(get_message(
                "cli.cleanup_completed", language,
                count=deleted, days=config.monitoring.log_retention_days,
            ))

        try:
            scheduler.schedule("monitoring", config.monitoring.monitoring_schedule, monitoring_task)
            scheduler.schedule("cleanup", config.monitoring.cleanup_schedule, cleanup_task)
        except CronParseError as e:
            print(
                get_message("cli.invalid_schedule", language, expression=e.expression),
                file=sys.stderr,
            )
            return 1

        for task in scheduler.list_tasks():
            next_run = to_iso(scheduler.next_run(task.name)) or "-"
            print(f"{task.name}: {get_message('cli.next_run', language, time=next_run)}")

        if args.show:
            return 0

        await scheduler.run()
        return 0

    return _run_with_service(args, action)


# ============================================================================
# Configuration
# ============================================================================

def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_DIR / "config.json"

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        channels = [
            name for name, value in (
                ("email", config.notifications.email),
                ("webhook", config.notifications.webhook),
                ("slack", config.notifications.slack),
            ) if value is not None
        ]
        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  State file: {config.persistence.state_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Channels: {', '.join(channels) or '-'}")
        print(f"  Max retries: {config.retry.max_retries}")
        print(f"  Monitoring schedule: {config.monitoring.monitoring_schedule}")
        print(f"  Cleanup schedule: {config.monitoring.cleanup_schedule}")
        print(f"  Log retention: {config.monitoring.log_retention_days} days")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(language=args.language or "en")
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        parser = CronParser()
        for expression in (
            config.monitoring.monitoring_schedule,
            config.monitoring.cleanup_schedule,
        ):
            try:
                parser.parse(expression)
            except CronParseError:
                print(
                    get_message("cli.invalid_schedule", config.language, expression=expression),
                    file=sys.stderr,
                )
                return 1

        if config.language not in SUPPORTED_LANGUAGES:
            print(f"Error: Unsupported language: {config.language}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-monitor",
        description="Domain registration and SSL certificate expiry monitor",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Options shared by every command that opens the state store
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    common.add_argument(
        "--language", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        default=None,
        help="Output language (default: from configuration)",
    )
    common.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real network requests",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'add' command
    add_parser = subparsers.add_parser(
        "add", parents=[common], help="Add a domain to monitor",
    )
    add_parser.add_argument("domain", help="Domain to monitor (e.g., example.com)")
    add_parser.add_argument("--registrar", "-r", help="Registrar name")
    add_parser.add_argument(
        "--auto-renew", action="store_true", help="Domain renews automatically",
    )
    add_parser.set_defaults(func=cmd_add)

    # 'remove' command
    remove_parser = subparsers.add_parser(
        "remove", parents=[common], help="Stop monitoring a domain",
    )
    remove_parser.add_argument("domain", help="Domain name or id")
    remove_parser.set_defaults(func=cmd_remove)

    # 'list' command
    list_parser = subparsers.add_parser(
        "list", parents=[common], help="List monitored domains",
    )
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.set_defaults(func=cmd_list)

    # 'check' command
    check_parser = subparsers.add_parser(
        "check", parents=[common], help="Check a single monitored domain now",
    )
    check_parser.add_argument("domain", help="Domain name or id")
    check_parser.set_defaults(func=cmd_check)

    # 'run' command
    run_parser = subparsers.add_parser(
        "run", parents=[common], help="Run monitoring for all active domains",
    )
    run_parser.set_defaults(func=cmd_run)

    # 'retry' command
    retry_parser = subparsers.add_parser(
        "retry", parents=[common], help="Redeliver failed alerts that are due",
    )
    retry_parser.set_defaults(func=cmd_retry)

    # 'logs' command
    logs_parser = subparsers.add_parser(
        "logs", parents=[common], help="Show monitoring logs",
    )
    logs_parser.add_argument("--domain", "-d", help="Filter by domain (substring)")
    logs_parser.add_argument(
        "--type", "-t", choices=[t.value for t in LogType], help="Filter by log type",
    )
    logs_parser.add_argument(
        "--severity", "-s", choices=[s.value for s in LogSeverity], help="Filter by severity",
    )
    logs_parser.add_argument(
        "--alert-sent", choices=["yes", "no"], help="Filter by alert delivery",
    )
    logs_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    logs_parser.add_argument("--limit", type=int, default=50, help="Page size (default: 50)")
    logs_parser.add_argument("--json", action="store_true", help="Output as JSON")
    logs_parser.set_defaults(func=cmd_logs)

    # 'stats' command
    stats_parser = subparsers.add_parser(
        "stats", parents=[common], help="Show dashboard statistics",
    )
    stats_parser.add_argument("--json", action="store_true", help="Output as JSON")
    stats_parser.set_defaults(func=cmd_stats)

    # 'cleanup' command
    cleanup_parser = subparsers.add_parser(
        "cleanup", parents=[common], help="Delete old monitoring logs",
    )
    cleanup_parser.add_argument(
        "--days", type=int, help="Retention in days (default: from configuration)",
    )
    cleanup_parser.set_defaults(func=cmd_cleanup)

    # 'settings' command
    settings_parser = subparsers.add_parser(
        "settings", parents=[common], help="Show or change notification settings",
    )
    settings_parser.add_argument("--webhook-url", help="Webhook URL ('' to disable)")
    settings_parser.add_argument("--slack-webhook-url", help="Slack webhook URL ('' to disable)")
    settings_parser.add_argument(
        "--email", dest="email", action="store_true", default=None,
        help="Enable email notifications",
    )
    settings_parser.add_argument(
        "--no-email", dest="email", action="store_false",
        help="Disable email notifications",
    )
    settings_parser.add_argument("--email-recipient", help="Email recipient address")
    settings_parser.add_argument(
        "--domain-thresholds", type=_parse_thresholds,
        help="Domain expiry alert days, e.g. 30,7,1 or none",
    )
    settings_parser.add_argument(
        "--ssl-thresholds", type=_parse_thresholds,
        help="SSL expiry alert days, e.g. 30,7,1 or none",
    )
    settings_parser.set_defaults(func=cmd_settings)

    # 'test-webhook' command
    test_parser = subparsers.add_parser(
        "test-webhook", parents=[common], help="Send a test notification",
    )
    test_parser.add_argument(
        "--channel",
        choices=["all", "email", "webhook", "slack"],
        default="all",
        help="Channel to test (default: all configured)",
    )
    test_parser.set_defaults(func=cmd_test_webhook)

    # 'registrar' command
    registrar_parser = subparsers.add_parser(
        "registrar", parents=[common], help="Manage registrar API accounts",
    )
    registrar_parser.add_argument(
        "action",
        choices=["list", "connect", "disconnect"],
        help="Registrar action",
    )
    registrar_parser.add_argument("name", nargs="?", help="Registrar name or display name")
    registrar_parser.add_argument(
        "--credential", "-k",
        action="append",
        type=_parse_credential,
        metavar="KEY=VALUE",
        help="API credential (repeatable)",
    )
    registrar_parser.set_defaults(func=cmd_registrar)

    # 'schedule' command
    schedule_parser = subparsers.add_parser(
        "schedule", parents=[common], help="Run scheduled monitoring in the foreground",
    )
    schedule_parser.add_argument(
        "--show", action="store_true", help="Only print the next run times",
    )
    schedule_parser.set_defaults(func=cmd_schedule)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        default=None,
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
