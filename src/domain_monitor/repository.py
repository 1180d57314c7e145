"""
Repository module for monitored domains, logs and alert state.

Storage is injected into the monitoring service through the
MonitoringRepository protocol with an explicit connect()/disconnect()
lifecycle. Two implementations are provided:

- InMemoryRepository: process-local dictionaries, used in tests and for
  simulation runs.
- JsonFileRepository: an HMAC-protected JSON file; tampering with the
  file is detected on connect().

Both enforce the storage-side invariants: monitoring log entries are
append-only (only the alert flags may be set afterwards) and there is at
most one alert dispatch record per (log id, channel) pair.
"""

import hashlib
import hmac
import json
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .enums import AlertChannelType
from .exceptions import NotFoundError, PersistenceError, TamperingError
from .models import (
    AlertDispatchRecord,
    DomainRecord,
    FiredAlertKey,
    MonitoringLogEntry,
    NotificationSettings,
    RegistrarAccount,
)
from .timestamps import parse_timestamp, to_iso, utc_now


class MonitoringRepository(Protocol):
    """Storage interface used by the monitoring service and the CLI."""

    def connect(self) -> None:
        """Open the storage; must be called before any other operation."""
        ...

    def disconnect(self) -> None:
        """Persist pending changes and release the storage."""
        ...

    def flush(self) -> None:
        """Persist pending changes without disconnecting."""
        ...

    def list_domains(self) -> list[DomainRecord]: ...

    def get_domain(self, domain_id: str) -> Optional[DomainRecord]: ...

    def find_domain(self, name: str) -> Optional[DomainRecord]: ...

    def save_domain(self, record: DomainRecord) -> None: ...

    def delete_domain(self, domain_id: str) -> bool: ...

    def append_log(self, entry: MonitoringLogEntry) -> None: ...

    def update_log(self, entry: MonitoringLogEntry) -> None: ...

    def get_log(self, log_id: str) -> Optional[MonitoringLogEntry]: ...

    def list_logs(self) -> list[MonitoringLogEntry]: ...

    def delete_logs(self, log_ids: Iterable[str]) -> int: ...

    def save_dispatch(self, record: AlertDispatchRecord) -> None: ...

    def get_dispatch(
        self, log_id: str, channel: AlertChannelType
    ) -> Optional[AlertDispatchRecord]: ...

    def list_dispatches(self) -> list[AlertDispatchRecord]: ...

    def fired_alerts(self, entity_id: str) -> set[FiredAlertKey]: ...

    def record_fired_alert(self, key: FiredAlertKey) -> None: ...

    def get_settings(self) -> NotificationSettings: ...

    def save_settings(self, settings: NotificationSettings) -> None: ...

    def list_registrar_accounts(self) -> list[RegistrarAccount]: ...

    def save_registrar_account(self, account: RegistrarAccount) -> None: ...

    def delete_registrar_account(self, account_id: str) -> bool: ...

    def get_last_run(self) -> Optional[datetime]: ...

    def set_last_run(self, timestamp: datetime) -> None: ...


class InMemoryRepository:
    """Dictionary-backed repository."""

    def __init__(self) -> None:
        self._connected = False
        self._reset()

    def _reset(self) -> None:
        self._domains: dict[str, DomainRecord] = {}
        self._logs: dict[str, MonitoringLogEntry] = {}
        self._dispatches: dict[tuple[str, AlertChannelType], AlertDispatchRecord] = {}
        self._fired: set[FiredAlertKey] = set()
        self._settings = NotificationSettings()
        self._registrar_accounts: dict[str, RegistrarAccount] = {}
        self._last_run: Optional[datetime] = None

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self.flush()
        self._connected = False

    def flush(self) -> None:
        pass

    def __enter__(self) -> "InMemoryRepository":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def _require_connection(self) -> None:
        if not self._connected:
            raise PersistenceError(
                code="not_connected",
                message="Repository is not connected",
                details={"repository": type(self).__name__},
            )

    # Domains

    def list_domains(self) -> list[DomainRecord]:
        self._require_connection()
        return sorted(self._domains.values(), key=lambda d: d.domain)

    def get_domain(self, domain_id: str) -> Optional[DomainRecord]:
        self._require_connection()
        return self._domains.get(domain_id)

    def find_domain(self, name: str) -> Optional[DomainRecord]:
        self._require_connection()
        name = name.lower()
        for record in self._domains.values():
            if record.domain == name:
                return record
        return None

    def save_domain(self, record: DomainRecord) -> None:
        self._require_connection()
        for existing in self._domains.values():
            if (
                existing.id != record.id
                and existing.domain == record.domain
                and existing.owner_id == record.owner_id
            ):
                raise PersistenceError(
                    code="duplicate_domain",
                    message=f"Domain {record.domain} is already monitored",
                    details={"domain": record.domain, "existing_id": existing.id},
                )
        self._domains[record.id] = record

    def delete_domain(self, domain_id: str) -> bool:
        """
        Remove a domain with its alert history and dispatch records.

        Log entries stay; the monitoring log is append-only.
        """
        self._require_connection()
        if self._domains.pop(domain_id, None) is None:
            return False

        self._fired = {key for key in self._fired if key.entity_id != domain_id}
        log_ids = {entry.id for entry in self._logs.values() if entry.domain_id == domain_id}
        self._dispatches = {
            key: record
            for key, record in self._dispatches.items()
            if record.log_id not in log_ids
        }
        return True

    # Monitoring logs

    def append_log(self, entry: MonitoringLogEntry) -> None:
        self._require_connection()
        if entry.id in self._logs:
            raise PersistenceError(
                code="duplicate_log",
                message=f"Log entry {entry.id} already exists",
                details={"log_id": entry.id},
            )
        self._logs[entry.id] = entry

    def update_log(self, entry: MonitoringLogEntry) -> None:
        """
        Replace a stored entry with a version whose alert flags are set.

        Raises:
            NotFoundError: If the entry does not exist
            PersistenceError: If anything but the alert flags changed, or
                alert_sent would go back to False
        """
        self._require_connection()
        existing = self._logs.get(entry.id)
        if existing is None:
            raise NotFoundError("log", entry.id, f"Log entry {entry.id} not found")

        unchanged = (
            existing.domain == entry.domain
            and existing.domain_id == entry.domain_id
            and existing.log_type == entry.log_type
            and existing.severity == entry.severity
            and existing.message == entry.message
            and existing.details == entry.details
            and existing.created_at == entry.created_at
        )
        if not unchanged or (existing.alert_sent and not entry.alert_sent):
            raise PersistenceError(
                code="immutable_log",
                message=f"Log entry {entry.id} is append-only",
                details={"log_id": entry.id},
            )
        self._logs[entry.id] = entry

    def get_log(self, log_id: str) -> Optional[MonitoringLogEntry]:
        self._require_connection()
        return self._logs.get(log_id)

    def list_logs(self) -> list[MonitoringLogEntry]:
        self._require_connection()
        return list(self._logs.values())

    def delete_logs(self, log_ids: Iterable[str]) -> int:
        self._require_connection()
        removed = 0
        for log_id in log_ids:
            if self._logs.pop(log_id, None) is not None:
                removed += 1
        return removed

    # Alert dispatch records

    def save_dispatch(self, record: AlertDispatchRecord) -> None:
        self._require_connection()
        key = (record.log_id, record.channel)
        existing = self._dispatches.get(key)
        if existing is not None and existing.id != record.id:
            raise PersistenceError(
                code="duplicate_dispatch",
                message=(
                    f"Dispatch record for log {record.log_id} "
                    f"via {record.channel.value} already exists"
                ),
                details={"log_id": record.log_id, "channel": record.channel.value},
            )
        self._dispatches[key] = record

    def get_dispatch(
        self, log_id: str, channel: AlertChannelType
    ) -> Optional[AlertDispatchRecord]:
        self._require_connection()
        return self._dispatches.get((log_id, channel))

    def list_dispatches(self) -> list[AlertDispatchRecord]:
        self._require_connection()
        return list(self._dispatches.values())

    # Fired-alert history

    def fired_alerts(self, entity_id: str) -> set[FiredAlertKey]:
        self._require_connection()
        return {key for key in self._fired if key.entity_id == entity_id}

    def record_fired_alert(self, key: FiredAlertKey) -> None:
        self._require_connection()
        self._fired.add(key)

    # Settings

    def get_settings(self) -> NotificationSettings:
        self._require_connection()
        return self._settings

    def save_settings(self, settings: NotificationSettings) -> None:
        self._require_connection()
        self._settings = settings

    # Registrar accounts

    def list_registrar_accounts(self) -> list[RegistrarAccount]:
        self._require_connection()
        return list(self._registrar_accounts.values())

    def save_registrar_account(self, account: RegistrarAccount) -> None:
        self._require_connection()
        self._registrar_accounts[account.id] = account

    def delete_registrar_account(self, account_id: str) -> bool:
        self._require_connection()
        return self._registrar_accounts.pop(account_id, None) is not None

    # Run metadata

    def get_last_run(self) -> Optional[datetime]:
        self._require_connection()
        return self._last_run

    def set_last_run(self, timestamp: datetime) -> None:
        self._require_connection()
        self._last_run = timestamp

    # Serialization shared with the file-backed repository

    def _to_data(self) -> dict:
        return {
            "domains": [d.to_dict() for d in self._domains.values()],
            "logs": [log.to_dict() for log in self._logs.values()],
            "dispatches": [r.to_dict() for r in self._dispatches.values()],
            "fired_alerts": sorted(key.to_list() for key in self._fired),
            "settings": self._settings.to_dict(),
            "registrar_accounts": [a.to_dict() for a in self._registrar_accounts.values()],
            "last_run": to_iso(self._last_run),
        }

    def _load_data(self, data: dict) -> None:
        self._reset()
        for item in data.get("domains", []):
            record = DomainRecord.from_dict(item)
            self._domains[record.id] = record
        for item in data.get("logs", []):
            entry = MonitoringLogEntry.from_dict(item)
            self._logs[entry.id] = entry
        for item in data.get("dispatches", []):
            record = AlertDispatchRecord.from_dict(item)
            self._dispatches[(record.log_id, record.channel)] = record
        self._fired = {FiredAlertKey.from_list(item) for item in data.get("fired_alerts", [])}
        if data.get("settings"):
            self._settings = NotificationSettings.from_dict(data["settings"])
        for item in data.get("registrar_accounts", []):
            account = RegistrarAccount.from_dict(item)
            self._registrar_accounts[account.id] = account
        self._last_run = parse_timestamp(data.get("last_run"))


class JsonFileRepository(InMemoryRepository):
    """
    Repository persisted to a JSON file with HMAC protection.

    The file is read on connect() and written on flush()/disconnect().
    An HMAC-SHA256 over the serialized data is stored alongside it and
    validated on every load.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the repository.

        Args:
            file_path: Path to the state file (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        super().__init__()
        self._file_path = Path(file_path)
        self._hmac_secret = hmac_secret.encode("utf-8")

    @property
    def file_path(self) -> Path:
        """Get the state file path."""
        return self._file_path

    def connect(self) -> None:
        """
        Load state from file and validate its HMAC.

        A missing file starts an empty repository.

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If file cannot be read or parsed
        """
        if self._file_path.exists():
            self._load_data(self._read_file())
        else:
            self._reset()
        self._connected = True

    def flush(self) -> None:
        """
        Save state to file with HMAC protection.

        Raises:
            PersistenceError: If file cannot be written
        """
        if not self._connected:
            return

        now = to_iso(utc_now())
        data = self._to_data()
        computed_hmac = self.compute_hmac(
            {"version": self.VERSION, "data": data, "last_updated": now}
        )
        output = {
            "version": self.VERSION,
            "data": data,
            "last_updated": now,
            "hmac": computed_hmac,
        }

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output, f, indent=2, sort_keys=True, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write state file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def _read_file(self) -> dict:
        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse state file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read state file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message="State file does not contain a JSON object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac({
            "version": raw_data.get("version"),
            "data": raw_data.get("data", {}),
            "last_updated": raw_data.get("last_updated"),
        })

        if not self.validate_hmac(str(stored_hmac), computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        try:
            return dict(raw_data.get("data", {}))
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Malformed state data: {e}",
                details={"file_path": str(self._file_path)},
            )

    def _load_data(self, data: dict) -> None:
        try:
            super()._load_data(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Malformed state data: {e}",
                details={"file_path": str(self._file_path)},
            )

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(
            data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        return hmac.compare_digest(
            stored_hmac.encode("utf-8"), computed_hmac.encode("utf-8")
        )
