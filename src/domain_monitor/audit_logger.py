"""
Audit Logger module for the domain monitor system.

Every component (checkers, dispatcher, scheduler, monitoring service)
accepts an optional AuditLogger. Entries are written as JSON lines, as
human-readable text lines, or both, and are kept in memory so a run can
be inspected afterwards.

Channel and registrar configuration regularly ends up in log data, so
values under credential-like keys (SMTP password, webhook URLs, registrar
API keys) are masked before an entry is stored or written.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from domain_monitor.enums import LogLevel


OUTPUT_FORMATS = ("json", "text", "both")

# Lowest first
_SEVERITY_ORDER = (LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR)


@dataclass
class LogEntry:
    """A single audit log line."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_text(self) -> str:
        """Render as ``[timestamp] LEVEL [Component] message {data}``."""
        line = f"[{self.timestamp}] {self.level.value.upper()} [{self.component}] {self.message}"
        if self.data:
            line += " " + json.dumps(self.data, ensure_ascii=False, default=str)
        return line


class AuditLogger:
    """
    Structured logger shared by all monitor components.

    Entries below ``min_level`` are dropped before masking or output.
    """

    # Substrings of keys whose values are never logged
    SENSITIVE_KEYS = frozenset({
        "password", "secret", "token", "api_key", "apikey", "webhook_url",
        "webhookurl", "authorization", "credential", "private_key",
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "both",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Args:
            output_format: 'json', 'text' or 'both'
            output_stream: Where lines are written (sys.stderr by default)
            min_level: Lowest level that is recorded

        Raises:
            ValueError: If output_format is not supported
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._entries: list[LogEntry] = []

    @classmethod
    def from_level_name(
        cls,
        level: str,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
    ) -> "AuditLogger":
        """Build a logger from a configured level name; unknown names mean INFO."""
        try:
            min_level = LogLevel(level.lower())
        except ValueError:
            min_level = LogLevel.INFO
        return cls(output_format=output_format, output_stream=output_stream, min_level=min_level)

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Recorded entries, oldest first."""
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _SEVERITY_ORDER.index(level) >= _SEVERITY_ORDER.index(self._min_level)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record and write one entry.

        Returns:
            The recorded entry, or None if ``level`` is below the minimum
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._entries.append(entry)
        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        domain: Optional[str] = None,
        request_url: Optional[str] = None,
        status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record an ERROR entry with the failure context.

        Monitor exceptions contribute their ``code`` next to the exception
        type and message.

        Args:
            component: Component reporting the failure
            message: Human-readable description
            error: Exception that caused the failure
            domain: Domain being processed
            request_url: URL of the failed RDAP/HTTP request
            status_code: HTTP status of the failed request
            additional_data: Extra context merged into the entry data
        """
        data = dict(additional_data or {})
        if domain is not None:
            data["domain"] = domain
        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            code = getattr(error, "code", None)
            if isinstance(code, str):
                data["error_code"] = code
        if request_url is not None:
            data["request_url"] = request_url
        if status_code is not None:
            data["status_code"] = status_code

        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Copy of ``data`` with credential-like values masked at any depth."""
        return {key: self._mask_value(key, value) for key, value in data.items()}

    def _mask_value(self, key: Any, value: Any) -> Any:
        lowered = str(key).lower()
        if any(pattern in lowered for pattern in self.SENSITIVE_KEYS):
            return self.MASK_VALUE
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, (list, tuple)):
            return [
                self.mask_sensitive_data(item) if isinstance(item, dict) else item
                for item in value
            ]
        return value

    def _write(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._stream.write(entry.to_json() + "\n")
        if self._output_format in ("text", "both"):
            self._stream.write(entry.to_text() + "\n")
        self._stream.flush()
