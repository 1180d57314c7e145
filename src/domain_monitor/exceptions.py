"""
Exception classes for the domain monitor system.

Every error carries a machine-readable code, a human-readable message and
a details dict, so CLI output and monitoring_error log entries can show them.
"""

from typing import Optional


class DomainMonitorError(Exception):
    """Base exception for all domain monitor errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainMonitorError):
    """Raised when a domain name, credential set or setting is rejected."""

    pass


class CheckError(DomainMonitorError):
    """
    A WHOIS/RDAP, TLS or uptime check that produced no usable result.

    ``code`` is one of the CheckErrorCode values (timeout, rate_limited,
    parse_error, ...). The monitoring service turns the error into a
    failed CheckResult and a monitoring_error log entry, so ``check_type``
    names the check that failed when the raiser knows it.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
        check_type: Optional[str] = None,
    ) -> None:
        super().__init__(code, message, details)
        self.check_type = check_type

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.check_type is not None:
            data["check_type"] = self.check_type
        return data


class PersistenceError(DomainMonitorError):
    """Raised when the state file cannot be read, written or verified."""

    pass


class TamperingError(PersistenceError):
    """Raised when the state file's HMAC does not match its contents."""

    pass


class NotFoundError(PersistenceError):
    """
    A domain, log entry or dispatch record that is not in storage.

    The code is derived from the entity (``domain_not_found``,
    ``log_not_found``) and the missing key is kept in ``details``.
    """

    def __init__(self, entity: str, key: str, message: Optional[str] = None) -> None:
        self.entity = entity
        self.key = key
        super().__init__(
            code=f"{entity}_not_found",
            message=message or f"{entity.replace('_', ' ').capitalize()} not found: {key}",
            details={"entity": entity, "key": key},
        )


class NotificationError(DomainMonitorError):
    """Raised when an email, webhook or Slack delivery fails."""

    pass


class DispatchStateError(DomainMonitorError):
    """
    An alert dispatch record asked to move between statuses the retry
    policy does not allow, e.g. out of ``sent`` or a final ``failed``.
    """

    def __init__(self, record_id: str, from_status: str, to_status: str) -> None:
        self.record_id = record_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            code="illegal_transition",
            message=(
                f"Dispatch record {record_id} cannot move from "
                f"{from_status} to {to_status}"
            ),
            details={"record_id": record_id, "from": from_status, "to": to_status},
        )
