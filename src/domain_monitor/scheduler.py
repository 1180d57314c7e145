"""
Scheduler module for the domain monitor system.

Cron-compatible scheduling of the monitoring run (daily at 02:00 by
default) and the log cleanup (Sundays at 03:00 by default). Schedules are
evaluated in UTC.

Supported syntax per field: ``*``, numbers, ``a-b`` ranges, ``,`` lists and
``/step`` suffixes; month and weekday names (``jan``, ``mon-fri``); weekday
0 and 7 both mean Sunday. A leading seconds field is accepted and ignored.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .exceptions import ValidationError
from .timestamps import parse_timestamp, utc_now


# Upper bound for next-run searches; covers leap-day-only schedules
_SEARCH_LIMIT = timedelta(days=366 * 5)

_MONTHS = {
    name: number for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_WEEKDAYS = {
    name: number for number, name in enumerate(
        ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
    )
}

# (name, lowest, highest, aliases)
_FIELDS = (
    ("minute", 0, 59, {}),
    ("hour", 0, 23, {}),
    ("day_of_month", 1, 31, {}),
    ("month", 1, 12, _MONTHS),
    ("day_of_week", 0, 7, _WEEKDAYS),
)


class CronParseError(ValidationError):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, message: str, expression: str) -> None:
        self.expression = expression
        super().__init__(
            code="invalid_cron",
            message=f"{message}: '{expression}'",
            details={"expression": expression},
        )


@dataclass
class CronField:
    """Allowed values of one cron field."""

    values: set[int]
    min_value: int
    max_value: int

    def matches(self, value: int) -> bool:
        return value in self.values

    @property
    def is_wildcard(self) -> bool:
        return self.values == set(range(self.min_value, self.max_value + 1))


def _cron_weekday(dt: datetime) -> int:
    # cron counts 0 = Sunday, Python's weekday() 0 = Monday
    return (dt.weekday() + 1) % 7


@dataclass
class CronSchedule:
    """A parsed cron expression."""

    minute: CronField
    hour: CronField
    day_of_month: CronField
    month: CronField
    day_of_week: CronField
    original_expression: str

    def matches_day(self, dt: datetime) -> bool:
        """Check the day fields; restricted day-of-month and day-of-week are OR-ed."""
        if self.day_of_month.is_wildcard and self.day_of_week.is_wildcard:
            return True
        if self.day_of_month.is_wildcard:
            return self.day_of_week.matches(_cron_weekday(dt))
        if self.day_of_week.is_wildcard:
            return self.day_of_month.matches(dt.day)
        return self.day_of_month.matches(dt.day) or self.day_of_week.matches(
            _cron_weekday(dt)
        )

    def matches(self, dt: datetime) -> bool:
        return (
            self.minute.matches(dt.minute)
            and self.hour.matches(dt.hour)
            and self.month.matches(dt.month)
            and self.matches_day(dt)
        )

    def next_run(self, after: datetime) -> Optional[datetime]:
        """
        Compute the first matching minute strictly after a point in time.

        Args:
            after: Reference time (naive values are taken as UTC)

        Returns:
            The next matching datetime, or None if nothing matches within
            five years (e.g. "0 0 31 2 *")
        """
        start = parse_timestamp(after)
        candidate = start.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = start + _SEARCH_LIMIT

        while candidate <= limit:
            if not self.month.matches(candidate.month):
                year = candidate.year + (1 if candidate.month == 12 else 0)
                month = 1 if candidate.month == 12 else candidate.month + 1
                candidate = candidate.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self.matches_day(candidate):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if not self.hour.matches(candidate.hour):
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue
            if not self.minute.matches(candidate.minute):
                candidate += timedelta(minutes=1)
                continue
            return candidate

        return None


def _field_value(token: str, low: int, high: int, aliases: dict[str, int]) -> int:
    if token in aliases:
        value = aliases[token]
    elif token.isdigit():
        value = int(token)
    else:
        raise ValueError(f"Invalid value: {token!r}")
    if not low <= value <= high:
        raise ValueError(f"Value {value} out of bounds [{low}-{high}]")
    return value


def _parse_field(text: str, low: int, high: int, aliases: dict[str, int]) -> set[int]:
    """Expand one field ("1-5", "*/15", "mon,wed") into its values."""
    values: set[int] = set()
    for item in text.lower().split(","):
        base, has_step, step_text = item.partition("/")
        step = 1
        if has_step:
            if not step_text.isdigit() or int(step_text) < 1:
                raise ValueError(f"Invalid step value: {step_text!r}")
            step = int(step_text)

        if base == "*":
            first, last = low, high
        elif "-" in base:
            start_text, _, end_text = base.partition("-")
            first = _field_value(start_text, low, high, aliases)
            last = _field_value(end_text, low, high, aliases)
            if first > last:
                raise ValueError(f"Range start {first} > end {last}")
        else:
            first = _field_value(base, low, high, aliases)
            # "5/15" runs from 5 to the end of the field
            last = high if has_step else first

        values.update(range(first, last + 1, step))
    return values


class CronParser:
    """Parser for 5-field (or 6-field with seconds) cron expressions."""

    def parse(self, expression: str) -> CronSchedule:
        """
        Parse a cron expression into a CronSchedule.

        Raises:
            CronParseError: If the expression is empty, has the wrong number
                of fields or any field is malformed or out of range
        """
        expression = expression.strip()
        if not expression:
            raise CronParseError("Empty cron expression", expression)

        parts = expression.split()
        if len(parts) == 6:
            parts = parts[1:]
        elif len(parts) != 5:
            raise CronParseError(
                f"Invalid number of fields (expected 5 or 6, got {len(parts)})",
                expression,
            )

        fields = {}
        for text, (name, low, high, aliases) in zip(parts, _FIELDS):
            try:
                values = _parse_field(text, low, high, aliases)
            except ValueError as e:
                raise CronParseError(f"Invalid {name} field: {e}", expression) from e
            fields[name] = CronField(values=values, min_value=low, max_value=high)

        # Sunday is both 0 and 7
        weekdays = fields["day_of_week"].values
        fields["day_of_week"] = CronField(
            values={day % 7 for day in weekdays}, min_value=0, max_value=6
        )

        return CronSchedule(original_expression=expression, **fields)


@dataclass
class ScheduledTask:
    """A named async callback bound to a cron schedule."""

    name: str
    schedule: CronSchedule
    callback: Callable[[], Awaitable[None]]
    last_run: Optional[datetime] = None
    enabled: bool = True

    def is_due(self, minute: datetime) -> bool:
        """Whether the task should start in this minute and has not yet."""
        if not self.enabled or not self.schedule.matches(minute):
            return False
        return self.last_run is None or self.last_run < minute


class Scheduler:
    """
    Cron-compatible scheduler running async callbacks.

    The loop wakes up every minute and runs each enabled task whose
    schedule matches the current UTC minute, at most once per minute.
    """

    CHECK_INTERVAL_SECONDS = 60

    def __init__(
        self,
        logger: Optional["AuditLogger"] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            logger: Optional audit logger for task failures
            clock: Source of the current time
        """
        self._parser = CronParser()
        self._tasks: dict[str, ScheduledTask] = {}
        self._logger = logger
        self._clock = clock
        self._stop_event: Optional[asyncio.Event] = None

    def schedule(
        self,
        name: str,
        cron_expression: str,
        callback: Callable[[], Awaitable[None]],
    ) -> CronSchedule:
        """
        Register a task under a unique name.

        Raises:
            CronParseError: If the cron expression is invalid
            ValueError: If a task with the same name already exists
        """
        if name in self._tasks:
            raise ValueError(f"Task '{name}' already exists")

        schedule = self._parser.parse(cron_expression)
        self._tasks[name] = ScheduledTask(name=name, schedule=schedule, callback=callback)
        return schedule

    def unschedule(self, name: str) -> bool:
        """Remove a task; False if there was none with that name."""
        return self._tasks.pop(name, None) is not None

    def get_task(self, name: str) -> Optional[ScheduledTask]:
        return self._tasks.get(name)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    def next_run(self, name: str, after: Optional[datetime] = None) -> Optional[datetime]:
        """Next time the named task is due, or None for unknown or disabled tasks."""
        task = self._tasks.get(name)
        if task is None or not task.enabled:
            return None
        return task.schedule.next_run(after or self._clock())

    async def run_pending(self, now: Optional[datetime] = None) -> list[str]:
        """
        Run every task that is due in the given minute, in registration order.

        A failing task is logged and does not stop the other tasks.

        Returns:
            Names of the tasks that were started
        """
        minute = (now or self._clock()).replace(second=0, microsecond=0)
        started = []

        for task in list(self._tasks.values()):
            if not task.is_due(minute):
                continue

            task.last_run = minute
            started.append(task.name)
            try:
                await task.callback()
            except Exception as e:
                if self._logger is not None:
                    self._logger.log_error(
                        component="Scheduler",
                        message=f"Scheduled task '{task.name}' failed",
                        error=e,
                        additional_data={"task": task.name},
                    )

        return started

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Run due tasks every minute until stop() is called or stop_event is set.
        """
        self._stop_event = stop_event or asyncio.Event()
        try:
            while not self._stop_event.is_set():
                await self.run_pending()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), self.CHECK_INTERVAL_SECONDS
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._stop_event = None

    def stop(self) -> None:
        """Signal a running loop to stop."""
        if self._stop_event is not None:
            self._stop_event.set()

    def is_running(self) -> bool:
        return self._stop_event is not None


# Type hint for circular import avoidance
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .audit_logger import AuditLogger
