"""
Property-based tests for the cron scheduler.

Uses Hypothesis to verify cron parsing, next-run computation in UTC and
the once-per-minute execution of scheduled tasks.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.audit_logger import AuditLogger
from domain_monitor.enums import LogLevel
from domain_monitor.scheduler import CronParseError, CronParser, CronSchedule, Scheduler


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


# Strategies for valid cron fields

def range_field(low: int, high: int) -> st.SearchStrategy[str]:
    return st.builds(
        lambda a, b: f"{min(a, b)}-{max(a, b)}",
        st.integers(min_value=low, max_value=high),
        st.integers(min_value=low, max_value=high),
    )


def cron_field(low: int, high: int, max_step: int) -> st.SearchStrategy[str]:
    return st.one_of(
        st.just("*"),
        st.integers(min_value=low, max_value=high).map(str),
        range_field(low, high),
        st.integers(min_value=1, max_value=max_step).map(lambda step: f"*/{step}"),
        st.lists(
            st.integers(min_value=low, max_value=high), min_size=1, max_size=3, unique=True
        ).map(lambda vals: ",".join(str(v) for v in sorted(vals))),
    )


def cron_expression() -> st.SearchStrategy[str]:
    """Generate valid 5-field cron expressions, optionally with a seconds field."""
    five_fields = st.builds(
        lambda m, h, dom, mon, dow: f"{m} {h} {dom} {mon} {dow}",
        cron_field(0, 59, 30),
        cron_field(0, 23, 12),
        cron_field(1, 31, 10),
        st.one_of(cron_field(1, 12, 6), st.sampled_from(["jan", "jun", "dec"])),
        st.one_of(cron_field(0, 7, 3), st.sampled_from(["mon", "sun", "mon-fri"])),
    )
    return st.one_of(five_fields, five_fields.map(lambda expr: f"0 {expr}"))


utc_datetimes = st.datetimes(
    min_value=datetime(2020, 1, 1), max_value=datetime(2035, 1, 1)
).map(lambda d: d.replace(tzinfo=timezone.utc))


class TestCronParsingProperty:
    """
    Property 28: Valid cron expressions parse into in-range fields.

    **Feature: domain-monitor, Property 28: Cron parsing**
    """

    @given(expression=cron_expression())
    @settings(max_examples=100)
    def test_valid_expression_parses(self, expression: str) -> None:
        """
        *For any* valid expression, parsing SHALL succeed, keep the original
        text and produce non-empty in-range fields with Sunday as 0.
        """
        schedule = CronParser().parse(expression)

        assert isinstance(schedule, CronSchedule)
        assert schedule.original_expression == expression
        assert schedule.minute.values and schedule.minute.values <= set(range(60))
        assert schedule.hour.values and schedule.hour.values <= set(range(24))
        assert schedule.day_of_month.values <= set(range(1, 32))
        assert schedule.month.values <= set(range(1, 13))
        assert schedule.day_of_week.values and schedule.day_of_week.values <= set(range(7))

    def test_default_schedules(self) -> None:
        parser = CronParser()

        daily = parser.parse("0 2 * * *")
        weekly = parser.parse("0 3 * * 0")

        assert daily.minute.values == {0}
        assert daily.hour.values == {2}
        assert daily.day_of_week.is_wildcard
        assert weekly.day_of_week.values == {0}

    def test_seven_means_sunday(self) -> None:
        parser = CronParser()

        assert parser.parse("0 3 * * 7").day_of_week.values == {0}
        assert parser.parse("0 3 * * 5-7").day_of_week.values == {0, 5, 6}
        assert parser.parse("0 3 * * 0-7").day_of_week.is_wildcard

    def test_names_steps_and_lists(self) -> None:
        parser = CronParser()

        assert parser.parse("*/15 * * * *").minute.values == {0, 15, 30, 45}
        assert parser.parse("0 9-17/4 * * *").hour.values == {9, 13, 17}
        assert parser.parse("0 0 1,15 * *").day_of_month.values == {1, 15}
        assert parser.parse("0 0 * jan-mar *").month.values == {1, 2, 3}
        assert parser.parse("0 0 * * mon-fri").day_of_week.values == {1, 2, 3, 4, 5}

    @pytest.mark.parametrize(
        "expression",
        ["", "* * *", "* * * * * * *", "60 * * * *", "* 24 * * *", "* * 0 * *",
         "* * 32 * *", "* * * 13 *", "* * * * 8", "*/0 * * * *", "5-1 * * * *",
         "a * * * *"],
    )
    def test_invalid_expression_rejected(self, expression: str) -> None:
        with pytest.raises(CronParseError) as exc_info:
            CronParser().parse(expression)

        assert exc_info.value.code == "invalid_cron"
        assert exc_info.value.expression == expression.strip()


class TestNextRunProperty:
    """
    Property 29: next_run returns the first matching minute after a time.

    **Feature: domain-monitor, Property 29: Next run computation**
    """

    @given(expression=cron_expression(), after=utc_datetimes)
    @settings(max_examples=100, deadline=None)
    def test_next_run_matches_and_is_later(self, expression: str, after: datetime) -> None:
        """
        *For any* schedule and start time, the next run SHALL be a whole
        minute strictly after the start that matches the schedule.
        """
        schedule = CronParser().parse(expression)

        next_run = schedule.next_run(after)

        if next_run is None:
            return
        assert next_run > after
        assert next_run.second == 0 and next_run.microsecond == 0
        assert schedule.matches(next_run)

    @given(after=utc_datetimes)
    @settings(max_examples=100)
    def test_daily_schedule_runs_within_a_day(self, after: datetime) -> None:
        """*For any* start time, the daily 02:00 run SHALL come within 24 hours."""
        next_run = CronParser().parse("0 2 * * *").next_run(after)

        assert (next_run.hour, next_run.minute) == (2, 0)
        assert timedelta(0) < next_run - after <= timedelta(days=1)

    def test_weekly_cleanup_runs_on_sunday(self) -> None:
        # 2025-12-01 is a Monday
        monday = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)

        next_run = CronParser().parse("0 3 * * 0").next_run(monday)

        assert next_run == datetime(2025, 12, 7, 3, 0, tzinfo=timezone.utc)

    def test_exact_match_is_not_returned(self) -> None:
        at_two = datetime(2025, 12, 1, 2, 0, tzinfo=timezone.utc)

        next_run = CronParser().parse("0 2 * * *").next_run(at_two)

        assert next_run == datetime(2025, 12, 2, 2, 0, tzinfo=timezone.utc)

    def test_restricted_day_fields_are_ored(self) -> None:
        # Friday the 5th comes before the 13th
        schedule = CronParser().parse("0 0 13 * 5")

        next_run = schedule.next_run(datetime(2025, 12, 1, tzinfo=timezone.utc))

        assert next_run == datetime(2025, 12, 5, tzinfo=timezone.utc)

    def test_impossible_date_has_no_next_run(self) -> None:
        schedule = CronParser().parse("0 0 31 2 *")

        assert schedule.next_run(datetime(2025, 1, 1, tzinfo=timezone.utc)) is None


class TestRunPendingProperty:
    """
    Property 30: A due task runs once per matching minute; failures are logged.

    **Feature: domain-monitor, Property 30: Task execution**
    """

    def test_task_runs_once_per_minute(self) -> None:
        calls = []
        scheduler = Scheduler()

        async def monitoring_run() -> None:
            calls.append("run")

        scheduler.schedule("monitoring", "0 2 * * *", monitoring_run)

        async def scenario():
            results = []
            for second in (0, 0, 30):
                now = datetime(2025, 12, 1, 2, 0, second, tzinfo=timezone.utc)
                results.append(await scheduler.run_pending(now))
            results.append(await scheduler.run_pending(
                datetime(2025, 12, 2, 2, 0, 10, tzinfo=timezone.utc)
            ))
            return results

        results = run_async(scenario())

        assert results == [["monitoring"], [], [], ["monitoring"]]
        assert calls == ["run", "run"]

    def test_failing_task_is_logged_and_others_run(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)
        scheduler = Scheduler(logger=logger)
        calls = []

        async def failing() -> None:
            raise RuntimeError("storage unavailable")

        async def cleanup() -> None:
            calls.append("cleanup")

        scheduler.schedule("monitoring", "* * * * *", failing)
        scheduler.schedule("cleanup", "* * * * *", cleanup)

        started = run_async(scheduler.run_pending(datetime(2025, 12, 7, 3, 0, tzinfo=timezone.utc)))

        assert started == ["monitoring", "cleanup"]
        assert calls == ["cleanup"]
        errors = [e for e in logger.entries if e.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].data["task"] == "monitoring"
        assert errors[0].data["error_message"] == "storage unavailable"

    def test_schedule_management(self) -> None:
        clock = lambda: datetime(2025, 12, 1, tzinfo=timezone.utc)
        scheduler = Scheduler(clock=clock)

        async def noop() -> None:
            pass

        scheduler.schedule("monitoring", "0 2 * * *", noop)
        with pytest.raises(ValueError):
            scheduler.schedule("monitoring", "0 3 * * *", noop)

        assert scheduler.next_run("monitoring") == datetime(2025, 12, 1, 2, 0, tzinfo=timezone.utc)
        assert scheduler.next_run("unknown") is None
        assert scheduler.unschedule("monitoring") is True
        assert scheduler.unschedule("monitoring") is False
        assert scheduler.list_tasks() == []
