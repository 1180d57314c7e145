"""
Property-based tests for the monitoring repositories.

Uses Hypothesis to verify HMAC tamper detection, persistence round trips,
append-only logs and the one-record-per-channel dispatch rule.
"""

import json
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.enums import (
    AlertChannelType,
    AlertType,
    DomainStatus,
    LogSeverity,
    LogType,
)
from domain_monitor.exceptions import NotFoundError, PersistenceError, TamperingError
from domain_monitor.models import (
    AlertDispatchRecord,
    DomainRecord,
    FiredAlertKey,
    LogDetails,
    MonitoringLogEntry,
    NotificationSettings,
    RegistrarAccount,
    ThresholdToggles,
)
from domain_monitor.repository import InMemoryRepository, JsonFileRepository


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# Strategies for generating valid test data

@st.composite
def domain_strategy(draw) -> str:
    """Generate valid domain names."""
    sld = draw(
        st.text(
            alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
            min_size=1,
            max_size=20,
        )
    )
    tld = draw(st.sampled_from(["de", "com", "net", "org", "eu"]))
    return f"{sld}.{tld}"


@st.composite
def domain_records_strategy(draw) -> list[DomainRecord]:
    """Generate domain records with distinct names."""
    names = draw(st.lists(domain_strategy(), max_size=8, unique=True))
    records = []
    for i, name in enumerate(names):
        days = draw(st.one_of(st.none(), st.integers(min_value=-30, max_value=700)))
        records.append(DomainRecord(
            id=f"d{i}",
            domain=name,
            registrar=draw(st.sampled_from(["", "GoDaddy.com, LLC", "Namecheap, Inc."])),
            domain_expiry=NOW + timedelta(days=days) if days is not None else None,
            status=draw(st.sampled_from(list(DomainStatus))),
            nameservers=draw(st.lists(st.sampled_from(["ns1.x.net", "ns2.x.net"]), max_size=2)),
            created_at=NOW,
        ))
    return records


@st.composite
def log_entries_strategy(draw) -> list[MonitoringLogEntry]:
    """Generate log entries with unique ids."""
    size = draw(st.integers(min_value=0, max_value=10))
    return [
        MonitoringLogEntry(
            id=f"log-{i}",
            domain=draw(domain_strategy()),
            log_type=draw(st.sampled_from(list(LogType))),
            severity=draw(st.sampled_from(list(LogSeverity))),
            message=draw(st.text(max_size=40)),
            created_at=NOW - timedelta(hours=i),
            details=LogDetails(days_until_expiry=draw(st.one_of(st.none(), st.integers(-5, 400)))),
            alert_sent=draw(st.booleans()),
        )
        for i in range(size)
    ]


@st.composite
def hmac_secret_strategy(draw) -> str:
    """Generate HMAC secrets, including non-ASCII ones."""
    return draw(st.text(min_size=1, max_size=40))


def log_entry(entry_id: str = "log-1") -> MonitoringLogEntry:
    return MonitoringLogEntry(
        id=entry_id,
        domain="example.com",
        domain_id="d1",
        log_type=LogType.DOMAIN_EXPIRY,
        severity=LogSeverity.WARNING,
        message="Domain example.com expires in 30 day(s)",
        created_at=NOW,
        details=LogDetails(days_until_expiry=30),
    )


def dispatch(record_id: str, channel: AlertChannelType) -> AlertDispatchRecord:
    return AlertDispatchRecord(
        id=record_id,
        log_id="log-1",
        domain="example.com",
        alert_type=AlertType.DOMAIN_EXPIRY,
        channel=channel,
        recipient="ops@example.com",
        created_at=NOW,
    )


class TestHMACProtectionProperty:
    """
    Property 17: Tampering with the state file is detected.

    **Feature: domain-monitor, Property 17: HMAC protects stored data**
    """

    @given(domains=domain_records_strategy(), secret=hmac_secret_strategy())
    @settings(max_examples=50)
    def test_modified_data_fails_hmac_validation(
        self, domains: list[DomainRecord], secret: str
    ) -> None:
        """
        *For any* stored state, modifying the data SHALL make connect()
        raise TamperingError.
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "state.json"
            repo = JsonFileRepository(file_path, secret)
            repo.connect()
            for record in domains:
                repo.save_domain(record)
            repo.disconnect()

            with open(file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
            raw_data["data"]["last_run"] = "2000-01-01T00:00:00+00:00"
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(raw_data, f)

            with pytest.raises(TamperingError):
                JsonFileRepository(file_path, secret).connect()

    @given(secret=hmac_secret_strategy(), other=hmac_secret_strategy())
    @settings(max_examples=50)
    def test_wrong_secret_causes_rejection(self, secret: str, other: str) -> None:
        """*For any* two different secrets, loading with the wrong one SHALL fail."""
        if secret == other:
            return
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "state.json"
            repo = JsonFileRepository(file_path, secret)
            repo.connect()
            repo.disconnect()

            try:
                JsonFileRepository(file_path, other).connect()
                assert False, "Expected TamperingError"
            except TamperingError:
                pass  # Expected

    def test_unparseable_file_is_persistence_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "state.json"
            file_path.write_text("{not json", encoding="utf-8")

            with pytest.raises(PersistenceError) as exc_info:
                JsonFileRepository(file_path, "secret").connect()
            assert exc_info.value.code == "parse_error"


class TestStateRoundTripProperty:
    """
    Property 18: Everything written is read back unchanged.

    **Feature: domain-monitor, Property 18: State round trip**
    """

    @given(
        domains=domain_records_strategy(),
        logs=log_entries_strategy(),
        secret=hmac_secret_strategy(),
    )
    @settings(max_examples=50)
    def test_state_round_trip_preserves_data(
        self,
        domains: list[DomainRecord],
        logs: list[MonitoringLogEntry],
        secret: str,
    ) -> None:
        """
        *For any* domains, logs, history and settings, a reconnect SHALL
        return equal objects.
        """
        key = FiredAlertKey("d0", "domain_expiry", 30, "2025-07-01T00:00:00+00:00")
        settings_ = NotificationSettings(
            domain_expiration=ThresholdToggles(one_day=False),
            webhook_url="https://hooks.example.com/x",
        )
        account = RegistrarAccount(id="a1", name="GoDaddy.com, LLC", connected=True,
                                   credentials={"api_key": "k"})

        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = Path(tmpdir) / "state.json"
            with JsonFileRepository(file_path, secret) as repo:
                for record in domains:
                    repo.save_domain(record)
                for entry in logs:
                    repo.append_log(entry)
                repo.record_fired_alert(key)
                repo.save_settings(settings_)
                repo.save_registrar_account(account)
                repo.set_last_run(NOW)

            with JsonFileRepository(file_path, secret) as loaded:
                assert loaded.list_domains() == sorted(domains, key=lambda d: d.domain)
                assert sorted(loaded.list_logs(), key=lambda e: e.id) == sorted(
                    logs, key=lambda e: e.id
                )
                assert loaded.fired_alerts("d0") == {key}
                assert loaded.get_settings() == settings_
                assert loaded.list_registrar_accounts() == [account]
                assert loaded.get_last_run() == NOW

    def test_missing_file_starts_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with JsonFileRepository(Path(tmpdir) / "new" / "state.json", "s") as repo:
                assert repo.list_domains() == []
                assert repo.get_last_run() is None
            assert (Path(tmpdir) / "new" / "state.json").exists()


class TestAppendOnlyLogProperty:
    """
    Property 19: Log entries are append-only apart from the alert flags.

    **Feature: domain-monitor, Property 19: Append-only logs**
    """

    def test_alert_flags_can_be_set(self) -> None:
        with InMemoryRepository() as repo:
            repo.append_log(log_entry())
            repo.update_log(log_entry().with_alert_sent((AlertChannelType.EMAIL,)))

            assert repo.get_log("log-1").alert_sent is True

    @given(message=st.text(min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_content_changes_are_rejected(self, message: str) -> None:
        """*For any* changed message, update_log SHALL raise PersistenceError."""
        original = log_entry()
        if message == original.message:
            return
        with InMemoryRepository() as repo:
            repo.append_log(original)
            changed = MonitoringLogEntry(
                id=original.id,
                domain=original.domain,
                domain_id=original.domain_id,
                log_type=original.log_type,
                severity=original.severity,
                message=message,
                created_at=original.created_at,
                details=original.details,
            )

            with pytest.raises(PersistenceError) as exc_info:
                repo.update_log(changed)
            assert exc_info.value.code == "immutable_log"

    def test_alert_sent_cannot_be_reset(self) -> None:
        with InMemoryRepository() as repo:
            repo.append_log(log_entry().with_alert_sent((AlertChannelType.SLACK,)))
            with pytest.raises(PersistenceError):
                repo.update_log(log_entry())

    def test_duplicate_append_is_rejected(self) -> None:
        with InMemoryRepository() as repo:
            repo.append_log(log_entry())
            with pytest.raises(PersistenceError):
                repo.append_log(log_entry())

    def test_update_of_unknown_entry_is_not_found(self) -> None:
        with InMemoryRepository() as repo:
            with pytest.raises(NotFoundError):
                repo.update_log(log_entry("missing"))


class TestDispatchUniquenessProperty:
    """
    Property 20: One dispatch record per (log entry, channel).

    **Feature: domain-monitor, Property 20: Dispatch uniqueness**
    """

    @given(channel=st.sampled_from(list(AlertChannelType)))
    @settings(max_examples=20)
    def test_second_record_for_same_channel_is_rejected(
        self, channel: AlertChannelType
    ) -> None:
        """*For any* channel, a second record id for the same log SHALL be rejected."""
        with InMemoryRepository() as repo:
            repo.save_dispatch(dispatch("r1", channel))
            repo.save_dispatch(dispatch("r1", channel))  # update in place

            with pytest.raises(PersistenceError):
                repo.save_dispatch(dispatch("r2", channel))
            assert len(repo.list_dispatches()) == 1

    def test_different_channels_coexist(self) -> None:
        with InMemoryRepository() as repo:
            for i, channel in enumerate(AlertChannelType):
                repo.save_dispatch(dispatch(f"r{i}", channel))

            assert len(repo.list_dispatches()) == len(AlertChannelType)
            assert repo.get_dispatch("log-1", AlertChannelType.SLACK).id == "r2"


class TestDomainStorage:
    """Domain bookkeeping."""

    def test_duplicate_domain_per_owner_is_rejected(self) -> None:
        with InMemoryRepository() as repo:
            repo.save_domain(DomainRecord(id="a", domain="example.com"))
            with pytest.raises(PersistenceError) as exc_info:
                repo.save_domain(DomainRecord(id="b", domain="example.com"))
            assert exc_info.value.code == "duplicate_domain"

            repo.save_domain(DomainRecord(id="c", domain="example.com", owner_id="u2"))
            assert len(repo.list_domains()) == 2

    def test_operations_require_connection(self) -> None:
        repo = InMemoryRepository()
        with pytest.raises(PersistenceError) as exc_info:
            repo.list_domains()
        assert exc_info.value.code == "not_connected"

    def test_delete_logs_counts_removed(self) -> None:
        with InMemoryRepository() as repo:
            repo.append_log(log_entry("a"))
            repo.append_log(log_entry("b"))

            assert repo.delete_logs(["a", "missing"]) == 1
            assert [e.id for e in repo.list_logs()] == ["b"]

    def test_delete_domain_drops_alert_history_and_dispatches(self) -> None:
        other_log = replace(log_entry("log-2"), domain="example.org", domain_id="d2")
        other_dispatch = replace(
            dispatch("r2", AlertChannelType.EMAIL), log_id="log-2", domain="example.org"
        )
        kept_key = FiredAlertKey("d2", "domain_expiry", 30, "2025-07-01T12:00:00Z")

        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "state.json"
            with JsonFileRepository(path, "secret") as repo:
                repo.save_domain(DomainRecord(id="d1", domain="example.com"))
                repo.save_domain(DomainRecord(id="d2", domain="example.org"))
                repo.append_log(log_entry("log-1"))
                repo.append_log(other_log)
                repo.save_dispatch(dispatch("r1", AlertChannelType.EMAIL))
                repo.save_dispatch(other_dispatch)
                repo.record_fired_alert(
                    FiredAlertKey("d1", "domain_expiry", 30, "2025-07-01T12:00:00Z")
                )
                repo.record_fired_alert(kept_key)

                assert repo.delete_domain("d1") is True
                assert repo.delete_domain("d1") is False

            with JsonFileRepository(path, "secret") as reloaded:
                assert reloaded.fired_alerts("d1") == set()
                assert reloaded.fired_alerts("d2") == {kept_key}
                assert [r.id for r in reloaded.list_dispatches()] == ["r2"]
                assert len(reloaded.list_logs()) == 2
