"""
Unit tests for the legacy-to-date-based migration batch.

Tests cover:
- Per-item outcomes and report counts on a mixed worklist
- Same-day legacy items receiving distinct numbers within one run
- Idempotent re-runs
- Per-item failure isolation (persist, snapshot, full bucket)
- Worklist read failure aborting the run
- State machine transitions
- Dry-run and progress logging
"""

import json
import logging
from typing import List
from unittest.mock import MagicMock

import pytest

from invoice_numbering.config import Settings
from invoice_numbering.domain.numbering import (
    InvalidTransitionError,
    ItemMigration,
    LegacyMigrationConfig,
    LegacyMigrator,
    LineItem,
    MigrationReport,
    MigrationState,
    WorklistReadError,
)
from invoice_numbering.io.repositories import InMemoryRecordStore


def _events(caplog: pytest.LogCaptureFixture, name: str) -> List[dict]:
    events = []
    for record in caplog.records:
        try:
            payload = json.loads(record.getMessage())
        except ValueError:
            continue
        if isinstance(payload, dict) and payload.get("event") == name:
            events.append(payload)
    return events


class _FailingPersistStore(InMemoryRecordStore):
    def __init__(self, failing_line_item_id: str, **kwargs):
        super().__init__(**kwargs)
        self.failing_line_item_id = failing_line_item_id

    def persist_identifier(self, line_item_id: str, identifier: str) -> None:
        if line_item_id == self.failing_line_item_id:
            raise RuntimeError("connection reset")
        super().persist_identifier(line_item_id, identifier)


# =============================================================================
# Test: Batch outcomes
# =============================================================================


@pytest.mark.unit
class TestMigrationOutcomes:
    def test_counts(self, store, migration_config):
        report = LegacyMigrator(store, migration_config).run()

        assert report.total_read == 6
        assert report.counts() == {"migrated": 3, "failed": 0, "skipped": 3}

    def test_new_identifiers_persisted(self, store, migration_config):
        LegacyMigrator(store, migration_config).run()

        numbers = {li.line_item_id: li.invoice_number for li in store.line_items}
        assert numbers["li-1"] == "WSU-120324-01"
        assert numbers["li-2"] == "WSU-120324-02"
        assert numbers["li-3"] == "WSU-110124-01"
        assert numbers["li-4"] == "ACWI-120324-01"
        assert numbers["li-5"] == "not a number"
        assert numbers["li-6"] == "ACWI-004"

    def test_skip_reasons(self, store, migration_config):
        report = LegacyMigrator(store, migration_config).run()

        assert report.skipped_reasons == {
            "already_date_based": 1,
            "unrecognized_identifier": 1,
            "missing_billing_date": 1,
        }

    def test_item_states(self, store, migration_config):
        report = LegacyMigrator(store, migration_config).run()

        states = {item.line_item_id: item.state for item in report.items}
        assert states["li-1"] is MigrationState.MIGRATED
        assert states["li-4"] is MigrationState.SKIPPED
        assert all(item.is_terminal for item in report.items)

    def test_sample_records(self, store, migration_config):
        report = LegacyMigrator(store, migration_config).run()

        assert report.sample_records[0] == {"old": "WSU-001", "new": "WSU-120324-01"}
        assert len(report.sample_records) == 3

    def test_same_day_items_get_distinct_numbers_before_store_catches_up(self):
        # A store whose snapshot never reflects writes made during the run
        lagging = MagicMock()
        lagging.list_identifiers.return_value = []
        items = [
            LineItem(line_item_id="a", invoice_number="WSU-001", billed_at="2024-12-03"),
            LineItem(line_item_id="b", invoice_number="WSU-002", billed_at="2024-12-03"),
        ]

        report = LegacyMigrator(lagging, LegacyMigrationConfig()).run(items)

        new_numbers = [item.new_identifier for item in report.items]
        assert new_numbers == ["WSU-120324-01", "WSU-120324-02"]

    def test_existing_date_based_numbers_respected(self):
        store = InMemoryRecordStore(
            line_items=[
                LineItem(line_item_id="old", invoice_number="WSU-120324-01", billed_at="2024-12-03"),
                LineItem(line_item_id="new", invoice_number="WSU-017", billed_at="2024-12-03"),
            ]
        )

        report = LegacyMigrator(store, LegacyMigrationConfig()).run()

        assert report.items[1].new_identifier == "WSU-120324-02"

    def test_second_run_is_idempotent(self, store, migration_config):
        LegacyMigrator(store, migration_config).run()
        snapshot = {li.line_item_id: li.invoice_number for li in store.line_items}

        report = LegacyMigrator(store, migration_config).run()

        assert report.counts() == {"migrated": 0, "failed": 0, "skipped": 6}
        assert report.skipped_reasons["already_date_based"] == 4
        assert {li.line_item_id: li.invoice_number for li in store.line_items} == snapshot

    def test_explicit_worklist(self, store, migration_config, legacy_line_items):
        report = LegacyMigrator(store, migration_config).run(legacy_line_items[:1])

        assert report.total_read == 1
        assert report.migrated == 1

    def test_empty_worklist(self, migration_config):
        report = LegacyMigrator(InMemoryRecordStore(), migration_config).run()

        assert report.total_read == 0
        assert report.counts() == {"migrated": 0, "failed": 0, "skipped": 0}


# =============================================================================
# Test: Failure isolation
# =============================================================================


@pytest.mark.unit
class TestMigrationFailures:
    def test_persist_failure_isolated_to_one_item(
        self, clients, legacy_line_items, migration_config
    ):
        store = _FailingPersistStore(
            "li-2", clients=clients, line_items=legacy_line_items
        )

        report = LegacyMigrator(store, migration_config).run()

        assert report.counts() == {"migrated": 2, "failed": 1, "skipped": 3}
        assert report.failures[0]["line_item_id"] == "li-2"
        assert report.failures[0]["error"].startswith("persist failed:")
        numbers = {li.line_item_id: li.invoice_number for li in store.line_items}
        assert numbers["li-1"] == "WSU-120324-01"
        assert numbers["li-2"] == "WSU-002"
        assert numbers["li-3"] == "WSU-110124-01"

    def test_failed_item_not_rolled_back_or_retried(
        self, clients, legacy_line_items, migration_config
    ):
        store = _FailingPersistStore(
            "li-2", clients=clients, line_items=legacy_line_items
        )
        LegacyMigrator(store, migration_config).run()

        report = LegacyMigrator(store, migration_config).run()

        # li-2 is still legacy and fails again; li-1 stays migrated
        assert report.failed == 1
        assert report.migrated == 0

    def test_full_bucket_fails_item(self, migration_config):
        store = InMemoryRecordStore(
            line_items=[
                LineItem(line_item_id="li-x", invoice_number="WSU-001", billed_at="2024-12-03"),
                LineItem(line_item_id="li-y", invoice_number="WSU-002", billed_at="2024-12-04"),
            ],
            extra_identifiers=[f"WSU-120324-{n:02d}" for n in range(1, 100)],
        )

        report = LegacyMigrator(store, migration_config).run()

        assert report.items[0].state is MigrationState.FAILED
        assert "exhausted" in report.items[0].error
        assert report.items[1].new_identifier == "WSU-120424-01"

    def test_snapshot_failure_fails_item(self, migration_config):
        broken = MagicMock()
        broken.list_identifiers.side_effect = RuntimeError("timeout")
        items = [LineItem(line_item_id="a", invoice_number="WSU-001", billed_at="2024-12-03")]

        report = LegacyMigrator(broken, migration_config).run(items)

        assert report.failed == 1
        assert report.failures[0]["error"] == "snapshot read failed: timeout"
        broken.persist_identifier.assert_not_called()

    def test_worklist_read_failure_aborts(self, migration_config):
        broken = MagicMock()
        broken.list_line_items.side_effect = RuntimeError("db down")

        with pytest.raises(WorklistReadError, match="db down"):
            LegacyMigrator(broken, migration_config).run()

        broken.persist_identifier.assert_not_called()


# =============================================================================
# Test: Dry run and configuration
# =============================================================================


@pytest.mark.unit
class TestDryRun:
    def test_nothing_persisted(self, store, legacy_line_items):
        before = {li.line_item_id: li.invoice_number for li in store.line_items}

        report = LegacyMigrator(store, LegacyMigrationConfig(dry_run=True)).run()

        assert report.dry_run is True
        assert report.migrated == 3
        assert {li.line_item_id: li.invoice_number for li in store.line_items} == before

    def test_dry_run_still_distinguishes_same_day_items(self, store):
        report = LegacyMigrator(store, LegacyMigrationConfig(dry_run=True)).run()

        new_numbers = [i.new_identifier for i in report.items if i.new_identifier]
        assert new_numbers == ["WSU-120324-01", "WSU-120324-02", "WSU-110124-01"]

    def test_config_from_settings(self):
        config = LegacyMigrationConfig.from_settings(
            Settings(migration_dry_run=True, migration_progress_interval=25)
        )

        assert config.dry_run is True
        assert config.progress_interval == 25


@pytest.mark.unit
class TestMigrationLogging:
    def test_progress_and_completion_events(self, store, migration_config, caplog):
        caplog.set_level(logging.INFO)

        LegacyMigrator(store, migration_config).run()

        assert len(_events(caplog, "migration.started")) == 1
        assert [e["processed"] for e in _events(caplog, "migration.progress")] == [2, 4, 6]
        completed = _events(caplog, "migration.completed")
        assert completed[-1]["migrated"] == 3
        assert completed[-1]["skipped"] == 3

    def test_item_events_carry_run_id(self, store, migration_config, caplog):
        caplog.set_level(logging.INFO)

        report = LegacyMigrator(store, migration_config).run()

        migrated = _events(caplog, "migration.item_migrated")
        assert len(migrated) == 3
        assert {e["migration_run"] for e in migrated} == {report.run_id}
        assert migrated[0]["billing_date"] == "2024-12-03"
        assert migrated[0]["dry_run"] is False
        assert report.to_dict()["run_id"] == report.run_id

    def test_unrecognized_identifier_warns(self, store, migration_config, caplog):
        caplog.set_level(logging.INFO)

        LegacyMigrator(store, migration_config).run()

        warnings = _events(caplog, "migration.unrecognized_identifier")
        assert warnings[0]["line_item_id"] == "li-5"
        assert warnings[0]["level"] == "warning"


# =============================================================================
# Test: State machine
# =============================================================================


@pytest.mark.unit
class TestItemStateMachine:
    def _item(self) -> ItemMigration:
        return ItemMigration(line_item_id="li-1", old_identifier="WSU-001", billing_date=None)

    def test_happy_path(self):
        item = self._item()
        item.start()
        item.mark_migrated("WSU-120324-01")

        assert item.state is MigrationState.MIGRATED
        assert item.new_identifier == "WSU-120324-01"

    def test_cannot_skip_in_progress(self):
        item = self._item()

        with pytest.raises(InvalidTransitionError) as exc_info:
            item.mark_migrated("WSU-120324-01")

        assert exc_info.value.current is MigrationState.PENDING
        assert exc_info.value.target is MigrationState.MIGRATED

    @pytest.mark.parametrize(
        "finish",
        [
            lambda item: item.mark_migrated("WSU-120324-01"),
            lambda item: item.mark_failed("boom"),
            lambda item: item.mark_skipped("already_date_based"),
        ],
    )
    def test_terminal_states_are_final(self, finish):
        item = self._item()
        item.start()
        finish(item)

        with pytest.raises(InvalidTransitionError):
            item.start()
        with pytest.raises(InvalidTransitionError):
            item.mark_failed("again")

    def test_report_rejects_non_terminal_item(self):
        with pytest.raises(ValueError):
            MigrationReport().record(self._item())

    def test_report_to_dict(self):
        item = self._item()
        item.start()
        item.mark_failed("persist failed: boom")
        report = MigrationReport()
        report.total_read = 1
        report.record(item)

        payload = report.to_dict()

        assert payload["failed"] == 1
        assert payload["failures"] == [{"line_item_id": "li-1", "error": "persist failed: boom"}]
        assert item.to_dict()["state"] == "failed"
