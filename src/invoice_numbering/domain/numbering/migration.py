"""
Batch migration of legacy invoice numbers to the date-based scheme.

Each line item moves through a small state machine::

    PENDING -> IN_PROGRESS -> MIGRATED | FAILED | SKIPPED

The three outcomes are terminal. Items whose current identifier is not a
legacy identifier are SKIPPED, which makes a re-run idempotent: anything
migrated by an earlier run is now date-based and skips.

The batch is not atomic. A FAILED item does not roll back earlier MIGRATED
items, and failed items are never retried automatically. The only way the
whole run fails is when the worklist itself cannot be read.

Identifiers minted earlier in the same run are added to every later
snapshot of the same bucket, so two legacy items billed on the same day
never receive the same new number even before the store has caught up.
Allocations made concurrently by other processes are not covered.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from invoice_numbering.config import Settings, get_settings
from invoice_numbering.domain.numbering.identifiers import (
    IdentifierKind,
    classify,
    format_date_key,
)
from invoice_numbering.domain.numbering.protocols import LineItem, RecordStore
from invoice_numbering.domain.numbering.sequence import (
    SequenceExhaustedError,
    allocate_date_based,
    legacy_shortform,
)
from invoice_numbering.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class MigrationState(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    MIGRATED = "migrated"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATES: FrozenSet[MigrationState] = frozenset(
    {MigrationState.MIGRATED, MigrationState.FAILED, MigrationState.SKIPPED}
)

_ALLOWED_TRANSITIONS: Mapping[MigrationState, FrozenSet[MigrationState]] = {
    MigrationState.PENDING: frozenset({MigrationState.IN_PROGRESS}),
    MigrationState.IN_PROGRESS: TERMINAL_STATES,
    MigrationState.MIGRATED: frozenset(),
    MigrationState.FAILED: frozenset(),
    MigrationState.SKIPPED: frozenset(),
}

# Skip reasons reported in MigrationReport.skipped_reasons
SKIP_ALREADY_DATE_BASED = "already_date_based"
SKIP_UNRECOGNIZED_IDENTIFIER = "unrecognized_identifier"
SKIP_MISSING_BILLING_DATE = "missing_billing_date"


class InvalidTransitionError(Exception):
    """Raised when an item is moved along an edge the state machine lacks."""

    def __init__(self, line_item_id: str, current: MigrationState, target: MigrationState):
        self.line_item_id = line_item_id
        self.current = current
        self.target = target
        super().__init__(
            f"Line item {line_item_id}: cannot move from "
            f"{current.value} to {target.value}"
        )


class WorklistReadError(Exception):
    """Raised when the migration worklist cannot be read at all."""


@dataclass
class ItemMigration:
    """Migration progress of one line item."""

    line_item_id: str
    old_identifier: Optional[str]
    billing_date: Optional[date]
    state: MigrationState = MigrationState.PENDING
    new_identifier: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, target: MigrationState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.line_item_id, self.state, target)
        self.state = target

    def start(self) -> None:
        self.transition(MigrationState.IN_PROGRESS)

    def mark_migrated(self, new_identifier: str) -> None:
        self.transition(MigrationState.MIGRATED)
        self.new_identifier = new_identifier

    def mark_failed(self, error: str) -> None:
        self.transition(MigrationState.FAILED)
        self.error = error

    def mark_skipped(self, reason: str) -> None:
        self.transition(MigrationState.SKIPPED)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_item_id": self.line_item_id,
            "old_identifier": self.old_identifier,
            "billing_date": self.billing_date.isoformat() if self.billing_date else None,
            "state": self.state.value,
            "new_identifier": self.new_identifier,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass
class LegacyMigrationConfig:
    dry_run: bool = False
    progress_interval: int = 100
    sample_size: int = 10

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LegacyMigrationConfig":
        settings = settings or get_settings()
        return cls(
            dry_run=settings.migration_dry_run,
            progress_interval=settings.migration_progress_interval,
        )


@dataclass
class MigrationReport:
    run_id: str = ""
    dry_run: bool = False
    total_read: int = 0
    migrated: int = 0
    failed: int = 0
    skipped: int = 0
    skipped_reasons: Dict[str, int] = field(default_factory=dict)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    sample_records: List[Dict[str, Any]] = field(default_factory=list)
    items: List[ItemMigration] = field(default_factory=list)
    sample_size: int = 10

    def record(self, item: ItemMigration) -> None:
        """Count a terminal item."""
        self.items.append(item)
        if item.state is MigrationState.MIGRATED:
            self.migrated += 1
            if len(self.sample_records) < self.sample_size:
                self.sample_records.append(
                    {"old": item.old_identifier, "new": item.new_identifier}
                )
        elif item.state is MigrationState.FAILED:
            self.failed += 1
            self.failures.append(
                {"line_item_id": item.line_item_id, "error": item.error}
            )
        elif item.state is MigrationState.SKIPPED:
            self.skipped += 1
            reason = item.reason or "unspecified"
            self.skipped_reasons[reason] = self.skipped_reasons.get(reason, 0) + 1
        else:
            raise ValueError(
                f"Line item {item.line_item_id} is still {item.state.value}"
            )

    def counts(self) -> Dict[str, int]:
        return {"migrated": self.migrated, "failed": self.failed, "skipped": self.skipped}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "total_read": self.total_read,
            "migrated": self.migrated,
            "failed": self.failed,
            "skipped": self.skipped,
            "skipped_reasons": dict(self.skipped_reasons),
            "failures": list(self.failures),
            "sample_records": list(self.sample_records),
        }


class LegacyMigrator:
    """
    Convert legacy identifiers to date-based identifiers across a worklist.

    Example:
        >>> migrator = LegacyMigrator(store)
        >>> report = migrator.run()
        >>> report.counts()
        {'migrated': 12, 'failed': 1, 'skipped': 40}
    """

    def __init__(
        self, store: RecordStore, config: Optional[LegacyMigrationConfig] = None
    ) -> None:
        self._store = store
        self._config = config or LegacyMigrationConfig.from_settings()
        # bucket prefix -> identifiers minted during the current run
        self._minted: Dict[str, List[str]] = {}

    def _read_worklist(self, line_items: Optional[Iterable[LineItem]]) -> List[LineItem]:
        try:
            source = self._store.list_line_items() if line_items is None else line_items
            return list(source)
        except Exception as exc:
            logger.error("migration.worklist_read_failed", error=str(exc))
            raise WorklistReadError(f"Cannot read migration worklist: {exc}") from exc

    def _snapshot(self, bucket: str) -> List[str]:
        stored = [
            identifier
            for identifier in self._store.list_identifiers(bucket)
            if classify(identifier) is IdentifierKind.DATE_BASED
        ]
        return stored + self._minted.get(bucket, [])

    def _migrate_item(self, line_item: LineItem) -> ItemMigration:
        item = ItemMigration(
            line_item_id=line_item.line_item_id,
            old_identifier=line_item.invoice_number,
            billing_date=line_item.billed_at,
        )
        item.start()

        kind = classify(line_item.invoice_number)
        if kind is IdentifierKind.DATE_BASED:
            item.mark_skipped(SKIP_ALREADY_DATE_BASED)
            return item
        if kind is IdentifierKind.INVALID:
            logger.warning(
                "migration.unrecognized_identifier",
                line_item_id=item.line_item_id,
                identifier=line_item.invoice_number,
            )
            item.mark_skipped(SKIP_UNRECOGNIZED_IDENTIFIER)
            return item
        if item.billing_date is None:
            item.mark_skipped(SKIP_MISSING_BILLING_DATE)
            return item

        # classify() returned LEGACY, so the prefix always parses
        shortform = legacy_shortform(line_item.invoice_number or "") or ""
        bucket = f"{shortform}-{format_date_key(item.billing_date)}"

        try:
            new_identifier = allocate_date_based(
                shortform, item.billing_date, self._snapshot(bucket)
            ).format()
        except SequenceExhaustedError as exc:
            item.mark_failed(str(exc))
            return item
        except Exception as exc:
            logger.error(
                "migration.snapshot_read_failed",
                line_item_id=item.line_item_id,
                bucket=bucket,
                error=str(exc),
            )
            item.mark_failed(f"snapshot read failed: {exc}")
            return item

        if not self._config.dry_run:
            try:
                self._store.persist_identifier(item.line_item_id, new_identifier)
            except Exception as exc:
                logger.error(
                    "migration.persist_failed",
                    line_item_id=item.line_item_id,
                    identifier=new_identifier,
                    error=str(exc),
                )
                item.mark_failed(f"persist failed: {exc}")
                return item

        self._minted.setdefault(bucket, []).append(new_identifier)
        item.mark_migrated(new_identifier)
        logger.info(
            "migration.item_migrated",
            line_item_id=item.line_item_id,
            old_identifier=item.old_identifier,
            new_identifier=new_identifier,
            billing_date=item.billing_date,
        )
        return item

    def run(self, line_items: Optional[Iterable[LineItem]] = None) -> MigrationReport:
        """
        Migrate every legacy identifier in the worklist.

        Args:
            line_items: Worklist to process. Defaults to the store's
                ``list_line_items()``.

        Returns:
            MigrationReport with per-item outcomes and counts.

        Raises:
            WorklistReadError: If the worklist cannot be read.
        """
        worklist = self._read_worklist(line_items)
        self._minted = {}
        report = MigrationReport(
            run_id=uuid.uuid4().hex[:12],
            dry_run=self._config.dry_run,
            sample_size=self._config.sample_size,
        )

        with log_context(migration_run=report.run_id, dry_run=report.dry_run):
            logger.info("migration.started", worklist_size=len(worklist))

            for line_item in worklist:
                report.total_read += 1
                report.record(self._migrate_item(line_item))
                if report.total_read % self._config.progress_interval == 0:
                    logger.info(
                        "migration.progress", processed=report.total_read, **report.counts()
                    )

            logger.info(
                "migration.completed", total_read=report.total_read, **report.counts()
            )
        return report
