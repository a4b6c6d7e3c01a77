"""
Invoice numbering service.

Composes shortform extraction, uniqueness resolution and sequence allocation
against a ``RecordStore``. The service is the caller-side orchestration of the
read-allocate-write cycle. Allocation itself stays pure; everything that
touches the store lives here.

Typical flow::

    service = InvoiceNumberingService(store)
    invoice_number = service.assign_identifier("li-42", "client-7", "2024-12-03")
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Set

from invoice_numbering.config import (
    Settings,
    ShortformOverrides,
    get_settings,
    load_shortform_overrides,
)
from invoice_numbering.domain.numbering.identifiers import (
    IdentifierKind,
    classify,
    collect_shortforms,
)
from invoice_numbering.domain.numbering.protocols import (
    ClientRecord,
    IdentifierConflictError,
    RecordStore,
)
from invoice_numbering.domain.numbering.sequence import (
    generate_date_based_identifier,
    generate_legacy_identifier_batch,
    generate_next_legacy_identifier,
    latest_legacy_identifier,
)
from invoice_numbering.domain.numbering.shortform import (
    ensure_unique_shortform,
    extract_client_shortform,
)
from invoice_numbering.utils.date_parser import BillingDate, today_local
from invoice_numbering.utils.logging import get_logger

logger = get_logger(__name__)


class AllocationRetryExhaustedError(Exception):
    """Raised when every allocation attempt collided with a stored identifier."""

    def __init__(self, line_item_id: str, attempts: int, last_identifier: str) -> None:
        self.line_item_id = line_item_id
        self.attempts = attempts
        self.last_identifier = last_identifier
        super().__init__(
            f"Could not assign an identifier to {line_item_id} after "
            f"{attempts} attempts (last tried {last_identifier})"
        )


class InvoiceNumberingService:
    """Read-allocate-write orchestration over a record store."""

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[Settings] = None,
        overrides: Optional[ShortformOverrides] = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        if overrides is None:
            overrides = load_shortform_overrides(Path(self._settings.overrides_dir))
        self._overrides = overrides

    # ------------------------------------------------------------------
    # Shortforms
    # ------------------------------------------------------------------

    def custom_code_for(self, client: ClientRecord) -> Optional[str]:
        """Record-level custom code first, then the YAML overrides."""
        if client.custom_code:
            return client.custom_code
        return self._overrides.get(client.organization_name)

    def existing_shortforms(self, exclude: Iterable[str] = ()) -> Set[str]:
        """Shortforms already used in stored identifiers, minus ``exclude``."""
        excluded = {code.upper() for code in exclude}
        return collect_shortforms(self._store.list_identifiers("")) - excluded

    def resolve_shortform(
        self, client_id: str, taken_shortforms: Iterable[str] = ()
    ) -> str:
        """
        Shortform for a client, disambiguated against other clients' codes.

        ``taken_shortforms`` must hold the codes of *other* clients only;
        passing the client's own code would push it to ``{code}1``.
        """
        client = self._store.get_client(client_id)
        candidate = extract_client_shortform(
            client.organization_name, self.custom_code_for(client)
        )
        shortform = ensure_unique_shortform(candidate, taken_shortforms)
        logger.debug(
            "shortform.resolved",
            client_id=client_id,
            candidate=candidate,
            shortform=shortform,
        )
        return shortform

    # ------------------------------------------------------------------
    # Date-based allocation
    # ------------------------------------------------------------------

    def _allocate(self, shortform: str, billing_date: BillingDate) -> str:
        snapshot = self._store.list_identifiers(f"{shortform}-")
        return generate_date_based_identifier(shortform, billing_date, snapshot)

    def next_identifier(
        self,
        client_id: str,
        billing_date: Optional[BillingDate] = None,
        taken_shortforms: Iterable[str] = (),
    ) -> str:
        """
        Next date-based invoice number for a client, without persisting it.

        ``billing_date`` defaults to today's local date.
        """
        shortform = self.resolve_shortform(client_id, taken_shortforms)
        return self._allocate(shortform, billing_date or today_local())

    def assign_identifier(
        self,
        line_item_id: str,
        client_id: str,
        billing_date: Optional[BillingDate] = None,
        taken_shortforms: Iterable[str] = (),
    ) -> str:
        """
        Allocate and persist a date-based invoice number for a line item.

        When the store rejects the identifier as a duplicate (another writer
        got there first) a fresh snapshot is read and the allocation is
        recomputed, up to ``allocation_max_retries`` extra times.

        Date-based numbers are immutable: a line item that already holds one
        gets it back unchanged. A legacy number is replaced, and the store
        keeps the old one reserved.

        Raises:
            AllocationRetryExhaustedError: If every attempt conflicted.
            SequenceExhaustedError: If the day's bucket is full.
        """
        current = self._store.get_line_item(line_item_id)
        if current is not None and classify(current.invoice_number) is IdentifierKind.DATE_BASED:
            logger.info(
                "allocation.already_assigned",
                line_item_id=line_item_id,
                identifier=current.invoice_number,
            )
            return current.invoice_number

        shortform = self.resolve_shortform(client_id, taken_shortforms)
        effective_date = billing_date or today_local()
        attempts = self._settings.allocation_max_retries + 1

        identifier = ""
        for attempt in range(1, attempts + 1):
            identifier = self._allocate(shortform, effective_date)
            try:
                self._store.persist_identifier(line_item_id, identifier)
            except IdentifierConflictError as exc:
                logger.warning(
                    "allocation.conflict",
                    line_item_id=line_item_id,
                    identifier=identifier,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )
                continue
            logger.info(
                "allocation.assigned",
                line_item_id=line_item_id,
                client_id=client_id,
                identifier=identifier,
                attempt=attempt,
            )
            return identifier

        raise AllocationRetryExhaustedError(line_item_id, attempts, identifier)

    # ------------------------------------------------------------------
    # Legacy allocation
    # ------------------------------------------------------------------

    def last_legacy_identifier(self, shortform: str) -> Optional[str]:
        return latest_legacy_identifier(
            self._store.list_identifiers(f"{shortform.upper()}-")
        )

    def next_legacy_identifier(self, shortform: str) -> str:
        return generate_next_legacy_identifier(
            shortform, self.last_legacy_identifier(shortform)
        )

    def legacy_identifier_batch(self, shortform: str, count: int) -> List[str]:
        """Consecutive legacy numbers for several line items of one client."""
        return generate_legacy_identifier_batch(
            shortform, self.last_legacy_identifier(shortform), count
        )
