"""
Dict-backed record store.

Enforces identifier uniqueness the way a database unique constraint would,
so the conflict retry in ``InvoiceNumberingService`` can be exercised
without a database.

Usage:
    store = InMemoryRecordStore(
        clients=[ClientRecord(client_id="c1", organization_name="Acme Inc")],
        line_items=[LineItem(line_item_id="li-1", client_id="c1",
                             invoice_number="ACME-001", billed_at="2024-12-03")],
    )
    store.list_identifiers("ACME-")
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from invoice_numbering.domain.numbering.protocols import (
    ClientRecord,
    IdentifierConflictError,
    LineItem,
)

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """In-process ``RecordStore``."""

    def __init__(
        self,
        clients: Optional[Iterable[ClientRecord]] = None,
        line_items: Optional[Iterable[LineItem]] = None,
        extra_identifiers: Optional[Iterable[str]] = None,
    ) -> None:
        self._clients: Dict[str, ClientRecord] = {}
        self._line_items: Dict[str, LineItem] = {}
        # Identifiers no line item currently holds: deleted line items, other
        # systems, and numbers replaced by persist_identifier. They still
        # block reuse.
        self._reserved: List[str] = list(extra_identifiers or [])

        for client in clients or []:
            self.add_client(client)
        for line_item in line_items or []:
            self.add_line_item(line_item)

    def add_client(self, client: ClientRecord) -> None:
        self._clients[client.client_id] = client

    def add_line_item(self, line_item: LineItem) -> None:
        self._line_items[line_item.line_item_id] = line_item

    @property
    def clients(self) -> List[ClientRecord]:
        return list(self._clients.values())

    @property
    def line_items(self) -> List[LineItem]:
        return list(self._line_items.values())

    def _holder_of(self, identifier: str) -> Optional[str]:
        for line_item in self._line_items.values():
            if line_item.invoice_number == identifier:
                return line_item.line_item_id
        return None

    def list_identifiers(self, prefix: str) -> List[str]:
        identifiers = [
            line_item.invoice_number
            for line_item in self._line_items.values()
            if line_item.invoice_number
        ]
        identifiers.extend(self._reserved)
        return sorted(i for i in identifiers if i.startswith(prefix))

    def get_line_item(self, line_item_id: str) -> Optional[LineItem]:
        return self._line_items.get(line_item_id)

    def persist_identifier(self, line_item_id: str, identifier: str) -> None:
        holder = self._holder_of(identifier)
        if holder is not None and holder != line_item_id:
            raise IdentifierConflictError(identifier, holder)
        if identifier in self._reserved:
            raise IdentifierConflictError(identifier)

        existing = self._line_items.get(line_item_id)
        if existing is None:
            self._line_items[line_item_id] = LineItem(
                line_item_id=line_item_id, invoice_number=identifier
            )
        else:
            replaced = existing.invoice_number
            # A replaced number stays listed so it is never issued again
            if replaced and replaced != identifier and replaced not in self._reserved:
                self._reserved.append(replaced)
            self._line_items[line_item_id] = existing.model_copy(
                update={"invoice_number": identifier}
            )
        logger.debug("Persisted %s against line item %s", identifier, line_item_id)

    def get_client(self, client_id: str) -> ClientRecord:
        try:
            return self._clients[client_id]
        except KeyError:
            raise KeyError(f"Unknown client: {client_id}") from None

    def list_line_items(self) -> List[LineItem]:
        return self.line_items
