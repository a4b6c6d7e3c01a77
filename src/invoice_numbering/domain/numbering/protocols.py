"""Record store contract consumed by the numbering service and the migrator.

The numbering core never talks to a database. Whatever owns the billing
records implements ``RecordStore``; the in-memory and JSON stores under
``invoice_numbering.io.repositories`` are the implementations shipped here.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from invoice_numbering.utils.date_parser import parse_billing_date_or_none


class IdentifierConflictError(Exception):
    """Raised by a store when an identifier is already held by another line item."""

    def __init__(self, identifier: str, line_item_id: Optional[str] = None) -> None:
        self.identifier = identifier
        self.line_item_id = line_item_id
        detail = f" (held by {line_item_id})" if line_item_id else ""
        super().__init__(f"Identifier {identifier} already exists{detail}")


class ClientRecord(BaseModel):
    """Organization name and optional custom code for one client."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    client_id: str = Field(..., min_length=1)
    organization_name: str = Field(default="")
    custom_code: Optional[str] = Field(
        default=None, description="Institutional code assigned out-of-band"
    )


class LineItem(BaseModel):
    """A billing line item as the migrator sees it."""

    model_config = ConfigDict(str_strip_whitespace=True)

    line_item_id: str = Field(..., min_length=1)
    client_id: Optional[str] = None
    invoice_number: Optional[str] = None
    billed_at: Optional[date] = Field(
        default=None, description="Local calendar billing date"
    )

    @field_validator("billed_at", mode="before")
    @classmethod
    def _parse_billed_at(cls, value: object) -> Optional[date]:
        # Unusable dates become None so the item is skipped, not rejected
        if value is None or value == "":
            return None
        return parse_billing_date_or_none(value)  # type: ignore[arg-type]


@runtime_checkable
class RecordStore(Protocol):
    """Persistence collaborator for invoice numbering."""

    def list_identifiers(self, prefix: str) -> List[str]:
        """All stored identifiers starting with ``prefix`` ("" for all)."""
        ...

    def persist_identifier(self, line_item_id: str, identifier: str) -> None:
        """Store ``identifier`` against a line item.

        Implementations that enforce uniqueness raise
        ``IdentifierConflictError`` on duplicates. An identifier the line
        item held before must stay visible to ``list_identifiers``.
        """
        ...

    def get_line_item(self, line_item_id: str) -> Optional[LineItem]:
        """The line item, or None when the store has no such record."""
        ...

    def get_client(self, client_id: str) -> ClientRecord:
        """Organization name and optional override code for a client."""
        ...

    def list_line_items(self) -> Iterable[LineItem]:
        """Worklist for the legacy migration."""
        ...
