"""
JSON file-backed record store used by the CLI.

Document shape::

    {
      "clients": [
        {"client_id": "c1", "organization_name": "Washington State University",
         "custom_code": "WSU"}
      ],
      "line_items": [
        {"line_item_id": "li-1", "client_id": "c1",
         "invoice_number": "WSU-001", "billed_at": "2024-12-03"}
      ],
      "reserved_identifiers": ["WSU-120324-01"]
    }

``reserved_identifiers`` lists numbers no line item holds any more (deleted
line items, legacy numbers replaced by migration); they are never handed out
again.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, Field

from invoice_numbering.domain.numbering.protocols import ClientRecord, LineItem
from invoice_numbering.io.repositories.in_memory import InMemoryRecordStore
from invoice_numbering.utils.logging import get_logger

logger = get_logger(__name__)


class StoreDocument(BaseModel):
    clients: List[ClientRecord] = Field(default_factory=list)
    line_items: List[LineItem] = Field(default_factory=list)
    reserved_identifiers: List[str] = Field(default_factory=list)


class JsonRecordStore(InMemoryRecordStore):
    """``InMemoryRecordStore`` loaded from and saved to a JSON document."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        with open(self.path, "r", encoding="utf-8") as f:
            document = StoreDocument.model_validate(json.load(f))

        super().__init__(
            clients=document.clients,
            line_items=document.line_items,
            extra_identifiers=document.reserved_identifiers,
        )
        logger.info(
            "json_store.loaded",
            path=str(self.path),
            clients=len(document.clients),
            line_items=len(document.line_items),
        )

    def to_document(self) -> StoreDocument:
        return StoreDocument(
            clients=self.clients,
            line_items=self.line_items,
            reserved_identifiers=list(self._reserved),
        )

    def save(self) -> None:
        payload = self.to_document().model_dump(mode="json", exclude_none=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.write("\n")
        logger.info("json_store.saved", path=str(self.path))
