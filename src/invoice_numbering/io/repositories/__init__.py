"""Record store implementations for invoice numbering."""

from invoice_numbering.io.repositories.in_memory import InMemoryRecordStore
from invoice_numbering.io.repositories.json_store import JsonRecordStore, StoreDocument

__all__ = ["InMemoryRecordStore", "JsonRecordStore", "StoreDocument"]
