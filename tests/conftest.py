"""Pytest configuration and shared fixtures for invoice numbering tests.

.invnum_test_env (if present) is loaded FIRST so settings-driven modules
see test configuration before they are imported.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

_TEST_ENV_FILE = Path(__file__).parent.parent / ".invnum_test_env"
if _TEST_ENV_FILE.exists():
    load_dotenv(_TEST_ENV_FILE, override=True)

from typing import Generator, List  # noqa: E402

import pytest  # noqa: E402

from invoice_numbering.config import Settings, get_settings  # noqa: E402
from invoice_numbering.domain.numbering import (  # noqa: E402
    ClientRecord,
    InvoiceNumberingService,
    LegacyMigrationConfig,
    LineItem,
)
from invoice_numbering.io.repositories import InMemoryRecordStore  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    """Settings are lru_cached; make env changes in one test invisible to the next."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(allocation_max_retries=2, migration_progress_interval=2)


@pytest.fixture
def clients() -> List[ClientRecord]:
    return [
        ClientRecord(client_id="c-wsu", organization_name="Washington State University", custom_code="WSU"),
        ClientRecord(client_id="c-acme", organization_name="Acme Widgets Inc"),
        ClientRecord(client_id="c-blank", organization_name="   "),
    ]


@pytest.fixture
def legacy_line_items() -> List[LineItem]:
    return [
        LineItem(line_item_id="li-1", client_id="c-wsu", invoice_number="WSU-001", billed_at="2024-12-03"),
        LineItem(line_item_id="li-2", client_id="c-wsu", invoice_number="WSU-002", billed_at="2024-12-03"),
        LineItem(line_item_id="li-3", client_id="c-wsu", invoice_number="WSU-003", billed_at="2024-11-01"),
        LineItem(line_item_id="li-4", client_id="c-acme", invoice_number="ACWI-120324-01", billed_at="2024-12-03"),
        LineItem(line_item_id="li-5", client_id="c-acme", invoice_number="not a number", billed_at="2024-12-03"),
        LineItem(line_item_id="li-6", client_id="c-acme", invoice_number="ACWI-004", billed_at=None),
    ]


@pytest.fixture
def store(clients: List[ClientRecord], legacy_line_items: List[LineItem]) -> InMemoryRecordStore:
    return InMemoryRecordStore(clients=clients, line_items=legacy_line_items)


@pytest.fixture
def service(store: InMemoryRecordStore, settings: Settings) -> InvoiceNumberingService:
    return InvoiceNumberingService(store, settings=settings)


@pytest.fixture
def migration_config() -> LegacyMigrationConfig:
    return LegacyMigrationConfig(dry_run=False, progress_interval=2)
