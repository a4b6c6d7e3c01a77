"""Invoice numbering domain.

Public API:
- extract_client_shortform / ensure_unique_shortform
- classify / parse_identifier / parse_date_based / parse_legacy
- generate_date_based_identifier / generate_next_legacy_identifier
- LegacyMigrator
- InvoiceNumberingService
"""

from invoice_numbering.domain.numbering.identifiers import (
    DateBasedIdentifier,
    IdentifierKind,
    LegacyIdentifier,
    ParsedIdentifier,
    classify,
    collect_shortforms,
    format_date_key,
    parse_date_based,
    parse_identifier,
    parse_legacy,
)
from invoice_numbering.domain.numbering.migration import (
    InvalidTransitionError,
    ItemMigration,
    LegacyMigrationConfig,
    LegacyMigrator,
    MigrationReport,
    MigrationState,
    WorklistReadError,
)
from invoice_numbering.domain.numbering.protocols import (
    ClientRecord,
    IdentifierConflictError,
    LineItem,
    RecordStore,
)
from invoice_numbering.domain.numbering.sequence import (
    SequenceExhaustedError,
    allocate_date_based,
    convert_to_date_based,
    generate_date_based_identifier,
    generate_legacy_identifier_batch,
    generate_next_legacy_identifier,
    latest_legacy_identifier,
)
from invoice_numbering.domain.numbering.service import (
    AllocationRetryExhaustedError,
    InvoiceNumberingService,
)
from invoice_numbering.domain.numbering.shortform import (
    UNKNOWN_SHORTFORM,
    ensure_unique_shortform,
    extract_client_shortform,
)

__all__ = [
    "AllocationRetryExhaustedError",
    "ClientRecord",
    "DateBasedIdentifier",
    "IdentifierConflictError",
    "IdentifierKind",
    "InvalidTransitionError",
    "InvoiceNumberingService",
    "ItemMigration",
    "LegacyIdentifier",
    "LegacyMigrationConfig",
    "LegacyMigrator",
    "LineItem",
    "MigrationReport",
    "MigrationState",
    "ParsedIdentifier",
    "RecordStore",
    "SequenceExhaustedError",
    "UNKNOWN_SHORTFORM",
    "WorklistReadError",
    "allocate_date_based",
    "classify",
    "collect_shortforms",
    "convert_to_date_based",
    "ensure_unique_shortform",
    "extract_client_shortform",
    "format_date_key",
    "generate_date_based_identifier",
    "generate_legacy_identifier_batch",
    "generate_next_legacy_identifier",
    "latest_legacy_identifier",
    "parse_date_based",
    "parse_identifier",
    "parse_legacy",
]
