"""
CLI for migrating legacy invoice numbers to the date-based scheme.

Usage:
    # Preview without writing
    python -m invoice_numbering.cli.migrate --store records.json --dry-run

    # Migrate and write the store back
    python -m invoice_numbering.cli.migrate --store records.json

Prints the migration report as JSON. Exit code 1 when any item failed or the
store could not be read.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from pydantic import ValidationError

from invoice_numbering.config import get_settings
from invoice_numbering.domain.numbering import (
    LegacyMigrationConfig,
    LegacyMigrator,
    WorklistReadError,
)
from invoice_numbering.io.repositories import JsonRecordStore
from invoice_numbering.utils.logging import get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoice_numbering.cli migrate",
        description="Migrate legacy invoice numbers to SHORTFORM-MMDDYY-NN",
    )
    parser.add_argument("--store", required=True, help="Path to the JSON record store")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute new numbers without writing the store",
    )
    parser.add_argument(
        "--show-items",
        action="store_true",
        help="Include per-item outcomes in the report",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        store = JsonRecordStore(args.store)
    except (OSError, ValueError, ValidationError) as exc:
        logger.error("migrate.store_load_failed", path=args.store, error=str(exc))
        print(f"Error: cannot load store {args.store}: {exc}", file=sys.stderr)
        return 1

    config = LegacyMigrationConfig.from_settings(get_settings())
    config.dry_run = config.dry_run or args.dry_run

    try:
        report = LegacyMigrator(store, config).run()
    except WorklistReadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not config.dry_run and report.migrated:
        store.save()

    payload = report.to_dict()
    if args.show_items:
        payload["items"] = [item.to_dict() for item in report.items]
    print(json.dumps(payload, ensure_ascii=False, indent=2))

    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
