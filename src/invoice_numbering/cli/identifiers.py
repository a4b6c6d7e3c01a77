"""
CLI for shortform extraction, identifier classification and allocation.

Usage:
    python -m invoice_numbering.cli.identifiers shortform "State University"
    python -m invoice_numbering.cli.identifiers shortform "Acme Inc" --taken ACME,ACME1
    python -m invoice_numbering.cli.identifiers classify WSU-120324-01 WSU-007 junk
    python -m invoice_numbering.cli.identifiers next --shortform WSU --date 2024-12-03 \
        --existing WSU-120324-01 WSU-120324-02
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from invoice_numbering.domain.numbering import (
    DateBasedIdentifier,
    SequenceExhaustedError,
    ensure_unique_shortform,
    extract_client_shortform,
    generate_date_based_identifier,
    parse_identifier,
)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _describe(identifier: str) -> Dict[str, Any]:
    parsed = parse_identifier(identifier)
    result: Dict[str, Any] = {"identifier": identifier, "kind": parsed.kind.value}
    record = parsed.record
    if record is None:
        return result
    result["shortform"] = record.shortform
    result["sequence"] = record.sequence
    if isinstance(record, DateBasedIdentifier):
        billing_date = record.billing_date
        result["date_key"] = record.date_key
        result["billing_date"] = billing_date.isoformat() if billing_date else None
    return result


def _cmd_shortform(args: argparse.Namespace) -> int:
    candidate = extract_client_shortform(args.name, args.custom_code)
    print(ensure_unique_shortform(candidate, _split_csv(args.taken)))
    return 0


def _cmd_classify(args: argparse.Namespace) -> int:
    for identifier in args.identifiers:
        print(json.dumps(_describe(identifier), ensure_ascii=False))
    return 0


def _cmd_next(args: argparse.Namespace) -> int:
    try:
        print(generate_date_based_identifier(args.shortform, args.date, args.existing))
    except SequenceExhaustedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoice_numbering.cli",
        description="Invoice number derivation and inspection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    shortform = subparsers.add_parser("shortform", help="Derive a client shortform")
    shortform.add_argument("name", help="Organization name")
    shortform.add_argument("--custom-code", default=None, help="Override code")
    shortform.add_argument(
        "--taken", default=None, help="Comma-separated shortforms of other clients"
    )
    shortform.set_defaults(handler=_cmd_shortform)

    classify = subparsers.add_parser("classify", help="Classify invoice numbers")
    classify.add_argument("identifiers", nargs="+", help="Invoice numbers")
    classify.set_defaults(handler=_cmd_classify)

    next_parser = subparsers.add_parser("next", help="Next date-based invoice number")
    next_parser.add_argument("--shortform", required=True, help="Client shortform")
    next_parser.add_argument("--date", required=True, help="Billing date YYYY-MM-DD")
    next_parser.add_argument(
        "--existing", nargs="*", default=[], help="Existing invoice numbers"
    )
    next_parser.set_defaults(handler=_cmd_next)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
