"""
Unified CLI entry point for invoice numbering.

Usage:
    python -m invoice_numbering.cli <command> [options]

Available commands:
    shortform  - Derive a client shortform from an organization name
    classify   - Classify and parse invoice numbers
    next       - Compute the next date-based invoice number from a snapshot
    migrate    - Migrate legacy invoice numbers in a JSON record store

Examples:
    python -m invoice_numbering.cli shortform "Washington State University"
    python -m invoice_numbering.cli classify WSU-120324-01 WSU-007
    python -m invoice_numbering.cli next --shortform WSU --date 2024-12-03 --existing WSU-120324-01
    python -m invoice_numbering.cli migrate --store records.json --dry-run
"""

import argparse
import sys
from typing import List, Optional

IDENTIFIER_COMMANDS = ("shortform", "classify", "next")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        prog="invoice_numbering.cli",
        description="Invoice numbering CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
        help="Command to execute",
    )
    subparsers.add_parser(
        "shortform",
        help="Derive a client shortform",
        add_help=False,  # Let the delegated module handle help
    )
    subparsers.add_parser(
        "classify",
        help="Classify and parse invoice numbers",
        add_help=False,
    )
    subparsers.add_parser(
        "next",
        help="Next date-based invoice number",
        add_help=False,
    )
    subparsers.add_parser(
        "migrate",
        help="Migrate legacy invoice numbers",
        add_help=False,
    )

    args, remaining_args = parser.parse_known_args(argv)

    if args.command in IDENTIFIER_COMMANDS:
        from invoice_numbering.cli.identifiers import main as identifiers_main

        return identifiers_main([args.command, *remaining_args])

    elif args.command == "migrate":
        from invoice_numbering.cli.migrate import main as migrate_main

        return migrate_main(remaining_args)

    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
