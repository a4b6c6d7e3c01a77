"""
Sequence allocation for date-based and legacy invoice numbers.

Both allocators are pure functions over a caller-supplied snapshot of existing
identifiers. They hold no state and perform no I/O, which keeps them testable
without a store and leaves the read/write window to the caller.

Known race: two callers that read the same snapshot before either writes back
compute the same "next" identifier. Nothing here can prevent that; see
``InvoiceNumberingService.assign_identifier`` for the conflict retry.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from invoice_numbering.domain.numbering.identifiers import (
    LEGACY_MIN_WIDTH,
    MAX_DATE_SEQUENCE,
    DateBasedIdentifier,
    LegacyIdentifier,
    format_date_key,
    parse_legacy,
)
from invoice_numbering.domain.numbering.shortform import UNKNOWN_SHORTFORM
from invoice_numbering.utils.date_parser import BillingDate, parse_billing_date
from invoice_numbering.utils.logging import get_logger

logger = get_logger(__name__)

_DATE_SEQUENCE_SUFFIX = re.compile(r"-([0-9]{2})\Z")
_TRAILING_INTEGER = re.compile(r"-([0-9]+)\Z")
_LEGACY_PREFIX = re.compile(r"([A-Z0-9]+)-([0-9]+)")
_SHORTFORM_PATTERN = re.compile(r"[A-Z0-9]+")


class SequenceExhaustedError(Exception):
    """Raised when a date bucket already holds the maximum 99 sequences.

    A 100th identifier would render with a three-digit suffix that the
    two-digit parser cannot read back, silently breaking every later
    allocation in the bucket. Widening the format needs a version bump.
    """

    def __init__(self, bucket: str, highest_sequence: int) -> None:
        self.bucket = bucket
        self.highest_sequence = highest_sequence
        super().__init__(
            f"Sequence space exhausted for {bucket}: "
            f"{highest_sequence} of {MAX_DATE_SEQUENCE} already issued"
        )


def _normalize_shortform(client_shortform: str) -> str:
    shortform = (client_shortform or "").upper()
    if not _SHORTFORM_PATTERN.fullmatch(shortform):
        raise ValueError(
            f"Invalid shortform {client_shortform!r}: expected letters A-Z and digits only"
        )
    return shortform


def highest_date_sequence(bucket: str, existing_identifiers: Iterable[str]) -> int:
    """
    Highest two-digit sequence issued under ``bucket`` (0 when none).

    Identifiers are matched by prefix; those whose tail is not ``-NN`` are
    ignored.
    """
    highest = 0
    for identifier in existing_identifiers:
        if not identifier or not identifier.startswith(bucket):
            continue
        match = _DATE_SEQUENCE_SUFFIX.search(identifier)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def allocate_date_based(
    client_shortform: str,
    billing_date: BillingDate,
    existing_identifiers: Iterable[str],
) -> DateBasedIdentifier:
    """
    Compute the next date-based identifier record for a client+day bucket.

    Args:
        client_shortform: Client code (uppercased here).
        billing_date: Local calendar date; ``datetime`` values and ISO
            strings are reduced to their own date, never shifted via UTC.
        existing_identifiers: Snapshot of identifiers sharing the client's
            prefix. Other buckets in the snapshot are ignored.

    Raises:
        SequenceExhaustedError: If 99 sequences already exist in the bucket.
        ValueError: If ``billing_date`` cannot be parsed or the shortform
            is not ``[A-Z0-9]+``.
    """
    shortform = _normalize_shortform(client_shortform)
    calendar_date = parse_billing_date(billing_date)
    bucket = f"{shortform}-{format_date_key(calendar_date)}"

    next_sequence = highest_date_sequence(bucket, existing_identifiers) + 1
    if next_sequence > MAX_DATE_SEQUENCE:
        logger.error(
            "sequence.bucket_exhausted",
            bucket=bucket,
            highest_sequence=next_sequence - 1,
        )
        raise SequenceExhaustedError(bucket, next_sequence - 1)

    return DateBasedIdentifier.for_date(shortform, calendar_date, next_sequence)


def generate_date_based_identifier(
    client_shortform: str,
    billing_date: BillingDate,
    existing_identifiers: Iterable[str],
) -> str:
    """
    Next date-based invoice number as a string.

    Examples:
        >>> generate_date_based_identifier("WSU", "2024-12-03", [])
        'WSU-120324-01'
        >>> generate_date_based_identifier("WSU", "2024-12-03", ["WSU-120324-01"])
        'WSU-120324-02'
        >>> generate_date_based_identifier("WSU", "2024-12-03", ["WSU-110124-05"])
        'WSU-120324-01'
    """
    return allocate_date_based(
        client_shortform, billing_date, existing_identifiers
    ).format()


def generate_next_legacy_identifier(
    client_shortform: str, last_identifier: Optional[str] = None
) -> str:
    """
    Next legacy (undated) invoice number for a client.

    The trailing integer after the final dash of ``last_identifier`` is
    incremented and padded to at least three digits; it keeps growing past
    999. Without a usable previous identifier the sequence starts at 001.

    Examples:
        >>> generate_next_legacy_identifier("WSU")
        'WSU-001'
        >>> generate_next_legacy_identifier("WSU", "WSU-999")
        'WSU-1000'
    """
    shortform = _normalize_shortform(client_shortform)
    if not last_identifier:
        return LegacyIdentifier(shortform, 1).format()

    match = _TRAILING_INTEGER.search(last_identifier)
    if not match:
        return LegacyIdentifier(shortform, 1).format()

    return LegacyIdentifier(shortform, int(match.group(1)) + 1, LEGACY_MIN_WIDTH).format()


def latest_legacy_identifier(identifiers: Iterable[str]) -> Optional[str]:
    """
    The legacy identifier with the highest sequence, or None.

    Date-based and invalid strings in the snapshot are ignored.
    """
    latest: Optional[LegacyIdentifier] = None
    latest_raw: Optional[str] = None
    for identifier in identifiers:
        parsed = parse_legacy(identifier)
        if parsed is None:
            continue
        if latest is None or parsed.sequence > latest.sequence:
            latest = parsed
            latest_raw = identifier
    return latest_raw


def generate_legacy_identifier_batch(
    client_shortform: str, last_identifier: Optional[str], count: int
) -> List[str]:
    """``count`` consecutive legacy identifiers following ``last_identifier``."""
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    batch: List[str] = []
    previous = last_identifier
    for _ in range(count):
        previous = generate_next_legacy_identifier(client_shortform, previous)
        batch.append(previous)
    return batch


def legacy_shortform(identifier: str) -> Optional[str]:
    """Shortform prefix of a ``SHORTFORM-digits`` string."""
    match = _LEGACY_PREFIX.fullmatch(identifier or "")
    return match.group(1) if match else None


def convert_to_date_based(
    legacy_identifier: str,
    billing_date: BillingDate,
    existing_date_based: Iterable[str],
) -> str:
    """
    Date-based replacement for a legacy identifier.

    The shortform is taken from the legacy prefix; an unrecognizable input
    is filed under ``UNK`` rather than rejected.
    """
    shortform = legacy_shortform(legacy_identifier) or UNKNOWN_SHORTFORM
    return generate_date_based_identifier(shortform, billing_date, existing_date_based)


__all__ = [
    "SequenceExhaustedError",
    "allocate_date_based",
    "convert_to_date_based",
    "generate_date_based_identifier",
    "generate_legacy_identifier_batch",
    "generate_next_legacy_identifier",
    "highest_date_sequence",
    "latest_legacy_identifier",
    "legacy_shortform",
]
