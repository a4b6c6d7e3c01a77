"""
Invoice identifier formats, classification and parsing.

Two canonical formats coexist:

- Date-based (current): ``SHORTFORM-MMDDYY-SEQ2``, e.g. ``WSU-120324-01``
- Legacy (undated):     ``SHORTFORM-SEQ3+``,    e.g. ``WSU-001``

``classify`` tags any string with exactly one ``IdentifierKind``. Date-based
is checked first, so a string can never be both. Parsing never raises:
unrecognized input yields ``None`` and callers branch on the kind instead of
catching exceptions.

Round-trip law: for every string ``s`` with ``classify(s) != INVALID``,
``parse_identifier(s).record.format() == s``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Optional, Set, Union

# Matched with fullmatch; [0-9] keeps non-ASCII digits out
DATE_BASED_PATTERN = re.compile(r"([A-Z0-9]+)-([0-9]{6})-([0-9]{2})")
LEGACY_PATTERN = re.compile(r"([A-Z0-9]+)-([0-9]{3,})")

DATE_KEY_LENGTH = 6
DATE_SEQUENCE_WIDTH = 2
MAX_DATE_SEQUENCE = 99
LEGACY_MIN_WIDTH = 3

# Two-digit years always map into this century; 2100+ needs a format bump
DATE_KEY_CENTURY = 2000


class IdentifierKind(Enum):
    """Tag for the identifier sum type."""

    DATE_BASED = "date_based"
    LEGACY = "legacy"
    INVALID = "invalid"


def format_date_key(billing_date: date) -> str:
    """
    Render a calendar date as ``MMDDYY``.

    Example:
        >>> format_date_key(date(2024, 12, 3))
        '120324'
    """
    return (
        f"{billing_date.month:02d}{billing_date.day:02d}{billing_date.year % 100:02d}"
    )


def date_from_key(date_key: str) -> Optional[date]:
    """Rebuild the calendar date from ``MMDDYY``; None if it is not a real date."""
    if len(date_key) != DATE_KEY_LENGTH or not date_key.isdigit():
        return None
    month = int(date_key[0:2])
    day = int(date_key[2:4])
    year = DATE_KEY_CENTURY + int(date_key[4:6])
    try:
        return date(year, month, day)
    except ValueError:
        return None


@dataclass(frozen=True)
class DateBasedIdentifier:
    """
    ``{shortform}-{MMDDYY}-{seq2}``.

    ``date_key`` is kept verbatim so formatting reproduces the parsed string
    even when the key does not name a real calendar day.
    """

    shortform: str
    date_key: str
    sequence: int

    @classmethod
    def for_date(
        cls, shortform: str, billing_date: date, sequence: int
    ) -> "DateBasedIdentifier":
        return cls(shortform.upper(), format_date_key(billing_date), sequence)

    @property
    def billing_date(self) -> Optional[date]:
        """Calendar date (years 2000-2099), or None for an impossible key."""
        return date_from_key(self.date_key)

    @property
    def bucket(self) -> str:
        """Allocation bucket prefix shared by every sequence on this day."""
        return f"{self.shortform}-{self.date_key}"

    def format(self) -> str:
        return f"{self.bucket}-{self.sequence:0{DATE_SEQUENCE_WIDTH}d}"

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class LegacyIdentifier:
    """
    ``{shortform}-{seq3+}``.

    ``width`` records how many digits the sequence was written with, so a
    zero-padded string such as ``WSU-0042`` formats back unchanged.
    """

    shortform: str
    sequence: int
    width: int = LEGACY_MIN_WIDTH

    def format(self) -> str:
        width = max(self.width, LEGACY_MIN_WIDTH)
        return f"{self.shortform}-{self.sequence:0{width}d}"

    def __str__(self) -> str:
        return self.format()


IdentifierRecord = Union[DateBasedIdentifier, LegacyIdentifier]


@dataclass(frozen=True)
class ParsedIdentifier:
    """Classification result: the tag, the raw string and the parsed record."""

    kind: IdentifierKind
    raw: str
    record: Optional[IdentifierRecord] = None

    @property
    def shortform(self) -> Optional[str]:
        return self.record.shortform if self.record is not None else None

    @property
    def is_valid(self) -> bool:
        return self.kind is not IdentifierKind.INVALID


def classify(identifier: Optional[str]) -> IdentifierKind:
    """
    Tag an identifier string.

    Examples:
        >>> classify("WSU-120324-01")
        <IdentifierKind.DATE_BASED: 'date_based'>
        >>> classify("WSU-007")
        <IdentifierKind.LEGACY: 'legacy'>
        >>> classify("WSU-120324-01-X")
        <IdentifierKind.INVALID: 'invalid'>
    """
    if not identifier:
        return IdentifierKind.INVALID
    if DATE_BASED_PATTERN.fullmatch(identifier):
        return IdentifierKind.DATE_BASED
    if LEGACY_PATTERN.fullmatch(identifier):
        return IdentifierKind.LEGACY
    return IdentifierKind.INVALID


def parse_date_based(identifier: Optional[str]) -> Optional[DateBasedIdentifier]:
    """Parse ``SHORTFORM-MMDDYY-NN``; None when the string is not date-based."""
    if not identifier:
        return None
    match = DATE_BASED_PATTERN.fullmatch(identifier)
    if not match:
        return None
    shortform, date_key, sequence = match.groups()
    return DateBasedIdentifier(shortform, date_key, int(sequence))


def parse_legacy(identifier: Optional[str]) -> Optional[LegacyIdentifier]:
    """
    Parse ``SHORTFORM-NNN``; None when the string is not legacy.

    A date-based string is never read as legacy, even though ``-NN`` would
    not match the 3-digit minimum anyway.
    """
    if not identifier or DATE_BASED_PATTERN.fullmatch(identifier):
        return None
    match = LEGACY_PATTERN.fullmatch(identifier)
    if not match:
        return None
    shortform, digits = match.groups()
    return LegacyIdentifier(shortform, int(digits), len(digits))


def parse_identifier(identifier: Optional[str]) -> ParsedIdentifier:
    """Classify and parse in one step."""
    raw = identifier or ""
    kind = classify(identifier)
    if kind is IdentifierKind.DATE_BASED:
        return ParsedIdentifier(kind, raw, parse_date_based(identifier))
    if kind is IdentifierKind.LEGACY:
        return ParsedIdentifier(kind, raw, parse_legacy(identifier))
    return ParsedIdentifier(kind, raw)


def collect_shortforms(identifiers: Iterable[Optional[str]]) -> Set[str]:
    """Shortforms of every recognized identifier; invalid strings are ignored."""
    shortforms: Set[str] = set()
    for identifier in identifiers:
        parsed = parse_identifier(identifier)
        if parsed.shortform is not None:
            shortforms.add(parsed.shortform)
    return shortforms
