"""
Client shortform extraction and uniqueness resolution.

A shortform is the 2-4 character uppercase code that opens every invoice
number (``WSU`` in ``WSU-120324-01``). It is derived deterministically from
the organization name so the same client always receives the same code, with
an explicit override for institutions whose natural abbreviation is known
out-of-band.

Extraction order (suffix removal happens before word splitting):
1. Custom code wins when non-blank
2. Uppercase the name
3. Remove whole-word business suffixes (LLC, INC, UNIVERSITY, ...)
4. Strip everything outside A-Z, 0-9 and whitespace
5. Split on whitespace and apply the word-count policy

Examples:
    >>> extract_client_shortform("Washington State University")
    'WAST'
    >>> extract_client_shortform("Acme Widgets Supply Co")
    'AWS'
    >>> ensure_unique_shortform("ABC", {"ABC", "ABC1"})
    'ABC2'
"""

from __future__ import annotations

import random
import re
import string
from typing import Iterable, List, Optional

from invoice_numbering.utils.logging import get_logger

logger = get_logger(__name__)

BUSINESS_SUFFIXES: List[str] = [
    "LLC",
    "INC",
    "CORP",
    "CORPORATION",
    "COMPANY",
    "CO",
    "LTD",
    "LIMITED",
    "UNIVERSITY",
    "UNIV",
    "COLLEGE",
]

# ASCII word boundaries so accented letters do not glue a suffix to a word
_SUFFIX_PATTERN = re.compile(
    r"\b(?:" + "|".join(BUSINESS_SUFFIXES) + r")\b", re.ASCII
)
_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9\s]")
_NOT_CODE_CHAR = re.compile(r"[^A-Z0-9]")

# Placeholder for names with nothing usable left after cleaning
UNKNOWN_SHORTFORM = "UNK"

MIN_SHORTFORM_LENGTH = 2

MAX_NUMERIC_SUFFIX = 99
RANDOM_SUFFIX_LENGTH = 2
_BASE36_ALPHABET = string.digits + string.ascii_uppercase


def _clean_words(name_upper: str) -> List[str]:
    cleaned = _SUFFIX_PATTERN.sub("", name_upper)
    cleaned = _NON_ALPHANUMERIC.sub("", cleaned)
    return cleaned.split()


def _shortform_from_words(words: List[str], name_upper: str) -> str:
    if not words:
        # Name was nothing but suffixes and punctuation, e.g. "LLC" or "Co."
        return _NOT_CODE_CHAR.sub("", name_upper[:3])

    if len(words) == 1:
        word = words[0]
        return word[:4] if len(word) >= 4 else word[:3]

    if len(words) == 2:
        return words[0][:2] + words[1][:2]

    if len(words) == 3:
        return "".join(word[0] for word in words)

    return "".join(word[0] for word in words[:4])


def extract_client_shortform(
    organization_name: Optional[str], custom_code: Optional[str] = None
) -> str:
    """
    Derive a client shortform from an organization name.

    Word-count policy after cleaning:

    ====== =================================================
    words  rule
    ====== =================================================
    0      first 3 characters of the uppercased name
    1      first 4 characters (first 3 for shorter words)
    2      first 2 characters of each word
    3      initials of the 3 words
    4+     initials of the first 4 words
    ====== =================================================

    A blank name, or a result shorter than two characters, falls back to
    ``UNK`` so the output is always 2-4 characters of ``[A-Z0-9]``.

    Args:
        organization_name: Free-text organization name (may be empty).
        custom_code: Optional override; used verbatim (trimmed, uppercased)
            whenever it is non-blank.

    Returns:
        The client shortform.
    """
    if custom_code is not None and custom_code.strip():
        return custom_code.strip().upper()

    if organization_name is None or not organization_name.strip():
        return UNKNOWN_SHORTFORM

    name_upper = organization_name.strip().upper()
    shortform = _shortform_from_words(_clean_words(name_upper), name_upper)

    if len(shortform) < MIN_SHORTFORM_LENGTH:
        return UNKNOWN_SHORTFORM
    return shortform


def _random_suffix(rng: random.Random) -> str:
    return "".join(rng.choice(_BASE36_ALPHABET) for _ in range(RANDOM_SUFFIX_LENGTH))


def ensure_unique_shortform(
    candidate: str,
    taken_shortforms: Iterable[str],
    rng: Optional[random.Random] = None,
) -> str:
    """
    Disambiguate a candidate shortform against codes held by other clients.

    Tries the candidate itself, then ``{candidate}1`` through
    ``{candidate}99``. When all of those are taken a two-character base-36
    suffix is appended; that last step is NOT guaranteed to be unique and is
    logged as a warning so the collision can be handled by hand.

    Args:
        candidate: Shortform produced by ``extract_client_shortform``.
        taken_shortforms: Shortforms already assigned to other clients.
        rng: Random source for the fallback suffix (injectable for tests).

    Returns:
        A shortform absent from ``taken_shortforms`` (except in the
        random fallback case).
    """
    base = candidate.upper()
    taken = {code.upper() for code in taken_shortforms}

    if base not in taken:
        return base

    for suffix in range(1, MAX_NUMERIC_SUFFIX + 1):
        attempt = f"{base}{suffix}"
        if attempt not in taken:
            return attempt

    fallback = f"{base}{_random_suffix(rng or random.Random())}"
    logger.warning(
        "shortform.random_suffix_fallback",
        candidate=base,
        fallback=fallback,
        collision=fallback in taken,
    )
    return fallback
