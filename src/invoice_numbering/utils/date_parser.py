"""
Billing date parsing for invoice numbering.

Invoice numbers print the billing day on human-facing documents, so dates are
always handled as local calendar dates. Nothing in this module converts to or
from UTC: a ``datetime`` contributes its own calendar date as given, and an
ISO string contributes its ``YYYY-MM-DD`` part.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional, Union

logger = logging.getLogger(__name__)

BillingDate = Union[date, datetime, str]

SUPPORTED_FORMATS = "YYYY-MM-DD, YYYY-MM-DDTHH:MM[:SS][offset], date, datetime"

_ISO_DATE_PATTERN = re.compile(r"([0-9]{4})-([0-9]{1,2})-([0-9]{1,2})(?:[T ].*)?")


def _format_supported_error(value: object) -> str:
    return f"Cannot parse '{value}' as billing date. Supported formats: {SUPPORTED_FORMATS}"


def parse_billing_date(value: Optional[BillingDate]) -> date:
    """
    Parse a billing date into a local calendar ``date``.

    Supported inputs:
    - ``date`` objects (passthrough)
    - ``datetime`` objects, naive or aware, reduced with ``.date()``
    - Strings ``2024-12-03`` or ``2024-12-03T23:30:00-08:00``; any time part
      is ignored so a late-evening timestamp never rolls over to the next day

    Raises:
        ValueError: For None, blank strings and unrecognized formats.

    Example:
        >>> parse_billing_date("2024-12-03T23:59:00-08:00")
        datetime.date(2024, 12, 3)
    """
    if value is None:
        raise ValueError(_format_supported_error(value))

    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    raw = str(value).strip()
    match = _ISO_DATE_PATTERN.fullmatch(raw)
    if not match:
        raise ValueError(_format_supported_error(value))

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise ValueError(f"{_format_supported_error(value)} ({exc})") from exc


def parse_billing_date_or_none(value: Optional[BillingDate]) -> Optional[date]:
    """
    Lenient wrapper returning ``None`` for un-parseable values.

    The migration worklist uses this: a line item without a usable billing
    date is skipped rather than aborting the batch.
    """
    if value is None:
        return None
    try:
        return parse_billing_date(value)
    except ValueError:
        logger.debug("Unable to parse billing date %r", value)
        return None


def today_local() -> date:
    """Today's date in the local calendar of the invoicing host."""
    return date.today()
