"""Structured logging for invoice numbering.

Every module logs dotted events (``sequence.bucket_exhausted``,
``migration.item_migrated``, ``allocation.conflict``) through structlog,
rendered as one JSON object per line on stderr and optionally in a daily
rotating file.

Numbering events carry domain values the JSON renderer would otherwise
``repr()``: ``MigrationState`` and ``IdentifierKind`` members, billing
``date`` objects and store paths. ``normalize_event_values`` turns them into
their plain JSON form.

Run-scoped fields (the migration run id, dry-run flag) are bound with
``log_context`` and merged into every event emitted inside the block, so the
per-item events of one batch can be grouped without threading the run id
through each call.

Configuration:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL. Default: INFO
- LOG_TO_FILE: Enable file logging (1, true, yes). Default: disabled
- LOG_FILE_DIR: Directory for log files. Default: logs/

Usage:
    >>> from invoice_numbering.utils.logging import get_logger, log_context
    >>> logger = get_logger(__name__)
    >>> with log_context(migration_run="3f2a9c1d", dry_run=True):
    ...     logger.info("migration.item_migrated", line_item_id="li-42")
"""

import logging
import os
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path, PurePath
from typing import Any, Iterator, MutableMapping

import structlog
from pydantic import ValidationError
from structlog.types import EventDict, Processor

from invoice_numbering.config import get_settings

LOG_FILE_PREFIX = "invoice-numbering"


def normalize_event_values(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    """Render enums, dates and paths in ``event_dict`` as JSON scalars.

    Example:
        >>> normalize_event_values(None, "info", {"billing_date": date(2024, 12, 3)})
        {'billing_date': '2024-12-03'}
    """
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (date, datetime)):
            event_dict[key] = value.isoformat()
        elif isinstance(value, PurePath):
            event_dict[key] = str(value)
    return event_dict


def _get_log_level() -> int:
    """Get log level from settings, falling back to the raw environment."""
    try:
        level_name = get_settings().LOG_LEVEL
    except ValidationError:
        # A bad LOG_LEVEL must not prevent logging itself from starting
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()

    return getattr(logging, level_name, logging.INFO)


def _should_log_to_file() -> bool:
    log_to_file = os.getenv("LOG_TO_FILE", "").lower()
    return log_to_file in ("1", "true", "yes")


def _get_log_file_path() -> Path:
    log_dir = Path(os.getenv("LOG_FILE_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"{LOG_FILE_PREFIX}-{datetime.now():%Y%m%d}.log"


def _configure_structlog() -> None:
    level = _get_log_level()

    logging.basicConfig(format="%(message)s", level=level, handlers=[])

    # stdout stays free for CLI output (reports, identifiers)
    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    logging.root.addHandler(stderr_handler)

    if _should_log_to_file():
        file_handler = TimedRotatingFileHandler(
            filename=str(_get_log_file_path()),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        logging.root.addHandler(file_handler)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        normalize_event_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_configure_structlog()


def get_logger(name: str) -> Any:
    """Get a structlog BoundLogger for ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Merge ``fields`` into every event logged inside the block.

    Fields are unbound on exit, including when the block raises.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield
