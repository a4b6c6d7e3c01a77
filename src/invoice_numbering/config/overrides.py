"""
YAML loader for custom client shortform overrides.

Some clients carry an institutional code assigned out-of-band (a school
district code, a campus abbreviation) that automatic extraction cannot
reproduce. Those codes live in ``shortform_overrides.yml``::

    Washington State University: WSU
    "St. Mary's College of Maryland": SMCM

Keys are organization names, values are the custom codes. Lookup is
case-insensitive on the organization name.
"""

import os
from pathlib import Path
from typing import Dict, Optional

import structlog
import yaml

from invoice_numbering.config.settings import DEFAULT_OVERRIDES_DIR, PROJECT_ROOT

logger = structlog.get_logger(__name__)

OVERRIDES_FILE_NAME = "shortform_overrides.yml"

# Environment variable for a custom overrides directory
OVERRIDES_DIR_ENV_VAR = "INVNUM_OVERRIDES_DIR"


class ShortformOverrideError(ValueError):
    """Raised when the overrides file exists but cannot be used."""


class ShortformOverrides:
    """Case-insensitive organization name -> custom shortform mapping."""

    def __init__(self, entries: Optional[Dict[str, str]] = None) -> None:
        self._entries: Dict[str, str] = {}
        for name, code in (entries or {}).items():
            self._entries[name.strip().upper()] = code.strip()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, organization_name: object) -> bool:
        if not isinstance(organization_name, str):
            return False
        return organization_name.strip().upper() in self._entries

    def get(self, organization_name: Optional[str]) -> Optional[str]:
        if not organization_name:
            return None
        return self._entries.get(organization_name.strip().upper())


def _get_overrides_dir() -> Path:
    """
    Get the overrides directory path.

    Checks INVNUM_OVERRIDES_DIR first, then falls back to config/shortforms.
    Relative paths are resolved against the project root, not the working
    directory.
    """
    env_path = os.environ.get(OVERRIDES_DIR_ENV_VAR)
    if env_path:
        path = Path(env_path).expanduser()
        return path if path.is_absolute() else PROJECT_ROOT / path
    return DEFAULT_OVERRIDES_DIR


def _load_yaml_mapping(file_path: Path) -> Dict[str, str]:
    """
    Load a single YAML mapping file.

    Behavior:
    - Missing file: Returns empty dict, logs debug message (no exception)
    - Empty file: Returns empty dict
    - Invalid YAML: Raises ShortformOverrideError with filename
    - Valid file: Returns dict with whitespace-stripped keys/values

    Raises:
        ShortformOverrideError: If the file is not a flat string mapping.
    """
    if not file_path.exists():
        logger.debug("overrides.file_not_found", file_path=str(file_path))
        return {}

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(
            "overrides.yaml_parse_error", file_path=str(file_path), error=str(e)
        )
        raise ShortformOverrideError(f"Invalid YAML in {file_path}: {e}") from e

    # yaml.safe_load returns None for an empty document
    if content is None:
        logger.debug("overrides.empty_file", file_path=str(file_path))
        return {}

    if not isinstance(content, dict):
        logger.error(
            "overrides.invalid_format",
            file_path=str(file_path),
            actual_type=type(content).__name__,
        )
        raise ShortformOverrideError(
            f"Invalid overrides format in {file_path}: "
            f"expected dict, got {type(content).__name__}"
        )

    result: Dict[str, str] = {}
    for key, value in content.items():
        if not isinstance(key, str) or not isinstance(value, str):
            logger.error(
                "overrides.invalid_entry_type",
                file_path=str(file_path),
                key_type=type(key).__name__,
                value_type=type(value).__name__,
            )
            raise ShortformOverrideError(
                f"Invalid overrides entry in {file_path}: "
                f"expected string key/value, got "
                f"{type(key).__name__}/{type(value).__name__}"
            )
        result[key.strip()] = value.strip()

    return result


def load_shortform_overrides(
    overrides_dir: Optional[Path] = None,
) -> ShortformOverrides:
    """
    Load custom shortform overrides from ``shortform_overrides.yml``.

    Args:
        overrides_dir: Optional directory. Defaults to INVNUM_OVERRIDES_DIR
            or config/shortforms.

    Returns:
        ShortformOverrides (empty when the file does not exist).

    Raises:
        ShortformOverrideError: If the file has invalid syntax or shape.

    Example:
        >>> overrides = load_shortform_overrides(Path("config/shortforms"))
        >>> overrides.get("washington state university")
        'WSU'
    """
    if overrides_dir is None:
        overrides_dir = _get_overrides_dir()

    file_path = Path(overrides_dir) / OVERRIDES_FILE_NAME
    entries = _load_yaml_mapping(file_path)

    logger.info(
        "overrides.loaded",
        file_path=str(file_path),
        entry_count=len(entries),
    )
    return ShortformOverrides(entries)
