"""Configuration management for invoice numbering.

This module provides centralized configuration loaded from environment variables
with validation using Pydantic BaseSettings, plus the YAML loader for custom
client shortform overrides.

Usage:
    >>> from invoice_numbering.config import get_settings
    >>> settings = get_settings()
    >>> settings.allocation_max_retries
    3
"""

from invoice_numbering.config.overrides import (
    OVERRIDES_FILE_NAME,
    ShortformOverrideError,
    ShortformOverrides,
    load_shortform_overrides,
)
from invoice_numbering.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "OVERRIDES_FILE_NAME",
    "ShortformOverrideError",
    "ShortformOverrides",
    "load_shortform_overrides",
]
