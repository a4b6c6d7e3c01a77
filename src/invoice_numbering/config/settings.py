"""
Configuration management for invoice numbering.

This module provides environment-based configuration using Pydantic BaseSettings,
so the numbering service, the migration batch and the CLI read their tunables
from one place instead of scattered environment lookups.
"""

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Determine project root for resolving .env by default
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
ENV_FILE_OVERRIDE = os.getenv("INVNUM_ENV_FILE")
if ENV_FILE_OVERRIDE:
    env_file_candidate = Path(ENV_FILE_OVERRIDE).expanduser()
    if not env_file_candidate.is_absolute():
        env_file_candidate = PROJECT_ROOT / env_file_candidate
    SETTINGS_ENV_FILE = env_file_candidate
else:
    SETTINGS_ENV_FILE = DEFAULT_ENV_FILE

DEFAULT_OVERRIDES_DIR = PROJECT_ROOT / "config" / "shortforms"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are loaded with the INVNUM_ prefix. For example,
    INVNUM_ALLOCATION_MAX_RETRIES=5 overrides allocation_max_retries.

    LOG_LEVEL is read without prefix so it can be shared with other
    processes running on the same host.
    """

    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (uppercase)",
    )

    app_name: str = Field(default="InvoiceNumbering", description="Application name")

    overrides_dir: str = Field(
        default=str(DEFAULT_OVERRIDES_DIR),
        description=(
            "Directory containing shortform_overrides.yml; relative paths are "
            "resolved against the project root"
        ),
    )

    allocation_max_retries: int = Field(
        default=3,
        ge=0,
        description=(
            "Extra attempts assign_identifier makes after the store reports "
            "a duplicate identifier"
        ),
    )

    migration_progress_interval: int = Field(
        default=100,
        ge=1,
        description="Emit a migration progress log every N processed items",
    )
    migration_dry_run: bool = Field(
        default=False,
        description="Compute migrated identifiers without persisting them",
    )

    @field_validator("overrides_dir")
    @classmethod
    def _resolve_overrides_dir(cls, value: str) -> str:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return str(path)

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}, got {value!r}"
            )
        return level

    model_config = SettingsConfigDict(
        env_prefix="INVNUM_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded once and reused across
    the application lifecycle. Tests that change the environment must call
    ``get_settings.cache_clear()``.

    Returns:
        Settings instance with loaded configuration
    """
    return Settings()
