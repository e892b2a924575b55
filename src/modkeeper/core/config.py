"""Configuration management for modkeeper.

This module provides centralized configuration management using
pydantic-settings, supporting environment variables, .env files, and
runtime configuration overrides.

Example:
    >>> from modkeeper.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.modifier.item_check_period
    5

Environment Variables:
    MODKEEPER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    MODKEEPER_MODIFIER_ITEM_CHECK_PERIOD: Ticks between held-item polls
    MODKEEPER_MODIFIER_ENABLE_OFF_HAND: Apply modifiers from off-hand items
    MODKEEPER_STORAGE_DATABASE_PATH: Path to the SQLite database file
    MODKEEPER_STORAGE_TABLE_PREFIX: Prefix shared by all tables
    MODKEEPER_STORAGE_SAVE_BLANK_PROFILES: Keep rows for blank profiles
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from modkeeper.core.constants import CONSUMED_MODIFIER_CAP, DEFAULT_TABLE_PREFIX
from modkeeper.core.exceptions import ConfigurationError


_TABLE_PREFIX_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ModifierSettings(BaseSettings):
    """Configuration for modifier lifecycle management.

    Attributes:
        item_check_period: Ticks between held-item polls.
        enable_off_hand: Whether off-hand items grant modifiers.
        consume_cap: Hard ceiling for merged consumed modifier values.
        expiry_check_period: Ticks between expired modifier sweeps.
    """

    model_config = SettingsConfigDict(
        env_prefix="MODKEEPER_MODIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    item_check_period: int = Field(
        default=5,
        ge=1,
        description="Ticks between held-item polls",
    )
    enable_off_hand: bool = Field(
        default=False,
        description="Apply modifiers from off-hand items",
    )
    consume_cap: float = Field(
        default=CONSUMED_MODIFIER_CAP,
        gt=0,
        description="Ceiling for merged consumed modifiers",
    )
    expiry_check_period: int = Field(
        default=20,
        ge=1,
        description="Ticks between expired modifier sweeps",
    )


class StorageSettings(BaseSettings):
    """Configuration for relational persistence.

    Attributes:
        database_path: Path to the SQLite database file.
        table_prefix: Prefix shared by all tables for multi-tenant databases.
        save_blank_profiles: Keep rows for profiles with no progression.
        pool_size: Number of pooled connections.
        acquire_timeout_seconds: Maximum wait when borrowing a connection.
        worker_threads: Threads running storage operations off the main thread.
        retry_attempts: Attempts made by the storage worker per operation.
    """

    model_config = SettingsConfigDict(
        env_prefix="MODKEEPER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path("data/modkeeper.db"),
        description="Path to SQLite database",
    )
    table_prefix: str = Field(
        default=DEFAULT_TABLE_PREFIX,
        description="Prefix shared by all tables",
    )
    save_blank_profiles: bool = Field(
        default=True,
        description="Keep rows for blank profiles",
    )
    pool_size: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Number of pooled connections",
    )
    acquire_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Connection acquisition timeout (None waits forever)",
    )
    worker_threads: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Storage worker threads",
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per storage operation",
    )

    @field_validator("table_prefix", mode="after")
    @classmethod
    def validate_table_prefix(cls, value: str) -> str:
        """Ensure the prefix is safe to interpolate into SQL identifiers.

        Raises:
            ConfigurationError: If the prefix contains non-identifier characters.
        """
        if value and not _TABLE_PREFIX_PATTERN.match(value):
            raise ConfigurationError(
                f"table_prefix {value!r} is not a valid SQL identifier prefix",
                config_key="table_prefix",
            )
        return value

    @model_validator(mode="after")
    def validate_pool_covers_workers(self) -> "StorageSettings":
        """Ensure every worker thread can hold a connection at once.

        Raises:
            ConfigurationError: If pool_size < worker_threads.
        """
        if self.pool_size < self.worker_threads:
            raise ConfigurationError(
                f"pool_size ({self.pool_size}) must be at least "
                f"worker_threads ({self.worker_threads})",
                config_key="pool_size",
            )
        return self


class Settings(BaseSettings):
    """Main settings aggregating all configuration domains.

    Attributes:
        log_level: Logging level.
        log_json: Emit JSON logs instead of console output.
        modifier: Modifier lifecycle settings.
        storage: Persistence settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="MODKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(default=False, description="Emit JSON logs")

    modifier: ModifierSettings = Field(default_factory=ModifierSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The cached Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access."""
    get_settings.cache_clear()


__all__ = [
    "ModifierSettings",
    "StorageSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
