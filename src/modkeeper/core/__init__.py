"""Core module providing configuration, logging, and base exceptions.

Exports:
    Exceptions:
        ModkeeperError: Base exception for all library errors.
        ConfigurationError: Configuration-related errors.
        StorageError: Persistence errors.

    Configuration:
        Settings: Main settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up logging.
        get_logger: Get a configured logger instance.
        player_context: Tag log entries with a player uuid.
"""

from __future__ import annotations

from modkeeper.core.config import (
    ModifierSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from modkeeper.core.exceptions import (
    ConfigurationError,
    ConnectionAcquisitionError,
    ModifierError,
    ModkeeperError,
    StorageError,
    UserIdResolutionError,
    ValidationError,
)
from modkeeper.core.logging import (
    configure_logging,
    get_logger,
    player_context,
)


__all__ = [
    # Exceptions
    "ModkeeperError",
    "ConfigurationError",
    "ValidationError",
    "ModifierError",
    "StorageError",
    "ConnectionAcquisitionError",
    "UserIdResolutionError",
    # Configuration
    "Settings",
    "ModifierSettings",
    "StorageSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "get_logger",
    "player_context",
]
