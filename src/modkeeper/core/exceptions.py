"""Custom exception hierarchy for modkeeper.

All exceptions inherit from ModkeeperError, enabling unified error handling
at the boundary between the game simulation and this library while
preserving domain-specific context.

Recoverable conditions (unknown registry ids while loading, a failed
anti-idle log batch) are logged and never raised. Everything defined here
is a hard failure that the caller is expected to handle.

Example:
    >>> from modkeeper.core.exceptions import UserIdResolutionError
    >>> raise UserIdResolutionError("No user row", player_uuid="...")
"""

from __future__ import annotations

from typing import Any


class ModkeeperError(Exception):
    """Base exception for all modkeeper errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details."""
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(ModkeeperError):
    """Raised when application configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(ModkeeperError):
    """Raised when data validation fails outside of pydantic models.

    Typical sources are malformed namespaced identifiers or corrupt
    coordinate strings read back from storage.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


# =============================================================================
# Modifier Domain Exceptions
# =============================================================================


class ModifierError(ModkeeperError):
    """Raised when a modifier operation violates a cache invariant."""

    def __init__(
        self,
        message: str,
        *,
        modifier_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if modifier_name:
            combined_details["modifier_name"] = modifier_name
        super().__init__(message, details=combined_details)


# =============================================================================
# Storage Domain Exceptions
# =============================================================================


class StorageError(ModkeeperError):
    """Base exception for all persistence errors.

    Wraps the underlying database driver error so callers never need to
    import driver-specific exception types.
    """

    def __init__(
        self,
        message: str,
        *,
        player_uuid: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize storage error with player context.

        Args:
            message: Human-readable error description.
            player_uuid: UUID of the player whose data was being processed.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if player_uuid:
            combined_details["player_uuid"] = player_uuid
        super().__init__(message, details=combined_details)


class ConnectionAcquisitionError(StorageError):
    """Raised when a connection cannot be borrowed from the pool.

    A player whose load fails with this error must not enter gameplay.
    """


class UserIdResolutionError(StorageError):
    """Raised when a user's numeric id is required but no row exists.

    Signals a data-integrity violation; the caller aborts that save or load.
    """


__all__ = [
    "ModkeeperError",
    "ConfigurationError",
    "ValidationError",
    "ModifierError",
    "StorageError",
    "ConnectionAcquisitionError",
    "UserIdResolutionError",
]
