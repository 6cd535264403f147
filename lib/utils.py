# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - Hunter ID normalization
# - The ApplicationError base class every domain error derives from
# - ConfigError for missing/invalid static configuration
# =============================================================================

from typing import Any
from uuid import UUID


# =============================================================================
# ID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Handles both string and UUID objects, ensuring consistent string output.

    Example:
        hunter_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        hunter_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


def short_id(hunter_id: str | UUID, length: int = 8) -> str:
    """
    Return the traceability prefix of a hunter ID.

    This prefix is embedded in the display name of every issued key so an
    external key can be traced back to its owner.
    """
    return normalize_uuid(hunter_id)[:length]


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for application-specific errors.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging (never sent to clients)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }


class ConfigError(ApplicationError):
    """
    Raised when static configuration is missing or invalid.

    Fatal for the current call and always raised before any external
    side effect takes place.
    """

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(
            message,
            code="CONFIG_ERROR",
            suggestion="Set the missing values in the environment or .env file",
            details={"missing": missing or []},
        )
        self.missing = missing or []
