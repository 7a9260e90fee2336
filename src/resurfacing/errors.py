"""Error taxonomy for the resurfacing engine.

Validation failures surface immediately to callers. Referential races are
recovered locally by the signal store and event recorder and never reach a
caller. Dependency failures propagate from the store and are caught around
notification delivery.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """High-level error categories for resurfacing failures."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    REFERENTIAL_RACE = "referential_race"
    DEPENDENCY = "dependency"


class ResurfacingError(Exception):
    """Base exception for all resurfacing errors."""

    category: ErrorCategory = ErrorCategory.DEPENDENCY

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize exception with message and optional details.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationFailure(ResurfacingError, ValueError):
    """Raised when caller input is malformed or out of range."""

    category = ErrorCategory.VALIDATION


class ItemNotFound(ResurfacingError, LookupError):
    """Raised when a requested thought does not exist."""

    category = ErrorCategory.NOT_FOUND


class ReferentialRace(ResurfacingError):
    """A referenced thought vanished between read and write."""

    category = ErrorCategory.REFERENTIAL_RACE


class DependencyFailure(ResurfacingError):
    """Raised when a collaborating service fails."""

    category = ErrorCategory.DEPENDENCY


class NotificationDeliveryError(DependencyFailure):
    """Raised when the push gateway cannot be reached or rejects a request."""
