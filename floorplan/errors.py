"""Exception hierarchy for Walkplan."""

from __future__ import annotations


class WalkplanError(Exception):
    """Base exception for all Walkplan-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FloorPlanFormatError(WalkplanError):
    """Raised when a stored or imported floor plan document is malformed."""
    pass


class InvalidModelError(WalkplanError, ValueError):
    """Raised when an entity is constructed in violation of its invariants."""
    pass
