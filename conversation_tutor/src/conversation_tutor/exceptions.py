"""
Custom exceptions for the conversation tutor.

Provides specific exception types so callers can tell a broken curriculum
apart from a bad request.
"""

from typing import Iterable, Optional


class TutorError(Exception):
    """Base exception for all conversation tutor errors."""

    pass


class CurriculumError(TutorError):
    """Raised when a curriculum script cannot be parsed."""

    pass


class InvalidModeError(TutorError):
    """Raised when a business mode outside the supported scenarios is requested."""

    def __init__(self, mode: str, allowed: Optional[Iterable[str]] = None):
        self.mode = mode
        self.allowed = sorted(allowed) if allowed else []
        message = f"Unknown business mode: {mode!r}"
        if self.allowed:
            message += f" (expected one of: {', '.join(self.allowed)}, or 'exit')"
        super().__init__(message)
