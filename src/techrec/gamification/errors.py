"""Gamification error taxonomy.

Services raise these; the event manager turns them into ``Err`` results and
the routers map each class to an HTTP status.
"""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for engine errors."""

    code = "gamification_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgument(GamificationError):
    """Bad amount, source, or missing field. Raised before any mutation."""

    code = "invalid_argument"


class InsufficientPoints(GamificationError):
    """Spend exceeds the available balance. Raised before any mutation."""

    code = "insufficient_points"

    def __init__(self, needed: int, available: int) -> None:
        super().__init__(f"Insufficient points: need {needed}, have {available}")
        self.needed = needed
        self.available = available


class NotFound(GamificationError):
    """User or gamification state is missing."""

    code = "not_found"


class ConcurrencyConflict(GamificationError):
    """A write raced with another write on the same user's state."""

    code = "concurrency_conflict"
    retryable = True


class StorageUnavailable(GamificationError):
    """The database could not be reached. Fatal for the current request."""

    code = "storage_unavailable"
