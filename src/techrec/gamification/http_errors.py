"""Map engine errors to HTTP status codes."""

from __future__ import annotations

from fastapi import HTTPException

from techrec.gamification.errors import (
    ConcurrencyConflict,
    GamificationError,
    InsufficientPoints,
    InvalidArgument,
    NotFound,
    StorageUnavailable,
)
from techrec.gamification.results import Err, Result

ERROR_STATUS: dict[type[GamificationError], int] = {
    InvalidArgument: 400,
    InsufficientPoints: 402,
    NotFound: 404,
    ConcurrencyConflict: 409,
    StorageUnavailable: 503,
}


def status_for(error: GamificationError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def unwrap(result: Result):
    """Return the Ok value or raise the mapped HTTPException."""
    if isinstance(result, Err):
        raise HTTPException(status_code=status_for(result.error), detail=result.message)
    return result.value
