"""Shared FastAPI dependencies."""

from fastapi import Request

from techrec.config import get_settings
from techrec.database import get_session_factory
from techrec.gamification.event_manager import GamificationEventManager
from techrec.redis_client import get_redis_or_none


def get_event_manager(request: Request) -> GamificationEventManager:
    """Build the façade from the app's session factory, Redis client and cache."""
    return GamificationEventManager(
        session_factory=get_session_factory(),
        redis=get_redis_or_none(),
        cache=getattr(request.app.state, "profile_cache", None),
        settings=get_settings(),
    )
