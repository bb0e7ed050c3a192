"""Read-model cache backed by Redis.

The event manager receives a ``ProfileCache`` (or None) at construction, so
nothing here is module-level state. Redis errors degrade to cache misses.
"""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)


class ProfileCache:
    """TTL cache for profile and leaderboard read models."""

    def __init__(
        self,
        redis: object,
        ttl_seconds: int = 60,
        leaderboard_ttl_seconds: int = 300,
        prefix: str = "gamification",
    ) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.leaderboard_ttl_seconds = leaderboard_ttl_seconds
        self.prefix = prefix

    def profile_key(self, user_id: int) -> str:
        return f"{self.prefix}:profile:{user_id}"

    def leaderboard_key(self, limit: int) -> str:
        return f"{self.prefix}:leaderboard:{limit}"

    async def _get(self, key: str) -> object | None:
        try:
            raw = await self.redis.get(key)  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Cache read failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def _set(self, key: str, value: object, ttl: int) -> None:
        try:
            await self.redis.set(key, json.dumps(value, default=str), ex=ttl)  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Cache write failed for %s", key, exc_info=True)

    async def get_profile(self, user_id: int) -> dict | None:
        return await self._get(self.profile_key(user_id))  # type: ignore[return-value]

    async def set_profile(self, user_id: int, profile: dict) -> None:
        await self._set(self.profile_key(user_id), profile, self.ttl_seconds)

    async def invalidate_profile(self, user_id: int) -> None:
        try:
            await self.redis.delete(self.profile_key(user_id))  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Cache invalidation failed for user %d", user_id, exc_info=True)

    async def get_leaderboard(self, limit: int) -> list[dict] | None:
        return await self._get(self.leaderboard_key(limit))  # type: ignore[return-value]

    async def set_leaderboard(self, limit: int, entries: list[dict]) -> None:
        await self._set(self.leaderboard_key(limit), entries, self.leaderboard_ttl_seconds)
