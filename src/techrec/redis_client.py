"""Redis client shared by the profile cache and pub/sub notifications.

Redis is optional: without it the engine skips level-up/badge broadcasts and
serves profiles straight from the database.
"""

import redis.asyncio as redis

from techrec.config import Settings

_client: redis.Redis | None = None


async def init_redis(settings: Settings) -> None:
    """Create the client from settings. No connection is opened until first use."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        health_check_interval=settings.redis_health_check_interval,
        client_name=settings.service_name,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """The shared client. Raises RuntimeError before init_redis."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client


def get_redis_or_none() -> redis.Redis | None:
    """The shared client, or None when Redis is disabled."""
    return _client
