"""Redis pub/sub broadcast for gamification events."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)


async def publish(redis: object, channel: str, payload: dict) -> None:
    """Publish to a Redis channel. Missing Redis or publish failures never fail the award."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s broadcast", channel, exc_info=True)
