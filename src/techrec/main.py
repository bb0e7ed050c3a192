"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from techrec.config import get_settings
from techrec.database import close_db, init_db
from techrec.gamification.admin_router import router as admin_gamification_router
from techrec.gamification.cache import ProfileCache
from techrec.gamification.router import router as gamification_router
from techrec.health.router import router as health_router
from techrec.middleware import setup_middleware
from techrec.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)

    app.state.profile_cache = None
    if settings.redis_url:
        await init_redis(settings)
        app.state.profile_cache = ProfileCache(
            get_redis(),
            ttl_seconds=settings.profile_cache_ttl_seconds,
            leaderboard_ttl_seconds=settings.leaderboard_cache_ttl_seconds,
        )
    else:
        logger.warning("Redis disabled: no pub/sub notifications or profile cache")

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="TechRec Gamification API",
        description="XP, levels, points and badges for the TechRec recruiting platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(admin_gamification_router)

    return app


app = create_app()
