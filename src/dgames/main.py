"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dgames.config import get_settings
from dgames.database import close_db, get_session, init_db
from dgames.gamification.seed import seed_achievements, seed_games
from dgames.games.router import router as games_router
from dgames.health.router import router as health_router
from dgames.middleware import setup_middleware
from dgames.players.router import router as players_router
from dgames.redis_client import close_redis, init_redis
from dgames.sessions.router import router as sessions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    try:
        await init_redis(settings.redis_url)
    except Exception:
        logger.warning("Redis unavailable, leaderboard cache disabled", exc_info=True)

    # Seed the game catalog and achievement definitions (idempotent)
    try:
        async for db in get_session():
            await seed_games(db)
            await seed_achievements(db)
            break
    except Exception:
        logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Diamond Games API",
        description="Backend API for the Diamond Games daily puzzle platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(games_router)
    app.include_router(players_router)
    app.include_router(sessions_router)

    return app


app = create_app()
