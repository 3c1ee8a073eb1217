"""arq worker that pre-generates daily challenges.

Import path for arq CLI: arq dgames.challenges.worker.ChallengeWorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.challenges.generator import ContentGenerator, generate_for_all_games
from dgames.config import get_settings
from dgames.database import close_db, get_session, init_db

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def challenge_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the DB pool and the LLM client."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["generator"] = ContentGenerator(settings)
    logger.info("Challenge worker started")


async def challenge_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    generator: ContentGenerator | None = ctx.get("generator")
    if generator is not None:
        await generator.aclose()
    await close_db()
    logger.info("Challenge worker shut down")


async def generate_upcoming_challenges(ctx: dict) -> dict:  # type: ignore[type-arg]
    """Scheduled task: materialize challenges for the next ``generate_ahead_days`` days."""
    settings = get_settings()
    db = await _get_db_session()
    try:
        summary = await generate_for_all_games(
            db, ctx["generator"], settings.generate_ahead_days, settings.timezone,
        )
    finally:
        await db.close()
    logger.info("Challenge generation run complete: %s", summary)
    return summary


class ChallengeWorkerSettings:
    """arq worker settings for daily challenge generation."""

    functions = [generate_upcoming_challenges]
    # 07:00 UTC is just after midnight in the platform timezone; reruns are no-ops.
    cron_jobs = [
        cron(generate_upcoming_challenges, hour={7}, minute={0}, run_at_startup=True),
    ]
    on_startup = challenge_startup
    on_shutdown = challenge_shutdown
    max_jobs = 1
    job_timeout = 600
