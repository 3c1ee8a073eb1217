"""Per (player, game) progress ledger: counters, averages, XP and level."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.config import PlatformPolicy
from dgames.db.models import PlayerProgress
from dgames.db.upsert import insert_for
from dgames.gamification.calendar import utcnow
from dgames.gamification.level_curve import calculate_xp, level_for_xp

logger = logging.getLogger(__name__)


async def get_or_create_progress(
    db: AsyncSession,
    player_id: int,
    game_id: int,
    *,
    lock: bool = False,
) -> PlayerProgress:
    """Fetch the progress row, inserting a level-1 row first if missing."""
    stmt = insert_for(db, PlayerProgress).values(
        player_id=player_id,
        game_id=game_id,
        level=1,
        experience_points=0,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["player_id", "game_id"]))

    query = select(PlayerProgress).where(
        PlayerProgress.player_id == player_id,
        PlayerProgress.game_id == game_id,
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one()


def record_completion(
    progress: PlayerProgress,
    score: int,
    duration_seconds: int,
    is_daily: bool,
    now: datetime | None,
    policy: PlatformPolicy,
) -> int:
    """Fold one won session into ``progress``. Returns the XP awarded.

    ``average_time_seconds`` is an incremental mean over wins; it drifts if a
    row was seeded with a null average after earlier wins.
    """
    if now is None:
        now = utcnow()

    progress.games_played = (progress.games_played or 0) + 1
    progress.games_won = (progress.games_won or 0) + 1
    progress.total_score = (progress.total_score or 0) + score

    if score > (progress.best_score or 0):
        progress.best_score = score
    if not progress.best_time_seconds or duration_seconds < progress.best_time_seconds:
        progress.best_time_seconds = duration_seconds

    won = progress.games_won
    progress.average_score = progress.total_score / won
    if progress.average_time_seconds:
        progress.average_time_seconds = (
            progress.average_time_seconds * (won - 1) + duration_seconds
        ) / won
    else:
        progress.average_time_seconds = float(duration_seconds)

    if is_daily:
        progress.daily_challenges_completed = (progress.daily_challenges_completed or 0) + 1

    progress.last_played_at = now

    xp = calculate_xp(score, duration_seconds, policy)
    progress.experience_points = (progress.experience_points or 0) + xp
    new_level = level_for_xp(progress.experience_points, policy)
    if new_level > (progress.level or 1):
        progress.level = new_level
    return xp


def record_loss(progress: PlayerProgress, now: datetime | None = None) -> None:
    progress.games_played = (progress.games_played or 0) + 1
    progress.last_played_at = now or utcnow()


async def record_hint_used(db: AsyncSession, player_id: int, game_id: int) -> bool:
    """Bump the hint counter. Returns False if the player has no progress row yet."""
    result = await db.execute(
        update(PlayerProgress)
        .where(PlayerProgress.player_id == player_id, PlayerProgress.game_id == game_id)
        .values(total_hints_used=PlayerProgress.total_hints_used + 1)
        .returning(PlayerProgress.id)
    )
    return result.scalar_one_or_none() is not None


def win_rate(progress: PlayerProgress) -> float:
    """Percentage of games won, one decimal."""
    if not progress.games_played:
        return 0.0
    return round(progress.games_won / progress.games_played * 100, 1)
