"""Achievement evaluation and unlocking.

Rules are pure predicates over the freshly updated progress/streak rows and the
session being settled. The unlock insert is the only side effect; the unique
(player_id, achievement_id) key makes it at-most-once under races.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.db.models import Achievement, GameSession, PlayerAchievement, PlayerProgress, Streak
from dgames.db.upsert import insert_for
from dgames.gamification.calendar import utcnow

logger = logging.getLogger(__name__)

TYPE_STREAK = "streak"
TYPE_GAMES_PLAYED = "games_played"
TYPE_GAMES_WON = "games_won"
TYPE_SCORE = "score"
TYPE_DAILY_COMPLETED = "daily_completed"
TYPE_LEVEL = "level"
TYPE_PERFECT_GAME = "perfect_game"
TYPE_NO_HINTS = "no_hints"
TYPE_SPEED = "speed"
TYPE_CUSTOM = "custom"

ProgressRule = Callable[[PlayerProgress | None, Streak | None, int], bool]
SessionRule = Callable[[GameSession, int], bool]

# Counter rules read the already-updated progress/streak snapshot.
PROGRESS_RULES: dict[str, ProgressRule] = {
    TYPE_STREAK: lambda p, s, v: s is not None and (s.current_streak or 0) >= v,
    TYPE_GAMES_PLAYED: lambda p, s, v: p is not None and (p.games_played or 0) >= v,
    TYPE_GAMES_WON: lambda p, s, v: p is not None and (p.games_won or 0) >= v,
    TYPE_SCORE: lambda p, s, v: p is not None and (p.best_score or 0) >= v,
    TYPE_DAILY_COMPLETED: lambda p, s, v: p is not None and (p.daily_challenges_completed or 0) >= v,
    TYPE_LEVEL: lambda p, s, v: p is not None and (p.level or 1) >= v,
}

PROGRESS_VALUES = {
    TYPE_GAMES_PLAYED: "games_played",
    TYPE_GAMES_WON: "games_won",
    TYPE_DAILY_COMPLETED: "daily_challenges_completed",
    TYPE_LEVEL: "level",
}

# Session rules read the session being settled.
SESSION_RULES: dict[str, SessionRule] = {
    TYPE_PERFECT_GAME: lambda s, v: (s.mistakes_count or 0) == 0 and (s.hints_used or 0) == 0,
    TYPE_NO_HINTS: lambda s, v: (s.hints_used or 0) == 0,
    TYPE_SPEED: lambda s, v: s.duration_seconds is not None and s.duration_seconds <= v,
    TYPE_SCORE: lambda s, v: s.score is not None and s.score >= v,
}


@dataclass(frozen=True)
class UnlockedAchievement:
    id: int
    slug: str
    name: str
    description: str
    icon: str | None
    points: int

    @classmethod
    def from_model(cls, achievement: Achievement) -> UnlockedAchievement:
        return cls(
            id=achievement.id,
            slug=achievement.slug,
            name=achievement.name,
            description=achievement.description,
            icon=achievement.icon,
            points=achievement.points,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "points": self.points,
        }


def is_satisfied(
    achievement: Achievement,
    progress: PlayerProgress | None,
    streak: Streak | None,
    session: GameSession | None,
) -> bool:
    """True if the achievement's requirement holds. ``custom`` never does."""
    kind = achievement.requirement_type
    value = achievement.requirement_value

    rule = PROGRESS_RULES.get(kind)
    if rule is not None and rule(progress, streak, value):
        return True

    session_rule = SESSION_RULES.get(kind)
    if session is not None and session_rule is not None:
        return session_rule(session, value)
    return False


def achieved_value(
    achievement: Achievement,
    progress: PlayerProgress | None,
    streak: Streak | None,
    session: GameSession | None,
) -> int | None:
    """The counter the requirement was checked against, stored with the unlock."""
    kind = achievement.requirement_type
    if kind == TYPE_STREAK:
        return streak.current_streak if streak is not None else None
    if kind == TYPE_SPEED:
        return session.duration_seconds if session is not None else None
    if kind == TYPE_SCORE:
        scores = [
            v for v in (
                progress.best_score if progress is not None else None,
                session.score if session is not None else None,
            ) if v is not None
        ]
        return max(scores) if scores else None
    if kind in PROGRESS_VALUES and progress is not None:
        return getattr(progress, PROGRESS_VALUES[kind])
    return None


class AchievementEvaluator:
    """Checks a settled session against every applicable achievement."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def candidates(self, player_id: int, game_id: int) -> list[Achievement]:
        """Active achievements for the game or global, not yet unlocked by the player."""
        unlocked = select(PlayerAchievement.achievement_id).where(
            PlayerAchievement.player_id == player_id
        )
        result = await self.db.execute(
            select(Achievement)
            .where(
                Achievement.is_active.is_(True),
                or_(Achievement.game_id == game_id, Achievement.game_id.is_(None)),
                Achievement.id.not_in(unlocked),
            )
            .order_by(Achievement.sort_order, Achievement.id)
        )
        return list(result.scalars())

    async def evaluate(
        self,
        player_id: int,
        game_id: int,
        progress: PlayerProgress | None,
        streak: Streak | None,
        session: GameSession | None,
        now: datetime | None = None,
    ) -> list[UnlockedAchievement]:
        """Unlock everything the snapshot satisfies. Returns the new unlocks only."""
        unlocked: list[UnlockedAchievement] = []
        for achievement in await self.candidates(player_id, game_id):
            if not is_satisfied(achievement, progress, streak, session):
                continue
            created = await self.unlock(
                player_id,
                achievement.id,
                game_id=game_id,
                session_id=session.id if session is not None else None,
                unlocked_value=achieved_value(achievement, progress, streak, session),
                now=now,
            )
            if created:
                unlocked.append(UnlockedAchievement.from_model(achievement))

        if unlocked:
            logger.info(
                "Unlocked %d achievements for player %s: %s",
                len(unlocked), player_id, ", ".join(a.slug for a in unlocked),
            )
        return unlocked

    async def unlock(
        self,
        player_id: int,
        achievement_id: int,
        *,
        game_id: int | None = None,
        session_id: int | None = None,
        unlocked_value: int | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Insert the unlock row. False means the player already had it."""
        stmt = insert_for(self.db, PlayerAchievement).values(
            player_id=player_id,
            achievement_id=achievement_id,
            game_id=game_id,
            session_id=session_id,
            unlocked_value=unlocked_value,
            unlocked_at=now or utcnow(),
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["player_id", "achievement_id"]
        ).returning(PlayerAchievement.id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def player_points(self, player_id: int) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Achievement.points), 0))
            .join(PlayerAchievement, PlayerAchievement.achievement_id == Achievement.id)
            .where(PlayerAchievement.player_id == player_id)
        )
        return int(result.scalar_one())

    async def player_unlock_count(self, player_id: int, game_id: int | None = None) -> int:
        query = select(func.count(PlayerAchievement.id)).where(
            PlayerAchievement.player_id == player_id
        )
        if game_id is not None:
            query = query.where(PlayerAchievement.game_id == game_id)
        result = await self.db.execute(query)
        return int(result.scalar_one())

    async def list_player_achievements(
        self, player_id: int, game_id: int | None = None
    ) -> list[PlayerAchievement]:
        """Unlocks for the player, newest first, with the achievement loaded."""
        query = select(PlayerAchievement).where(PlayerAchievement.player_id == player_id)
        if game_id is not None:
            query = query.where(PlayerAchievement.game_id == game_id)
        result = await self.db.execute(
            query.order_by(PlayerAchievement.unlocked_at.desc(), PlayerAchievement.id.desc())
        )
        return list(result.unique().scalars())

    async def list_catalog(self, game_id: int | None = None, include_hidden: bool = False) -> list[Achievement]:
        query = select(Achievement).where(Achievement.is_active.is_(True))
        if game_id is not None:
            query = query.where(or_(Achievement.game_id == game_id, Achievement.game_id.is_(None)))
        if not include_hidden:
            query = query.where(Achievement.is_hidden.is_(False))
        result = await self.db.execute(query.order_by(Achievement.sort_order, Achievement.points))
        return list(result.scalars())
