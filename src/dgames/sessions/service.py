"""Game session lifecycle and settlement.

``complete_session`` is the settlement pipeline: session, player totals,
progress ledger, streak, hint rewards, leaderboard and achievements are all
written in one transaction. Any failure rolls the whole unit back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.config import PlatformPolicy
from dgames.db.models import (
    SESSION_TYPE_DAILY,
    SESSION_TYPE_PRACTICE,
    SESSION_TYPES,
    STATUS_ABANDONED,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PAUSED,
    DailyChallenge,
    Game,
    GameSession,
    Player,
    PlayerProgress,
    Streak,
)
from dgames.errors import InvalidInputError, NotFoundError, SessionConflictError
from dgames.gamification import progress_service, streak_service
from dgames.gamification.achievement_service import AchievementEvaluator, UnlockedAchievement
from dgames.gamification.calendar import utcnow
from dgames.gamification.level_curve import xp_progress, xp_to_next_level
from dgames.gamification.streak_service import StreakStatus, StreakUpdate
from dgames.leaderboard.service import PERIOD_DAILY, LeaderboardService, PlayerRank
from dgames.players import wallet

logger = logging.getLogger(__name__)

REWARD_HINTS = "hints"
REWARD_STREAK_FREEZE = "streak_freeze"


@dataclass
class StartedSession:
    session: GameSession
    streak_status: StreakStatus | None
    hints_available: int


@dataclass
class SettlementResult:
    session: GameSession
    streak: StreakUpdate | None = None
    achievements: list[UnlockedAchievement] = field(default_factory=list)
    level_up: bool = False
    new_level: int | None = None
    hints_earned: int = 0
    xp_earned: int = 0
    leaderboard_rank: PlayerRank | None = None


def _elapsed_seconds(started_at: datetime | None, now: datetime) -> int | None:
    if started_at is None:
        return None
    return max(0, int((now - started_at).total_seconds()))


class SessionService:
    """Session intake, settlement, hint spending and the reward economy."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object,
        policy: PlatformPolicy,
        *,
        leaderboard: LeaderboardService | None = None,
        achievements: AchievementEvaluator | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.policy = policy
        self.leaderboard = leaderboard or LeaderboardService(db, redis, policy)
        self.achievements = achievements or AchievementEvaluator(db)

    # ── Lookups ──

    async def get_player_session(self, session_id: int, player_id: int) -> GameSession:
        result = await self.db.execute(
            select(GameSession).where(
                GameSession.id == session_id,
                GameSession.player_id == player_id,
            )
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    async def get_streak(self, player_id: int, game_id: int) -> Streak | None:
        return await streak_service.get_streak(self.db, player_id, game_id)

    # ── Intake ──

    async def start_session(
        self,
        player: Player,
        game: Game,
        session_type: str = SESSION_TYPE_PRACTICE,
        challenge: DailyChallenge | None = None,
        device_info: dict | None = None,
        now: datetime | None = None,
    ) -> StartedSession:
        """Open a new session, abandoning any unfinished one for the same game.

        A session tied to one of the game's challenges is always ``daily``.
        Daily sessions also settle a stale streak and report its status.
        """
        if now is None:
            now = utcnow()
        if session_type not in SESSION_TYPES:
            raise InvalidInputError(f"Unknown session type: {session_type}")
        if challenge is not None:
            if challenge.game_id != game.id:
                raise InvalidInputError("Challenge does not belong to this game")
            session_type = SESSION_TYPE_DAILY

        await self._abandon_open_sessions(player.id, game.id, now)

        session = GameSession(
            user_id=player.user_id,
            player_id=player.id,
            game_id=game.id,
            daily_challenge_id=challenge.id if challenge is not None else None,
            session_type=session_type,
            status=STATUS_ACTIVE,
            started_at=now,
            device_info=device_info,
            hints_used=0,
            moves_count=0,
            mistakes_count=0,
            completion_percentage=0.0,
        )
        self.db.add(session)

        streak_status = None
        if session_type == SESSION_TYPE_DAILY:
            streak = await streak_service.get_or_create_streak(self.db, player.id, game.id, lock=True)
            streak_status = streak_service.apply_break_if_stale(streak, now, self.policy)

        await self.db.commit()
        return StartedSession(
            session=session,
            streak_status=streak_status,
            hints_available=player.hints_balance,
        )

    async def _abandon_open_sessions(
        self, player_id: int, game_id: int, now: datetime, keep_id: int | None = None
    ) -> None:
        query = (
            select(GameSession)
            .where(
                GameSession.player_id == player_id,
                GameSession.game_id == game_id,
                GameSession.status.in_((STATUS_ACTIVE, STATUS_PAUSED)),
            )
            .order_by(GameSession.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if keep_id is not None:
            query = query.where(GameSession.id != keep_id)
        for open_session in (await self.db.execute(query)).scalars():
            open_session.status = STATUS_ABANDONED
            open_session.completed_at = now

    async def update_session(
        self,
        session: GameSession,
        completion_percentage: float | None = None,
        moves_count: int | None = None,
        mistakes_count: int | None = None,
        data: dict | None = None,
    ) -> GameSession:
        """Record in-play progress on an active session."""
        if session.status != STATUS_ACTIVE:
            raise SessionConflictError("Session is not active")
        if completion_percentage is not None and not 0 <= completion_percentage <= 100:
            raise InvalidInputError("completion_percentage must be between 0 and 100")
        if (moves_count is not None and moves_count < 0) or (mistakes_count is not None and mistakes_count < 0):
            raise InvalidInputError("Counters cannot be negative")

        if completion_percentage is not None:
            session.completion_percentage = completion_percentage
        if moves_count is not None:
            session.moves_count = moves_count
        if mistakes_count is not None:
            session.mistakes_count = mistakes_count
        if data:
            session.session_data = {**(session.session_data or {}), **data}

        await self.db.commit()
        return session

    async def pause_session(self, session: GameSession) -> GameSession:
        if session.status != STATUS_ACTIVE:
            raise SessionConflictError("Only an active session can be paused")
        session.status = STATUS_PAUSED
        await self.db.commit()
        return session

    async def resume_session(self, session: GameSession, now: datetime | None = None) -> GameSession:
        if session.status != STATUS_PAUSED:
            raise SessionConflictError("Only a paused session can be resumed")
        await self._abandon_open_sessions(
            session.player_id, session.game_id, now or utcnow(), keep_id=session.id
        )
        session.status = STATUS_ACTIVE
        await self.db.commit()
        return session

    async def abandon_session(self, session: GameSession, now: datetime | None = None) -> GameSession:
        if session.is_terminal:
            raise SessionConflictError(f"Session is already {session.status}")
        session.status = STATUS_ABANDONED
        session.completed_at = now or utcnow()
        await self.db.commit()
        return session

    async def fail_session(self, session: GameSession, now: datetime | None = None) -> GameSession:
        """End the session as a loss: counts as played, not won, no XP."""
        if session.is_terminal:
            raise SessionConflictError(f"Session is already {session.status}")
        now = now or utcnow()
        try:
            session.status = STATUS_FAILED
            session.completed_at = now
            session.duration_seconds = _elapsed_seconds(session.started_at, now)
            progress = await progress_service.get_or_create_progress(
                self.db, session.player_id, session.game_id, lock=True
            )
            progress_service.record_loss(progress, now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return session

    # Row locks are always taken session, player, progress, streak.

    async def _lock_session(self, session_id: int) -> GameSession:
        return (await self.db.execute(
            select(GameSession)
            .where(GameSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )).scalar_one()

    async def _lock_player(self, player_id: int) -> Player:
        return (await self.db.execute(
            select(Player)
            .where(Player.id == player_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )).scalar_one()

    # ── Settlement ──

    async def complete_session(
        self,
        session: GameSession,
        score: int,
        data: dict | None = None,
        now: datetime | None = None,
    ) -> SettlementResult:
        """Settle a finished session.

        Raises SessionConflictError if the session already ended and
        InvalidInputError for a negative score. Nothing is persisted unless
        every step succeeds.
        """
        if score < 0:
            raise InvalidInputError("Score cannot be negative")
        if session.is_terminal:
            raise SessionConflictError(f"Session is already {session.status}")
        if now is None:
            now = utcnow()

        try:
            result = await self._settle(session.id, score, data, now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.leaderboard.invalidate(
            result.session.game_id, now=now, challenge_id=result.session.daily_challenge_id
        )
        logger.info(
            "Settled session %s: player=%s game=%s score=%d xp=%d level_up=%s achievements=%d",
            result.session.id, result.session.player_id, result.session.game_id,
            score, result.xp_earned, result.level_up, len(result.achievements),
        )
        return result

    async def _settle(
        self, session_id: int, score: int, data: dict | None, now: datetime
    ) -> SettlementResult:
        locked = await self._lock_session(session_id)
        if locked.is_terminal:
            raise SessionConflictError(f"Session is already {locked.status}")
        player = await self._lock_player(locked.player_id)

        # 1. Session
        duration = _elapsed_seconds(locked.started_at, now)
        locked.status = STATUS_COMPLETED
        locked.completed_at = now
        locked.score = score
        locked.duration_seconds = duration
        locked.completion_percentage = 100.0
        locked.session_data = {**(locked.session_data or {}), **(data or {})}
        result = SettlementResult(session=locked)

        # 2. Player totals
        await wallet.record_play(self.db, player, duration or 0)

        # 3. Progress ledger
        progress = await progress_service.get_or_create_progress(
            self.db, player.id, locked.game_id, lock=True
        )
        previous_level = progress.level
        result.xp_earned = progress_service.record_completion(
            progress, score, duration or 0, locked.is_daily, now, self.policy
        )
        if progress.level > previous_level:
            result.level_up = True
            result.new_level = progress.level

        # 4. Streak
        streak: Streak | None
        if locked.is_daily and locked.daily_challenge_id is not None:
            streak = await streak_service.get_or_create_streak(
                self.db, player.id, locked.game_id, lock=True
            )
            streak_service.apply_break_if_stale(streak, now, self.policy)
            result.streak = streak_service.record_completion(streak, now, self.policy)
            if result.streak.milestone is not None and self.policy.hints_per_milestone > 0:
                await wallet.credit_hints(self.db, player, self.policy.hints_per_milestone)
                result.hints_earned += self.policy.hints_per_milestone
        else:
            streak = await streak_service.get_streak(self.db, player.id, locked.game_id)

        # 5. Flat completion bonus
        if self.policy.hints_per_completion > 0:
            await wallet.credit_hints(self.db, player, self.policy.hints_per_completion)
            result.hints_earned += self.policy.hints_per_completion

        # 6. Leaderboard (cache is invalidated after commit)
        await self.leaderboard.submit_score(
            player.id, locked.game_id, score, duration,
            challenge_id=locked.daily_challenge_id, now=now, invalidate=False,
        )
        result.leaderboard_rank = await self.leaderboard.get_player_rank(
            player.id, locked.game_id, PERIOD_DAILY, now=now
        )

        # 7. Achievements
        result.achievements = await self.achievements.evaluate(
            player.id, locked.game_id, progress, streak, locked, now=now
        )
        return result

    # ── Economy ──

    async def use_hint(self, player: Player, session: GameSession, hint_type: str) -> bool:
        """Spend hints on an active session. False if the balance is too low."""
        if session.status != STATUS_ACTIVE:
            raise SessionConflictError("Session is not active")

        cost = self.policy.hint_cost(hint_type)
        try:
            locked = await self._lock_session(session.id)
            if locked.status != STATUS_ACTIVE:
                raise SessionConflictError("Session is not active")
            await self._lock_player(player.id)
            if not await wallet.debit_hints(self.db, player, cost):
                await self.db.commit()
                return False
            locked.hints_used = (locked.hints_used or 0) + 1
            await progress_service.record_hint_used(self.db, player.id, session.game_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return True

    async def use_streak_freeze(self, player: Player, game: Game, now: datetime | None = None) -> bool:
        """Protect today's streak for ``game`` with one of the player's freezes."""
        try:
            await self._lock_player(player.id)
            streak = await streak_service.get_or_create_streak(self.db, player.id, game.id, lock=True)
            used = await streak_service.use_freeze(self.db, streak, player, now, self.policy)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return used

    async def record_ad_watched(self, player: Player, reward_type: str, amount: int) -> Player:
        """Credit a rewarded-ad payout. Freezes are capped at the configured maximum."""
        if amount < 0:
            raise InvalidInputError("Reward amount cannot be negative")
        if reward_type == REWARD_HINTS:
            await wallet.credit_hints(self.db, player, amount)
        elif reward_type == REWARD_STREAK_FREEZE:
            await wallet.credit_freezes(self.db, player, amount, self.policy.streak_max_freezes)
        else:
            raise InvalidInputError(f"Unknown reward type: {reward_type}")
        await self.db.commit()
        return player

    # ── Queries ──

    async def get_player_stats(self, player: Player, game_id: int | None = None) -> dict:
        """Overall totals plus a per-game breakdown keyed by game slug."""
        stats: dict[str, Any] = {
            "overall": {
                "total_games": player.total_games_played,
                "total_time": player.total_time_played,
                "hints_balance": player.hints_balance,
                "streak_freezes": player.streak_freezes,
                "achievement_points": await self.achievements.player_points(player.id),
                "achievements_count": await self.achievements.player_unlock_count(player.id),
            },
            "games": {},
        }

        query = (
            select(PlayerProgress, Game)
            .join(Game, Game.id == PlayerProgress.game_id)
            .where(PlayerProgress.player_id == player.id)
            .order_by(Game.id)
        )
        if game_id is not None:
            query = query.where(PlayerProgress.game_id == game_id)
        rows = (await self.db.execute(query)).all()

        streaks = {
            s.game_id: s
            for s in (await self.db.execute(
                select(Streak).where(Streak.player_id == player.id)
            )).scalars()
        }

        for progress, game in rows:
            streak = streaks.get(game.id)
            stats["games"][game.slug] = {
                "game_id": game.id,
                "game_name": game.name,
                "level": progress.level,
                "experience": progress.experience_points,
                "xp_to_next": xp_to_next_level(progress.level, progress.experience_points, self.policy),
                "xp_progress": xp_progress(progress.level, progress.experience_points, self.policy),
                "games_played": progress.games_played,
                "games_won": progress.games_won,
                "win_rate": progress_service.win_rate(progress),
                "best_score": progress.best_score,
                "best_time": progress.best_time_seconds,
                "average_score": round(progress.average_score or 0),
                "daily_completed": progress.daily_challenges_completed,
                "current_streak": streak.current_streak if streak else 0,
                "longest_streak": streak.longest_streak if streak else 0,
                "last_played": progress.last_played_at.isoformat() if progress.last_played_at else None,
            }
        return stats

    async def history(self, player: Player, game_id: int | None = None, limit: int = 20) -> list[GameSession]:
        """Completed sessions, newest first."""
        query = (
            select(GameSession)
            .where(GameSession.player_id == player.id, GameSession.status == STATUS_COMPLETED)
            .order_by(GameSession.completed_at.desc(), GameSession.id.desc())
            .limit(limit)
        )
        if game_id is not None:
            query = query.where(GameSession.game_id == game_id)
        return list((await self.db.execute(query)).scalars())

    async def score_percentile(self, session: GameSession) -> float | None:
        """Share of completed runs of the same challenge that did not beat this score."""
        if session.score is None or session.daily_challenge_id is None:
            return None
        same_challenge = (
            GameSession.daily_challenge_id == session.daily_challenge_id,
            GameSession.status == STATUS_COMPLETED,
        )
        total = (await self.db.execute(
            select(func.count(GameSession.id)).where(*same_challenge)
        )).scalar_one()
        if not total:
            return 100.0
        better = (await self.db.execute(
            select(func.count(GameSession.id)).where(*same_challenge, GameSession.score > session.score)
        )).scalar_one()
        return round((1 - better / total) * 100, 1)
