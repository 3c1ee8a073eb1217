"""Daily streak tracking per (player, game): status, completion, freezes.

Status evaluation is pure. Breaking a stale streak is a separate explicit step
(``apply_break_if_stale``) that callers run before recording a completion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.config import PlatformPolicy
from dgames.db.models import Player, Streak
from dgames.db.upsert import insert_for
from dgames.gamification.calendar import end_of_day, local_now, local_today
from dgames.players.wallet import consume_freeze

logger = logging.getLogger(__name__)

STATUS_NONE = "none"
STATUS_COMPLETED_TODAY = "completed_today"
STATUS_ACTIVE = "active"
STATUS_FROZEN_TODAY = "frozen_today"
STATUS_GRACE_PERIOD = "grace_period"
STATUS_BROKEN = "broken"

ALIVE_STATUSES = frozenset({
    STATUS_COMPLETED_TODAY, STATUS_ACTIVE, STATUS_FROZEN_TODAY, STATUS_GRACE_PERIOD,
})


@dataclass(frozen=True)
class StreakStatus:
    status: str
    streak: int
    hours_remaining: int | None = None
    lost_streak: int | None = None

    @property
    def needs_action(self) -> bool:
        return self.status != STATUS_COMPLETED_TODAY

    @property
    def is_alive(self) -> bool:
        return self.status in ALIVE_STATUSES

    def to_dict(self) -> dict:
        data: dict = {
            "status": self.status,
            "streak": self.streak,
            "needs_action": self.needs_action,
        }
        if self.hours_remaining is not None:
            data["hours_remaining"] = self.hours_remaining
        if self.lost_streak is not None:
            data["lost_streak"] = self.lost_streak
        return data


@dataclass(frozen=True)
class StreakUpdate:
    current: int
    extended: bool
    milestone: int | None = None

    def to_dict(self) -> dict:
        return {"current": self.current, "extended": self.extended, "milestone": self.milestone}


def evaluate_status(streak: Streak, now: datetime | None, policy: PlatformPolicy) -> StreakStatus:
    """Classify the streak relative to the local calendar day of ``now``.

    Never mutates ``streak``. A stale streak is reported as ``broken`` with
    the count it would lose.
    """
    now = local_now(now, policy.timezone)
    today = now.date()
    yesterday = today - timedelta(days=1)
    current = streak.current_streak or 0

    if streak.last_completed_date == today:
        return StreakStatus(STATUS_COMPLETED_TODAY, current)
    if streak.last_completed_date == yesterday:
        return StreakStatus(STATUS_ACTIVE, current)
    if streak.streak_frozen_date == today:
        return StreakStatus(STATUS_FROZEN_TODAY, current)
    if streak.streak_frozen_date == yesterday:
        return StreakStatus(STATUS_ACTIVE, current)

    activity = [d for d in (streak.last_completed_date, streak.streak_frozen_date) if d is not None]
    if activity:
        since = now - end_of_day(max(activity), policy.timezone)
        hours_since = int(since.total_seconds() // 3600)
        if hours_since <= policy.streak_grace_period_hours:
            return StreakStatus(
                STATUS_GRACE_PERIOD,
                current,
                hours_remaining=policy.streak_grace_period_hours - hours_since,
            )

    if current > 0:
        return StreakStatus(STATUS_BROKEN, 0, lost_streak=current)
    return StreakStatus(STATUS_NONE, 0)


def apply_break_if_stale(streak: Streak, now: datetime | None, policy: PlatformPolicy) -> StreakStatus:
    """Evaluate and, if the streak is broken, reset ``current_streak`` to 0.

    The caller owns the transaction; the row is only modified in the session.
    """
    status = evaluate_status(streak, now, policy)
    if status.status == STATUS_BROKEN:
        logger.info(
            "Streak broken: player=%s game=%s lost=%d",
            streak.player_id, streak.game_id, status.lost_streak,
        )
        streak.current_streak = 0
    return status


def record_completion(streak: Streak, now: datetime | None, policy: PlatformPolicy) -> StreakUpdate:
    """Count today's completion. Idempotent per local calendar day."""
    today = local_today(now, policy.timezone)

    if streak.last_completed_date == today:
        return StreakUpdate(current=streak.current_streak, extended=False)

    streak.current_streak = (streak.current_streak or 0) + 1
    streak.last_completed_date = today
    if streak.current_streak > (streak.longest_streak or 0):
        streak.longest_streak = streak.current_streak

    milestone = streak.current_streak if streak.current_streak in policy.streak_milestones else None
    return StreakUpdate(current=streak.current_streak, extended=True, milestone=milestone)


async def use_freeze(
    db: AsyncSession,
    streak: Streak,
    player: Player,
    now: datetime | None,
    policy: PlatformPolicy,
) -> bool:
    """Protect today with a freeze.

    Returns False if today is already completed or frozen, or the player has
    no freezes. The balance debit happens in the caller's transaction.
    """
    today = local_today(now, policy.timezone)
    if streak.last_completed_date == today or streak.streak_frozen_date == today:
        return False

    if not await consume_freeze(db, player):
        return False

    streak.streak_frozen_date = today
    streak.freezes_used_total = (streak.freezes_used_total or 0) + 1
    return True


async def get_or_create_streak(
    db: AsyncSession,
    player_id: int,
    game_id: int,
    *,
    lock: bool = False,
) -> Streak:
    """Fetch the streak row, inserting it first if missing.

    Concurrent first access is resolved by the unique (player_id, game_id) key.
    """
    stmt = insert_for(db, Streak).values(
        player_id=player_id,
        game_id=game_id,
        current_streak=0,
        longest_streak=0,
        freezes_used_total=0,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["player_id", "game_id"]))

    query = select(Streak).where(Streak.player_id == player_id, Streak.game_id == game_id)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one()


async def get_streak(db: AsyncSession, player_id: int, game_id: int) -> Streak | None:
    result = await db.execute(
        select(Streak).where(Streak.player_id == player_id, Streak.game_id == game_id)
    )
    return result.scalar_one_or_none()
