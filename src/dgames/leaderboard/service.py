"""Leaderboard service: multi-period score tables with a Redis page cache.

PostgreSQL holds one row per (player, game, period, period_key). Daily and
challenge rows keep the best single score; weekly, monthly and all-time rows
accumulate. Redis only caches rendered top-N pages and is invalidated on
every submission.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.config import PlatformPolicy
from dgames.db.models import LeaderboardEntry, Player
from dgames.db.upsert import insert_for
from dgames.errors import InvalidInputError
from dgames.gamification.calendar import local_now, utcnow, week_start

logger = logging.getLogger(__name__)

PERIOD_DAILY = "daily"
PERIOD_WEEKLY = "weekly"
PERIOD_MONTHLY = "monthly"
PERIOD_ALLTIME = "alltime"
PERIOD_CHALLENGE = "challenge"

PERIODS = (PERIOD_DAILY, PERIOD_WEEKLY, PERIOD_MONTHLY, PERIOD_ALLTIME)
BEST_OF_PERIODS = frozenset({PERIOD_DAILY, PERIOD_CHALLENGE})


def period_key(period: str, now: datetime | None, tz: str) -> str:
    """Bucket key for ``period`` at ``now`` in the platform timezone."""
    local = local_now(now, tz)
    if period == PERIOD_DAILY:
        return local.strftime("%Y-%m-%d")
    if period == PERIOD_WEEKLY:
        return week_start(local.date()).isoformat()
    if period == PERIOD_MONTHLY:
        return local.strftime("%Y-%m")
    if period == PERIOD_ALLTIME:
        return "all"
    raise InvalidInputError(f"Unknown leaderboard period: {period}")


def challenge_period_key(challenge_id: int) -> str:
    return f"challenge_{challenge_id}"


def build_cache_key(game_id: int, period: str, key: str) -> str:
    return f"leaderboard:{game_id}:{period}:{key}"


def build_challenge_cache_key(challenge_id: int) -> str:
    return f"leaderboard:challenge:{challenge_id}"


@dataclass(frozen=True)
class PlayerRank:
    rank: int
    score: int
    time_seconds: int | None
    games_count: int

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "score": self.score,
            "time_seconds": self.time_seconds,
            "games_count": self.games_count,
        }


def _ranking_order() -> tuple:
    return (
        LeaderboardEntry.score.desc(),
        LeaderboardEntry.time_seconds.asc().nulls_last(),
        LeaderboardEntry.id.asc(),
    )


class LeaderboardService:
    """Score submission, ranked reads and per-player rank lookups."""

    def __init__(self, db: AsyncSession, redis: object, policy: PlatformPolicy) -> None:
        self.db = db
        self.redis = redis
        self.policy = policy

    # ── Writes ──

    async def submit_score(
        self,
        player_id: int,
        game_id: int,
        score: int,
        time_seconds: int | None,
        challenge_id: int | None = None,
        now: datetime | None = None,
        invalidate: bool = True,
    ) -> None:
        """Fold one result into every period bucket, then drop cached pages.

        Pass ``invalidate=False`` when running inside a larger transaction and
        call ``invalidate`` after the commit instead.
        """
        if now is None:
            now = utcnow()

        for period in PERIODS:
            await self._upsert(
                player_id, game_id, period,
                period_key(period, now, self.policy.timezone),
                score, time_seconds, None, now,
            )

        if challenge_id is not None:
            await self._upsert(
                player_id, game_id, PERIOD_CHALLENGE,
                challenge_period_key(challenge_id),
                score, time_seconds, challenge_id, now,
            )

        if invalidate:
            await self.invalidate(game_id, now=now, challenge_id=challenge_id)

    async def _upsert(
        self,
        player_id: int,
        game_id: int,
        period: str,
        key: str,
        score: int,
        time_seconds: int | None,
        challenge_id: int | None,
        now: datetime,
    ) -> None:
        stmt = insert_for(self.db, LeaderboardEntry).values(
            player_id=player_id,
            game_id=game_id,
            daily_challenge_id=challenge_id,
            period=period,
            period_key=key,
            score=score,
            time_seconds=time_seconds,
            games_count=1,
            updated_at=now,
        )
        new = stmt.excluded

        if period in BEST_OF_PERIODS:
            # Strictly greater wins; a tie keeps the earlier result and its time.
            better = new.score > LeaderboardEntry.score
            set_ = {
                "score": case((better, new.score), else_=LeaderboardEntry.score),
                "time_seconds": case((better, new.time_seconds), else_=LeaderboardEntry.time_seconds),
            }
        else:
            set_ = {
                "score": LeaderboardEntry.score + new.score,
                "time_seconds": case(
                    (LeaderboardEntry.time_seconds.is_(None), new.time_seconds),
                    (new.time_seconds < LeaderboardEntry.time_seconds, new.time_seconds),
                    else_=LeaderboardEntry.time_seconds,
                ),
            }
        set_["games_count"] = LeaderboardEntry.games_count + 1
        set_["updated_at"] = new.updated_at

        await self.db.execute(
            stmt.on_conflict_do_update(
                index_elements=["player_id", "game_id", "period", "period_key"],
                set_=set_,
            )
        )

    async def invalidate(
        self,
        game_id: int,
        now: datetime | None = None,
        challenge_id: int | None = None,
    ) -> None:
        """Delete cached pages for the game's current buckets (and the challenge board)."""
        if self.redis is None:
            return
        keys = [
            build_cache_key(game_id, period, period_key(period, now, self.policy.timezone))
            for period in PERIODS
        ]
        if challenge_id is not None:
            keys.append(build_challenge_cache_key(challenge_id))
        try:
            await self.redis.delete(*keys)  # type: ignore[union-attr]
        except Exception:
            logger.warning("Failed to invalidate leaderboard cache for game %s", game_id, exc_info=True)

    # ── Reads ──

    async def get_leaderboard(
        self,
        game_id: int,
        period: str = PERIOD_DAILY,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        """Top entries for the current bucket with 1-based ranks."""
        key = period_key(period, now, self.policy.timezone)
        page = await self._cached_page(
            build_cache_key(game_id, period, key),
            lambda: self._load_page(
                LeaderboardEntry.game_id == game_id,
                LeaderboardEntry.period == period,
                LeaderboardEntry.period_key == key,
            ),
        )
        return page[: self._clamp(limit)]

    async def get_challenge_leaderboard(self, challenge_id: int, limit: int | None = None) -> list[dict]:
        page = await self._cached_page(
            build_challenge_cache_key(challenge_id),
            lambda: self._load_page(
                LeaderboardEntry.daily_challenge_id == challenge_id,
                LeaderboardEntry.period == PERIOD_CHALLENGE,
            ),
        )
        return page[: self._clamp(limit)]

    async def get_player_rank(
        self,
        player_id: int,
        game_id: int,
        period: str = PERIOD_DAILY,
        now: datetime | None = None,
    ) -> PlayerRank | None:
        """1 + number of entries strictly ahead; None if the player has no entry."""
        key = period_key(period, now, self.policy.timezone)
        bucket = (
            LeaderboardEntry.game_id == game_id,
            LeaderboardEntry.period == period,
            LeaderboardEntry.period_key == key,
        )
        result = await self.db.execute(
            select(LeaderboardEntry).where(LeaderboardEntry.player_id == player_id, *bucket)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            return None

        if entry.time_seconds is None:
            faster = LeaderboardEntry.time_seconds.is_not(None)
        else:
            faster = LeaderboardEntry.time_seconds < entry.time_seconds
        ahead = await self.db.execute(
            select(func.count(LeaderboardEntry.id)).where(
                *bucket,
                or_(
                    LeaderboardEntry.score > entry.score,
                    and_(LeaderboardEntry.score == entry.score, faster),
                ),
            )
        )
        return PlayerRank(
            rank=int(ahead.scalar_one()) + 1,
            score=entry.score,
            time_seconds=entry.time_seconds,
            games_count=entry.games_count,
        )

    # ── Internals ──

    def _clamp(self, limit: int | None) -> int:
        cap = self.policy.leaderboard_display_limit
        if limit is None or limit <= 0:
            return cap
        return min(limit, cap)

    async def _load_page(self, *criteria) -> list[dict]:
        result = await self.db.execute(
            select(LeaderboardEntry, Player.display_name, Player.avatar_id)
            .join(Player, Player.id == LeaderboardEntry.player_id)
            .where(*criteria)
            .order_by(*_ranking_order())
            .limit(self.policy.leaderboard_display_limit)
        )
        return [
            {
                "rank": index + 1,
                "player_id": entry.player_id,
                "display_name": display_name or "Anonymous",
                "avatar_id": avatar_id,
                "score": entry.score,
                "time_seconds": entry.time_seconds,
                "games_count": entry.games_count,
            }
            for index, (entry, display_name, avatar_id) in enumerate(result.all())
        ]

    async def _cached_page(self, key: str, load) -> list[dict]:
        if self.redis is not None:
            try:
                cached = await self.redis.get(key)  # type: ignore[union-attr]
                if cached:
                    return json.loads(cached)
            except Exception:
                logger.warning("Leaderboard cache read failed for %s", key, exc_info=True)

        page = await load()

        if self.redis is not None:
            try:
                await self.redis.setex(  # type: ignore[union-attr]
                    key, self.policy.leaderboard_cache_ttl_seconds, json.dumps(page),
                )
            except Exception:
                logger.warning("Leaderboard cache write failed for %s", key, exc_info=True)
        return page
