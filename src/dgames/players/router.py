"""Player profile, achievements, history and streak endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.auth.dependencies import get_current_player
from dgames.config import PlatformPolicy
from dgames.database import get_session
from dgames.db.models import DailyChallenge, Game, Player, Streak, User
from dgames.dependencies import get_policy, get_redis_dep
from dgames.gamification.achievement_service import AchievementEvaluator
from dgames.gamification.streak_service import evaluate_status
from dgames.players import service as player_service
from dgames.players.schemas import (
    GameRef,
    HistoryItem,
    HistoryResponse,
    PlayerAchievementItem,
    PlayerAchievementsResponse,
    PlayerProfile,
    PlayerResponse,
    PlayerStreakItem,
    PlayerStreaksResponse,
    PlayerUpdateRequest,
    PreferencesResponse,
    PreferencesUpdateRequest,
)
from dgames.sessions.service import SessionService

router = APIRouter(prefix="/api/v1/player", tags=["Player"])


def _profile(player: Player, member_since=None) -> PlayerProfile:
    return PlayerProfile(
        id=player.id,
        display_name=player.display_name,
        avatar_id=player.avatar_id,
        hints_balance=player.hints_balance,
        streak_freezes=player.streak_freezes,
        member_since=member_since,
    )


@router.get("", response_model=PlayerResponse)
async def get_player(
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    policy: PlatformPolicy = Depends(get_policy),
):
    """Profile, balances and per-game stats."""
    user = await db.get(User, player.user_id)
    stats = await SessionService(db, redis, policy).get_player_stats(player)
    return PlayerResponse(
        player=_profile(player, user.created_at if user else None),
        stats=stats,
    )


@router.patch("", response_model=PlayerProfile)
async def update_player(
    body: PlayerUpdateRequest,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
):
    """Update display name and avatar."""
    player = await player_service.update_profile(db, player, body.display_name, body.avatar_id)
    return _profile(player)


@router.patch("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesUpdateRequest,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
):
    player = await player_service.update_preferences(db, player, body.model_dump(exclude_none=True))
    return PreferencesResponse(preferences=player.preferences or {})


@router.get("/achievements", response_model=PlayerAchievementsResponse)
async def get_achievements(
    game_id: int | None = Query(None),
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
):
    """Unlocked achievements, newest first."""
    evaluator = AchievementEvaluator(db)
    unlocks = await evaluator.list_player_achievements(player.id, game_id)
    items = [
        PlayerAchievementItem(
            id=pa.achievement.id,
            slug=pa.achievement.slug,
            name=pa.achievement.name,
            description=pa.achievement.description,
            icon=pa.achievement.icon,
            category=pa.achievement.category,
            points=pa.achievement.points,
            unlocked_at=pa.unlocked_at,
            game_id=pa.game_id,
        )
        for pa in unlocks
    ]
    return PlayerAchievementsResponse(
        achievements=items,
        total_points=await evaluator.player_points(player.id),
        count=len(items),
    )


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    game_id: int | None = Query(None),
    limit: int = Query(20, ge=1),
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    policy: PlatformPolicy = Depends(get_policy),
):
    """Completed sessions, newest first. At most 100."""
    sessions = await SessionService(db, redis, policy).history(player, game_id, min(limit, 100))

    game_ids = {s.game_id for s in sessions}
    challenge_ids = {s.daily_challenge_id for s in sessions if s.daily_challenge_id}
    games = {
        g.id: g for g in (await db.execute(select(Game).where(Game.id.in_(game_ids)))).scalars()
    } if game_ids else {}
    numbers = dict((await db.execute(
        select(DailyChallenge.id, DailyChallenge.challenge_number).where(DailyChallenge.id.in_(challenge_ids))
    )).all()) if challenge_ids else {}

    items = []
    for s in sessions:
        game = games.get(s.game_id)
        items.append(HistoryItem(
            id=s.id,
            game=GameRef(id=game.id, slug=game.slug, name=game.name) if game else None,
            challenge_number=numbers.get(s.daily_challenge_id),
            session_type=s.session_type,
            score=s.score,
            duration=s.duration_formatted,
            duration_seconds=s.duration_seconds,
            hints_used=s.hints_used,
            completed_at=s.completed_at,
        ))
    return HistoryResponse(sessions=items)


@router.get("/streaks", response_model=PlayerStreaksResponse)
async def get_streaks(
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
):
    """Streaks across all games with their current status."""
    result = await db.execute(
        select(Streak, Game)
        .join(Game, Game.id == Streak.game_id)
        .where(Streak.player_id == player.id)
        .order_by(Game.id)
    )
    items = [
        PlayerStreakItem(
            game=GameRef(id=game.id, slug=game.slug, name=game.name),
            current_streak=streak.current_streak,
            longest_streak=streak.longest_streak,
            status=evaluate_status(streak, None, policy).status,
            last_completed=streak.last_completed_date,
        )
        for streak, game in result.all()
    ]
    return PlayerStreaksResponse(streaks=items, freezes_available=player.streak_freezes)
