"""Game catalog, daily challenges and leaderboards."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.auth.dependencies import get_current_player, get_optional_player
from dgames.challenges import challenge_service
from dgames.config import PlatformPolicy
from dgames.database import get_session
from dgames.db.models import Game, Player, PlayerProgress, Streak
from dgames.dependencies import get_policy, get_redis_dep
from dgames.gamification.achievement_service import AchievementEvaluator
from dgames.gamification.level_curve import xp_to_next_level
from dgames.gamification.streak_service import evaluate_status
from dgames.games.schemas import (
    AchievementResponse,
    ArchivedChallengeResponse,
    ChallengeContent,
    ChallengeLeaderboardResponse,
    ChallengeStats,
    DailyChallengeResponse,
    GameDetailResponse,
    GameListItem,
    GameListResponse,
    GamePlayerDetail,
    GamePlayerSummary,
    LeaderboardResponse,
    LeaderboardRow,
    PlayerRankResponse,
    StreakStatusResponse,
)
from dgames.leaderboard.service import PERIOD_DAILY, PERIODS, LeaderboardService

router = APIRouter(prefix="/api/v1", tags=["Games"])


async def _progress_and_streak(
    db: AsyncSession, player_id: int, game_id: int
) -> tuple[PlayerProgress | None, Streak | None]:
    progress = (await db.execute(
        select(PlayerProgress).where(
            PlayerProgress.player_id == player_id, PlayerProgress.game_id == game_id
        )
    )).scalar_one_or_none()
    streak = (await db.execute(
        select(Streak).where(Streak.player_id == player_id, Streak.game_id == game_id)
    )).scalar_one_or_none()
    return progress, streak


# ── Public endpoints ──


@router.get("/games", response_model=GameListResponse)
async def list_games(
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
    player: Player | None = Depends(get_optional_player),
):
    """All active games, with the caller's progress when authenticated."""
    result = await db.execute(select(Game).where(Game.is_active.is_(True)).order_by(Game.id))
    games = result.scalars().all()

    items = []
    for game in games:
        item = GameListItem(
            id=game.id,
            slug=game.slug,
            name=game.name,
            type=game.type,
            description=game.description,
            daily_enabled=game.daily_enabled,
            has_leaderboard=game.has_leaderboard,
        )
        if player is not None:
            progress, streak = await _progress_and_streak(db, player.id, game.id)
            item.player = GamePlayerSummary(
                level=progress.level if progress else 1,
                games_played=progress.games_played if progress else 0,
                current_streak=streak.current_streak if streak else 0,
                last_played=progress.last_played_at if progress else None,
            )
            if game.daily_enabled:
                today = await challenge_service.get_today_challenge(db, game, None, policy.timezone)
                item.daily_completed_today = (
                    today is not None
                    and await challenge_service.completed_session_for(db, player.id, today.id) is not None
                )
        items.append(item)

    return GameListResponse(games=items)


@router.get("/games/{slug}", response_model=GameDetailResponse)
async def get_game(
    slug: str,
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
    player: Player | None = Depends(get_optional_player),
):
    """Game details, visible achievements and the caller's progress."""
    game = await challenge_service.get_game_by_slug(db, slug)
    catalog = await AchievementEvaluator(db).list_catalog(game.id)

    response = GameDetailResponse(
        id=game.id,
        slug=game.slug,
        name=game.name,
        type=game.type,
        description=game.description,
        daily_enabled=game.daily_enabled,
        has_leaderboard=game.has_leaderboard,
        settings=game.settings,
        achievements=[
            AchievementResponse(
                id=a.id, slug=a.slug, name=a.name, description=a.description,
                icon=a.icon, category=a.category, points=a.points,
            )
            for a in catalog
        ],
    )

    if player is not None:
        progress, streak = await _progress_and_streak(db, player.id, game.id)
        level = progress.level if progress else 1
        xp = progress.experience_points if progress else 0
        response.player = GamePlayerDetail(
            level=level,
            experience=xp,
            xp_to_next=xp_to_next_level(level, xp, policy),
            games_played=progress.games_played if progress else 0,
            games_won=progress.games_won if progress else 0,
            best_score=progress.best_score if progress else None,
            daily_completed=progress.daily_challenges_completed if progress else 0,
            current_streak=streak.current_streak if streak else 0,
            longest_streak=streak.longest_streak if streak else 0,
        )
        if streak is not None:
            response.streak_status = StreakStatusResponse(**evaluate_status(streak, None, policy).to_dict())

    return response


@router.get("/games/{slug}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    slug: str,
    period: str = Query(PERIOD_DAILY),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    policy: PlatformPolicy = Depends(get_policy),
    player: Player | None = Depends(get_optional_player),
):
    """Ranked entries for the current period bucket. Unknown periods fall back to daily."""
    game = await challenge_service.get_game_by_slug(db, slug)
    if not game.has_leaderboard:
        raise HTTPException(status_code=404, detail="Leaderboard not available")
    if period not in PERIODS:
        period = PERIOD_DAILY

    service = LeaderboardService(db, redis, policy)
    rows = await service.get_leaderboard(game.id, period, limit)

    player_rank = None
    if player is not None:
        rank = await service.get_player_rank(player.id, game.id, period)
        if rank is not None:
            player_rank = PlayerRankResponse(**rank.to_dict())

    return LeaderboardResponse(
        period=period,
        leaderboard=[LeaderboardRow(**row) for row in rows],
        player_rank=player_rank,
    )


@router.get(
    "/games/{slug}/challenges/{challenge_id}/leaderboard",
    response_model=ChallengeLeaderboardResponse,
)
async def get_challenge_leaderboard(
    slug: str,
    challenge_id: int,
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    policy: PlatformPolicy = Depends(get_policy),
):
    """Best result per player on one daily challenge."""
    game = await challenge_service.get_game_by_slug(db, slug)
    challenge = await challenge_service.get_challenge(db, challenge_id, game_id=game.id)
    if challenge is None:
        raise HTTPException(status_code=404, detail="Challenge not found")

    rows = await LeaderboardService(db, redis, policy).get_challenge_leaderboard(challenge.id, limit)
    return ChallengeLeaderboardResponse(
        challenge_number=challenge.challenge_number,
        challenge_date=challenge.challenge_date.isoformat(),
        leaderboard=[LeaderboardRow(**row) for row in rows],
    )


# ── Authenticated endpoints ──


@router.get("/games/{slug}/daily", response_model=DailyChallengeResponse)
async def get_daily_challenge(
    slug: str,
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
    player: Player = Depends(get_current_player),
):
    """Today's challenge in the platform timezone."""
    game = await challenge_service.get_game_by_slug(db, slug)
    if not game.daily_enabled:
        raise HTTPException(status_code=400, detail="Daily challenges not enabled for this game")

    challenge = await challenge_service.get_today_challenge(db, game, None, policy.timezone)
    if challenge is None:
        raise HTTPException(status_code=404, detail="No challenge available today")

    previous = await challenge_service.completed_session_for(db, player.id, challenge.id)
    stats = await challenge_service.challenge_stats(db, challenge.id)
    return DailyChallengeResponse(
        challenge=ChallengeContent(**challenge_service.client_content(challenge)),
        completed=previous is not None,
        previous_score=previous.score if previous else None,
        stats=ChallengeStats(**stats),
    )


@router.get("/games/{slug}/challenge/{number}", response_model=ArchivedChallengeResponse)
async def get_challenge_by_number(
    slug: str,
    number: int,
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
    player: Player = Depends(get_current_player),
):
    """A past challenge from the archive. Future challenges are not served."""
    game = await challenge_service.get_game_by_slug(db, slug)
    challenge = await challenge_service.get_challenge_by_number(db, game, number)
    if challenge is None:
        raise HTTPException(status_code=404, detail="Challenge not found")
    if challenge_service.is_future(challenge, None, policy.timezone):
        raise HTTPException(status_code=403, detail="Challenge not yet available")

    previous = await challenge_service.completed_session_for(db, player.id, challenge.id)
    return ArchivedChallengeResponse(
        challenge=ChallengeContent(**challenge_service.client_content(challenge)),
        completed=previous is not None,
        previous_score=previous.score if previous else None,
        is_today=challenge_service.is_today(challenge, None, policy.timezone),
    )
