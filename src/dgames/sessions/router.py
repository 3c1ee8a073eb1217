"""Session lifecycle, hint and reward endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.auth.dependencies import get_current_player
from dgames.challenges import challenge_service
from dgames.config import PlatformPolicy
from dgames.database import get_session
from dgames.db.models import GameSession, Player
from dgames.dependencies import get_policy, get_redis_dep
from dgames.errors import InsufficientBalanceError, SessionConflictError
from dgames.games.schemas import PlayerRankResponse, StreakStatusResponse
from dgames.gamification.streak_service import STATUS_FROZEN_TODAY
from dgames.sessions.schemas import (
    AdWatchedRequest,
    AdWatchedResponse,
    CompletedSession,
    HintRequest,
    HintResponse,
    SessionCompleteRequest,
    SessionCompleteResponse,
    SessionProgressResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionStatusResponse,
    SessionSummary,
    SessionUpdateRequest,
    StreakFreezeRequest,
    StreakFreezeResponse,
    StreakUpdateResponse,
    UnlockedAchievementResponse,
)
from dgames.sessions.service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Sessions"])


def _service(
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    policy: PlatformPolicy = Depends(get_policy),
) -> SessionService:
    return SessionService(db, redis, policy)


def _progress(session: GameSession) -> SessionProgressResponse:
    return SessionProgressResponse(
        id=session.id,
        status=session.status,
        completion_percentage=session.completion_percentage,
        moves_count=session.moves_count,
        mistakes_count=session.mistakes_count,
    )


@router.post("/sessions", response_model=SessionStartResponse, status_code=201)
async def start_session(
    body: SessionStartRequest,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    """Start a session. Any unfinished session for the same game is abandoned."""
    game = await challenge_service.get_game(service.db, body.game_id)
    challenge = None
    if body.challenge_id is not None:
        challenge = await challenge_service.get_challenge(service.db, body.challenge_id)
        if challenge is None:
            raise HTTPException(status_code=404, detail="Challenge not found")

    started = await service.start_session(
        player, game, body.session_type, challenge=challenge, device_info=body.device_info
    )
    session = started.session
    return SessionStartResponse(
        session=SessionSummary(
            id=session.id,
            game_id=session.game_id,
            session_type=session.session_type,
            status=session.status,
            started_at=session.started_at,
        ),
        streak=StreakStatusResponse(**started.streak_status.to_dict()) if started.streak_status else None,
        hints_available=started.hints_available,
    )


@router.patch("/sessions/{session_id}", response_model=SessionProgressResponse)
async def update_session(
    session_id: int,
    body: SessionUpdateRequest,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    session = await service.get_player_session(session_id, player.id)
    session = await service.update_session(
        session,
        completion_percentage=body.completion_percentage,
        moves_count=body.moves_count,
        mistakes_count=body.mistakes_count,
        data=body.session_data,
    )
    return _progress(session)


@router.post("/sessions/{session_id}/complete", response_model=SessionCompleteResponse)
async def complete_session(
    session_id: int,
    body: SessionCompleteRequest,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    """Settle the session and return every reward it produced.

    For daily sessions a submitted ``solution`` is checked first; a wrong
    answer is rejected without changing anything.
    """
    session = await service.get_player_session(session_id, player.id)
    if session.is_terminal:
        raise SessionConflictError(f"Session is already {session.status}")

    if session.daily_challenge_id is not None and body.solution is not None:
        challenge = await challenge_service.get_challenge(service.db, session.daily_challenge_id)
        if challenge is not None and not challenge_service.verify_solution(challenge, body.solution):
            raise HTTPException(status_code=400, detail={"message": "Incorrect solution", "correct": False})

    result = await service.complete_session(session, body.score, body.session_data)
    settled = result.session
    return SessionCompleteResponse(
        session=CompletedSession(
            id=settled.id,
            score=settled.score,
            duration=settled.duration_formatted,
            duration_seconds=settled.duration_seconds,
            hints_used=settled.hints_used,
            percentile=await service.score_percentile(settled),
        ),
        streak=StreakUpdateResponse(**result.streak.to_dict()) if result.streak else None,
        achievements=[UnlockedAchievementResponse(**a.to_dict()) for a in result.achievements],
        level_up=result.level_up,
        new_level=result.new_level,
        xp_earned=result.xp_earned,
        hints_earned=result.hints_earned,
        leaderboard_rank=(
            PlayerRankResponse(**result.leaderboard_rank.to_dict()) if result.leaderboard_rank else None
        ),
    )


@router.post("/sessions/{session_id}/abandon", response_model=SessionStatusResponse)
async def abandon_session(
    session_id: int,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    session = await service.get_player_session(session_id, player.id)
    session = await service.abandon_session(session)
    return SessionStatusResponse(id=session.id, status=session.status)


@router.post("/sessions/{session_id}/fail", response_model=SessionStatusResponse)
async def fail_session(
    session_id: int,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    """End the session as a loss."""
    session = await service.get_player_session(session_id, player.id)
    session = await service.fail_session(session)
    return SessionStatusResponse(id=session.id, status=session.status)


@router.post("/sessions/{session_id}/pause", response_model=SessionStatusResponse)
async def pause_session(
    session_id: int,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    session = await service.get_player_session(session_id, player.id)
    session = await service.pause_session(session)
    return SessionStatusResponse(id=session.id, status=session.status)


@router.post("/sessions/{session_id}/resume", response_model=SessionStatusResponse)
async def resume_session(
    session_id: int,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    session = await service.get_player_session(session_id, player.id)
    session = await service.resume_session(session)
    return SessionStatusResponse(id=session.id, status=session.status)


@router.post("/sessions/{session_id}/hint", response_model=HintResponse)
async def use_hint(
    session_id: int,
    body: HintRequest,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    """Spend hints and return the hint content for daily challenges."""
    session = await service.get_player_session(session_id, player.id)

    hint = None
    if session.daily_challenge_id is not None:
        challenge = await challenge_service.get_challenge(service.db, session.daily_challenge_id)
        hint = challenge_service.hint_for(challenge, session.hints_used, body.encoded_letter)

    if not await service.use_hint(player, session, body.hint_type):
        raise InsufficientBalanceError(
            f"Not enough hints: cost {service.policy.hint_cost(body.hint_type)}, "
            f"available {player.hints_balance}"
        )

    return HintResponse(
        hints_remaining=player.hints_balance,
        hints_used_in_session=session.hints_used,
        hint=hint,
    )


@router.post("/streak-freeze", response_model=StreakFreezeResponse)
async def use_streak_freeze(
    body: StreakFreezeRequest,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    """Protect today's streak for a game with one freeze."""
    game = await challenge_service.get_game(service.db, body.game_id)
    if player.streak_freezes <= 0:
        raise InsufficientBalanceError("No streak freezes available")

    if not await service.use_streak_freeze(player, game):
        raise HTTPException(status_code=400, detail="Cannot use freeze right now")

    streak = await service.get_streak(player.id, game.id)
    return StreakFreezeResponse(
        freezes_remaining=player.streak_freezes,
        current_streak=streak.current_streak if streak else 0,
        status=STATUS_FROZEN_TODAY,
    )


@router.post("/ad-watched", response_model=AdWatchedResponse)
async def record_ad_watched(
    body: AdWatchedRequest,
    player: Player = Depends(get_current_player),
    service: SessionService = Depends(_service),
):
    """Credit a rewarded-ad payout."""
    player = await service.record_ad_watched(player, body.reward_type, body.amount)
    logger.info(
        "Ad reward: player=%s type=%s amount=%d network=%s",
        player.id, body.reward_type, body.amount, body.ad_network,
    )
    return AdWatchedResponse(
        reward_type=body.reward_type,
        amount=body.amount,
        hints_balance=player.hints_balance,
        streak_freezes=player.streak_freezes,
    )
