"""Daily challenge lookup, client projection, solution checks and hints."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.db.models import STATUS_COMPLETED, DailyChallenge, Game, GameSession
from dgames.errors import NotFoundError
from dgames.gamification.calendar import local_today

_WHITESPACE = re.compile(r"\s+")


async def get_game_by_slug(db: AsyncSession, slug: str) -> Game:
    """Active game by slug, or NotFoundError."""
    result = await db.execute(
        select(Game).where(Game.slug == slug, Game.is_active.is_(True))
    )
    game = result.scalar_one_or_none()
    if game is None:
        raise NotFoundError(f"Game not found: {slug}")
    return game


async def get_game(db: AsyncSession, game_id: int) -> Game:
    game = await db.get(Game, game_id)
    if game is None:
        raise NotFoundError(f"Game not found: {game_id}")
    return game


async def get_today_challenge(
    db: AsyncSession, game: Game, now: datetime | None, tz: str
) -> DailyChallenge | None:
    result = await db.execute(
        select(DailyChallenge).where(
            DailyChallenge.game_id == game.id,
            DailyChallenge.challenge_date == local_today(now, tz),
            DailyChallenge.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def get_challenge_by_number(
    db: AsyncSession, game: Game, number: int
) -> DailyChallenge | None:
    result = await db.execute(
        select(DailyChallenge).where(
            DailyChallenge.game_id == game.id,
            DailyChallenge.challenge_number == number,
            DailyChallenge.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def get_challenge(
    db: AsyncSession, challenge_id: int, game_id: int | None = None
) -> DailyChallenge | None:
    query = select(DailyChallenge).where(DailyChallenge.id == challenge_id)
    if game_id is not None:
        query = query.where(DailyChallenge.game_id == game_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


def is_today(challenge: DailyChallenge, now: datetime | None, tz: str) -> bool:
    return challenge.challenge_date == local_today(now, tz)


def is_future(challenge: DailyChallenge, now: datetime | None, tz: str) -> bool:
    return challenge.challenge_date > local_today(now, tz)


def client_content(challenge: DailyChallenge) -> dict:
    """Public projection of a challenge. The solution is never included."""
    return {
        "id": challenge.id,
        "game_id": challenge.game_id,
        "challenge_number": challenge.challenge_number,
        "challenge_date": challenge.challenge_date.isoformat(),
        "difficulty": challenge.difficulty,
        "content": challenge.content,
        "hint_count": len(challenge.hints or []),
        "metadata": challenge.challenge_metadata,
    }


def _normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().lower()


def verify_solution(challenge: DailyChallenge, attempt: Any) -> bool:
    """Compare a decoded quote against the stored one.

    ``attempt`` is either the quote string or a dict carrying it under
    ``decoded`` or ``quote``. Case and runs of whitespace are ignored.
    """
    solution = challenge.solution if isinstance(challenge.solution, dict) else {}
    expected = solution.get("quote") or ""

    if isinstance(attempt, str):
        submitted = attempt
    elif isinstance(attempt, dict):
        submitted = attempt.get("decoded") or attempt.get("quote") or ""
    else:
        submitted = ""

    if not isinstance(submitted, str):
        return False
    return _normalize(expected) == _normalize(submitted)


def hint_for(
    challenge: DailyChallenge | None,
    hints_used: int,
    encoded_letter: str | None = None,
) -> dict | None:
    """Hint content for the next hint in a session.

    With ``encoded_letter``, reverse-look it up in the cipher; otherwise (or if
    the letter is not in the cipher) return the next sequential stored hint.
    """
    if challenge is None:
        return None

    if encoded_letter:
        wanted = encoded_letter.upper()
        solution = challenge.solution if isinstance(challenge.solution, dict) else {}
        for original, encoded in (solution.get("cipher") or {}).items():
            if str(encoded).upper() == wanted:
                return {"type": "letter", "encoded": wanted, "original": original}

    hints = challenge.hints or []
    if 0 <= hints_used < len(hints):
        return hints[hints_used]
    return None


async def completed_session_for(
    db: AsyncSession, player_id: int, challenge_id: int
) -> GameSession | None:
    """The player's completed session for this challenge, if any."""
    result = await db.execute(
        select(GameSession)
        .where(
            GameSession.player_id == player_id,
            GameSession.daily_challenge_id == challenge_id,
            GameSession.status == STATUS_COMPLETED,
        )
        .order_by(GameSession.completed_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def challenge_stats(db: AsyncSession, challenge_id: int) -> dict:
    """Completion count and mean completion time for a challenge."""
    result = await db.execute(
        select(
            func.count(GameSession.id),
            func.avg(GameSession.duration_seconds),
        ).where(
            GameSession.daily_challenge_id == challenge_id,
            GameSession.status == STATUS_COMPLETED,
        )
    )
    completions, average = result.one()
    return {
        "completions": int(completions or 0),
        "average_time": round(float(average)) if average is not None else 0,
    }
