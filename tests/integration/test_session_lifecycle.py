"""Session intake and state transitions."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from dgames.db.models import GameSession, PlayerProgress
from dgames.errors import InvalidInputError, NotFoundError, SessionConflictError
from dgames.sessions.service import SessionService

pytestmark = pytest.mark.asyncio

NOON = datetime(2025, 3, 12, 18, 0, tzinfo=timezone.utc)


async def statuses(db) -> dict[int, str]:
    result = await db.execute(select(GameSession.id, GameSession.status))
    return dict(result.all())


class TestStartSession:
    async def test_new_session_abandons_open_ones_for_same_game(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        decode, sort = games["decode-daily"], games["stack-sort"]

        first = (await service.start_session(player, decode, now=NOON)).session
        other_game = (await service.start_session(player, sort, now=NOON)).session
        second = (await service.start_session(player, decode, now=NOON + timedelta(minutes=1))).session

        assert first.status == "abandoned"
        assert first.completed_at == NOON + timedelta(minutes=1)
        assert second.status == "active"
        assert other_game.status == "active"

        await service.pause_session(second)
        third = (await service.start_session(player, decode, now=NOON + timedelta(minutes=2))).session
        current = await statuses(db_session)
        assert current[second.id] == "abandoned"
        assert second.status == "abandoned"
        assert second.completed_at == NOON + timedelta(minutes=2)
        assert current[third.id] == "active"

    async def test_challenge_forces_daily(self, db_session, policy, player, games, challenge_factory):
        challenge = await challenge_factory(date(2025, 3, 12))
        service = SessionService(db_session, None, policy)
        started = await service.start_session(player, games["decode-daily"], "practice", challenge=challenge, now=NOON)
        assert started.session.session_type == "daily"
        assert started.session.daily_challenge_id == challenge.id
        assert started.streak_status is not None

    async def test_challenge_from_other_game(self, db_session, policy, player, games, challenge_factory):
        challenge = await challenge_factory(date(2025, 3, 12))
        service = SessionService(db_session, None, policy)
        with pytest.raises(InvalidInputError):
            await service.start_session(player, games["stack-sort"], challenge=challenge, now=NOON)

    async def test_unknown_type(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        with pytest.raises(InvalidInputError):
            await service.start_session(player, games["stack-sort"], "marathon", now=NOON)


class TestTransitions:
    async def test_update_progress(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        session = (await service.start_session(player, games["stack-sort"], now=NOON)).session

        await service.update_session(session, completion_percentage=40, moves_count=12, data={"board": [1]})
        await service.update_session(session, mistakes_count=2, data={"undo": 1})

        assert session.completion_percentage == 40
        assert session.moves_count == 12
        assert session.mistakes_count == 2
        assert session.session_data == {"board": [1], "undo": 1}

    async def test_update_validation(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        session = (await service.start_session(player, games["stack-sort"], now=NOON)).session
        with pytest.raises(InvalidInputError):
            await service.update_session(session, completion_percentage=101)
        with pytest.raises(InvalidInputError):
            await service.update_session(session, moves_count=-1)

        await service.pause_session(session)
        with pytest.raises(SessionConflictError):
            await service.update_session(session, moves_count=3)

    async def test_pause_resume(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        session = (await service.start_session(player, games["stack-sort"], now=NOON)).session

        await service.pause_session(session)
        assert session.status == "paused"
        with pytest.raises(SessionConflictError):
            await service.pause_session(session)

        await service.resume_session(session, now=NOON)
        assert session.status == "active"
        with pytest.raises(SessionConflictError):
            await service.resume_session(session, now=NOON)

    async def test_fail_counts_as_played_not_won(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        session = (await service.start_session(player, games["stack-sort"], now=NOON)).session

        await service.fail_session(session, now=NOON + timedelta(seconds=45))

        assert session.status == "failed"
        assert session.duration_seconds == 45
        progress = (await db_session.execute(select(PlayerProgress))).scalar_one()
        assert progress.games_played == 1
        assert progress.games_won == 0
        assert progress.experience_points == 0

    async def test_terminal_states_are_final(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        session = (await service.start_session(player, games["stack-sort"], now=NOON)).session
        await service.abandon_session(session, now=NOON)

        with pytest.raises(SessionConflictError):
            await service.abandon_session(session)
        with pytest.raises(SessionConflictError):
            await service.fail_session(session)
        with pytest.raises(SessionConflictError):
            await service.complete_session(session, 100)

    async def test_other_players_session_is_not_found(self, db_session, policy, player, player_factory, games):
        service = SessionService(db_session, None, policy)
        session = (await service.start_session(player, games["stack-sort"], now=NOON)).session
        intruder = await player_factory("other@example.com")
        with pytest.raises(NotFoundError):
            await service.get_player_session(session.id, intruder.id)


class TestQueries:
    async def test_history_and_stats(self, db_session, policy, player, games):
        service = SessionService(db_session, None, policy)
        game = games["stack-sort"]
        for offset in range(3):
            start = NOON + timedelta(minutes=10 * offset)
            session = (await service.start_session(player, game, now=start)).session
            await service.complete_session(session, 100 * (offset + 1), now=start + timedelta(seconds=60))

        history = await service.history(player, limit=2)
        assert [s.score for s in history] == [300, 200]

        stats = await service.get_player_stats(player)
        assert stats["overall"]["total_games"] == 3
        assert stats["overall"]["achievements_count"] > 0
        sort_stats = stats["games"]["stack-sort"]
        assert sort_stats["games_won"] == 3
        assert sort_stats["best_score"] == 300
        assert sort_stats["average_score"] == 200
        assert sort_stats["win_rate"] == 100.0
        assert sort_stats["current_streak"] == 0
