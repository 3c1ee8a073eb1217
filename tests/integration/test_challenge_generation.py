"""Daily challenge pre-generation against the database."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from dgames.challenges.generator import GAME_TYPE_SORT, ContentGenerator, generate_daily_challenges, generate_for_all_games
from dgames.config import Settings
from dgames.db.models import DailyChallenge

NOON = datetime(2025, 3, 12, 18, 0, tzinfo=timezone.utc)
TZ = "America/Denver"


class SortOutage(ContentGenerator):
    async def generate(self, game_type: str, difficulty: int):
        if game_type == GAME_TYPE_SORT:
            raise RuntimeError("sort generator crashed")
        return await super().generate(game_type, difficulty)


@pytest.fixture
def offline_generator() -> ContentGenerator:
    """No API key: every game type gets its canned fallback."""
    return ContentGenerator(Settings(llm_api_key=""))


async def challenges_for(db, game_id: int) -> list[DailyChallenge]:
    result = await db.execute(
        select(DailyChallenge)
        .where(DailyChallenge.game_id == game_id)
        .order_by(DailyChallenge.challenge_date)
    )
    return list(result.scalars())


class TestGenerateDailyChallenges:
    @pytest.mark.asyncio
    async def test_generates_from_today(self, db_session, games, offline_generator):
        game = games["decode-daily"]
        created = await generate_daily_challenges(db_session, offline_generator, game, 3, TZ, now=NOON)

        assert [c.challenge_date for c in created] == [date(2025, 3, 12), date(2025, 3, 13), date(2025, 3, 14)]
        assert [c.challenge_number for c in created] == [1, 2, 3]
        assert [c.difficulty for c in created] == [2, 2, 3]
        assert all(c.generated_by == "fallback" for c in created)
        assert created[0].solution["quote"].startswith("THE ONLY WAY")

    @pytest.mark.asyncio
    async def test_rerun_is_a_noop(self, db_session, games, offline_generator):
        game = games["decode-daily"]
        await generate_daily_challenges(db_session, offline_generator, game, 3, TZ, now=NOON)
        again = await generate_daily_challenges(db_session, offline_generator, game, 3, TZ, now=NOON)

        assert again == []
        assert len(await challenges_for(db_session, game.id)) == 3

    @pytest.mark.asyncio
    async def test_numbers_continue_and_gaps_are_filled(
        self, db_session, games, offline_generator, challenge_factory
    ):
        game = games["decode-daily"]
        await challenge_factory(date(2025, 3, 1), number=9)
        await challenge_factory(date(2025, 3, 13), number=10)

        created = await generate_daily_challenges(db_session, offline_generator, game, 3, TZ, now=NOON)

        assert [(c.challenge_date, c.challenge_number) for c in created] == [
            (date(2025, 3, 12), 11),
            (date(2025, 3, 14), 12),
        ]


class TestGenerateForAllGames:
    @pytest.mark.asyncio
    async def test_one_failing_game_does_not_stop_the_rest(self, db_session, games):
        generator = SortOutage(Settings(llm_api_key=""))
        sort_id, crunch_id = games["stack-sort"].id, games["number-crunch"].id

        summary = await generate_for_all_games(db_session, generator, 2, TZ, now=NOON)

        assert summary == {"decode-daily": 2, "stack-sort": "error", "number-crunch": 2}
        assert await challenges_for(db_session, sort_id) == []
        assert len(await challenges_for(db_session, crunch_id)) == 2
