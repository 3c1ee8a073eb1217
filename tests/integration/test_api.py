"""HTTP surface: the daily loop end to end, plus rewards and archive access."""

from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from dgames.gamification.calendar import local_today

QUOTE = "THE ONLY WAY TO DO GREAT WORK IS TO LOVE WHAT YOU DO"


async def start(client: AsyncClient, game_id: int, **extra) -> dict:
    response = await client.post("/api/v1/sessions", json={"game_id": game_id, **extra})
    assert response.status_code == 201, response.text
    return response.json()


class TestCatalog:
    @pytest.mark.asyncio
    async def test_list_games_anonymous(self, client, games):
        response = await client.get("/api/v1/games")
        assert response.status_code == 200
        listed = response.json()["games"]
        assert [g["slug"] for g in listed] == ["decode-daily", "stack-sort", "number-crunch"]
        assert all(g["player"] is None for g in listed)

    @pytest.mark.asyncio
    async def test_game_detail_hides_hidden_achievements(self, client, games):
        response = await client.get("/api/v1/games/decode-daily")
        assert response.status_code == 200
        slugs = {a["slug"] for a in response.json()["achievements"]}
        assert "first-win" in slugs
        assert "decode-first-letter" in slugs
        assert "streak-365" not in slugs
        assert "decode-no-vowels" not in slugs

    @pytest.mark.asyncio
    async def test_unknown_period_falls_back_to_daily(self, client, games):
        response = await client.get("/api/v1/games/stack-sort/leaderboard", params={"period": "hourly"})
        assert response.status_code == 200
        assert response.json() == {"period": "daily", "leaderboard": [], "player_rank": None}


class TestDailyLoop:
    @pytest.mark.asyncio
    async def test_play_todays_challenge(self, authed_client, games, todays_challenge):
        client = authed_client
        game_id = games["decode-daily"].id

        daily = (await client.get("/api/v1/games/decode-daily/daily")).json()
        assert daily["completed"] is False
        assert daily["challenge"]["id"] == todays_challenge.id
        assert "solution" not in daily["challenge"]
        assert QUOTE not in str(daily)

        started = await start(client, game_id, challenge_id=todays_challenge.id)
        assert started["session"]["session_type"] == "daily"
        assert started["streak"]["status"] == "none"
        assert started["hints_available"] == 3
        session_id = started["session"]["id"]

        hint = (await client.post(f"/api/v1/sessions/{session_id}/hint", json={"hint_type": "reveal_letter"})).json()
        assert hint["hint"]["original"] == "T"
        assert hint["hints_remaining"] == 2
        assert hint["hints_used_in_session"] == 1

        wrong = await client.post(
            f"/api/v1/sessions/{session_id}/complete", json={"score": 500, "solution": "NOT IT"}
        )
        assert wrong.status_code == 400
        assert wrong.json()["detail"] == {"message": "Incorrect solution", "correct": False}

        done = await client.post(
            f"/api/v1/sessions/{session_id}/complete",
            json={"score": 500, "solution": {"decoded": QUOTE.lower()}},
        )
        assert done.status_code == 200, done.text
        body = done.json()
        assert body["streak"] == {"current": 1, "extended": True, "milestone": None}
        assert body["session"]["percentile"] == 100.0
        assert body["session"]["hints_used"] == 1
        assert body["xp_earned"] >= 50
        assert body["leaderboard_rank"]["rank"] == 1
        slugs = {a["slug"] for a in body["achievements"]}
        assert "first-win" in slugs
        assert "no-hints" not in slugs

        again = await client.post(f"/api/v1/sessions/{session_id}/complete", json={"score": 900})
        assert again.status_code == 409

        daily = (await client.get("/api/v1/games/decode-daily/daily")).json()
        assert daily["completed"] is True
        assert daily["previous_score"] == 500
        assert daily["stats"]["completions"] == 1

        board = (await client.get("/api/v1/games/decode-daily/leaderboard")).json()
        assert [row["score"] for row in board["leaderboard"]] == [500]
        assert board["player_rank"]["rank"] == 1

        challenge_board = (
            await client.get(f"/api/v1/games/decode-daily/challenges/{todays_challenge.id}/leaderboard")
        ).json()
        assert challenge_board["challenge_number"] == 1
        assert len(challenge_board["leaderboard"]) == 1

        listed = (await client.get("/api/v1/games")).json()["games"]
        assert listed[0]["daily_completed_today"] is True
        assert listed[0]["player"]["current_streak"] == 1

        detail = (await client.get("/api/v1/games/decode-daily")).json()
        assert detail["streak_status"]["status"] == "completed_today"
        assert detail["player"]["games_won"] == 1

        history = (await client.get("/api/v1/player/history")).json()["sessions"]
        assert len(history) == 1
        assert history[0]["challenge_number"] == 1
        assert history[0]["game"]["slug"] == "decode-daily"

        streaks = (await client.get("/api/v1/player/streaks")).json()
        assert streaks["streaks"][0]["status"] == "completed_today"

        achievements = (await client.get("/api/v1/player/achievements")).json()
        assert achievements["count"] == len(body["achievements"])
        assert achievements["total_points"] > 0

        profile = (await client.get("/api/v1/player")).json()
        assert profile["player"]["hints_balance"] == 2
        assert profile["stats"]["overall"]["total_games"] == 1
        assert profile["stats"]["games"]["decode-daily"]["daily_completed"] == 1

    @pytest.mark.asyncio
    async def test_no_challenge_today(self, authed_client, games):
        response = await authed_client.get("/api/v1/games/decode-daily/daily")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_archive_access(self, authed_client, games, policy, challenge_factory):
        today = local_today(None, policy.timezone)
        await challenge_factory(today - timedelta(days=1), number=1)
        await challenge_factory(today + timedelta(days=1), number=2)

        past = await authed_client.get("/api/v1/games/decode-daily/challenge/1")
        assert past.status_code == 200
        assert past.json()["is_today"] is False

        future = await authed_client.get("/api/v1/games/decode-daily/challenge/2")
        assert future.status_code == 403

        missing = await authed_client.get("/api/v1/games/decode-daily/challenge/99")
        assert missing.status_code == 404


class TestSessionEndpoints:
    @pytest.mark.asyncio
    async def test_pause_resume_abandon(self, authed_client, games):
        session_id = (await start(authed_client, games["stack-sort"].id))["session"]["id"]

        paused = await authed_client.post(f"/api/v1/sessions/{session_id}/pause")
        assert paused.json() == {"id": session_id, "status": "paused"}

        update = await authed_client.patch(f"/api/v1/sessions/{session_id}", json={"moves_count": 3})
        assert update.status_code == 409

        resumed = await authed_client.post(f"/api/v1/sessions/{session_id}/resume")
        assert resumed.json()["status"] == "active"

        update = await authed_client.patch(
            f"/api/v1/sessions/{session_id}", json={"moves_count": 3, "completion_percentage": 50}
        )
        assert update.json()["moves_count"] == 3

        abandoned = await authed_client.post(f"/api/v1/sessions/{session_id}/abandon")
        assert abandoned.json()["status"] == "abandoned"
        assert (await authed_client.post(f"/api/v1/sessions/{session_id}/abandon")).status_code == 409

    @pytest.mark.asyncio
    async def test_fail(self, authed_client, games):
        session_id = (await start(authed_client, games["number-crunch"].id))["session"]["id"]
        failed = await authed_client.post(f"/api/v1/sessions/{session_id}/fail")
        assert failed.json()["status"] == "failed"

    @pytest.mark.asyncio
    async def test_unknown_game_and_session(self, authed_client, games):
        response = await authed_client.post("/api/v1/sessions", json={"game_id": 999})
        assert response.status_code == 404
        assert (await authed_client.post("/api/v1/sessions/999/pause")).status_code == 404

    @pytest.mark.asyncio
    async def test_hint_without_balance(self, authed_client, games):
        session_id = (await start(authed_client, games["stack-sort"].id))["session"]["id"]
        first = await authed_client.post(f"/api/v1/sessions/{session_id}/hint", json={"hint_type": "skip_puzzle"})
        assert first.json()["hints_remaining"] == 0

        second = await authed_client.post(f"/api/v1/sessions/{session_id}/hint", json={"hint_type": "reveal_letter"})
        assert second.status_code == 400
        assert second.json()["detail"].startswith("Not enough hints")


class TestRewards:
    @pytest.mark.asyncio
    async def test_ad_rewards(self, authed_client, games):
        hints = await authed_client.post("/api/v1/ad-watched", json={"reward_type": "hints", "amount": 2})
        assert hints.json()["hints_balance"] == 5

        freezes = await authed_client.post("/api/v1/ad-watched", json={"reward_type": "streak_freeze", "amount": 5})
        assert freezes.json()["streak_freezes"] == 5

        too_many = await authed_client.post("/api/v1/ad-watched", json={"reward_type": "hints", "amount": 6})
        assert too_many.status_code == 422

    @pytest.mark.asyncio
    async def test_streak_freeze(self, authed_client, games):
        game_id = games["decode-daily"].id
        used = await authed_client.post("/api/v1/streak-freeze", json={"game_id": game_id})
        assert used.status_code == 200
        assert used.json() == {"freezes_remaining": 0, "current_streak": 0, "status": "frozen_today"}

        empty = await authed_client.post("/api/v1/streak-freeze", json={"game_id": game_id})
        assert empty.status_code == 400

        detail = (await authed_client.get("/api/v1/games/decode-daily")).json()
        assert detail["streak_status"]["status"] == "frozen_today"


class TestProfile:
    @pytest.mark.asyncio
    async def test_update_profile_and_preferences(self, authed_client):
        profile = await authed_client.patch("/api/v1/player", json={"display_name": "Quinn", "avatar_id": "owl"})
        assert profile.json()["display_name"] == "Quinn"
        assert profile.json()["avatar_id"] == "owl"

        prefs = await authed_client.patch("/api/v1/player/preferences", json={"sound_enabled": False})
        assert prefs.json() == {"preferences": {"sound_enabled": False}}
        prefs = await authed_client.patch("/api/v1/player/preferences", json={"dark_mode": True})
        assert prefs.json()["preferences"] == {"sound_enabled": False, "dark_mode": True}

    @pytest.mark.asyncio
    async def test_player_created_lazily(self, client, db_session, policy):
        from dgames.auth.jwt import create_access_token
        from dgames.db.models import User

        user = User(email="new@example.com", display_name=None)
        db_session.add(user)
        await db_session.commit()

        response = await client.get(
            "/api/v1/player", headers={"Authorization": f"Bearer {create_access_token(user.id)}"}
        )
        assert response.status_code == 200
        data = response.json()["player"]
        assert data["display_name"] == "Player"
        assert data["hints_balance"] == policy.initial_hints
        assert data["streak_freezes"] == policy.streak_initial_freezes

    @pytest.mark.asyncio
    async def test_bad_token(self, client):
        response = await client.get("/api/v1/player", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
