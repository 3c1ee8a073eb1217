"""Achievement requirement predicates."""

from __future__ import annotations

from dgames.db.models import Achievement, GameSession, PlayerProgress, Streak
from dgames.gamification.achievement_service import achieved_value, is_satisfied


def achievement(kind: str, value: int) -> Achievement:
    return Achievement(slug=f"{kind}-{value}", name=kind, requirement_type=kind, requirement_value=value)


def progress(**fields) -> PlayerProgress:
    base = {"games_played": 0, "games_won": 0, "best_score": 0, "daily_challenges_completed": 0, "level": 1}
    return PlayerProgress(player_id=1, game_id=1, **{**base, **fields})


def session(**fields) -> GameSession:
    base = {"score": 0, "duration_seconds": 100, "hints_used": 0, "mistakes_count": 0}
    return GameSession(player_id=1, game_id=1, **{**base, **fields})


class TestProgressRules:
    def test_games_won_threshold(self):
        rule = achievement("games_won", 10)
        assert not is_satisfied(rule, progress(games_won=9), None, None)
        assert is_satisfied(rule, progress(games_won=10), None, None)
        assert is_satisfied(rule, progress(games_won=11), None, None)

    def test_streak_uses_current_streak(self):
        rule = achievement("streak", 7)
        assert is_satisfied(rule, None, Streak(current_streak=7, longest_streak=7), None)
        assert not is_satisfied(rule, None, Streak(current_streak=2, longest_streak=30), None)
        assert not is_satisfied(rule, None, None, None)

    def test_level_and_daily(self):
        assert is_satisfied(achievement("level", 5), progress(level=5), None, None)
        assert is_satisfied(achievement("daily_completed", 10), progress(daily_challenges_completed=10), None, None)

    def test_score_from_progress_or_session(self):
        rule = achievement("score", 1000)
        assert is_satisfied(rule, progress(best_score=1200), None, None)
        assert is_satisfied(rule, progress(best_score=0), None, session(score=1000))
        assert not is_satisfied(rule, progress(best_score=10), None, session(score=999))


class TestSessionRules:
    def test_perfect_game_needs_no_mistakes_and_no_hints(self):
        rule = achievement("perfect_game", 1)
        assert is_satisfied(rule, None, None, session())
        assert not is_satisfied(rule, None, None, session(mistakes_count=1))
        assert not is_satisfied(rule, None, None, session(hints_used=1))

    def test_no_hints(self):
        rule = achievement("no_hints", 1)
        assert is_satisfied(rule, None, None, session(mistakes_count=4))
        assert not is_satisfied(rule, None, None, session(hints_used=2))

    def test_speed_is_inclusive(self):
        rule = achievement("speed", 60)
        assert is_satisfied(rule, None, None, session(duration_seconds=60))
        assert not is_satisfied(rule, None, None, session(duration_seconds=61))
        assert not is_satisfied(rule, None, None, session(duration_seconds=None))

    def test_session_rules_need_a_session(self):
        assert not is_satisfied(achievement("no_hints", 1), progress(), None, None)


def test_custom_is_never_auto_satisfied():
    assert not is_satisfied(achievement("custom", 1), progress(games_won=100), None, session())


class TestAchievedValue:
    def test_progress_counters(self):
        assert achieved_value(achievement("games_won", 10), progress(games_won=10), None, None) == 10
        assert achieved_value(achievement("level", 3), progress(level=4), None, None) == 4
        assert achieved_value(achievement("games_won", 10), None, None, session()) is None

    def test_streak_and_speed(self):
        streak = Streak(current_streak=7, longest_streak=12)
        assert achieved_value(achievement("streak", 7), None, streak, None) == 7
        assert achieved_value(achievement("speed", 60), None, None, session(duration_seconds=42)) == 42

    def test_score_takes_the_higher_source(self):
        rule = achievement("score", 1000)
        assert achieved_value(rule, progress(best_score=900), None, session(score=1100)) == 1100
        assert achieved_value(rule, progress(best_score=1500), None, session(score=1100)) == 1500
        assert achieved_value(rule, None, None, None) is None

    def test_flag_rules_have_no_value(self):
        assert achieved_value(achievement("no_hints", 1), progress(), None, session()) is None
