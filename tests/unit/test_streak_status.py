"""Streak status classification, break and completion rules (no database)."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from dgames.config import PlatformPolicy
from dgames.db.models import Streak
from dgames.gamification.streak_service import (
    STATUS_ACTIVE,
    STATUS_BROKEN,
    STATUS_COMPLETED_TODAY,
    STATUS_FROZEN_TODAY,
    STATUS_GRACE_PERIOD,
    STATUS_NONE,
    apply_break_if_stale,
    evaluate_status,
    record_completion,
)

POLICY = PlatformPolicy(timezone="America/Denver")

# 12:00 local (MDT, UTC-6) on 2025-03-12
NOON = datetime(2025, 3, 12, 18, 0, tzinfo=timezone.utc)
TODAY = date(2025, 3, 12)
YESTERDAY = date(2025, 3, 11)
TWO_DAYS_AGO = date(2025, 3, 10)


def make_streak(current: int = 0, completed: date | None = None, frozen: date | None = None) -> Streak:
    return Streak(
        player_id=1,
        game_id=1,
        current_streak=current,
        longest_streak=current,
        last_completed_date=completed,
        streak_frozen_date=frozen,
        freezes_used_total=0,
    )


class TestEvaluateStatus:
    def test_new_streak_is_none(self):
        status = evaluate_status(make_streak(), NOON, POLICY)
        assert status.status == STATUS_NONE
        assert status.streak == 0
        assert status.needs_action is True

    def test_completed_today(self):
        status = evaluate_status(make_streak(4, completed=TODAY), NOON, POLICY)
        assert status.status == STATUS_COMPLETED_TODAY
        assert status.streak == 4
        assert status.needs_action is False

    def test_completed_yesterday_is_active(self):
        status = evaluate_status(make_streak(4, completed=YESTERDAY), NOON, POLICY)
        assert status.status == STATUS_ACTIVE
        assert status.needs_action is True

    def test_frozen_today(self):
        status = evaluate_status(make_streak(4, completed=TWO_DAYS_AGO, frozen=TODAY), NOON, POLICY)
        assert status.status == STATUS_FROZEN_TODAY
        assert status.streak == 4

    def test_frozen_yesterday_counts_as_active(self):
        status = evaluate_status(make_streak(4, completed=TWO_DAYS_AGO, frozen=YESTERDAY), NOON, POLICY)
        assert status.status == STATUS_ACTIVE

    def test_missed_day_is_broken(self):
        streak = make_streak(5, completed=TWO_DAYS_AGO)
        status = evaluate_status(streak, NOON, POLICY)
        assert status.status == STATUS_BROKEN
        assert status.streak == 0
        assert status.lost_streak == 5
        # Pure: the row is untouched
        assert streak.current_streak == 5

    def test_grace_window_measured_from_end_of_last_activity(self):
        policy = replace(POLICY, streak_grace_period_hours=36)
        early = datetime(2025, 3, 12, 11, 0, tzinfo=timezone.utc)  # 05:00 local
        status = evaluate_status(make_streak(5, completed=TWO_DAYS_AGO), early, policy)
        assert status.status == STATUS_GRACE_PERIOD
        assert status.hours_remaining == 7
        assert status.is_alive

    def test_latest_of_completion_and_freeze_is_used(self):
        policy = replace(POLICY, streak_grace_period_hours=36)
        early = datetime(2025, 3, 12, 11, 0, tzinfo=timezone.utc)
        streak = make_streak(5, completed=date(2025, 3, 1), frozen=TWO_DAYS_AGO)
        assert evaluate_status(streak, early, policy).status == STATUS_GRACE_PERIOD

    def test_local_day_not_utc_day(self):
        # 03:00 UTC on the 13th is still the evening of the 12th in Denver.
        late = datetime(2025, 3, 13, 3, 0, tzinfo=timezone.utc)
        status = evaluate_status(make_streak(2, completed=TODAY), late, POLICY)
        assert status.status == STATUS_COMPLETED_TODAY

    def test_to_dict_omits_unset_fields(self):
        data = evaluate_status(make_streak(4, completed=YESTERDAY), NOON, POLICY).to_dict()
        assert data == {"status": STATUS_ACTIVE, "streak": 4, "needs_action": True}


class TestApplyBreak:
    def test_break_resets_then_reports_none(self):
        streak = make_streak(5, completed=TWO_DAYS_AGO)
        first = apply_break_if_stale(streak, NOON, POLICY)
        assert first.status == STATUS_BROKEN
        assert streak.current_streak == 0
        assert streak.longest_streak == 5

        second = apply_break_if_stale(streak, NOON, POLICY)
        assert second.status == STATUS_NONE

    def test_alive_streak_is_untouched(self):
        streak = make_streak(3, completed=YESTERDAY)
        apply_break_if_stale(streak, NOON, POLICY)
        assert streak.current_streak == 3


class TestRecordCompletion:
    def test_first_completion(self):
        streak = make_streak()
        update = record_completion(streak, NOON, POLICY)
        assert update.current == 1
        assert update.extended is True
        assert update.milestone is None
        assert streak.last_completed_date == TODAY
        assert streak.longest_streak == 1

    def test_second_completion_same_day_is_noop(self):
        streak = make_streak()
        record_completion(streak, NOON, POLICY)
        again = record_completion(streak, NOON, POLICY)
        assert again.current == 1
        assert again.extended is False
        assert streak.current_streak == 1

    def test_consecutive_day_extends(self):
        streak = make_streak(2, completed=YESTERDAY)
        assert record_completion(streak, NOON, POLICY).current == 3

    @pytest.mark.parametrize("previous,milestone", [(6, 7), (29, 30), (7, None)])
    def test_milestones(self, previous, milestone):
        streak = make_streak(previous, completed=YESTERDAY)
        assert record_completion(streak, NOON, POLICY).milestone == milestone

    def test_longest_kept_when_current_is_lower(self):
        streak = make_streak(1, completed=YESTERDAY)
        streak.longest_streak = 10
        record_completion(streak, NOON, POLICY)
        assert streak.longest_streak == 10
