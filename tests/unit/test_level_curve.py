"""XP awards and the level curve."""

from __future__ import annotations

from dataclasses import replace

import pytest

from dgames.config import PlatformPolicy
from dgames.gamification.level_curve import (
    calculate_xp,
    level_for_xp,
    xp_progress,
    xp_threshold,
    xp_to_next_level,
)

POLICY = PlatformPolicy()


class TestCalculateXp:
    def test_speed_bonus_scales_with_time_saved(self):
        # 50 base, 25% of the target saved -> 12.5% bonus
        assert calculate_xp(500, 90, POLICY) == 56

    def test_no_bonus_at_or_over_target(self):
        assert calculate_xp(500, 120, POLICY) == 50
        assert calculate_xp(500, 600, POLICY) == 50

    def test_instant_finish_gets_half_bonus(self):
        assert calculate_xp(1000, 0, POLICY) == 150

    def test_minimum_award(self):
        assert calculate_xp(0, 300, POLICY) == 10
        assert calculate_xp(50, 10, POLICY) == 10

    def test_policy_minimum(self):
        assert calculate_xp(0, 300, replace(POLICY, xp_min_award=25)) == 25


class TestLevelCurve:
    @pytest.mark.parametrize(
        "xp,level",
        [(0, 1), (99, 1), (100, 2), (209, 2), (210, 3), (330, 3), (331, 4)],
    )
    def test_level_for_xp(self, xp, level):
        assert level_for_xp(xp, POLICY) == level

    def test_thresholds(self):
        assert xp_threshold(1, POLICY) == 0
        assert xp_threshold(2, POLICY) == 100
        assert xp_threshold(3, POLICY) == 210
        assert xp_threshold(4, POLICY) == 331

    def test_threshold_matches_level(self):
        for level in range(1, 30):
            assert level_for_xp(xp_threshold(level, POLICY), POLICY) == level

    def test_to_next_and_progress(self):
        assert xp_to_next_level(1, 56, POLICY) == 44
        assert xp_progress(1, 50, POLICY) == 0.5
        assert xp_progress(2, 100, POLICY) == 0.0
