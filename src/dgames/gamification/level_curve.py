"""XP curve and per-session XP awards.

Level 1 starts at 0 XP. Reaching level 2 takes ``xp_first_level_requirement``
XP; each further level needs the previous requirement times
``xp_level_growth``, truncated to an int (100, 110, 121, 133, ...).
"""

from __future__ import annotations

from dgames.config import PlatformPolicy


def calculate_xp(score: int, duration_seconds: int, policy: PlatformPolicy) -> int:
    """XP for one won session: score/10 plus up to 50% for finishing fast."""
    xp = int(score / 10)

    target = policy.xp_target_seconds
    if duration_seconds < target:
        bonus = (1 - duration_seconds / target) * 0.5
        xp += int(xp * bonus)

    return max(xp, policy.xp_min_award)


def level_for_xp(xp: int, policy: PlatformPolicy) -> int:
    level = 1
    threshold = 0
    required = policy.xp_first_level_requirement

    while xp >= threshold + required:
        threshold += required
        level += 1
        required = int(required * policy.xp_level_growth)

    return level


def xp_threshold(level: int, policy: PlatformPolicy) -> int:
    """Cumulative XP needed to reach ``level``."""
    if level <= 1:
        return 0

    threshold = 0
    required = policy.xp_first_level_requirement
    for _ in range(2, level + 1):
        threshold += required
        required = int(required * policy.xp_level_growth)
    return threshold


def xp_to_next_level(level: int, xp: int, policy: PlatformPolicy) -> int:
    return xp_threshold(level + 1, policy) - xp


def xp_progress(level: int, xp: int, policy: PlatformPolicy) -> float:
    """Fraction of the way from ``level`` to the next one, clamped to [0, 1]."""
    current = xp_threshold(level, policy)
    span = xp_threshold(level + 1, policy) - current
    if span <= 0:
        return 1.0
    return min(1.0, max(0.0, (xp - current) / span))
