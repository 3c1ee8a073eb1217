"""Pydantic schemas for player profile endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class PlayerProfile(BaseModel):
    id: int
    display_name: str
    avatar_id: str | None = None
    hints_balance: int
    streak_freezes: int
    member_since: datetime | None = None


class PlayerResponse(BaseModel):
    player: PlayerProfile
    stats: dict[str, Any]


class PlayerUpdateRequest(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=50)
    avatar_id: str | None = Field(default=None, max_length=50)


class PreferencesUpdateRequest(BaseModel):
    sound_enabled: bool | None = None
    haptics_enabled: bool | None = None
    dark_mode: bool | None = None
    notifications_enabled: bool | None = None


class PreferencesResponse(BaseModel):
    preferences: dict[str, Any]


# --- Achievements ---


class PlayerAchievementItem(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str | None = None
    category: str
    points: int
    unlocked_at: datetime
    game_id: int | None = None


class PlayerAchievementsResponse(BaseModel):
    achievements: list[PlayerAchievementItem]
    total_points: int
    count: int


# --- History ---


class GameRef(BaseModel):
    id: int
    slug: str
    name: str


class HistoryItem(BaseModel):
    id: int
    game: GameRef | None = None
    challenge_number: int | None = None
    session_type: str
    score: int | None = None
    duration: str
    duration_seconds: int | None = None
    hints_used: int
    completed_at: datetime | None = None


class HistoryResponse(BaseModel):
    sessions: list[HistoryItem]


# --- Streaks ---


class PlayerStreakItem(BaseModel):
    game: GameRef
    current_streak: int
    longest_streak: int
    status: str
    last_completed: date | None = None


class PlayerStreaksResponse(BaseModel):
    streaks: list[PlayerStreakItem]
    freezes_available: int
