"""Pydantic schemas for game catalog, daily challenge and leaderboard responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


# --- Catalog ---


class GamePlayerSummary(BaseModel):
    level: int = 1
    games_played: int = 0
    current_streak: int = 0
    last_played: datetime | None = None


class GameListItem(BaseModel):
    id: int
    slug: str
    name: str
    type: str
    description: str | None = None
    daily_enabled: bool
    has_leaderboard: bool
    player: GamePlayerSummary | None = None
    daily_completed_today: bool | None = None


class GameListResponse(BaseModel):
    games: list[GameListItem]


class AchievementResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str | None = None
    category: str
    points: int


class StreakStatusResponse(BaseModel):
    status: str
    streak: int
    needs_action: bool
    hours_remaining: int | None = None
    lost_streak: int | None = None


class GamePlayerDetail(BaseModel):
    level: int = 1
    experience: int = 0
    xp_to_next: int
    games_played: int = 0
    games_won: int = 0
    best_score: int | None = None
    daily_completed: int = 0
    current_streak: int = 0
    longest_streak: int = 0


class GameDetailResponse(BaseModel):
    id: int
    slug: str
    name: str
    type: str
    description: str | None = None
    daily_enabled: bool
    has_leaderboard: bool
    settings: dict[str, Any] | None = None
    player: GamePlayerDetail | None = None
    streak_status: StreakStatusResponse | None = None
    achievements: list[AchievementResponse] = []


# --- Challenges ---


class ChallengeContent(BaseModel):
    id: int
    game_id: int
    challenge_number: int
    challenge_date: str
    difficulty: int
    content: dict[str, Any]
    hint_count: int
    metadata: dict[str, Any] | None = None


class ChallengeStats(BaseModel):
    completions: int
    average_time: int


class DailyChallengeResponse(BaseModel):
    challenge: ChallengeContent
    completed: bool
    previous_score: int | None = None
    stats: ChallengeStats


class ArchivedChallengeResponse(BaseModel):
    challenge: ChallengeContent
    completed: bool
    previous_score: int | None = None
    is_today: bool


# --- Leaderboards ---


class LeaderboardRow(BaseModel):
    rank: int
    player_id: int
    display_name: str
    avatar_id: str | None = None
    score: int
    time_seconds: int | None = None
    games_count: int


class PlayerRankResponse(BaseModel):
    rank: int
    score: int
    time_seconds: int | None = None
    games_count: int


class LeaderboardResponse(BaseModel):
    period: str
    leaderboard: list[LeaderboardRow]
    player_rank: PlayerRankResponse | None = None


class ChallengeLeaderboardResponse(BaseModel):
    challenge_number: int
    challenge_date: str
    leaderboard: list[LeaderboardRow]
