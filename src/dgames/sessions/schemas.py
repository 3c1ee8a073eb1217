"""Request and response models for session, hint and reward endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from dgames.games.schemas import PlayerRankResponse, StreakStatusResponse


# --- Session lifecycle ---


class SessionStartRequest(BaseModel):
    game_id: int
    challenge_id: int | None = None
    session_type: Literal["daily", "practice", "endless", "timed"] = "practice"
    device_info: dict[str, Any] | None = None


class SessionSummary(BaseModel):
    id: int
    game_id: int
    session_type: str
    status: str
    started_at: datetime | None = None


class SessionStartResponse(BaseModel):
    session: SessionSummary
    streak: StreakStatusResponse | None = None
    hints_available: int


class SessionUpdateRequest(BaseModel):
    completion_percentage: float | None = Field(default=None, ge=0, le=100)
    moves_count: int | None = Field(default=None, ge=0)
    mistakes_count: int | None = Field(default=None, ge=0)
    session_data: dict[str, Any] | None = None


class SessionProgressResponse(BaseModel):
    id: int
    status: str
    completion_percentage: float
    moves_count: int
    mistakes_count: int


class SessionCompleteRequest(BaseModel):
    score: int = Field(ge=0)
    solution: Any = None
    session_data: dict[str, Any] | None = None


class CompletedSession(BaseModel):
    id: int
    score: int | None = None
    duration: str
    duration_seconds: int | None = None
    hints_used: int
    percentile: float | None = None


class StreakUpdateResponse(BaseModel):
    current: int
    extended: bool
    milestone: int | None = None


class UnlockedAchievementResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str | None = None
    points: int


class SessionCompleteResponse(BaseModel):
    session: CompletedSession
    streak: StreakUpdateResponse | None = None
    achievements: list[UnlockedAchievementResponse] = []
    level_up: bool
    new_level: int | None = None
    xp_earned: int
    hints_earned: int
    leaderboard_rank: PlayerRankResponse | None = None


class SessionStatusResponse(BaseModel):
    id: int
    status: str


# --- Hints & rewards ---


class HintRequest(BaseModel):
    hint_type: str = "reveal_letter"
    encoded_letter: str | None = Field(default=None, max_length=1)


class HintResponse(BaseModel):
    hints_remaining: int
    hints_used_in_session: int
    hint: Any = None


class StreakFreezeRequest(BaseModel):
    game_id: int


class StreakFreezeResponse(BaseModel):
    freezes_remaining: int
    current_streak: int
    status: str


class AdWatchedRequest(BaseModel):
    reward_type: Literal["hints", "streak_freeze"]
    amount: int = Field(default=1, ge=1, le=5)
    ad_network: str | None = None
    ad_unit: str | None = None


class AdWatchedResponse(BaseModel):
    reward_type: str
    amount: int
    hints_balance: int
    streak_freezes: int
