"""ORM models for the game platform.

Uniqueness constraints here are load-bearing: fetch-or-create on progress and
streak rows, achievement unlocks and leaderboard upserts all rely on them.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dgames.db.base import Base, BigIntPK, JSONType, UTCDateTime, utcnow

# Session types
SESSION_TYPE_DAILY = "daily"
SESSION_TYPE_PRACTICE = "practice"
SESSION_TYPE_ENDLESS = "endless"
SESSION_TYPE_TIMED = "timed"
SESSION_TYPES = (SESSION_TYPE_DAILY, SESSION_TYPE_PRACTICE, SESSION_TYPE_ENDLESS, SESSION_TYPE_TIMED)

# Session statuses
STATUS_ACTIVE = "active"
STATUS_PAUSED = "paused"
STATUS_COMPLETED = "completed"
STATUS_ABANDONED = "abandoned"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_ABANDONED, STATUS_FAILED})


# ---------------------------------------------------------------------------
# Users & Players
# ---------------------------------------------------------------------------


class User(Base):
    """Account identity. Owned by the auth service; read-only here."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now())

    player: Mapped[Player | None] = relationship("Player", back_populates="user", uselist=False)


class Player(Base):
    """Game-facing profile and virtual-currency wallet, 1:1 with a user."""

    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint("hints_balance >= 0", name="ck_players_hints_non_negative"),
        CheckConstraint("streak_freezes >= 0", name="ck_players_freezes_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    display_name: Mapped[str] = mapped_column(String(50), nullable=False)
    avatar_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hints_balance: Mapped[int] = mapped_column(Integer, default=3, server_default="3")
    streak_freezes: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    total_games_played: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_time_played: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    preferences: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="player")


# ---------------------------------------------------------------------------
# Games & Daily Challenges
# ---------------------------------------------------------------------------


class Game(Base):
    """Catalog entry for one puzzle game."""

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    daily_enabled: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    has_leaderboard: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    launched_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class DailyChallenge(Base):
    """One puzzle per game per calendar day. ``solution`` never leaves the server."""

    __tablename__ = "daily_challenges"
    __table_args__ = (
        UniqueConstraint("game_id", "challenge_date", name="uq_daily_challenges_game_date"),
        UniqueConstraint("game_id", "challenge_number", name="uq_daily_challenges_game_number"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    challenge_date: Mapped[date] = mapped_column(Date, nullable=False)
    challenge_number: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[int] = mapped_column(Integer, default=2, server_default="2")
    content: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    solution: Mapped[Any] = mapped_column(JSONType, nullable=False)
    hints: Mapped[list[Any] | None] = mapped_column(JSONType, nullable=True)
    challenge_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    generated_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now())

    game: Mapped[Game] = relationship("Game")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class GameSession(Base):
    """One attempt at a game. Terminal statuses are final."""

    __tablename__ = "game_sessions"
    __table_args__ = (
        Index("idx_game_sessions_player_game_status", "player_id", "game_id", "status"),
        Index("idx_game_sessions_challenge", "daily_challenge_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    daily_challenge_id: Mapped[int | None] = mapped_column(
        ForeignKey("daily_challenges.id", ondelete="SET NULL"), nullable=True
    )
    session_type: Mapped[str] = mapped_column(String(20), default=SESSION_TYPE_PRACTICE, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=STATUS_ACTIVE, nullable=False)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hints_used: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    moves_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    mistakes_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    completion_percentage: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    session_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    device_info: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_daily(self) -> bool:
        return self.session_type == SESSION_TYPE_DAILY

    @property
    def duration_formatted(self) -> str:
        """``m:ss``; ``0:00`` when no duration was recorded."""
        seconds = self.duration_seconds or 0
        return f"{seconds // 60}:{seconds % 60:02d}"


# ---------------------------------------------------------------------------
# Progress & Streaks
# ---------------------------------------------------------------------------


class PlayerProgress(Base):
    """Cumulative per (player, game) stats and XP/level."""

    __tablename__ = "player_progress"
    __table_args__ = (
        UniqueConstraint("player_id", "game_id", name="uq_player_progress_player_game"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    experience_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_score: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    games_played: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    games_won: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    best_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    best_time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    average_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_time_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_hints_used: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    daily_challenges_completed: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_played_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    stats: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    game: Mapped[Game] = relationship("Game")


class Streak(Base):
    """Daily completion streak per (player, game). Dates are platform-local."""

    __tablename__ = "streaks"
    __table_args__ = (
        UniqueConstraint("player_id", "game_id", name="uq_streaks_player_game"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    streak_frozen_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    freezes_used_total: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------


class LeaderboardEntry(Base):
    """Aggregated or best-of score for one player in one period bucket."""

    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint(
            "player_id", "game_id", "period", "period_key",
            name="uq_leaderboard_entries_player_game_period",
        ),
        Index("idx_leaderboard_ranking", "game_id", "period", "period_key", "score"),
        Index("idx_leaderboard_challenge", "daily_challenge_id", "score"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    daily_challenge_id: Mapped[int | None] = mapped_column(
        ForeignKey("daily_challenges.id", ondelete="CASCADE"), nullable=True
    )
    period: Mapped[str] = mapped_column(String(20), nullable=False)
    period_key: Mapped[str] = mapped_column(String(50), nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    games_count: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    player: Mapped[Player] = relationship("Player")


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Static unlock rule. ``game_id`` NULL means the rule applies to every game."""

    __tablename__ = "achievements"
    __table_args__ = (
        UniqueConstraint("game_id", "slug", name="uq_achievements_game_slug"),
        Index("idx_achievements_game_active", "game_id", "is_active", "sort_order"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    game_id: Mapped[int | None] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), nullable=True)
    slug: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str] = mapped_column(String(50), default="progress", server_default="progress")
    points: Mapped[int] = mapped_column(Integer, default=10, server_default="10")
    requirement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


class PlayerAchievement(Base):
    """Unlock record. At most one per (player, achievement)."""

    __tablename__ = "player_achievements"
    __table_args__ = (
        UniqueConstraint("player_id", "achievement_id", name="uq_player_achievements_player_achievement"),
        Index("idx_player_achievements_unlocked", "player_id", "unlocked_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[int] = mapped_column(
        ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int | None] = mapped_column(ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    session_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    unlocked_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    achievement: Mapped[Achievement] = relationship("Achievement", lazy="joined")
