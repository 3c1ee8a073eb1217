"""Game platform tables.

Creates users, players, games, daily_challenges, game_sessions,
player_progress, streaks, leaderboard_entries, achievements and
player_achievements.

Revision ID: 001_platform_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_platform_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users (owned by the account service) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            display_name VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Players ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS players (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            display_name VARCHAR(50) NOT NULL,
            avatar_id VARCHAR(50),
            hints_balance INTEGER NOT NULL DEFAULT 3,
            streak_freezes INTEGER NOT NULL DEFAULT 1,
            total_games_played INTEGER NOT NULL DEFAULT 0,
            total_time_played INTEGER NOT NULL DEFAULT 0,
            preferences JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT ck_players_hints_non_negative CHECK (hints_balance >= 0),
            CONSTRAINT ck_players_freezes_non_negative CHECK (streak_freezes >= 0)
        )
    """)

    # --- Games ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS games (
            id BIGSERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            type VARCHAR(32) NOT NULL,
            description TEXT,
            daily_enabled BOOLEAN NOT NULL DEFAULT true,
            has_leaderboard BOOLEAN NOT NULL DEFAULT true,
            is_active BOOLEAN NOT NULL DEFAULT true,
            settings JSONB,
            launched_at TIMESTAMPTZ
        )
    """)

    # --- Daily Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_challenges (
            id BIGSERIAL PRIMARY KEY,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            challenge_date DATE NOT NULL,
            challenge_number INTEGER NOT NULL,
            difficulty INTEGER NOT NULL DEFAULT 2,
            content JSONB NOT NULL,
            solution JSONB NOT NULL,
            hints JSONB,
            metadata JSONB,
            is_active BOOLEAN NOT NULL DEFAULT true,
            generated_by VARCHAR(50),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_daily_challenges_game_date UNIQUE (game_id, challenge_date),
            CONSTRAINT uq_daily_challenges_game_number UNIQUE (game_id, challenge_number)
        )
    """)

    # --- Game Sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_sessions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            daily_challenge_id BIGINT REFERENCES daily_challenges(id) ON DELETE SET NULL,
            session_type VARCHAR(20) NOT NULL DEFAULT 'practice',
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            score INTEGER,
            duration_seconds INTEGER,
            hints_used INTEGER NOT NULL DEFAULT 0,
            moves_count INTEGER NOT NULL DEFAULT 0,
            mistakes_count INTEGER NOT NULL DEFAULT 0,
            completion_percentage DOUBLE PRECISION NOT NULL DEFAULT 0,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            session_data JSONB,
            device_info JSONB
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_game_sessions_player_game_status
        ON game_sessions(player_id, game_id, status)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_game_sessions_challenge
        ON game_sessions(daily_challenge_id, status)
    """)

    # --- Player Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS player_progress (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            level INTEGER NOT NULL DEFAULT 1,
            experience_points INTEGER NOT NULL DEFAULT 0,
            total_score INTEGER NOT NULL DEFAULT 0,
            games_played INTEGER NOT NULL DEFAULT 0,
            games_won INTEGER NOT NULL DEFAULT 0,
            best_score INTEGER,
            best_time_seconds INTEGER,
            average_score DOUBLE PRECISION,
            average_time_seconds DOUBLE PRECISION,
            total_hints_used INTEGER NOT NULL DEFAULT 0,
            daily_challenges_completed INTEGER NOT NULL DEFAULT 0,
            last_played_at TIMESTAMPTZ,
            stats JSONB,
            CONSTRAINT uq_player_progress_player_game UNIQUE (player_id, game_id)
        )
    """)

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streaks (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_completed_date DATE,
            streak_frozen_date DATE,
            freezes_used_total INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_streaks_player_game UNIQUE (player_id, game_id)
        )
    """)

    # --- Leaderboard Entries ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_entries (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            game_id BIGINT NOT NULL REFERENCES games(id) ON DELETE CASCADE,
            daily_challenge_id BIGINT REFERENCES daily_challenges(id) ON DELETE CASCADE,
            period VARCHAR(20) NOT NULL,
            period_key VARCHAR(50) NOT NULL,
            score INTEGER NOT NULL DEFAULT 0,
            time_seconds INTEGER,
            games_count INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMPTZ,
            CONSTRAINT uq_leaderboard_entries_player_game_period
                UNIQUE (player_id, game_id, period, period_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_leaderboard_ranking
        ON leaderboard_entries(game_id, period, period_key, score)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_leaderboard_challenge
        ON leaderboard_entries(daily_challenge_id, score)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id BIGSERIAL PRIMARY KEY,
            game_id BIGINT REFERENCES games(id) ON DELETE CASCADE,
            slug VARCHAR(50) NOT NULL,
            name VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(100),
            category VARCHAR(50) NOT NULL DEFAULT 'progress',
            points INTEGER NOT NULL DEFAULT 10,
            requirement_type VARCHAR(50) NOT NULL,
            requirement_value INTEGER NOT NULL DEFAULT 1,
            is_hidden BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            sort_order INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_achievements_game_slug UNIQUE (game_id, slug)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievements_game_active
        ON achievements(game_id, is_active, sort_order)
    """)

    # --- Player Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS player_achievements (
            id BIGSERIAL PRIMARY KEY,
            player_id BIGINT NOT NULL REFERENCES players(id) ON DELETE CASCADE,
            achievement_id BIGINT NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            game_id BIGINT REFERENCES games(id) ON DELETE SET NULL,
            session_id INTEGER,
            unlocked_value INTEGER,
            unlocked_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_player_achievements_player_achievement UNIQUE (player_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_player_achievements_unlocked
        ON player_achievements(player_id, unlocked_at)
    """)


def downgrade() -> None:
    for table in (
        "player_achievements",
        "achievements",
        "leaderboard_entries",
        "streaks",
        "player_progress",
        "game_sessions",
        "daily_challenges",
        "games",
        "players",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
