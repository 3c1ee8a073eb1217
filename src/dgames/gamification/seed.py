"""Catalog seed data: the three launch games and their achievements."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.db.models import Achievement, Game
from dgames.db.upsert import insert_for

logger = logging.getLogger(__name__)

GAME_SEED_DATA: list[dict] = [
    {
        "slug": "decode-daily",
        "name": "Decode Daily",
        "type": "cryptogram",
        "description": "Crack the code and reveal a famous quote every day. Like Wordle for code-breakers!",
        "settings": {
            "max_hints": 3,
            "time_bonus_threshold": 120,
            "perfect_game_bonus": 500,
            "categories": ["Inspiration", "History", "Science", "Literature", "Sports", "Pop Culture"],
        },
    },
    {
        "slug": "stack-sort",
        "name": "Stack & Sort",
        "type": "sort_puzzle",
        "description": "Sort colored items into matching containers. Relaxing, satisfying, and addictive!",
        "settings": {"max_undo": 3, "zen_mode": True, "sound_effects": ["pop", "whoosh", "complete"]},
    },
    {
        "slug": "number-crunch",
        "name": "Number Crunch",
        "type": "math_block",
        "description": "Block puzzle meets math! Place numbered blocks to match target sums.",
        "settings": {"show_sum_preview": True, "highlight_valid_moves": True},
    },
]

GLOBAL_ACHIEVEMENTS: list[dict] = [
    # Streaks
    {"slug": "streak-7", "name": "Week Warrior", "description": "Complete 7 days in a row",
     "icon": "\U0001F525", "category": "streak", "points": 50,
     "requirement_type": "streak", "requirement_value": 7},
    {"slug": "streak-30", "name": "Monthly Master", "description": "Complete 30 days in a row",
     "icon": "\U0001F31F", "category": "streak", "points": 200,
     "requirement_type": "streak", "requirement_value": 30},
    {"slug": "streak-100", "name": "Century Club", "description": "Complete 100 days in a row",
     "icon": "\U0001F4AF", "category": "streak", "points": 500,
     "requirement_type": "streak", "requirement_value": 100},
    {"slug": "streak-365", "name": "Year of Dedication", "description": "Complete 365 days in a row",
     "icon": "\U0001F3C6", "category": "streak", "points": 1000,
     "requirement_type": "streak", "requirement_value": 365, "is_hidden": True},
    # Progress
    {"slug": "first-win", "name": "First Victory", "description": "Complete your first puzzle",
     "icon": "\U0001F3AF", "category": "progress", "points": 10,
     "requirement_type": "games_won", "requirement_value": 1},
    {"slug": "games-10", "name": "Getting Started", "description": "Complete 10 puzzles",
     "icon": "\U0001F4C8", "category": "progress", "points": 25,
     "requirement_type": "games_won", "requirement_value": 10},
    {"slug": "games-50", "name": "Dedicated Player", "description": "Complete 50 puzzles",
     "icon": "⭐", "category": "progress", "points": 75,
     "requirement_type": "games_won", "requirement_value": 50},
    {"slug": "games-100", "name": "Puzzle Enthusiast", "description": "Complete 100 puzzles",
     "icon": "\U0001F320", "category": "progress", "points": 150,
     "requirement_type": "games_won", "requirement_value": 100},
    {"slug": "games-500", "name": "Puzzle Master", "description": "Complete 500 puzzles",
     "icon": "\U0001F451", "category": "progress", "points": 300,
     "requirement_type": "games_won", "requirement_value": 500},
    # Daily challenges
    {"slug": "daily-10", "name": "Daily Dabbler", "description": "Complete 10 daily challenges",
     "icon": "\U0001F4C5", "category": "progress", "points": 30,
     "requirement_type": "daily_completed", "requirement_value": 10},
    {"slug": "daily-50", "name": "Daily Devotee", "description": "Complete 50 daily challenges",
     "icon": "\U0001F4C6", "category": "progress", "points": 100,
     "requirement_type": "daily_completed", "requirement_value": 50},
    # Levels
    {"slug": "level-5", "name": "Rising Star", "description": "Reach level 5",
     "icon": "\U0001F331", "category": "progress", "points": 25,
     "requirement_type": "level", "requirement_value": 5},
    {"slug": "level-10", "name": "Experienced", "description": "Reach level 10",
     "icon": "\U0001F33F", "category": "progress", "points": 50,
     "requirement_type": "level", "requirement_value": 10},
    {"slug": "level-25", "name": "Veteran", "description": "Reach level 25",
     "icon": "\U0001F333", "category": "progress", "points": 100,
     "requirement_type": "level", "requirement_value": 25},
    # Mastery & speed
    {"slug": "perfect-game", "name": "Flawless", "description": "Complete a puzzle with no mistakes and no hints",
     "icon": "\U0001F48E", "category": "mastery", "points": 50,
     "requirement_type": "perfect_game", "requirement_value": 1},
    {"slug": "no-hints", "name": "Independent", "description": "Complete a puzzle without using hints",
     "icon": "\U0001F9E0", "category": "mastery", "points": 25,
     "requirement_type": "no_hints", "requirement_value": 1},
    {"slug": "speed-60", "name": "Speed Demon", "description": "Complete a puzzle in under 60 seconds",
     "icon": "⚡", "category": "speed", "points": 40,
     "requirement_type": "speed", "requirement_value": 60},
    {"slug": "speed-30", "name": "Lightning Fast", "description": "Complete a puzzle in under 30 seconds",
     "icon": "\U0001F680", "category": "speed", "points": 75,
     "requirement_type": "speed", "requirement_value": 30},
]

# Keyed by game slug; sort_order starts at the listed base.
GAME_ACHIEVEMENTS: dict[str, tuple[int, list[dict]]] = {
    "decode-daily": (100, [
        {"slug": "decode-first-letter", "name": "Codebreaker", "description": "Solve your first cryptogram",
         "icon": "\U0001F513", "category": "progress", "points": 15,
         "requirement_type": "games_won", "requirement_value": 1},
        {"slug": "decode-no-vowels", "name": "Consonant King", "description": "Solve without revealing any vowels",
         "icon": "\U0001F440", "category": "mastery", "points": 60,
         "requirement_type": "custom", "requirement_value": 1, "is_hidden": True},
        {"slug": "decode-all-categories", "name": "Well Rounded",
         "description": "Complete a puzzle from each category",
         "icon": "\U0001F3A8", "category": "special", "points": 100,
         "requirement_type": "custom", "requirement_value": 6},
    ]),
    "stack-sort": (200, [
        {"slug": "stack-zen-master", "name": "Zen Master", "description": "Complete 10 puzzles in Zen mode",
         "icon": "\U0001F9D8", "category": "special", "points": 50,
         "requirement_type": "custom", "requirement_value": 10},
        {"slug": "stack-no-undo", "name": "No Regrets", "description": "Complete a puzzle without using undo",
         "icon": "✨", "category": "mastery", "points": 35,
         "requirement_type": "custom", "requirement_value": 1},
        {"slug": "stack-minimal-moves", "name": "Efficiency Expert",
         "description": "Complete a puzzle in minimum possible moves",
         "icon": "\U0001F3AF", "category": "mastery", "points": 75,
         "requirement_type": "custom", "requirement_value": 1, "is_hidden": True},
    ]),
    "number-crunch": (300, [
        {"slug": "number-calculator", "name": "Human Calculator", "description": "Complete a hard puzzle without hints",
         "icon": "\U0001F522", "category": "mastery", "points": 60,
         "requirement_type": "custom", "requirement_value": 1},
        {"slug": "number-under-par", "name": "Under Par", "description": "Complete a puzzle in fewer moves than par",
         "icon": "⛳", "category": "mastery", "points": 50,
         "requirement_type": "custom", "requirement_value": 1},
    ]),
}


async def seed_games(db: AsyncSession) -> int:
    """Upsert the launch games by slug. Returns number of games seeded."""
    now = datetime.now(timezone.utc)
    for game_data in GAME_SEED_DATA:
        stmt = insert_for(db, Game).values(
            **game_data,
            daily_enabled=True,
            has_leaderboard=True,
            is_active=True,
            launched_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "type": stmt.excluded.type,
                "description": stmt.excluded.description,
                "settings": stmt.excluded.settings,
            },
        )
        await db.execute(stmt)

    await db.commit()
    logger.info("Seeded %d games", len(GAME_SEED_DATA))
    return len(GAME_SEED_DATA)


async def _update_or_create(db: AsyncSession, game_id: int | None, data: dict) -> None:
    # NULL game_id never conflicts on the unique key, so match by hand.
    query = select(Achievement).where(Achievement.slug == data["slug"])
    if game_id is None:
        query = query.where(Achievement.game_id.is_(None))
    else:
        query = query.where(Achievement.game_id == game_id)
    existing = (await db.execute(query)).scalar_one_or_none()

    if existing is None:
        db.add(Achievement(game_id=game_id, **data))
        return
    for key, value in data.items():
        setattr(existing, key, value)


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert global and per-game achievements. Games missing from the catalog are skipped."""
    seeded = 0
    for sort_order, data in enumerate(GLOBAL_ACHIEVEMENTS):
        await _update_or_create(db, None, {
            "is_hidden": False, **data, "sort_order": sort_order, "is_active": True,
        })
        seeded += 1

    games = {g.slug: g for g in (await db.execute(select(Game))).scalars()}
    for slug, (base_order, achievements) in GAME_ACHIEVEMENTS.items():
        game = games.get(slug)
        if game is None:
            continue
        for offset, data in enumerate(achievements):
            await _update_or_create(db, game.id, {
                "is_hidden": False, **data, "sort_order": base_order + offset, "is_active": True,
            })
            seeded += 1

    await db.commit()
    logger.info("Seeded %d achievements", seeded)
    return seeded
