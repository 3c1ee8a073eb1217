"""Player profile lookup and lazy creation."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.config import PlatformPolicy
from dgames.db.models import Player, User
from dgames.db.upsert import insert_for
from dgames.gamification.calendar import utcnow


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_or_create_player(db: AsyncSession, user: User, policy: PlatformPolicy) -> Player:
    """The user's player profile, created with the starting balances on first use."""
    result = await db.execute(select(Player).where(Player.user_id == user.id))
    player = result.scalar_one_or_none()
    if player is not None:
        return player

    now = utcnow()
    stmt = insert_for(db, Player).values(
        user_id=user.id,
        display_name=user.display_name or "Player",
        hints_balance=policy.initial_hints,
        streak_freezes=policy.streak_initial_freezes,
        total_games_played=0,
        total_time_played=0,
        created_at=now,
        updated_at=now,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))
    await db.commit()

    result = await db.execute(select(Player).where(Player.user_id == user.id))
    return result.scalar_one()


async def update_profile(
    db: AsyncSession,
    player: Player,
    display_name: str | None = None,
    avatar_id: str | None = None,
) -> Player:
    if display_name is not None:
        player.display_name = display_name
    if avatar_id is not None:
        player.avatar_id = avatar_id
    player.updated_at = utcnow()
    await db.commit()
    return player


async def update_preferences(db: AsyncSession, player: Player, changes: dict) -> Player:
    """Merge preference flags into the player's preferences document."""
    if changes:
        player.preferences = {**(player.preferences or {}), **changes}
        player.updated_at = utcnow()
        await db.commit()
    return player
