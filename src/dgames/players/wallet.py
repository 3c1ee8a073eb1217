"""Hint and streak-freeze balances.

Every balance change is a single conditional UPDATE, so concurrent spends can
never drive a balance below zero. The new value is written back onto the
in-memory ``Player`` without marking it dirty.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Row, Update, case, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from dgames.db.models import Player


async def _apply(db: AsyncSession, player: Player, stmt: Update) -> Row[Any] | None:
    now = datetime.now(timezone.utc)
    result = await db.execute(
        stmt.values(updated_at=now)
        .returning(Player.hints_balance, Player.streak_freezes)
        .execution_options(synchronize_session=False)
    )
    row = result.one_or_none()
    if row is None:
        return None
    set_committed_value(player, "hints_balance", row.hints_balance)
    set_committed_value(player, "streak_freezes", row.streak_freezes)
    set_committed_value(player, "updated_at", now)
    return row


async def credit_hints(db: AsyncSession, player: Player, amount: int) -> int:
    """Add hints. Returns the new balance."""
    row = await _apply(
        db, player,
        update(Player)
        .where(Player.id == player.id)
        .values(hints_balance=Player.hints_balance + amount),
    )
    return row.hints_balance


async def debit_hints(db: AsyncSession, player: Player, amount: int) -> bool:
    """Spend hints. Returns False (and changes nothing) if the balance is short."""
    row = await _apply(
        db, player,
        update(Player)
        .where(Player.id == player.id, Player.hints_balance >= amount)
        .values(hints_balance=Player.hints_balance - amount),
    )
    return row is not None


async def credit_freezes(db: AsyncSession, player: Player, amount: int, cap: int) -> int:
    """Add streak freezes up to ``cap``. A balance already above the cap is left alone."""
    current = Player.streak_freezes
    raised = current + amount
    row = await _apply(
        db, player,
        update(Player)
        .where(Player.id == player.id)
        .values(streak_freezes=case((current >= cap, current), (raised > cap, cap), else_=raised)),
    )
    return row.streak_freezes


async def consume_freeze(db: AsyncSession, player: Player) -> bool:
    """Spend one streak freeze. Returns False if none are left."""
    row = await _apply(
        db, player,
        update(Player)
        .where(Player.id == player.id, Player.streak_freezes > 0)
        .values(streak_freezes=Player.streak_freezes - 1),
    )
    return row is not None


async def record_play(db: AsyncSession, player: Player, duration_seconds: int) -> None:
    """Bump lifetime game count and play time."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Player)
        .where(Player.id == player.id)
        .values(
            total_games_played=Player.total_games_played + 1,
            total_time_played=Player.total_time_played + duration_seconds,
            updated_at=now,
        )
        .returning(Player.total_games_played, Player.total_time_played)
        .execution_options(synchronize_session=False)
    )
    row = result.one()
    set_committed_value(player, "total_games_played", row.total_games_played)
    set_committed_value(player, "total_time_played", row.total_time_played)
    set_committed_value(player, "updated_at", now)
