"""Dialect-aware INSERT ... ON CONFLICT construction.

Both PostgreSQL and SQLite support ``ON CONFLICT`` on a unique key; the
construct lives in a different dialect module for each.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model: Any) -> Any:
    """Return the dialect's ``insert(model)`` for the session's bind."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    msg = f"Upserts are not supported on dialect {dialect!r}"
    raise NotImplementedError(msg)
