"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis

from dgames.config import PlatformPolicy, get_settings
from dgames.redis_client import get_redis_or_none


async def get_redis_dep() -> AsyncGenerator[redis.Redis | None, None]:
    """Yield the Redis client (or None when the cache is not configured)."""
    yield get_redis_or_none()


def get_policy() -> PlatformPolicy:
    """Gameplay policy built from the cached settings."""
    return get_settings().policy()
