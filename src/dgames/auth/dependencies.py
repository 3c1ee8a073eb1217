"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dgames.auth.jwt import verify_token
from dgames.config import PlatformPolicy
from dgames.database import get_session
from dgames.db.models import Player, User
from dgames.dependencies import get_policy
from dgames.players.service import get_or_create_player, get_user_by_id

_bearer = HTTPBearer()
_optional_bearer = HTTPBearer(auto_error=False)


async def _user_from_token(token: str, db: AsyncSession) -> User:
    try:
        payload = verify_token(token, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token subject") from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Extract and verify the bearer JWT, return the User. Raises 401 on failure."""
    return await _user_from_token(credentials.credentials, db)


async def get_current_player(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
) -> Player:
    """The caller's player profile, created on first use."""
    return await get_or_create_player(db, user, policy)


async def get_optional_player(
    credentials: HTTPAuthorizationCredentials | None = Security(_optional_bearer),
    db: AsyncSession = Depends(get_session),
    policy: PlatformPolicy = Depends(get_policy),
) -> Player | None:
    """Optional auth for public endpoints: None without a token."""
    if credentials is None:
        return None
    user = await _user_from_token(credentials.credentials, db)
    return await get_or_create_player(db, user, policy)
