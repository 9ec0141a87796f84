"""
Authentication dependencies for FastAPI.

Resolves the bearer token to an ``Actor`` whose role comes from the stored
account, and wires the custody services for each request.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from custody.app.core.config import settings
from custody.app.core.jwt import decode_access_token
from custody.app.core.redis_client import redis_client
from custody.app.db.session import get_db
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.dispatch import DispatchService
from custody.app.domain.custody.state_machine import PackageStateMachine
from custody.app.models.account import Account
from custody.app.services.change_feed import ChangeFeed, NullChangeFeed, RedisChangeFeed

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Actor:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Loads the account named by ``user_id``
    3. Rejects inactive accounts

    Any role claim in the token is ignored.

    Raises:
        HTTPException: 401 for a bad token or unknown account, 403 if inactive
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(Account).where(Account.id == user_id))
    account = result.scalar_one_or_none()

    if not account:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return Actor.from_account(account)


def get_change_feed() -> ChangeFeed:
    """Redis publisher when enabled, otherwise a no-op feed."""
    if settings.change_feed_enabled:
        return RedisChangeFeed(redis_client)
    return NullChangeFeed()


async def get_state_machine(
    db: AsyncSession = Depends(get_db),
    change_feed: ChangeFeed = Depends(get_change_feed)
) -> PackageStateMachine:
    return PackageStateMachine(db, change_feed=change_feed)


async def get_dispatch_service(
    state_machine: PackageStateMachine = Depends(get_state_machine)
) -> DispatchService:
    return DispatchService(state_machine)
