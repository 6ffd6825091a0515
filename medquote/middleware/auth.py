from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.errors import not_found, unauthenticated
from medquote.models.user import User
from medquote.services import user_service
from medquote.services.auth_service import verify_access_token

logger = structlog.get_logger()

security = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """FastAPI dependency: verify the bearer token, return the caller identity."""
    if credentials is None:
        raise unauthenticated()
    try:
        return verify_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise unauthenticated("Invalid or expired token")


async def get_current_user(
    identity: dict = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await user_service.get_user_by_auth_id(db, identity["auth_id"])
    if not user:
        raise not_found("User not found")
    return user


async def get_or_create_current_user(
    identity: dict = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Like get_current_user, but provisions an unverified buyer on first contact.

    The new row is committed immediately so it outlives a rejection of the
    request that created it.
    """
    user = await user_service.get_user_by_auth_id(db, identity["auth_id"])
    if user:
        return user
    user = await user_service.get_or_create_user(db, identity)
    await db.commit()
    return user
