"""Bearer token authentication.

Tokens are issued by the identity provider; this module only verifies them
and resolves the calling user. ``create_access_token`` issues compatible
tokens for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import get_settings
from taskboard.db.session import get_db_session
from taskboard.models.user import User

logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Get the current authenticated user from JWT token."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise _unauthorized("Invalid token")

    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise _unauthorized("Invalid token")

    try:
        user_id = UUID(subject)
    except ValueError:
        raise _unauthorized("Invalid token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    # Deactivated accounts are treated as unknown
    if user is None or not user.is_active:
        logger.info("auth_rejected", user_id=subject)
        raise _unauthorized("User not found")

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


# Type alias for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
