"""FastAPI dependencies."""

from datetime import datetime
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from telehealth.core.clock import ClockFn, utc_now
from telehealth.core.security import decode_access_token
from telehealth.database import get_db
from telehealth.schemas.auth import AuthenticatedUser, UserRole

# Security
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedUser:
    """
    Extract and validate the caller from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller id and role

    Raises:
        HTTPException: If token is invalid or expired
    """
    user = decode_access_token(credentials.credentials)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_role(*roles: UserRole):
    """Build a dependency that only admits the given roles."""

    async def checker(
        user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    ) -> AuthenticatedUser:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not allowed for this role",
            )
        return user

    return checker


def get_clock() -> ClockFn:
    """Clock dependency, overridden in tests."""
    return utc_now


async def get_now(clock: Annotated[ClockFn, Depends(get_clock)]) -> datetime:
    """Current instant from the injected clock."""
    return clock()


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
CurrentPatient = Annotated[AuthenticatedUser, Depends(require_role(UserRole.PATIENT))]
CurrentAdmin = Annotated[AuthenticatedUser, Depends(require_role(UserRole.ADMIN))]
Now = Annotated[datetime, Depends(get_now)]
