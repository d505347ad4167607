"""Bearer token issuing and verification for patients, doctors and admins."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from jose import JWTError, jwt

from telehealth.config import settings
from telehealth.schemas.auth import AuthenticatedUser, UserRole

logger = structlog.get_logger()

TOKEN_TYPE = "access"


def create_access_token(
    user_id: UUID,
    role: UserRole,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Issue an access token for a user acting in a role.

    Args:
        user_id: Patient, doctor or admin id, stored as ``sub``
        role: Role the caller acts in
        expires_delta: Optional lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT token
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims: dict[str, Any] = {
        "sub": str(user_id),
        "role": role.value,
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AuthenticatedUser | None:
    """
    Verify a token and resolve the caller it was issued to.

    Expired, tampered or foreign tokens, and tokens whose ``sub`` is not a
    UUID or whose ``role`` is unknown, all resolve to ``None``.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("token_rejected", reason=str(e))
        return None

    if claims.get("type") != TOKEN_TYPE:
        return None

    try:
        return AuthenticatedUser(id=UUID(str(claims.get("sub"))), role=UserRole(claims.get("role")))
    except ValueError:
        logger.info("token_rejected", reason="invalid subject or role")
        return None
