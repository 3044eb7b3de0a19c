"""JWT token management and request authentication dependencies."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.core.config import settings
from livecast.core.database import get_db
from livecast.core.redis import ExpiringKeyStore, redis_client
from livecast.modules.auth.models import User
from livecast.modules.auth.repository import UserRepository

ALGORITHM = "HS256"
REVOKED_TOKENS_NAMESPACE = "auth:revoked"


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    exp: datetime
    iat: datetime
    type: str
    jti: str  # JWT ID for revocation


class AdminAccessDenied(HTTPException):
    """Raised when a non-admin calls an admin endpoint."""

    def __init__(self, detail: str = "Admin access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class CreatorAccessDenied(HTTPException):
    """Raised when a viewer calls a creator endpoint."""

    def __init__(self, detail: str = "Creator access required"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def create_access_token(
    user_id: uuid.UUID,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, str]:
    """Create an access token.

    Args:
        user_id: User UUID
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        tuple[str, str]: (token, jti)
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "exp": now + expires_delta,
        "iat": now,
        "type": "access",
        "jti": jti,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM), jti


def decode_token(token: str) -> TokenPayload | None:
    """Decode a JWT token; signature and expiry are checked by the library."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            type=payload["type"],
            jti=payload["jti"],
        )
    except (JWTError, KeyError):
        return None


def get_revoked_token_store() -> ExpiringKeyStore:
    return ExpiringKeyStore(redis_client, REVOKED_TOKENS_NAMESPACE)


async def validate_token(
    token: str,
    revoked: ExpiringKeyStore,
    expected_type: str = "access",
) -> TokenPayload | None:
    """Validate a JWT token.

    Returns:
        TokenPayload | None: Decoded payload if valid and not revoked
    """
    payload = decode_token(token)
    if payload is None or payload.type != expected_type:
        return None
    if await revoked.contains(payload.jti):
        return None
    return payload


async def revoke_token(token: str, revoked: ExpiringKeyStore) -> bool:
    """Revoke a token until it would have expired anyway.

    Returns:
        bool: False if the token could not be decoded
    """
    payload = decode_token(token)
    if payload is None:
        return False

    remaining = int((payload.exp - datetime.now(timezone.utc)).total_seconds())
    if remaining > 0:
        await revoked.put(payload.jti, payload.sub, remaining)
    return True


security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    revoked: ExpiringKeyStore = Depends(get_revoked_token_store),
) -> uuid.UUID:
    """Extract user ID from a bearer token.

    Raises:
        HTTPException: If token is invalid
    """
    payload = await validate_token(credentials.credentials, revoked)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return uuid.UUID(payload.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    revoked: ExpiringKeyStore = Depends(get_revoked_token_store),
) -> uuid.UUID | None:
    """Like ``get_current_user_id`` but anonymous requests yield None."""
    if credentials is None:
        return None
    payload = await validate_token(credentials.credentials, revoked)
    if payload is None:
        return None
    try:
        return uuid.UUID(payload.sub)
    except ValueError:
        return None


async def get_current_user(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db),
) -> User:
    """Load the authenticated user.

    Raises:
        HTTPException: 401 if the user no longer exists, 403 if blocked
    """
    user = await UserRepository(session).get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if not user.is_active():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is blocked",
        )
    return user


async def get_optional_user(
    user_id: uuid.UUID | None = Depends(get_optional_user_id),
    session: AsyncSession = Depends(get_db),
) -> User | None:
    if user_id is None:
        return None
    user = await UserRepository(session).get_by_id(user_id)
    if user is None or not user.is_active():
        return None
    return user


async def require_creator(user: User = Depends(get_current_user)) -> User:
    if not user.can_broadcast():
        raise CreatorAccessDenied()
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin():
        raise AdminAccessDenied()
    return user
