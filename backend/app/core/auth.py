"""
Tubely Authentication Module

Bearer token authentication for the API. Tokens are HS256 (or HS384/HS512,
per `jwt_algorithm`) JWTs signed with `secret_key`; the `sub` claim carries
the caller's user UUID.

Usage:
    ```python
    from fastapi import Depends
    from app.core.auth import get_current_user_id

    @router.get("/videos")
    async def list_videos(user_id: UUID = Depends(get_current_user_id)):
        ...
    ```
"""

import logging

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import Settings, get_settings
from app.core.errors import AuthError


# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# auto_error is off so a missing header goes through AuthError (401) like any other bad token
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token whose `sub` claim is the user id.",
    auto_error=False,
)


# =============================================================================
# Token Functions
# =============================================================================


def create_access_token(user_id: UUID, settings: Settings | None = None) -> str:
    """
    Create a signed access token for `user_id`.

    Token claims:
    - sub: User ID
    - exp: Expiration (now + jwt_expiration_hours)
    - iat: Issued at

    Example:
        ```python
        token = create_access_token(uuid4())
        headers = {"Authorization": f"Bearer {token}"}
        ```
    """
    if settings is None:
        settings = get_settings()

    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)
    payload = {"sub": str(user_id), "exp": expire, "iat": now}

    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.info("Created access token for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        JWTError: If the token is malformed, expired, or badly signed.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("Access token has expired")
        raise
    except JWTError as e:
        logger.warning("Access token validation failed: %s", e)
        raise


# =============================================================================
# FastAPI Dependencies
# =============================================================================


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> UUID:
    """
    Resolve the authenticated caller's user id from the bearer token.

    Raises:
        AuthError: If the header is missing, the token is invalid or expired,
            or its subject is not a UUID.
    """
    if credentials is None:
        raise AuthError("Couldn't find a bearer token")

    try:
        payload = decode_access_token(credentials.credentials, settings)
    except JWTError as e:
        raise AuthError("Couldn't validate the bearer token") from e

    try:
        return UUID(str(payload.get("sub")))
    except ValueError as e:
        logger.warning("Access token subject is not a user id")
        raise AuthError("Couldn't validate the bearer token") from e


__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_current_user_id",
    "security",
]
