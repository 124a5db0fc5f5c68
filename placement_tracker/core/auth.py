"""
Authentication Utility - verifies access tokens issued by the auth provider.

Sign-up, sign-in and sessions are owned by the hosted backend. The tracker
only reads the signed-in user out of the bearer token and threads it through
the store and services as an explicit SessionContext.

Provides:
- current_user(): token -> user id (or None)
- SessionContext: who the request acts for
- FastAPI dependency for protected routes
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from placement_tracker.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


class SessionContext(BaseModel):
    """The signed-in user a request acts for. Passed explicitly, never global."""

    user_id: str
    email: Optional[str] = None


def decode_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    """Decode and verify JWT token."""
    settings = settings or get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        return None


def current_user(token: Optional[str], settings: Optional[Settings] = None) -> Optional[SessionContext]:
    """Read-only identity lookup: the user behind a token, or None."""
    if not token:
        return None
    payload = decode_token(token, settings)
    if not payload or not payload.get("sub"):
        return None
    return SessionContext(user_id=str(payload["sub"]), email=payload.get("email"))


async def get_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> SessionContext:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/placements")
        async def route(context: SessionContext = Depends(get_session_context)):
            ...
    """
    context = current_user(credentials.credentials if credentials else None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context
