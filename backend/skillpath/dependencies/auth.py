"""
Authentication Dependencies for SkillPath

Resolves an optional bearer token into a session and guards user-scoped
endpoints against access to another user's data.

Usage:
    @router.get("/{user_id}/skills")
    def get_skills(user_id: str, session: SessionContext = Depends(get_session)):
        verify_user_access(session, user_id)
        ...
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from skillpath.services.auth import get_user_id_from_token, TokenError

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)


def _require_auth() -> bool:
    return os.getenv("REQUIRE_AUTH", "false").lower() == "true"


@dataclass
class SessionContext:
    """Identity carried by the request; user_id is None for anonymous calls."""
    user_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> SessionContext:
    """
    Resolve the bearer token, if any.

    Raises:
        HTTPException: 401 if a token is sent but is invalid or expired
    """
    if credentials is None:
        return SessionContext()

    try:
        user_id = get_user_id_from_token(credentials.credentials)
    except TokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return SessionContext(user_id=user_id)


def verify_user_access(session: SessionContext, user_id: str) -> None:
    """
    Verify that the session may act on ``user_id``.

    Raises:
        HTTPException: 400 for an empty id, 401 when authentication is
            required and missing, 403 when the token names another user
    """
    if not user_id or not str(user_id).strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID"
        )

    if not session.is_authenticated:
        if _require_auth():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return

    if session.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )
