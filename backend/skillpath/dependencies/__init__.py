"""
FastAPI Dependencies for SkillPath
"""

from skillpath.dependencies.auth import (
    SessionContext,
    get_session,
    verify_user_access,
)
from skillpath.dependencies.users import get_user_or_404

__all__ = [
    "SessionContext",
    "get_session",
    "verify_user_access",
    "get_user_or_404",
]
