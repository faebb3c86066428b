"""
Authentication Router
Handles user signup and login.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skillpath.database import get_db
from skillpath.schemas.base import CamelModel
from skillpath.services import storage
from skillpath.services.auth import (
    hash_password,
    verify_password,
    create_access_token,
    MIN_PASSWORD_LENGTH,
)

router = APIRouter(prefix="/api/auth", tags=["authentication"])
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


# ==================== Request/Response Models ====================

class SignupRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    full_name: Optional[str] = Field(None, max_length=100)


class LoginRequest(CamelModel):
    username: str
    password: str


class SignupResponse(CamelModel):
    user_id: str
    username: str
    access_token: str
    token_type: str = "bearer"


class LoginResponse(CamelModel):
    user_id: str
    username: str
    selected_domains: List[str] = []
    access_token: str
    token_type: str = "bearer"


# ==================== Endpoints ====================

@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, db: Session = Depends(get_db)):
    """
    Create an account and return a session token.
    """
    username = request.username.strip()

    if storage.get_user_by_username(db, username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already taken"
        )
    if storage.get_user_by_email(db, request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists"
        )

    try:
        user = storage.create_user(
            db,
            username=username,
            email=request.email,
            password_hash=hash_password(request.password),
            full_name=request.full_name,
        )
    except IntegrityError:
        # Lost a race with a concurrent signup for the same username or email
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered"
        )

    logger.info(f"New user signed up: {user.id}")
    return SignupResponse(
        user_id=user.id,
        username=user.username,
        access_token=create_access_token(user.id),
    )


@router.post("/login", response_model=LoginResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate with username and password.

    Unknown users and wrong passwords get the same 401.
    """
    user = storage.get_user_by_username(db, request.username.strip())
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS
        )

    storage.update_user(db, user, last_login=datetime.utcnow())

    return LoginResponse(
        user_id=user.id,
        username=user.username,
        selected_domains=user.selected_domains or [],
        access_token=create_access_token(user.id),
    )
