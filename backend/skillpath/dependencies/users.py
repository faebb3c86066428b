from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from skillpath.models.models import User
from skillpath.services import storage


def get_user_or_404(db: Session, user_id: str) -> User:
    user = storage.get_user(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user
