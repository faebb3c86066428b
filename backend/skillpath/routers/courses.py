"""
Course Router

Recommendations for the user's assessed level, enrollment and progress.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.orm import Session

from skillpath.database import get_db
from skillpath.dependencies.auth import SessionContext, get_session, verify_user_access
from skillpath.dependencies.users import get_user_or_404
from skillpath.routers.users import EnrolledCourseResponse, enrollment_response
from skillpath.schemas.base import CamelModel
from skillpath.services import storage
from skillpath.services.recommendations import recommend_courses, DEFAULT_DOMAIN
from skillpath.services.scoring import SkillLevel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["courses"])


class Course(CamelModel):
    id: str
    title: str
    provider: str
    url: str
    domain: str
    skill_level: str
    price: float = 0
    rating: Optional[float] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    is_free: bool = True


class RecommendationResponse(CamelModel):
    domain: str
    skill_level: str
    courses: List[Course]
    source: str


class RecommendRequest(CamelModel):
    domain: str = Field(..., min_length=1)
    skill_level: SkillLevel


class EnrollRequest(CamelModel):
    user_id: str
    course_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=1)
    is_paid: bool = False


class ProgressRequest(CamelModel):
    progress: int = Field(..., ge=0, le=100)


class ProgressResponse(CamelModel):
    success: bool
    progress: int
    completed: bool


def _recommend_for_user(db: Session, user_id: str, domain: Optional[str]) -> RecommendationResponse:
    current = storage.get_current_skill_levels(db, user_id)

    if not domain:
        # Most recently assessed domain first
        domain = current[0].domain if current else DEFAULT_DOMAIN

    levels = {s.domain: s.skill_level for s in current}
    skill_level = levels.get(domain, SkillLevel.BEGINNER.value)

    recommendation = recommend_courses(domain, skill_level)
    logger.info(
        f"{len(recommendation.courses)} {recommendation.source} courses for "
        f"{domain!r} at {skill_level}"
    )
    return RecommendationResponse(
        domain=recommendation.domain,
        skill_level=recommendation.skill_level,
        courses=[Course(**c) for c in recommendation.courses],
        source=recommendation.source,
    )


@router.get("/recommendations/{user_id}", response_model=RecommendationResponse)
def get_recommendations(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Recommendations for the most recently assessed domain, or Web
    Development for a user with no assessments.
    """
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return _recommend_for_user(db, user_id, None)


@router.get("/recommendations/{user_id}/{domain:path}", response_model=RecommendationResponse)
def get_domain_recommendations(
    user_id: str,
    domain: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return _recommend_for_user(db, user_id, domain.strip() or None)


@router.post("/recommend", response_model=RecommendationResponse)
def recommend(request: RecommendRequest):
    """
    Recommendations for an explicit domain and level, without a user.
    """
    recommendation = recommend_courses(request.domain.strip(), request.skill_level.value)
    return RecommendationResponse(
        domain=recommendation.domain,
        skill_level=recommendation.skill_level,
        courses=[Course(**c) for c in recommendation.courses],
        source=recommendation.source,
    )


@router.post("/enroll", response_model=EnrolledCourseResponse, status_code=status.HTTP_201_CREATED)
def enroll(
    request: EnrollRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, request.user_id)
    get_user_or_404(db, request.user_id)

    enrollment = storage.enroll_course(
        db,
        user_id=request.user_id,
        course_id=request.course_id,
        course_title=request.title.strip(),
        course_platform=request.provider.strip(),
        course_url=request.url.strip(),
        domain=request.domain.strip(),
        is_paid=request.is_paid,
    )
    return enrollment_response(enrollment)


@router.patch("/{enrollment_id}/progress", response_model=ProgressResponse)
def update_progress(
    enrollment_id: str,
    request: ProgressRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Set course progress (0-100). Reaching 100 marks the course completed.
    """
    enrollment = storage.get_enrolled_course(db, enrollment_id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Enrollment not found"
        )
    verify_user_access(session, enrollment.user_id)

    updated = storage.update_course_progress(db, enrollment_id, request.progress)
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Enrollment not found"
        )

    return ProgressResponse(success=True, progress=updated.progress, completed=updated.completed)
