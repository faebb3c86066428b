from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from skillpath.database import get_db
from skillpath.dependencies.auth import SessionContext, get_session, verify_user_access
from skillpath.dependencies.users import get_user_or_404
from skillpath.schemas.base import CamelModel
from skillpath.services import storage
from skillpath.routers.schedule import ScheduleListResponse, schedule_item

router = APIRouter(prefix="/api/user", tags=["users"])


class OnboardRequest(CamelModel):
    user_id: str
    domains: List[str] = Field(..., min_length=1)


class OnboardResponse(CamelModel):
    user_id: str
    selected_domains: List[str]


class UserUpdateRequest(CamelModel):
    full_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None


class UserProfileResponse(CamelModel):
    user_id: str
    username: str
    email: str
    full_name: Optional[str] = None
    selected_domains: List[str] = []
    created_at: Optional[datetime] = None


class SkillHistoryEntry(CamelModel):
    domain: str
    skill_level: str
    determined_at: datetime


class QuizAttemptSummary(CamelModel):
    id: str
    domain: str
    score: int
    total_questions: int
    skill_level: Optional[str] = None
    completed_at: datetime


class EnrolledCourseResponse(CamelModel):
    id: str
    course_id: Optional[str] = None
    title: str
    provider: str
    url: str
    domain: str
    is_paid: bool
    progress: int
    completed: bool
    enrolled_at: datetime


class EnrolledCoursesResponse(CamelModel):
    courses: List[EnrolledCourseResponse]


class ChatMessageResponse(CamelModel):
    id: str
    role: str
    content: str
    timestamp: datetime


def enrollment_response(course) -> EnrolledCourseResponse:
    return EnrolledCourseResponse(
        id=course.id,
        course_id=course.course_id,
        title=course.course_title,
        provider=course.course_platform,
        url=course.course_url,
        domain=course.domain,
        is_paid=bool(course.is_paid),
        progress=course.progress or 0,
        completed=bool(course.completed),
        enrolled_at=course.enrolled_at,
    )


def _profile(user) -> UserProfileResponse:
    return UserProfileResponse(
        user_id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        selected_domains=user.selected_domains or [],
        created_at=user.created_at,
    )


@router.post("/onboard", response_model=OnboardResponse)
def onboard(
    request: OnboardRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Save the learning domains the user picked during onboarding.
    """
    verify_user_access(session, request.user_id)

    domains = [d for d in request.domains if d and d.strip()]
    if not domains:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="domains: At least one domain is required"
        )

    user = get_user_or_404(db, request.user_id)
    user = storage.update_user_domains(db, user, domains)
    return OnboardResponse(user_id=user.id, selected_domains=user.selected_domains)


@router.get("/{user_id}", response_model=UserProfileResponse)
def get_profile(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    return _profile(get_user_or_404(db, user_id))


@router.patch("/{user_id}", response_model=UserProfileResponse)
def update_profile(
    user_id: str,
    request: UserUpdateRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """Update full name and/or email."""
    verify_user_access(session, user_id)
    user = get_user_or_404(db, user_id)

    changes = {}
    if request.full_name is not None:
        changes["full_name"] = request.full_name.strip() or None
    if request.email is not None and request.email != user.email:
        if storage.get_user_by_email(db, request.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="An account with this email already exists"
            )
        changes["email"] = request.email

    if changes:
        user = storage.update_user(db, user, **changes)
    return _profile(user)


@router.get("/{user_id}/skills", response_model=Dict[str, str])
def get_skills(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Current skill level per domain (latest determination wins).
    """
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return storage.get_skill_map(db, user_id)


@router.get("/{user_id}/skills/history", response_model=List[SkillHistoryEntry])
def get_skills_history(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return [
        SkillHistoryEntry(domain=s.domain, skill_level=s.skill_level, determined_at=s.determined_at)
        for s in storage.get_skill_history(db, user_id)
    ]


@router.get("/{user_id}/quiz-attempts", response_model=List[QuizAttemptSummary])
def get_quiz_attempts(
    user_id: str,
    domain: Optional[str] = None,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return [
        QuizAttemptSummary(
            id=a.id,
            domain=a.domain,
            score=a.score,
            total_questions=a.total_questions,
            skill_level=a.skill_level_determined,
            completed_at=a.completed_at,
        )
        for a in storage.get_quiz_attempts(db, user_id, domain=domain)
    ]


@router.get("/{user_id}/enrolled", response_model=EnrolledCoursesResponse)
def get_enrolled(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    courses = storage.get_enrolled_courses(db, user_id)
    return EnrolledCoursesResponse(courses=[enrollment_response(c) for c in courses])


@router.get("/{user_id}/courses", response_model=EnrolledCoursesResponse)
def get_user_courses(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """Same listing as /enrolled."""
    return get_enrolled(user_id, session, db)


@router.get("/{user_id}/schedules", response_model=ScheduleListResponse)
def get_user_schedules(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return ScheduleListResponse(items=[schedule_item(r) for r in storage.get_schedules(db, user_id)])


@router.get("/{user_id}/chat-history", response_model=List[ChatMessageResponse])
def get_chat_history(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return [
        ChatMessageResponse(id=m.id, role=m.role, content=m.content, timestamp=m.timestamp)
        for m in storage.get_chat_history(db, user_id, limit=limit)
    ]
