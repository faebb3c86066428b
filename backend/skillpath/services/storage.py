"""
Persistence Gateway

Typed reads and writes over the SQLAlchemy session. Every write commits one
row or one UPDATE statement; there are no multi-row transactions.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from skillpath.models.models import (
    User,
    DomainSkillLevel,
    QuizAttempt,
    EnrolledCourse,
    ChatMessage,
    LearningSchedule,
)

logger = logging.getLogger(__name__)


def _add(db: Session, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# =============================================================================
# Users
# =============================================================================

def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def create_user(
    db: Session,
    username: str,
    email: str,
    password_hash: str,
    full_name: Optional[str] = None,
) -> User:
    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        selected_domains=[],
    )
    return _add(db, user)


def update_user(db: Session, user: User, **fields) -> User:
    """Set the given attributes on ``user`` and commit."""
    for name, value in fields.items():
        setattr(user, name, value)
    db.commit()
    db.refresh(user)
    return user


def update_user_domains(db: Session, user: User, domains: List[str]) -> User:
    # Keep the order the user chose, without duplicates
    ordered = list(dict.fromkeys(d.strip() for d in domains if d and d.strip()))
    return update_user(db, user, selected_domains=ordered)


# =============================================================================
# Skill levels
# =============================================================================

def record_skill_level(db: Session, user_id: str, domain: str, skill_level: str) -> DomainSkillLevel:
    return _add(db, DomainSkillLevel(user_id=user_id, domain=domain, skill_level=skill_level))


def get_skill_history(db: Session, user_id: str) -> List[DomainSkillLevel]:
    return (
        db.query(DomainSkillLevel)
        .filter(DomainSkillLevel.user_id == user_id)
        .order_by(DomainSkillLevel.determined_at.desc())
        .all()
    )


def get_current_skill_levels(db: Session, user_id: str) -> List[DomainSkillLevel]:
    """
    Latest skill level per domain for a user, most recently assessed first.

    Uses a grouped max(determined_at) subquery joined back to the table, so
    the result never depends on row insertion order.
    """
    latest = (
        db.query(
            DomainSkillLevel.domain.label("domain"),
            func.max(DomainSkillLevel.determined_at).label("latest_at"),
        )
        .filter(DomainSkillLevel.user_id == user_id)
        .group_by(DomainSkillLevel.domain)
        .subquery()
    )

    rows = (
        db.query(DomainSkillLevel)
        .join(
            latest,
            (DomainSkillLevel.domain == latest.c.domain)
            & (DomainSkillLevel.determined_at == latest.c.latest_at),
        )
        .filter(DomainSkillLevel.user_id == user_id)
        .order_by(DomainSkillLevel.determined_at.desc(), DomainSkillLevel.id.desc())
        .all()
    )

    # Two rows can share a timestamp; keep one per domain
    current = []
    seen = set()
    for row in rows:
        if row.domain in seen:
            continue
        seen.add(row.domain)
        current.append(row)
    return current


def get_skill_map(db: Session, user_id: str) -> Dict[str, str]:
    return {row.domain: row.skill_level for row in get_current_skill_levels(db, user_id)}


# =============================================================================
# Quiz attempts
# =============================================================================

def save_quiz_attempt(
    db: Session,
    user_id: str,
    domain: str,
    questions: List[Dict[str, Any]],
    answers: List[Optional[int]],
    score: int,
    total_questions: int,
    skill_level: str,
) -> QuizAttempt:
    attempt = QuizAttempt(
        user_id=user_id,
        domain=domain,
        questions=questions,
        answers=answers,
        score=score,
        total_questions=total_questions,
        skill_level_determined=skill_level,
    )
    return _add(db, attempt)


def get_quiz_attempts(
    db: Session,
    user_id: str,
    domain: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[QuizAttempt]:
    query = db.query(QuizAttempt).filter(QuizAttempt.user_id == user_id)
    if domain:
        query = query.filter(QuizAttempt.domain == domain)
    query = query.order_by(QuizAttempt.completed_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


# =============================================================================
# Enrollments
# =============================================================================

def get_enrolled_course(db: Session, enrollment_id: str) -> Optional[EnrolledCourse]:
    return db.query(EnrolledCourse).filter(EnrolledCourse.id == enrollment_id).first()


def enroll_course(
    db: Session,
    user_id: str,
    course_title: str,
    course_platform: str,
    course_url: str,
    domain: str,
    is_paid: bool = False,
    course_id: Optional[str] = None,
) -> EnrolledCourse:
    enrollment = EnrolledCourse(
        user_id=user_id,
        course_id=course_id,
        course_title=course_title,
        course_platform=course_platform,
        course_url=course_url,
        domain=domain,
        is_paid=is_paid,
        progress=0,
        completed=False,
    )
    return _add(db, enrollment)


def get_enrolled_courses(db: Session, user_id: str) -> List[EnrolledCourse]:
    return (
        db.query(EnrolledCourse)
        .filter(EnrolledCourse.user_id == user_id)
        .order_by(EnrolledCourse.enrolled_at.desc())
        .all()
    )


def update_course_progress(db: Session, enrollment_id: str, progress: int) -> Optional[EnrolledCourse]:
    """
    Set progress and completion in one UPDATE.

    Progress is clamped to 0-100; ``completed`` is true exactly when the
    stored progress is 100. Returns None for an unknown id.
    """
    progress = min(max(int(progress), 0), 100)

    result = db.execute(
        update(EnrolledCourse)
        .where(EnrolledCourse.id == enrollment_id)
        .values(progress=progress, completed=progress >= 100)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount == 0:
        return None

    enrollment = get_enrolled_course(db, enrollment_id)
    db.refresh(enrollment)
    return enrollment


def count_enrollments(db: Session, user_id: str) -> Dict[str, int]:
    courses = get_enrolled_courses(db, user_id)
    completed = sum(1 for c in courses if c.completed)
    return {
        "total": len(courses),
        "completed": completed,
        "in_progress": len(courses) - completed,
    }


# =============================================================================
# Chat
# =============================================================================

def save_chat_message(db: Session, user_id: str, role: str, content: str) -> ChatMessage:
    return _add(db, ChatMessage(user_id=user_id, role=role, content=content))


def get_chat_history(db: Session, user_id: str, limit: int = 50) -> List[ChatMessage]:
    """Latest ``limit`` messages, returned oldest first."""
    rows = (
        db.query(ChatMessage)
        .filter(ChatMessage.user_id == user_id)
        .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(rows))


# =============================================================================
# Learning schedule
# =============================================================================

def create_schedule(
    db: Session,
    user_id: str,
    title: str,
    description: Optional[str] = None,
    due_date: Optional[datetime] = None,
    course_id: Optional[str] = None,
) -> LearningSchedule:
    item = LearningSchedule(
        user_id=user_id,
        course_id=course_id,
        title=title,
        description=description,
        due_date=due_date,
        completed=False,
    )
    return _add(db, item)


def get_schedule_item(db: Session, schedule_id: str) -> Optional[LearningSchedule]:
    return db.query(LearningSchedule).filter(LearningSchedule.id == schedule_id).first()


def get_schedules(db: Session, user_id: str) -> List[LearningSchedule]:
    """Schedule items by due date, undated items last."""
    return (
        db.query(LearningSchedule)
        .filter(LearningSchedule.user_id == user_id)
        .order_by(
            LearningSchedule.due_date.is_(None),
            LearningSchedule.due_date.asc(),
            LearningSchedule.created_at.asc(),
        )
        .all()
    )


def set_schedule_completion(db: Session, schedule_id: str, completed: bool) -> Optional[LearningSchedule]:
    item = get_schedule_item(db, schedule_id)
    if item is None:
        return None
    item.completed = completed
    db.commit()
    db.refresh(item)
    return item
