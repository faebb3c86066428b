"""
Learning Schedule Router

Manual schedule items, AI-planned milestones and completion tracking.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.orm import Session

from skillpath.database import get_db
from skillpath.dependencies.auth import SessionContext, get_session, verify_user_access
from skillpath.dependencies.users import get_user_or_404
from skillpath.schemas.base import CamelModel
from skillpath.services import storage
from skillpath.services.schedule_planner import plan_schedule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


class ScheduleCreateRequest(CamelModel):
    user_id: str
    course_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[datetime] = None


class ScheduleUpdateRequest(CamelModel):
    completed: bool


class ScheduleGenerateRequest(CamelModel):
    user_id: str
    goals: str = Field(..., min_length=1, max_length=2000)


class ScheduleItem(CamelModel):
    id: str
    course_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: bool
    created_at: Optional[datetime] = None


class ScheduleListResponse(CamelModel):
    items: List[ScheduleItem]


class ScheduleGenerateResponse(CamelModel):
    success: bool
    items_created: int
    items: List[ScheduleItem]


class SuccessResponse(CamelModel):
    success: bool


def schedule_item(row) -> ScheduleItem:
    return ScheduleItem(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        description=row.description,
        due_date=row.due_date,
        completed=bool(row.completed),
        created_at=row.created_at,
    )


def _get_item_or_404(db: Session, schedule_id: str):
    item = storage.get_schedule_item(db, schedule_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Schedule item not found"
        )
    return item


@router.post("", response_model=ScheduleItem, status_code=status.HTTP_201_CREATED)
def create_schedule_item(
    request: ScheduleCreateRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, request.user_id)
    get_user_or_404(db, request.user_id)

    if request.course_id:
        enrollment = storage.get_enrolled_course(db, request.course_id)
        if enrollment is None or enrollment.user_id != request.user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Enrollment not found"
            )

    row = storage.create_schedule(
        db,
        user_id=request.user_id,
        title=request.title.strip(),
        description=request.description,
        due_date=request.due_date,
        course_id=request.course_id,
    )
    return schedule_item(row)


@router.post("/generate", response_model=ScheduleGenerateResponse)
def generate_schedule(
    request: ScheduleGenerateRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Plan milestones for the user's goals and store them as schedule items.
    """
    verify_user_access(session, request.user_id)
    get_user_or_404(db, request.user_id)

    skills = storage.get_skill_map(db, request.user_id)
    enrolled_count = storage.count_enrollments(db, request.user_id)["total"]

    planned = plan_schedule(request.goals, skills, enrolled_count)
    rows = [
        storage.create_schedule(
            db,
            user_id=request.user_id,
            title=p.title,
            description=p.description,
            due_date=p.due_date,
        )
        for p in planned
    ]

    logger.info(f"Created {len(rows)} schedule items for user {request.user_id}")
    return ScheduleGenerateResponse(
        success=True,
        items_created=len(rows),
        items=[schedule_item(r) for r in rows],
    )


@router.get("/{user_id}", response_model=ScheduleListResponse)
def get_schedule(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    get_user_or_404(db, user_id)
    return ScheduleListResponse(items=[schedule_item(r) for r in storage.get_schedules(db, user_id)])


@router.patch("/{schedule_id}", response_model=SuccessResponse)
def update_schedule_item(
    schedule_id: str,
    request: ScheduleUpdateRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    item = _get_item_or_404(db, schedule_id)
    verify_user_access(session, item.user_id)
    storage.set_schedule_completion(db, schedule_id, request.completed)
    return SuccessResponse(success=True)


@router.post("/{schedule_id}/complete", response_model=SuccessResponse)
def complete_schedule_item(
    schedule_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    item = _get_item_or_404(db, schedule_id)
    verify_user_access(session, item.user_id)
    storage.set_schedule_completion(db, schedule_id, True)
    return SuccessResponse(success=True)
