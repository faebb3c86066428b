"""
AI Mentor Router

Chat with the learning mentor and fetch suggested next actions.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.orm import Session

from skillpath.database import get_db
from skillpath.dependencies.auth import SessionContext, get_session, verify_user_access
from skillpath.dependencies.users import get_user_or_404
from skillpath.schemas.base import CamelModel
from skillpath.services import mentor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mentor"])


class HistoryMessage(CamelModel):
    role: str
    content: str


class ChatRequest(CamelModel):
    user_id: str
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_history: List[HistoryMessage] = []


class ChatResponse(CamelModel):
    response: str
    source: str


class MentorRecommendation(CamelModel):
    type: str
    title: str
    description: str
    action: str
    link: str


class MentorRecommendationsResponse(CamelModel):
    recommendations: List[MentorRecommendation]


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Reply to a learner message. Always answers; a keyword-based reply is
    used when the AI service is unavailable.
    """
    verify_user_access(session, request.user_id)
    get_user_or_404(db, request.user_id)

    message = request.message.strip()
    if not message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="message: Message cannot be empty"
        )

    reply = mentor.respond(
        db,
        request.user_id,
        message,
        [m.model_dump() for m in request.conversation_history],
    )
    return ChatResponse(response=reply.response, source=reply.source)


@router.get("/mentor/recommendations/{user_id}", response_model=MentorRecommendationsResponse)
def get_mentor_recommendations(
    user_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    verify_user_access(session, user_id)
    user = get_user_or_404(db, user_id)
    return MentorRecommendationsResponse(
        recommendations=[
            MentorRecommendation(**r) for r in mentor.get_mentor_recommendations(db, user)
        ]
    )
