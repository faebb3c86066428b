"""
Skill Assessment Router

Generates a per-domain quiz and scores submissions. A submission stores
the attempt first and then the new skill determination for the domain.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, StrictInt, model_validator
from sqlalchemy.orm import Session

from skillpath.database import get_db
from skillpath.dependencies.auth import SessionContext, get_session, verify_user_access
from skillpath.dependencies.users import get_user_or_404
from skillpath.schemas.base import CamelModel
from skillpath.services import storage
from skillpath.services.question_source import generate_quiz, DEFAULT_QUESTION_COUNT
from skillpath.services.scoring import score_quiz, classify_skill_level

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


class QuizQuestion(CamelModel):
    question: str
    options: List[str]
    correct_answer: StrictInt
    difficulty: Optional[str] = None


class GenerateQuizRequest(CamelModel):
    domains: List[str] = []
    user_id: Optional[str] = None
    count: int = Field(DEFAULT_QUESTION_COUNT, ge=1, le=20)


class GenerateQuizResponse(CamelModel):
    domain: str
    questions: List[QuizQuestion]
    source: str


class SubmitQuizRequest(CamelModel):
    user_id: str
    domain: str = Field(..., min_length=1)
    questions: List[QuizQuestion] = Field(..., min_length=1)
    # null or -1 = unanswered
    answers: List[Optional[StrictInt]]

    @model_validator(mode="after")
    def answers_match_questions(self):
        if len(self.answers) != len(self.questions):
            raise ValueError(
                f"answers: expected {len(self.questions)} answers, got {len(self.answers)}"
            )
        return self


class QuestionResult(CamelModel):
    question: Optional[str] = None
    options: List[str]
    user_answer: Optional[int] = None
    correct_answer: Optional[int] = None
    is_correct: bool


class SubmitQuizResponse(CamelModel):
    attempt_id: str
    score: int
    total_questions: int
    percentage: float
    skill_level: str
    results: List[QuestionResult]


@router.post("/generate", response_model=GenerateQuizResponse)
def generate(
    request: GenerateQuizRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Generate a quiz for the first requested domain.

    Without explicit domains, the user's onboarding selection is used.
    """
    domains = [d.strip() for d in request.domains if d and d.strip()]

    if request.user_id:
        verify_user_access(session, request.user_id)
        user = get_user_or_404(db, request.user_id)
        if not domains:
            domains = list(user.selected_domains or [])

    if not domains:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="domains: At least one domain is required"
        )

    quiz = generate_quiz(domains[0], count=request.count)
    logger.info(f"Quiz for {quiz.domain!r}: {len(quiz.questions)} questions ({quiz.source})")

    return GenerateQuizResponse(
        domain=quiz.domain,
        questions=[QuizQuestion(**q) for q in quiz.questions],
        source=quiz.source,
    )


@router.post("/submit", response_model=SubmitQuizResponse)
def submit(
    request: SubmitQuizRequest,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db)
):
    """
    Score a quiz, store the attempt and record the resulting skill level.

    The submission is scored before the user is looked up, so a
    QuizValidationError becomes a 400 without touching the database.
    """
    verify_user_access(session, request.user_id)

    questions: List[Dict[str, Any]] = [
        q.model_dump(by_alias=True, exclude_none=True) for q in request.questions
    ]
    result = score_quiz(questions, request.answers)
    user = get_user_or_404(db, request.user_id)
    skill_level = classify_skill_level(result.percentage).value
    answers = [r["userAnswer"] for r in result.results]

    attempt = storage.save_quiz_attempt(
        db,
        user_id=user.id,
        domain=request.domain,
        questions=questions,
        answers=answers,
        score=result.score,
        total_questions=result.total_questions,
        skill_level=skill_level,
    )
    storage.record_skill_level(db, user.id, request.domain, skill_level)

    logger.info(
        f"User {user.id} scored {result.score}/{result.total_questions} "
        f"in {request.domain!r} -> {skill_level}"
    )

    return SubmitQuizResponse(
        attempt_id=attempt.id,
        score=result.score,
        total_questions=result.total_questions,
        percentage=result.percentage,
        skill_level=skill_level,
        results=[
            QuestionResult(
                question=r["question"],
                options=r["options"],
                user_answer=r["userAnswer"],
                correct_answer=r["correctAnswer"],
                is_correct=r["isCorrect"],
            )
            for r in result.results
        ],
    )
