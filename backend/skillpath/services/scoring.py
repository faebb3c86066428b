"""
Quiz Scoring and Skill Classification

Scores a submitted quiz against its answer keys and maps the percentage
to one of three ordinal skill levels. Each submission is classified on its
own; history is kept by the caller but never smooths the result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

# Lower bounds, inclusive
ADVANCED_THRESHOLD = 70.0
INTERMEDIATE_THRESHOLD = 40.0

UNANSWERED_SENTINEL = -1


class SkillLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class QuizValidationError(ValueError):
    """Raised when a submission cannot be scored."""
    pass


@dataclass
class QuizScore:
    score: int
    total_questions: int
    percentage: float
    results: List[Dict[str, Any]] = field(default_factory=list)


def classify_skill_level(percentage: float) -> SkillLevel:
    """
    Map a quiz percentage to a skill level.

    >= 70 is Advanced, >= 40 is Intermediate, anything lower is Beginner.
    """
    if percentage >= ADVANCED_THRESHOLD:
        return SkillLevel.ADVANCED
    if percentage >= INTERMEDIATE_THRESHOLD:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


def normalize_answer(answer: Any, option_count: int, index: int) -> Optional[int]:
    """
    Return the option index for an answer, or None when unanswered.

    Raises:
        QuizValidationError: If the answer is not a valid index or sentinel
    """
    if answer is None or answer == UNANSWERED_SENTINEL:
        return None
    # bool is an int subclass; True/False are not option indices
    if isinstance(answer, bool) or not isinstance(answer, int):
        raise QuizValidationError(f"Answer {index + 1} must be an option index or null")
    if answer < 0 or answer >= option_count:
        raise QuizValidationError(
            f"Answer {index + 1} is out of range (0-{option_count - 1})"
        )
    return answer


def _field(question: Any, name: str):
    if isinstance(question, dict):
        return question.get(name)
    return getattr(question, name, None)


def score_quiz(questions: Sequence[Any], answers: Sequence[Any]) -> QuizScore:
    """
    Score parallel sequences of questions and answers.

    Questions may be dicts or objects exposing ``question``, ``options`` and
    ``correctAnswer`` (or ``correct_answer``).

    Raises:
        QuizValidationError: For an empty quiz, mismatched lengths or an
            invalid answer
    """
    total = len(questions)
    if total == 0:
        raise QuizValidationError("Quiz must contain at least one question")
    if len(answers) != total:
        raise QuizValidationError(
            f"Expected {total} answers, got {len(answers)}"
        )

    score = 0
    results = []
    for i, (question, raw_answer) in enumerate(zip(questions, answers)):
        options = list(_field(question, "options") or [])
        correct = _field(question, "correctAnswer")
        if correct is None:
            correct = _field(question, "correct_answer")

        user_answer = normalize_answer(raw_answer, len(options), i)
        is_correct = user_answer is not None and user_answer == correct
        if is_correct:
            score += 1

        results.append({
            "question": _field(question, "question"),
            "options": options,
            "userAnswer": user_answer,
            "correctAnswer": correct,
            "isCorrect": is_correct,
        })

    percentage = 100.0 * score / total
    return QuizScore(
        score=score,
        total_questions=total,
        percentage=percentage,
        results=results,
    )
