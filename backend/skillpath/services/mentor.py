"""
AI Learning Mentor

Answers learner messages with the user's skills, enrollments and recent
quiz results as context. When the generative service is unavailable, a
keyword-matched reply is served instead. Both turns of every exchange are
stored, user message first.

Also produces deterministic "what to do next" nudges for the mentor page.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from skillpath.models.models import User
from skillpath.services import storage
from skillpath.services.openai_service import openai_service, OpenAIServiceError
from skillpath.services.scoring import SkillLevel

logger = logging.getLogger(__name__)

CHAT_TIMEOUT_SECONDS = float(os.getenv("CHAT_TIMEOUT_SECONDS", "25"))
CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 400

MAX_HISTORY_TURNS = 20
RECENT_ATTEMPTS_IN_CONTEXT = 3

# Greeting the client shows before the first exchange; never a real turn
WELCOME_MESSAGE = (
    "Hi! I'm your AI learning mentor. I'm here to help you achieve your "
    "learning goals. How can I assist you today?"
)

ALLOWED_ROLES = ("user", "assistant")


class Intent(str, Enum):
    MOTIVATION = "motivation"
    NEXT_STEPS = "next_steps"
    SCHEDULING = "scheduling"
    GENERIC = "generic"


# Checked in order; first match wins
INTENT_KEYWORDS = [
    (Intent.MOTIVATION, ("motivat", "stuck", "difficult", "frustrat")),
    (Intent.NEXT_STEPS, ("next", "what should", "recommend")),
    (Intent.SCHEDULING, ("schedule", "plan", "time")),
]

FALLBACK_REPLIES = {
    Intent.MOTIVATION: (
        "Learning can be challenging, but you're making great progress! Remember that "
        "every expert was once a beginner. Take it one step at a time, celebrate small "
        "wins, and don't be afraid to ask for help. You've got this!"
    ),
    Intent.NEXT_STEPS: (
        "Based on your current skill levels, I'd recommend focusing on building practical "
        "projects. Hands-on experience is one of the best ways to solidify your knowledge. "
        "Check out the courses page for some great resources tailored to your level!"
    ),
    Intent.SCHEDULING: (
        "Creating a consistent learning schedule is key to success! Try dedicating specific "
        "time blocks each day, even if it's just 30 minutes. Use the Schedule feature to "
        "plan your learning milestones and track your progress."
    ),
    Intent.GENERIC: (
        "I'm here to support your learning journey! I can help you with study strategies, "
        "course recommendations, staying motivated, or planning your learning schedule. "
        "What would you like to focus on today?"
    ),
}


@dataclass
class MentorReply:
    response: str
    source: str  # "generated" or "fallback"


def detect_intent(message: str) -> Intent:
    """Classify a message by keyword for the fallback reply."""
    lowered = (message or "").lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(k in lowered for k in keywords):
            return intent
    return Intent.GENERIC


def fallback_reply(message: str) -> str:
    return FALLBACK_REPLIES[detect_intent(message)]


def _normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


_WELCOME_NORMALIZED = _normalize_text(WELCOME_MESSAGE)


def _entry_field(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def sanitize_history(history: Optional[Sequence[Any]]) -> List[Dict[str, str]]:
    """
    Turn client-supplied history into chat messages.

    Drops the synthetic welcome message wherever it appears, entries with an
    unknown role or empty content, and keeps the last MAX_HISTORY_TURNS.
    """
    cleaned = []
    for entry in history or []:
        role = _entry_field(entry, "role")
        content = _entry_field(entry, "content")
        if role not in ALLOWED_ROLES:
            continue
        if not isinstance(content, str) or not content.strip():
            continue
        if _normalize_text(content) == _WELCOME_NORMALIZED:
            continue
        cleaned.append({"role": role, "content": content})
    return cleaned[-MAX_HISTORY_TURNS:]


def build_context_prompt(db: Session, user_id: str) -> str:
    skills = storage.get_current_skill_levels(db, user_id)
    counts = storage.count_enrollments(db, user_id)
    attempts = storage.get_quiz_attempts(db, user_id, limit=RECENT_ATTEMPTS_IN_CONTEXT)

    if skills:
        skill_text = ", ".join(f"{s.domain} ({s.skill_level})" for s in skills)
    else:
        skill_text = "not assessed yet"

    if attempts:
        attempt_text = "; ".join(
            f"{a.domain}: {a.score}/{a.total_questions} ({a.skill_level_determined})"
            for a in attempts
        )
    else:
        attempt_text = "none"

    return (
        "You are an AI learning mentor helping a student on their learning journey.\n\n"
        f"Student's skills: {skill_text}\n"
        f"Enrolled courses: {counts['total']} total, {counts['completed']} completed, "
        f"{counts['in_progress']} in progress\n"
        f"Recent quiz results: {attempt_text}\n\n"
        "Provide personalized guidance, answer questions, suggest study strategies, and keep "
        "them motivated. Be encouraging, specific, and actionable. Keep responses concise "
        "(2-3 paragraphs max)."
    )


def respond(
    db: Session,
    user_id: str,
    message: str,
    conversation_history: Optional[Sequence[Any]] = None,
) -> MentorReply:
    """
    Produce the mentor's reply and store both turns.

    Generation errors are never raised; they select the keyword fallback.
    """
    messages = [{"role": "system", "content": build_context_prompt(db, user_id)}]
    messages.extend(sanitize_history(conversation_history))
    messages.append({"role": "user", "content": message})

    try:
        text = openai_service.complete_text(
            messages,
            timeout=CHAT_TIMEOUT_SECONDS,
            temperature=CHAT_TEMPERATURE,
            max_tokens=CHAT_MAX_TOKENS,
        )
        reply = MentorReply(response=text, source="generated")
    except OpenAIServiceError as e:
        intent = detect_intent(message)
        logger.warning(f"Mentor generation failed, using {intent.value} fallback: {e}")
        reply = MentorReply(response=FALLBACK_REPLIES[intent], source="fallback")

    storage.save_chat_message(db, user_id, "user", message)
    storage.save_chat_message(db, user_id, "assistant", reply.response)
    return reply


def get_mentor_recommendations(db: Session, user: User, now: Optional[datetime] = None) -> List[Dict[str, str]]:
    """
    Rule-based next actions for the mentor page.

    Each entry has ``type``, ``title``, ``description``, ``action`` and ``link``.
    """
    now = now or datetime.utcnow()
    recommendations = []

    skills = storage.get_skill_map(db, user.id)
    courses = storage.get_enrolled_courses(db, user.id)
    schedule = storage.get_schedules(db, user.id)

    for domain in user.selected_domains or []:
        if domain not in skills:
            recommendations.append({
                "type": "assessment",
                "title": f"Assess your {domain} skills",
                "description": f"Take a short quiz so we can tailor {domain} courses to your level.",
                "action": "Take quiz",
                "link": "/quiz",
            })

    for domain, level in skills.items():
        if level == SkillLevel.BEGINNER.value:
            recommendations.append({
                "type": "retake",
                "title": f"Level up in {domain}",
                "description": f"Work through a beginner {domain} course, then retake the quiz to track your progress.",
                "action": "Retake quiz",
                "link": "/quiz",
            })

    in_progress = [c for c in courses if not c.completed and (c.progress or 0) > 0]
    for course in in_progress[:2]:
        recommendations.append({
            "type": "continue",
            "title": f"Continue {course.course_title}",
            "description": f"You're {course.progress}% through this course. Keep the momentum going!",
            "action": "Resume course",
            "link": "/courses",
        })

    if not courses:
        recommendations.append({
            "type": "enroll",
            "title": "Enroll in your first course",
            "description": "Browse courses recommended for your skill level and start learning.",
            "action": "Browse courses",
            "link": "/courses",
        })

    overdue = [s for s in schedule if not s.completed and s.due_date and s.due_date < now]
    if overdue:
        recommendations.append({
            "type": "overdue",
            "title": f"{len(overdue)} overdue schedule item{'s' if len(overdue) != 1 else ''}",
            "description": f"Catch up on \"{overdue[0].title}\" or move it to a new date.",
            "action": "Open schedule",
            "link": "/schedule",
        })

    if not schedule:
        recommendations.append({
            "type": "schedule",
            "title": "Plan your learning schedule",
            "description": "Set a few milestones for the next two weeks to stay on track.",
            "action": "Create schedule",
            "link": "/schedule",
        })

    return recommendations
