"""
Learning schedule generation.

Asks the generative service for dated milestones and falls back to a fixed
four-step plan spread over two weeks.
"""

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from skillpath.services.openai_service import openai_service, OpenAIServiceError

logger = logging.getLogger(__name__)

SCHEDULE_TIMEOUT_SECONDS = float(os.getenv("SCHEDULE_TIMEOUT_SECONDS", "20"))
MAX_PLANNED_ITEMS = 7

# (title, description, days from today)
FALLBACK_MILESTONES = [
    ("Review core concepts and fundamentals", "Self study", 2),
    ("Complete practice exercises", "Hands-on practice", 5),
    ("Build a small project", "Practical application", 10),
    ("Review and refine skills", "Self study", 14),
]


@dataclass
class PlannedItem:
    title: str
    description: Optional[str]
    due_date: datetime


def fallback_plan(today: Optional[date] = None) -> List[PlannedItem]:
    today = today or datetime.utcnow().date()
    start = datetime(today.year, today.month, today.day)
    return [
        PlannedItem(title, description, start + timedelta(days=days))
        for title, description, days in FALLBACK_MILESTONES
    ]


def _parse_due_date(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def parse_plan(data: Dict[str, Any]) -> List[PlannedItem]:
    """Keep items with a title and a parseable ``dueDate``."""
    raw_items = data.get("scheduleItems")
    if not isinstance(raw_items, list):
        return []

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        title = raw.get("title")
        due = _parse_due_date(raw.get("dueDate"))
        if not isinstance(title, str) or not title.strip() or due is None:
            continue
        description = raw.get("description")
        items.append(PlannedItem(
            title=title.strip(),
            description=description.strip() if isinstance(description, str) else None,
            due_date=due,
        ))
    return items[:MAX_PLANNED_ITEMS]


def build_schedule_prompt(goals: str, skills: Dict[str, str], enrolled_count: int, today: date) -> str:
    skill_text = ", ".join(f"{d} ({lvl})" for d, lvl in skills.items()) or "not assessed yet"
    return f"""Create a personalized learning schedule based on these goals: "{goals}"

Today is {today.isoformat()}.
User's current skills: {skill_text}
Enrolled courses: {enrolled_count}

Generate 5-7 specific learning tasks/milestones spread over the next 2-4 weeks.
Each item should be actionable and time-bound.

Return ONLY valid JSON:
{{
  "scheduleItems": [
    {{
      "title": "Specific task or milestone",
      "description": "Course or study area",
      "dueDate": "YYYY-MM-DD"
    }}
  ]
}}"""


def plan_schedule(
    goals: str,
    skills: Dict[str, str],
    enrolled_count: int,
    today: Optional[date] = None,
) -> List[PlannedItem]:
    today = today or datetime.utcnow().date()
    try:
        data = openai_service.complete_json(
            system_prompt="You are a learning schedule expert. Create realistic, achievable learning plans.",
            prompt=build_schedule_prompt(goals, skills, enrolled_count, today),
            timeout=SCHEDULE_TIMEOUT_SECONDS,
        )
    except OpenAIServiceError as e:
        logger.warning(f"Schedule generation failed, using fallback plan: {e}")
        return fallback_plan(today)

    items = parse_plan(data)
    if not items:
        logger.warning("Generated schedule had no usable items, using fallback plan")
        return fallback_plan(today)
    return items
