"""
Mock infrastructure for SkillPath testing.
Provides deterministic mocks for OpenAI completions.
"""

from .openai_mocks import (
    MOCK_QUIZ_RESPONSE,
    MOCK_COURSES_RESPONSE,
    MOCK_SCHEDULE_RESPONSE,
    MOCK_MENTOR_REPLY,
    MockChatCompletion,
    mock_openai_completion,
    create_mock_question,
    create_mock_course,
)

__all__ = [
    "MOCK_QUIZ_RESPONSE",
    "MOCK_COURSES_RESPONSE",
    "MOCK_SCHEDULE_RESPONSE",
    "MOCK_MENTOR_REPLY",
    "MockChatCompletion",
    "mock_openai_completion",
    "create_mock_question",
    "create_mock_course",
]
