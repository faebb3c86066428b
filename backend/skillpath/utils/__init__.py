"""
SkillPath Utilities Package

Contains:
- api_retry: Retry and circuit breaker utilities for generative calls
- openai_client: Lazy-initialized OpenAI client
"""

from skillpath.utils.api_retry import (
    retry_with_backoff,
    RetryConfig,
    CircuitBreaker,
    OpenAIRetryHandler
)
from skillpath.utils.openai_client import get_openai_client, reset_client

__all__ = [
    "retry_with_backoff",
    "RetryConfig",
    "CircuitBreaker",
    "OpenAIRetryHandler",
    "get_openai_client",
    "reset_client"
]
