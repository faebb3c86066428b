"""
Lazy-initialized OpenAI client to prevent import-time errors
when OPENAI_API_KEY is not set.
"""

import os
from typing import Optional
import httpx
from openai import OpenAI

_client: Optional[OpenAI] = None

# Upper bound for any single request; callers pass tighter per-call timeouts
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=5.0)


def get_openai_client() -> OpenAI:
    """
    Get a lazily-initialized OpenAI client with timeout configuration.

    The SDK's own retries are disabled: retry policy lives in
    OpenAIService so there is at most one retry per generative call.

    Returns:
        OpenAI: The OpenAI client instance

    Raises:
        ValueError: If OPENAI_API_KEY is not set
    """
    global _client

    if _client is None:
        api_key = os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it before using AI features."
            )
        _client = OpenAI(api_key=api_key, timeout=DEFAULT_TIMEOUT, max_retries=0)

    return _client


def reset_client() -> None:
    """
    Reset the client (useful for testing or when API key changes).
    """
    global _client
    _client = None
