"""
Centralized OpenAI Service with Circuit Breaker and Retry Logic

Every generative call in SkillPath (quiz questions, course recommendations,
mentor replies, schedule plans) goes through this service, which adds:
- An explicit per-call timeout
- At most one retry (OPENAI_MAX_RETRIES)
- A circuit breaker so a failing upstream is skipped quickly
- Sentry error tracking and call metrics

Callers never let these errors escape to the user. They catch
OpenAIServiceError (CircuitBreakerOpenError is a subclass) and serve
their deterministic fallback.

Usage:
    from skillpath.services.openai_service import openai_service, OpenAIServiceError

    try:
        data = openai_service.complete_json(system_prompt, prompt, timeout=20)
    except OpenAIServiceError:
        data = fallback()
"""

import os
import json
import logging
from typing import Optional, Dict, Any, List
from datetime import datetime

import sentry_sdk

from skillpath.utils.api_retry import (
    OpenAIRetryHandler,
    CircuitState,
    RetryConfig
)
from skillpath.utils.openai_client import get_openai_client

logger = logging.getLogger(__name__)

DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")


class OpenAIServiceError(Exception):
    """Base exception for OpenAI service errors."""
    pass


class CircuitBreakerOpenError(OpenAIServiceError):
    """Raised when circuit breaker is open and requests are being rejected."""
    pass


class OpenAIService:
    """
    Singleton wrapper for all OpenAI API calls with circuit breaker and retry logic.
    """

    _instance: Optional['OpenAIService'] = None

    def __new__(cls) -> 'OpenAIService':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.config = RetryConfig(
            max_retries=min(max(int(os.getenv("OPENAI_MAX_RETRIES", "1")), 0), 1),
            initial_delay=0.5,
            max_delay=2.0,
            retry_on_status_codes=(429, 500, 502, 503, 504),
            enable_circuit_breaker=True,
            failure_threshold=5,
            recovery_timeout=60.0
        )

        self.retry_handler = OpenAIRetryHandler(self.config)
        self._call_history: List[Dict[str, Any]] = []
        self._initialized = True

        logger.info("OpenAI Service initialized with circuit breaker protection")

    @property
    def circuit_breaker(self):
        """Access the circuit breaker for status checks."""
        return self.retry_handler.circuit_breaker

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs
    ) -> Any:
        """
        Make a chat completion request with retry and circuit breaker protection.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: OpenAI model to use (default: OPENAI_MODEL)
            timeout: Per-request timeout in seconds
            **kwargs: Additional arguments passed to OpenAI API

        Returns:
            OpenAI ChatCompletion response

        Raises:
            CircuitBreakerOpenError: If circuit breaker is open
            OpenAIServiceError: If the call failed after retries
        """
        model = model or DEFAULT_MODEL

        if not self.circuit_breaker.can_execute():
            self._record_call(model, success=False, circuit_open=True)
            logger.warning(
                f"Circuit breaker OPEN - rejecting OpenAI request. "
                f"Failures: {self.circuit_breaker.failure_count}"
            )
            raise CircuitBreakerOpenError(
                "OpenAI service temporarily unavailable due to repeated failures."
            )

        if timeout is not None:
            kwargs["timeout"] = timeout

        def _make_call():
            return get_openai_client().chat.completions.create(
                model=model,
                messages=messages,
                **kwargs
            )

        try:
            start_time = datetime.utcnow()
            result = self.retry_handler.call_with_retry(_make_call)
            latency_ms = (datetime.utcnow() - start_time).total_seconds() * 1000

            self._record_call(model, success=True, latency_ms=latency_ms)
            logger.debug(f"OpenAI call succeeded in {latency_ms:.0f}ms")

            return result

        except Exception as e:
            self._record_call(model, success=False, error=str(e))

            sentry_sdk.capture_exception(e)

            logger.error(
                f"OpenAI call failed: {str(e)}. "
                f"Circuit state: {self.circuit_breaker.state.value}"
            )
            raise OpenAIServiceError(str(e)) from e

    def complete_text(
        self,
        messages: List[Dict[str, str]],
        timeout: float,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Return the assistant text of a completion.

        Raises:
            OpenAIServiceError: On failure or an empty reply
        """
        kwargs: Dict[str, Any] = {"temperature": temperature}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        response = self.chat_completion(messages, timeout=timeout, **kwargs)
        content = _message_content(response)
        if not content or not content.strip():
            raise OpenAIServiceError("Empty completion")
        return content.strip()

    def complete_json(
        self,
        system_prompt: str,
        prompt: str,
        timeout: float,
        temperature: float = 0.7,
    ) -> Dict[str, Any]:
        """
        Request a JSON object and return it parsed.

        Raises:
            OpenAIServiceError: On failure, non-JSON output, or a JSON value
                that is not an object
        """
        response = self.chat_completion(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            timeout=timeout,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        content = _message_content(response) or ""

        try:
            data = json.loads(content)
        except (TypeError, ValueError) as e:
            raise OpenAIServiceError(f"Response is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise OpenAIServiceError("Response JSON is not an object")
        return data

    def _record_call(
        self,
        model: str,
        success: bool,
        latency_ms: float = 0,
        error: str = None,
        circuit_open: bool = False
    ):
        """Record call for metrics tracking."""
        record = {
            "timestamp": datetime.utcnow().isoformat(),
            "model": model,
            "success": success,
            "latency_ms": latency_ms,
            "error": error,
            "circuit_open": circuit_open
        }
        self._call_history.append(record)

        # Keep only last 500 calls in memory
        if len(self._call_history) > 500:
            self._call_history = self._call_history[-500:]

    def get_status(self) -> Dict[str, Any]:
        """
        Get service status for the health endpoint.
        """
        circuit = self.circuit_breaker
        recent_calls = self._call_history[-100:]
        successful_recent = sum(1 for c in recent_calls if c.get("success"))

        return {
            "circuit_breaker": {
                "state": circuit.state.value,
                "failure_count": circuit.failure_count,
                "failure_threshold": self.config.failure_threshold,
            },
            "retry_metrics": self.retry_handler.get_metrics(),
            "recent_performance": {
                "total_calls": len(recent_calls),
                "successful_calls": successful_recent,
                "failed_calls": len(recent_calls) - successful_recent,
            },
        }

    def reset_circuit_breaker(self):
        """
        Manually reset the circuit breaker to CLOSED state.
        """
        self.circuit_breaker.reset()
        logger.warning("Circuit breaker manually reset to CLOSED state")

    def is_healthy(self) -> bool:
        """True if circuit is CLOSED or HALF_OPEN."""
        return self.circuit_breaker.state != CircuitState.OPEN


def _message_content(response: Any) -> Optional[str]:
    try:
        return response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as e:
        raise OpenAIServiceError(f"Malformed completion: {e}") from e


# Global singleton instance
openai_service = OpenAIService()
