"""
API Retry Utility with Circuit Breaker

Wraps calls to the generative text service. The service prefers a fast,
deterministic fallback over long waits, so the defaults here allow at most
one retry with a short delay, and a circuit breaker stops calling a service
that keeps failing.

Features:
- Bounded retries with jittered backoff
- Retry-After support for HTTP 429
- Circuit breaker shared by all calls of one handler
- Call metrics
"""

import random
import threading
import time
import logging
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from typing import Callable, Optional, Type, Tuple, Dict
from enum import Enum

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    # Retry attempts (0 or 1 for user-facing generation)
    max_retries: int = 1

    # Backoff timing (in seconds)
    initial_delay: float = 0.5
    max_delay: float = 2.0
    exponential_base: float = 2.0

    # Jitter to prevent thundering herd
    jitter_factor: float = 0.5

    # Specific error handling
    retry_on_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_on_exceptions: Tuple[Type[Exception], ...] = (ConnectionError,)

    # Rate limit specific
    rate_limit_header: str = "Retry-After"
    respect_retry_after: bool = True

    # Circuit breaker
    enable_circuit_breaker: bool = True
    failure_threshold: int = 5  # Failures before circuit opens
    recovery_timeout: float = 60.0  # Seconds before trying again


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


# ============================================================================
# CIRCUIT BREAKER
# ============================================================================

class CircuitBreaker:
    """
    Circuit breaker pattern implementation.

    Prevents every request from waiting out a timeout against a service
    that is already known to be down.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.success_count = 0
        self._lock = threading.Lock()

    def can_execute(self) -> bool:
        """Check if a request should be allowed."""
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True

            if self.state == CircuitState.OPEN:
                if self.last_failure_time:
                    elapsed = (datetime.utcnow() - self.last_failure_time).total_seconds()
                    if elapsed >= self.config.recovery_timeout:
                        self.state = CircuitState.HALF_OPEN
                        self.success_count = 0
                        logger.info("Circuit breaker entering HALF_OPEN state")
                        return True
                return False

            # HALF_OPEN state - allow requests through to test
            return True

    def record_success(self):
        """Record a successful request."""
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= 2:
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
                    logger.info("Circuit breaker CLOSED - service recovered")
            else:
                self.failure_count = max(0, self.failure_count - 1)

    def record_failure(self):
        """Record a failed request."""
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = datetime.utcnow()

            if self.state == CircuitState.HALF_OPEN:
                self.state = CircuitState.OPEN
                logger.warning("Circuit breaker OPEN - service still failing")
            elif self.failure_count >= self.config.failure_threshold:
                self.state = CircuitState.OPEN
                logger.warning(
                    f"Circuit breaker OPEN after {self.failure_count} failures"
                )

    def reset(self):
        """Force the breaker back to CLOSED."""
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.last_failure_time = None


# ============================================================================
# RETRY DECORATOR
# ============================================================================

def calculate_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: Optional[float] = None
) -> float:
    """
    Calculate delay before next retry using exponential backoff with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration
        retry_after: Server-specified delay (from Retry-After header)

    Returns:
        Delay in seconds
    """
    if retry_after and config.respect_retry_after:
        jitter = random.uniform(0, config.jitter_factor * retry_after)
        return min(retry_after + jitter, config.max_delay)

    base_delay = config.initial_delay * (config.exponential_base ** attempt)
    jitter = random.uniform(0, config.jitter_factor * base_delay)

    return min(base_delay + jitter, config.max_delay)


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    circuit_breaker: Optional[CircuitBreaker] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None
):
    """
    Decorator for retrying functions with backoff.

    Args:
        config: Retry configuration (uses defaults if None)
        circuit_breaker: Breaker to consult and update; a private one is
            created when omitted and the config enables it
        on_retry: Callback function(attempt, exception, delay) called before each retry

    Usage:
        @retry_with_backoff(RetryConfig(max_retries=1))
        def call_openai_api():
            ...
    """
    if config is None:
        config = RetryConfig()

    if circuit_breaker is None and config.enable_circuit_breaker:
        circuit_breaker = CircuitBreaker(config)

    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return _retry_sync(
                func, args, kwargs, config, circuit_breaker, on_retry
            )

        return wrapper

    return decorator


def _retry_sync(
    func: Callable,
    args: tuple,
    kwargs: dict,
    config: RetryConfig,
    circuit_breaker: Optional[CircuitBreaker],
    on_retry: Optional[Callable]
):
    """Synchronous retry implementation."""
    last_exception = None

    for attempt in range(config.max_retries + 1):
        if circuit_breaker and not circuit_breaker.can_execute():
            raise ConnectionError(
                "Circuit breaker is open - service temporarily unavailable"
            )

        try:
            result = func(*args, **kwargs)
            if circuit_breaker:
                circuit_breaker.record_success()
            return result

        except Exception as e:
            last_exception = e
            should_retry, retry_after = _should_retry(e, config)

            if circuit_breaker:
                circuit_breaker.record_failure()

            if not should_retry or attempt >= config.max_retries:
                logger.error(
                    f"Request failed after {attempt + 1} attempts: {str(e)}"
                )
                raise

            delay = calculate_delay(attempt, config, retry_after)

            logger.warning(
                f"Attempt {attempt + 1}/{config.max_retries + 1} failed: {str(e)}. "
                f"Retrying in {delay:.2f}s..."
            )

            if on_retry:
                on_retry(attempt, e, delay)

            time.sleep(delay)

    raise last_exception


def _parse_retry_after(response, header: str) -> Optional[float]:
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get(header)
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _should_retry(exception: Exception, config: RetryConfig) -> Tuple[bool, Optional[float]]:
    """
    Determine if an exception should trigger a retry.

    Timeouts are never retried: a second wait of the same length is worse
    than serving the fallback.

    Returns:
        (should_retry, retry_after_seconds)
    """
    if "timed out" in str(exception).lower() or isinstance(exception, TimeoutError):
        return False, None

    # OpenAI APIStatusError carries status_code and the httpx response
    status_code = getattr(exception, "status_code", None)
    if status_code is None:
        response = getattr(exception, "response", None)
        status_code = getattr(response, "status_code", None)

    if status_code is not None:
        if status_code in config.retry_on_status_codes:
            response = getattr(exception, "response", None)
            return True, _parse_retry_after(response, config.rate_limit_header)
        return False, None

    for exc_type in config.retry_on_exceptions:
        if isinstance(exception, exc_type):
            return True, None

    error_msg = str(exception).lower()
    retryable_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "server error",
    ]

    for pattern in retryable_patterns:
        if pattern in error_msg:
            return True, None

    return False, None


# ============================================================================
# OPENAI-SPECIFIC RETRY HANDLER
# ============================================================================

class OpenAIRetryHandler:
    """
    Retry handler for OpenAI API calls.

    Owns one circuit breaker that every decorated call shares.
    """

    DEFAULT_CONFIG = RetryConfig()

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or self.DEFAULT_CONFIG
        self.circuit_breaker = CircuitBreaker(self.config)
        self._metrics: Dict[str, int] = {
            "total_calls": 0,
            "successful_calls": 0,
            "retried_calls": 0,
            "failed_calls": 0
        }

    def get_decorator(self):
        """Get a retry decorator with this handler's configuration."""
        def on_retry(attempt, exception, delay):
            self._metrics["retried_calls"] += 1
            logger.info(
                f"OpenAI API retry #{attempt + 1}: {type(exception).__name__}"
            )

        return retry_with_backoff(
            config=self.config,
            circuit_breaker=self.circuit_breaker,
            on_retry=on_retry
        )

    def call_with_retry(self, func: Callable, *args, **kwargs):
        """
        Execute a function with retry logic.

        Raises:
            Exception: If all retries are exhausted
        """
        self._metrics["total_calls"] += 1

        decorated_func = self.get_decorator()(func)

        try:
            result = decorated_func(*args, **kwargs)
        except Exception:
            self._metrics["failed_calls"] += 1
            raise

        self._metrics["successful_calls"] += 1
        return result

    def get_metrics(self) -> Dict[str, int]:
        """Get retry metrics."""
        return self._metrics.copy()

    def reset_metrics(self):
        """Reset metrics counters."""
        self._metrics = {
            "total_calls": 0,
            "successful_calls": 0,
            "retried_calls": 0,
            "failed_calls": 0
        }
