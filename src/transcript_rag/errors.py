"""Error handling and retry logic for transcript-rag.

Provides:
- Custom exception hierarchy mirroring the correction pipeline's failure modes
- Retry logic with exponential backoff for rate-limited provider calls
- Classification of raw SDK errors into pipeline errors
"""

from __future__ import annotations

import functools
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypeVar

from transcript_rag.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    VALIDATION = "validation"  # Malformed request - answer unmodified
    RETRIEVAL = "retrieval"  # A search/corpus call failed - drop its contribution
    GENERATIVE = "generative"  # Completion failed - fall back to rules
    RATE_LIMIT = "rate_limit"  # Provider rate limit - wait and retry
    CONFIGURATION = "configuration"  # Bad config - don't retry
    INTERNAL = "internal"  # Bug in code - don't retry


class TranscriptRagError(Exception):
    """Base exception for transcript-rag errors.

    Subclasses set ``category`` and a default ``recoverable`` flag; a caller
    may override the flag per instance.

    Attributes:
        message: Human-readable error message
        category: Error category for handling
        context: Extra key/value details (query, service, path, ...)
        recoverable: Whether the pipeline can continue past the error
    """

    category: ErrorCategory = ErrorCategory.INTERNAL
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        recoverable: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} (context: {self.context})"


class ValidationError(TranscriptRagError):
    """Input validation error.

    Examples: non-string transcript, confidence outside [0, 1],
    unsupported document content type.
    """

    category = ErrorCategory.VALIDATION


class RetrievalError(TranscriptRagError):
    """A corpus or semantic-search collaborator call failed."""

    category = ErrorCategory.RETRIEVAL
    recoverable = True


class GenerativeError(TranscriptRagError):
    """Generative completion failed or produced unusable output."""

    category = ErrorCategory.GENERATIVE
    recoverable = True


class GenerativeTimeoutError(GenerativeError):
    """Generative completion exceeded its time budget."""


class RateLimitError(GenerativeError):
    """Provider rate limit exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying
    """

    category = ErrorCategory.RATE_LIMIT

    def __init__(self, message: str, retry_after: float = 5.0, context: dict | None = None):
        super().__init__(message, context)
        self.retry_after = retry_after


class ConfigurationError(TranscriptRagError):
    """Configuration error.

    Examples: missing API key, unknown provider name, invalid settings file.
    """

    category = ErrorCategory.CONFIGURATION


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first (1 disables retrying)
        initial_delay: Delay before the first retry in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between consecutive delays
        jitter: Spread each delay by up to 25% either way
        retryable_errors: Error types that should be retried
    """

    max_attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_errors: tuple = (RateLimitError,)


def calculate_delay(
    attempt: int,
    config: RetryConfig,
    rate_limit_delay: float | None = None,
) -> float:
    """Seconds to wait after a failed attempt.

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        config: Retry configuration
        rate_limit_delay: Wait requested by the provider, used instead of
            the exponential schedule

    Returns:
        Delay in seconds, never below 50ms when jitter is on
    """
    if rate_limit_delay is None:
        delay = config.initial_delay * config.exponential_base ** (attempt - 1)
    else:
        delay = rate_limit_delay
    delay = min(delay, config.max_delay)

    if not config.jitter:
        return delay
    spread = delay * 0.25
    return max(0.05, delay + random.uniform(-spread, spread))


def is_retryable(error: Exception, config: RetryConfig) -> bool:
    """Whether ``error`` is worth another attempt under ``config``."""
    return isinstance(error, config.retryable_errors) and getattr(error, "recoverable", True)


def retry_with_backoff(
    config: RetryConfig | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator retrying rate-limited calls with exponential backoff.

    Non-retryable errors propagate immediately; the last retryable error
    propagates once ``max_attempts`` is reached.

    Args:
        config: Retry configuration
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable(e, config):
                        raise
                    if attempt >= config.max_attempts:
                        logger.warning(
                            f"Giving up on {func.__name__} after {attempt} attempts",
                            extra={"error": str(e)},
                        )
                        raise

                    delay = calculate_delay(attempt, config, getattr(e, "retry_after", None))
                    logger.info(
                        f"Retrying {func.__name__} in {delay:.1f}s "
                        f"(attempt {attempt}/{config.max_attempts})",
                        extra={"error": str(e)},
                    )
                    time.sleep(delay)

        return wrapper

    return decorator


def wrap_external_error(
    error: Exception,
    service: str,
    operation: str,
) -> GenerativeError:
    """Classify a raw provider/SDK error as a generative pipeline error.

    Args:
        error: Error raised by the SDK or transport
        service: Provider name shown to users (e.g. "Groq")
        operation: What was being attempted (e.g. "chat completion")

    Returns:
        RateLimitError, GenerativeTimeoutError or GenerativeError; errors that
        already are GenerativeError come back unchanged
    """
    if isinstance(error, GenerativeError):
        return error

    text = str(error).lower()
    context = {"service": service, "operation": operation}

    if "429" in text or "rate limit" in text or "rate_limit" in text:
        return RateLimitError(
            f"Rate limit exceeded for {service}: {operation}",
            retry_after=float(getattr(error, "retry_after", None) or 5.0),
            context=context,
        )

    if isinstance(error, TimeoutError) or "timeout" in text or "timed out" in text:
        return GenerativeTimeoutError(f"Timed out calling {service}: {operation}", context=context)

    return GenerativeError(f"Error from {service}: {operation} - {error}", context=context)


def format_error_for_display(error: Exception) -> str:
    """One-line ``[category] message (k=v, ...)`` rendering for the CLI."""
    if not isinstance(error, TranscriptRagError):
        return f"[error] {type(error).__name__}: {error}"

    text = f"[{error.category.value}] {error.message}"
    if error.context:
        text += " (" + ", ".join(f"{k}={v}" for k, v in error.context.items()) + ")"
    return text
