"""Retry strategy for platform API calls.

Exponential backoff with jitter for transient errors and rate limits.
Only adapters use this; the onboarding flow itself never retries.

WHY JITTER:
- Prevents synchronized retries from multiple clients
- Spreads load more evenly
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from greeter.providers.errors import RateLimitError, TransientError

__all__ = ["RetryPolicy", "with_retries"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for an adapter.

    Attributes:
        max_retries: Retry attempts after the first call.
        base_delay_ms: Base delay for exponential backoff.
        max_delay_ms: Max delay cap for exponential backoff.
    """

    max_retries: int = 2
    base_delay_ms: int = 500
    max_delay_ms: int = 5000


async def with_retries(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retryable_errors: tuple[type[Exception], ...] = (TransientError, RateLimitError),
) -> T:
    """Execute function with exponential backoff retry.

    Args:
        func: Async function to execute (no arguments).
        policy: Retry settings.
        retryable_errors: Tuple of error types that should trigger retry.

    Returns:
        Result from successful function execution.

    Raises:
        TransientError: If all retries exhausted due to transient failures.
        RateLimitError: If all retries exhausted due to rate limiting.

    Note:
        If the error is a RateLimitError with retry_after_seconds set,
        that value is used instead of exponential backoff.
    """
    last_error: Exception | None = None

    for attempt in range(policy.max_retries + 1):
        try:
            return await func()
        except retryable_errors as e:
            last_error = e

            if attempt == policy.max_retries:
                break

            if isinstance(e, RateLimitError) and e.retry_after_seconds:
                delay = e.retry_after_seconds
            else:
                base_delay = policy.base_delay_ms * (2**attempt)
                jitter = random.uniform(0, base_delay * 0.1)  # nosec B311
                delay = min(base_delay + jitter, policy.max_delay_ms) / 1000

            logger.warning(
                "Platform error (attempt %d/%d): %s. Retrying in %.2fs",
                attempt + 1,
                policy.max_retries + 1,
                e,
                delay,
            )

            await asyncio.sleep(delay)

    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry loop exited without error or result")
