"""Retry with exponential backoff.

``backoff_delay`` is a pure function of the attempt number; ``retry_async``
takes the retry decision as a predicate so callers decide which failures are
permanent.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetriesExhausted(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def backoff_delay(attempt: int, base: float = 1.0, cap: float = 8.0) -> float:
    """Delay in seconds before retry number ``attempt`` (0-based): base * 2**attempt, capped."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    return min(base * (2 ** attempt), cap)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[BaseException], bool],
    max_attempts: int = 3,
    delay_fn: Callable[[int], float] = backoff_delay,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``operation`` up to ``max_attempts`` times.

    A failure for which ``should_retry`` is False propagates immediately.
    After the last retryable failure ``RetriesExhausted`` is raised, chained
    to that failure. No sleep happens after the final attempt.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as exc:
            if not should_retry(exc):
                raise
            logger.warning(
                "Attempt %s/%s failed: %s", attempt + 1, max_attempts, type(exc).__name__
            )
            if attempt + 1 >= max_attempts:
                raise RetriesExhausted(max_attempts, exc) from exc
            delay = delay_fn(attempt)
            logger.info("Retrying in %s seconds...", delay)
            await sleep(delay)

    raise AssertionError("unreachable")
