"""Retry/backoff wrapper for browser extraction.

An explicit bounded loop: each attempt runs under ``asyncio.wait_for``;
after a failure the loop sleeps for a random delay whose window moves up by
``delay_step_ms`` per attempt already made, runs the optional
``before_retry`` hook, and tries again.  Login failures and challenge pages
are never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from portfolio_pipeline.core.exceptions import (
    ChallengeDetectedError,
    ScrapeError,
    ScrapeRetryExhaustedError,
    SessionAuthError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

NON_RETRYABLE: tuple[type[BaseException], ...] = (SessionAuthError, ChallengeDetectedError)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt bound, per-attempt timeout and backoff window.

    Attributes:
        max_attempts: Total attempts, including the first.
        timeout_seconds: Hard timeout applied to each attempt.
        delay_min_ms: Lower bound of the pause after the first failure,
            before the step is added.
        delay_max_ms: Upper bound of that pause.
        delay_step_ms: Added to both bounds per attempt already made.
    """

    max_attempts: int = 1
    timeout_seconds: float = 120.0
    delay_min_ms: int = 1_500
    delay_max_ms: int = 3_000
    delay_step_ms: int = 1_000

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            max_attempts=settings.linkedin_crawl_max_attempts,
            timeout_seconds=settings.linkedin_call_timeout_seconds,
            delay_min_ms=settings.retry_delay_min_ms,
            delay_max_ms=settings.retry_delay_max_ms,
            delay_step_ms=settings.retry_delay_step_ms,
        )

    def backoff_window(self, attempt: int) -> tuple[float, float]:
        """Return the ``(low, high)`` pause in seconds after failed *attempt* (1-based)."""
        shift = attempt * self.delay_step_ms
        return (
            (self.delay_min_ms + shift) / 1000,
            (self.delay_max_ms + shift) / 1000,
        )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    before_retry: Callable[[], Awaitable[Any]] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run *operation* until it succeeds or *policy* is exhausted.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt bound, timeout and backoff.
        before_retry: Awaited after the backoff pause and before the next
            attempt (used to reset the shared page).
        sleep: Coroutine used for the backoff pause.

    Returns:
        The first successful result.

    Raises:
        SessionAuthError: Propagated immediately.
        ChallengeDetectedError: Propagated immediately.
        ScrapeRetryExhaustedError: Every attempt failed or timed out.
    """
    last_error: BaseException | None = None
    total_backoff = 0.0

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
        except NON_RETRYABLE:
            raise
        except asyncio.TimeoutError:
            last_error = ScrapeError(
                f"Attempt timed out after {policy.timeout_seconds:g}s"
            )
        except Exception as exc:  # noqa: BLE001
            last_error = exc

        logger.warning(
            "retry: attempt %d/%d failed: %s", attempt, policy.max_attempts, last_error
        )
        if attempt < policy.max_attempts:
            low, high = policy.backoff_window(attempt)
            delay = random.uniform(low, high)
            total_backoff += delay
            await sleep(delay)
            if before_retry is not None:
                await before_retry()

    raise ScrapeRetryExhaustedError(
        policy.max_attempts,
        last_error=last_error,
        total_backoff=total_backoff,
    ) from last_error
