"""
Retry Policies

Async retry helper with explicit delay schedules. Two policies are
provided and callers must pick one:

    INGESTION_RETRY    long escalating backoff (seconds up to a day) for
                       background ingestion work.
    INTERACTIVE_RETRY  short bounded retry for request/response paths.

Only ``ServiceError`` subclasses are retried by default; input and
invariant errors propagate on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from beacon.core.exceptions import ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ONE_SECOND: float = 1.0
ONE_MINUTE: float = 60 * ONE_SECOND
TEN_MINUTES: float = 10 * ONE_MINUTE
THIRTY_MINUTES: float = 30 * ONE_MINUTE
ONE_HOUR: float = 60 * ONE_MINUTE
SIX_HOURS: float = 6 * ONE_HOUR
TWELVE_HOURS: float = 12 * ONE_HOUR
ONE_DAY: float = 24 * ONE_HOUR


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry schedule.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        delays: Sleep before retry ``n`` is ``delays[n]``; the last delay
            repeats if the schedule is shorter than ``max_retries``.
    """

    max_retries: int
    delays: tuple[float, ...]

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.max_retries > 0 and not self.delays:
            raise ValueError("delays must not be empty when retries are enabled")

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the (0-based) ``attempt`` failed."""
        return self.delays[min(attempt, len(self.delays) - 1)]


INGESTION_RETRY = RetryPolicy(
    max_retries=3,
    delays=(
        ONE_SECOND,
        ONE_MINUTE,
        TEN_MINUTES,
        THIRTY_MINUTES,
        SIX_HOURS,
        TWELVE_HOURS,
        ONE_DAY,
    ),
)

INTERACTIVE_RETRY = RetryPolicy(max_retries=1, delays=(0.5, 1.0))

NO_RETRY = RetryPolicy(max_retries=0, delays=())


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    policy: RetryPolicy = INTERACTIVE_RETRY,
    retry_on: Sequence[type[BaseException]] = (ServiceError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` and retry it according to ``policy``.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt).
        operation_name: Label used in log messages.
        policy: Retry schedule to follow.
        retry_on: Exception types that trigger a retry. Anything else
            propagates immediately.
        sleep: Injected sleep coroutine (tests pass a recorder).

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        The last error once all attempts are exhausted.
    """
    retryable = tuple(retry_on)
    attempts = policy.max_retries + 1

    for attempt in range(attempts):
        try:
            return await operation()
        except retryable as e:
            if attempt == policy.max_retries:
                logger.error(
                    "%s failed after %d attempt(s): %s",
                    operation_name,
                    attempts,
                    e,
                )
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                "Retrying %s in %.1fs (attempt %d/%d): %s",
                operation_name,
                delay,
                attempt + 2,
                attempts,
                e,
            )
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
