"""Bounded retry with exponential backoff for remote operations.

``with_retry`` is a standalone coroutine function parameterised by a
``RetryPolicy``; it keeps no state between calls, so concurrent calls are
independent. The optional ``FailureCounter`` is shared telemetry for the UI
and never influences control flow.

Example:
    >>> policy = RetryPolicy(max_attempts=3, base_delay=0.5)
    >>> rows = await with_retry(lambda: fetch_rows(user_id), policy)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from mindpal.reliability.signatures import is_retryable

if TYPE_CHECKING:
    from mindpal.config import RetrySettings

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

Sleep = Callable[[float], Awaitable[object]]


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry policy for one call site.

    Attributes:
        max_attempts: Total attempts including the first (>= 1).
        base_delay: Delay in seconds after the first failed attempt (>= 0).
        backoff_multiplier: Growth factor per further failure (>= 1.0).
        max_delay: Cap on any single delay in seconds.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    backoff_multiplier: float = 1.5
    max_delay: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.backoff_multiplier < 1.0:
            raise ValueError(f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}")
        if self.max_delay < 0:
            raise ValueError(f"max_delay must be >= 0, got {self.max_delay}")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        delay = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            max_delay=settings.max_delay_seconds,
        )


DEFAULT_POLICY = RetryPolicy()


class FailureCounter:
    """Consecutive failure count for UI/telemetry.

    Reset on any success. Shared across calls; never read by ``with_retry``.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name or "failures"
        self._consecutive = 0
        self._total = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive

    @property
    def total_failures(self) -> int:
        return self._total

    def record_failure(self) -> None:
        self._consecutive += 1
        self._total += 1

    def reset(self) -> None:
        if self._consecutive > 0:
            logger.debug(f"{self.name}: Reset after {self._consecutive} consecutive failures")
        self._consecutive = 0


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    max_attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Sleep = asyncio.sleep,
    retryable: Callable[[Exception], bool] = is_retryable,
    failures: FailureCounter | None = None,
    on_retry: Callable[[int, Exception], None] | None = None,
    name: str | None = None,
) -> T:
    """Run ``operation`` with bounded retry.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Retry policy. Defaults to ``DEFAULT_POLICY``.
        max_attempts: Overrides ``policy.max_attempts``.
        base_delay: Overrides ``policy.base_delay`` (seconds).
        sleep: Awaitable sleep used between attempts.
        retryable: Predicate deciding whether an error may be retried.
        failures: Optional shared telemetry counter.
        on_retry: Callback(attempt_number, exception) before each retry.
        name: Operation name for logging.

    Returns:
        The first successful result.

    Raises:
        Exception: The last error, unchanged, once attempts are exhausted,
            or the first non-retryable error immediately.
    """
    policy = policy or DEFAULT_POLICY
    if max_attempts is not None or base_delay is not None:
        policy = RetryPolicy(
            max_attempts=policy.max_attempts if max_attempts is None else max_attempts,
            base_delay=policy.base_delay if base_delay is None else base_delay,
            backoff_multiplier=policy.backoff_multiplier,
            max_delay=policy.max_delay,
        )
    label = name or getattr(operation, "__name__", "operation")

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await operation()
        except Exception as e:
            if failures is not None:
                failures.record_failure()

            if not retryable(e):
                logger.debug("%s failed with non-retryable error: %s", label, e)
                raise

            if attempt >= policy.max_attempts:
                logger.error(
                    "All %d attempts exhausted for %s: %s",
                    policy.max_attempts,
                    label,
                    e,
                )
                raise

            delay = policy.delay_after(attempt)
            logger.warning(
                "Retry %d/%d for %s after %.2fs: %s",
                attempt,
                policy.max_attempts - 1,
                label,
                delay,
                e,
            )
            if on_retry:
                on_retry(attempt, e)
            await sleep(delay)
        else:
            if failures is not None:
                failures.reset()
            return result

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{label}: retry loop exited without a result")


def retry_async_with_backoff(
    policy: RetryPolicy | None = None,
    on_retry: Callable[[int, Exception], None] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator form of ``with_retry`` for coroutine functions.

    Example:
        @retry_async_with_backoff(RetryPolicy(max_attempts=2))
        async def fetch_profile(user_id: str) -> dict: ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await with_retry(
                lambda: func(*args, **kwargs),
                policy,
                on_retry=on_retry,
                name=func.__name__,
            )

        return wrapper

    return decorator
