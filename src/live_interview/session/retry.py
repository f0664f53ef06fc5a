"""
Retry Utilities
===============
Counted retry loop with linear-step backoff for rate-limited provider calls.

Only ``RATE_LIMITED`` failures are retried. Quota exhaustion and every other
classification fail on the first occurrence.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from live_interview.errors import (
    RATE_LIMIT_EXHAUSTED_MESSAGE,
    ErrorDetails,
    ErrorKind,
    LiveSessionError,
    describe_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_s: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return self.base_delay_s * attempt


@dataclass
class RetryState:
    """Per-operation retry bookkeeping; a fresh one per top-level operation."""

    max_retries: int
    base_delay_s: float
    attempt: int = 0
    current_delay_s: float = 0.0

    @classmethod
    def from_policy(cls, policy: RetryPolicy) -> "RetryState":
        return cls(max_retries=policy.max_retries, base_delay_s=policy.base_delay_s)

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_retries

    def describe(self) -> str:
        return f"Retrying in {self.current_delay_s:g}s… (attempt {self.attempt}/{self.max_retries})"


RetryCallback = Callable[[RetryState, ErrorDetails], None]


async def retry_rate_limited(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: Optional[RetryPolicy] = None,
    operation_name: str = "operation",
    on_retry: Optional[RetryCallback] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    quota_message: Optional[str] = None,
) -> T:
    """
    Run ``operation`` and retry it while it fails with a rate-limit error.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt cap and backoff step.
        operation_name: Name used in log messages.
        on_retry: Called before each backoff sleep with the current state.
        sleep: Awaitable used for the backoff delay.
        quota_message: Replaces the default quota-exhausted message, for
            operations whose remedy differs (e.g. the evaluation model).

    Returns:
        Result of the first successful attempt.

    Raises:
        LiveSessionError: On a non-retryable failure, or when the retry cap is
            reached. ``details`` carries the classification of the last failure.
    """
    policy = policy or RetryPolicy()
    state = RetryState.from_policy(policy)

    while True:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            details = describe_error(e)
            if details.kind is ErrorKind.QUOTA_EXHAUSTED and quota_message:
                details = ErrorDetails(ErrorKind.QUOTA_EXHAUSTED, quota_message)
            if details.kind is not ErrorKind.RATE_LIMITED:
                logger.error(f"{operation_name} failed ({details.kind.value}): {details.message}")
                raise LiveSessionError(details) from e
            if state.exhausted:
                logger.error(f"{operation_name} still rate limited after {state.max_retries} retries")
                raise LiveSessionError(ErrorDetails(ErrorKind.RATE_LIMITED, RATE_LIMIT_EXHAUSTED_MESSAGE)) from e

            state.attempt += 1
            state.current_delay_s = policy.delay_for(state.attempt)
            logger.warning(
                f"{operation_name} rate limited (retry {state.attempt}/{state.max_retries}). "
                f"Retrying in {state.current_delay_s:.1f}s"
            )
            if on_retry is not None:
                on_retry(state, details)
            await sleep(state.current_delay_s)