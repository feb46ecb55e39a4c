"""Retry helper for partitioning service adapters.

Split computation itself never retries: a failed lookup aborts the job's
split list. Adapters that talk to a remote service may retry transient
transport errors before giving up, using tenacity.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Tuple, Type, TypeVar

import tenacity
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

__all__ = ["RetryPolicy", "call_with_retry"]

T = TypeVar("T")


class RetryPolicy:
    """How often and how long to retry a remote lookup.

    Args:
        max_attempts: Total attempts including the first (1 disables retry)
        backoff_seconds: Base delay between attempts
        max_backoff_seconds: Upper bound for a single delay
        jitter: Add up to 50% of backoff_seconds as random delay
        retry_exceptions: Exception types considered transient
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 10.0,
        jitter: bool = True,
        retry_exceptions: Tuple[Type[BaseException], ...] = (ConnectionError, TimeoutError),
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions

    def wait_strategy(self) -> wait_base:
        wait: wait_base = tenacity.wait_exponential(
            multiplier=self.backoff_seconds,
            min=self.backoff_seconds,
            max=self.max_backoff_seconds,
        )
        if self.jitter:
            wait = wait + tenacity.wait_random(0, self.backoff_seconds * 0.5)
        return wait

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"backoff_seconds={self.backoff_seconds})"
        )


def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    policy: RetryPolicy,
    operation: str,
    **kwargs: Any,
) -> T:
    """Call ``fn`` under ``policy``, re-raising the last error when attempts run out."""

    def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
            operation,
            retry_state.attempt_number,
            policy.max_attempts,
            exception,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    retrying = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        retry=tenacity.retry_if_exception_type(policy.retry_exceptions),
        before_sleep=before_sleep_handler,
        reraise=True,
    )
    return retrying(fn, *args, **kwargs)
