"""
Strata Backend: Retry Policy for Idempotent Operations
======================================================

What:  Retries an adapter call that failed with BackendUnavailableError.
How:   Tenacity AsyncRetrying with exponential backoff and jitter. Every other
       error kind is re-raised on the first failure.
Who:   Services wrap idempotent adapter calls (find_by_id, list, count, get,
       put) in RetryPolicy.call(). create/update/delete are called directly:
       repeating them without an idempotency key could duplicate a write.

Example:
    user = await self.retry.call(self.users.find_by_id, user_id)
"""

import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from strata.config import Settings
from strata.exceptions import BackendUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    Args:
        max_attempts: Total attempts including the first one
        min_wait:     Initial backoff in seconds (also the jitter range)
        max_wait:     Backoff ceiling in seconds
    """

    def __init__(self, max_attempts: int = 3, min_wait: float = 0.2, max_wait: float = 2.0):
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            min_wait=settings.retry_min_wait,
            max_wait=settings.retry_max_wait,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(BackendUnavailableError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.min_wait, max=self.max_wait)
            + wait_random(0, self.min_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def call(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run `operation(*args, **kwargs)`, retrying BackendUnavailableError only."""
        async for attempt in self._retrying():
            with attempt:
                return await operation(*args, **kwargs)
        raise AssertionError("unreachable: tenacity re-raises after the last attempt")
