"""Bounded retry with exponential backoff for network-bound steps.

Only cloning, fetching and syncing go through this module. Compile and
packaging steps are never retried.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from localstack_build.errors import (
    BlobStoreError,
    CommandError,
    FetchError,
    RetryExhaustedError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Ceiling on a single backoff delay (seconds)
MAX_DELAY = 300.0

# Failures worth another attempt; anything else fails on the first one
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    FetchError,
    CommandError,
    BlobStoreError,
    OSError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy: fixed attempt ceiling, delay doubling each attempt.

    Attributes:
        attempts: Maximum number of attempts (including the first).
        initial_delay: Delay before the second attempt, in seconds.
        retry_on: Exception types considered retryable.
        sleep: Sleep function (injectable for tests).
    """

    attempts: int = 3
    initial_delay: float = 1.0
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def with_attempts(self, attempts: int) -> RetryPolicy:
        return RetryPolicy(
            attempts=attempts,
            initial_delay=self.initial_delay,
            retry_on=self.retry_on,
            sleep=self.sleep,
        )

    def call(self, description: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` until it succeeds or the attempt ceiling is reached.

        Args:
            description: Human-readable operation name for logs and errors.
            fn: Zero-argument callable.

        Returns:
            Whatever ``fn`` returns on its first successful attempt.

        Raises:
            RetryExhaustedError: If every attempt failed.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay, exp_base=2, max=MAX_DELAY
            ),
            retry=retry_if_exception_type(self.retry_on),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            return retrying(fn)
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error("Failed too many times! (%s)", description)
            raise RetryExhaustedError(
                f"{description} failed after {self.attempts} attempts: {last}",
                attempts=self.attempts,
            ) from last


__all__ = ["MAX_DELAY", "TRANSIENT_ERRORS", "RetryPolicy"]
