"""
Opt-in retry policy with exponential backoff.

Neither the batch coalescer nor the fan-out executor retries on its own.
A ``RetryPolicy`` can be injected into either to retry transient failures
with exponential backoff and jitter.

Example:
    >>> from adosync.core.retry import RetryPolicy
    >>> policy = RetryPolicy(max_retries=2, base_delay=0.5)
    >>> result = await policy.call(lambda: client.get_work_item(42))

Configuration:
    - Default retries: 3 attempts after the first call
    - Default base delay: 1.0 seconds
    - Default multiplier: 2.0x per retry
    - Jitter: Random variance of ±20% added to delay
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from adosync.core.exceptions import ResponseFormatError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if an exception represents a transient, retryable error.

    Retryable errors include:
    - 5xx and 429 responses
    - Timeout and connection errors
    - Transport errors without a status code (network never answered)

    Non-retryable errors include:
    - Other 4xx client errors (404, 401, 400)
    - Malformed batch responses
    - Item timeouts (the item's time budget is already spent)
    - Everything else (programming or validation errors)

    Args:
        exception: Exception to check

    Returns:
        True if the error is retryable, False otherwise
    """
    # Check status errors first: HTTPStatusError is also an HTTPError
    if isinstance(exception, httpx.HTTPStatusError):
        status_code = exception.response.status_code
        return status_code == 429 or 500 <= status_code < 600

    if isinstance(exception, (httpx.TimeoutException, httpx.RequestError)):
        return True

    if isinstance(exception, ResponseFormatError):
        return False

    if isinstance(exception, TransportError):
        if exception.status_code is None:
            return True
        return exception.status_code == 429 or 500 <= exception.status_code < 600

    # ItemTimeoutError and everything else
    return False


class RetryPolicy:
    """
    Retry behaviour for remote calls.

    Attributes:
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Initial delay in seconds before first retry
        multiplier: Exponential backoff multiplier
        jitter: Whether to add jitter to delays
        jitter_ratio: Random variance ratio for jitter
        retryable: Predicate deciding whether an exception is retried
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        jitter: bool = True,
        jitter_ratio: float = 0.2,
        retryable: Callable[[BaseException], bool] | None = None,
    ) -> None:
        """
        Initialize retry policy.

        Raises:
            ValueError: If parameters are invalid
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self.jitter_ratio = jitter_ratio
        self.retryable = retryable or is_retryable_error

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for a given retry attempt.

        Uses exponential backoff: delay = base_delay * (multiplier ^ attempt)

        Args:
            attempt: Retry attempt number (0-indexed)

        Returns:
            Delay in seconds before next retry
        """
        delay = self.base_delay * (self.multiplier**attempt)

        if self.jitter:
            variance = delay * self.jitter_ratio
            delay = delay + random.uniform(-variance, variance)

        return max(0.0, delay)

    async def call(self, func: Callable[[], Awaitable[T]], *, label: str | None = None) -> T:
        """
        Await ``func()`` and retry it on retryable errors.

        Args:
            func: Zero-argument callable returning a fresh awaitable per attempt
            label: Name used in log messages

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The last error once retries are exhausted, or the
                first non-retryable error
        """
        name = label or getattr(func, "__name__", repr(func))

        for attempt in range(self.max_retries + 1):
            try:
                return await func()
            except Exception as e:
                if not self.retryable(e):
                    logger.debug(f"{name}: Non-retryable error on attempt {attempt + 1}: {e}")
                    raise

                if attempt >= self.max_retries:
                    logger.warning(f"{name}: Max retries ({self.max_retries}) exceeded: {e}")
                    raise

                delay = self.calculate_delay(attempt)
                logger.info(
                    f"{name}: Retry attempt {attempt + 1}/{self.max_retries} "
                    f"after {delay:.2f}s due to: {e}"
                )
                await asyncio.sleep(delay)

        raise RuntimeError("Retry loop completed without success or exception")


async def call_with_policy(
    policy: RetryPolicy | None,
    func: Callable[[], Awaitable[T]],
    *,
    label: str | None = None,
) -> T:
    """Run ``func`` once, or through ``policy`` when one is configured."""
    if policy is None:
        return await func()
    return await policy.call(func, label=label)


__all__ = ["RetryPolicy", "is_retryable_error", "call_with_policy"]
