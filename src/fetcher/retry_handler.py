"""Retry handler with exponential backoff and jitter."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional

from src.fetcher.errors import UpstreamFault


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 0.1,
    max_delay: float = 1.0,
    jitter_max: float = 0.05
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: min(max_delay, (base_delay * (2 ** attempt)) + random_jitter)

    Args:
        attempt: Retry attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay cap in seconds
        jitter_max: Maximum jitter to add in seconds

    Returns:
        Delay in seconds
    """
    exponential_delay = base_delay * (2 ** attempt)
    jitter = random.uniform(0, jitter_max) if jitter_max > 0 else 0.0
    return min(max_delay, exponential_delay + jitter)


class RetryHandler:
    """
    Handles retry logic with exponential backoff for upstream calls.

    Retries only faults flagged retryable (timeouts, connection errors,
    5xx and malformed bodies). Not-found and circuit-open faults propagate
    on the first occurrence. Attempts are bounded by ``max_attempts``.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 1.0,
        jitter_max: float = 0.05,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize retry handler.

        Args:
            max_attempts: Total attempts, first call included
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay cap
            jitter_max: Maximum jitter to add
            sleeper: Async sleep function (default: asyncio.sleep)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got: {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_max = jitter_max
        self._sleep = sleeper

    def is_retryable(self, error: BaseException) -> bool:
        """
        Check if error is retryable.

        Args:
            error: Exception raised by the attempt

        Returns:
            True if error should be retried
        """
        return isinstance(error, UpstreamFault) and error.retryable

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
        **kwargs
    ) -> Any:
        """
        Execute coroutine function with retry logic.

        Args:
            func: Coroutine function to execute
            *args: Positional arguments for func
            on_retry: Optional callback invoked with (attempt, error) before each retry
            **kwargs: Keyword arguments for func

        Returns:
            Result from successful function execution

        Raises:
            Exception: The last error once retries are exhausted, or the
                first non-retryable error
        """
        for attempt in range(self.max_attempts):
            try:
                return await func(*args, **kwargs)
            except UpstreamFault as e:
                if not self.is_retryable(e) or attempt >= self.max_attempts - 1:
                    raise

                if on_retry:
                    on_retry(attempt, e)

                delay = calculate_backoff_delay(
                    attempt,
                    self.base_delay,
                    self.max_delay,
                    self.jitter_max
                )
                await self._sleep(delay)

        # max_attempts >= 1 so the loop always returns or raises
        raise RuntimeError("unreachable")
