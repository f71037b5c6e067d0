"""Retry Handler Utility

Implements exponential backoff with jitter for retrying transient failures.

Features:
- Configurable retry attempts and delays
- Per-exception-type attempt budgets
- Exponential backoff with optional jitter for request spreading
- Callback support for retry notifications
- Built-in structured logging for observability
"""

import asyncio
import random
from typing import TypeVar, Callable, Awaitable, Dict, Set, Type, Optional

import structlog

from periodicos.models.config import RetryConfig

logger = structlog.get_logger(__name__)


T = TypeVar("T")


class RetryHandler:
    """Async retry handler with exponential backoff and jitter.

    Provides automatic retry logic for transient failures with:
    - Exponential backoff: delay = base * 2^attempt
    - Jitter: ±jitter_factor randomization
    - Max delay cap: prevents excessive wait times
    - Attempt budgets: some error types may get fewer attempts than others
    """

    def __init__(
        self,
        config: RetryConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize retry handler with configuration.

        Args:
            config: Retry configuration with max_attempts, delays, and jitter
            sleep: Awaitable used to wait between attempts
        """
        self.config = config
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a retry attempt.

        Uses exponential backoff with jitter:
        - Base delay: config.base_delay_seconds * 2^attempt
        - Jitter: ±config.jitter_factor of base delay
        - Cap: config.max_delay_seconds

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds to wait before next attempt
        """
        base_delay = self.config.base_delay_seconds * (2**attempt)

        jitter = base_delay * self.config.jitter_factor
        delay = base_delay + random.uniform(-jitter, jitter)

        return min(delay, self.config.max_delay_seconds)

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        retryable_exceptions: Set[Type[Exception]],
        attempt_limits: Optional[Dict[Type[Exception], int]] = None,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    ) -> T:
        """Execute function with retry logic.

        Attempts to execute the function, retrying on specified exceptions
        with exponential backoff.

        Args:
            func: Async function to execute
            retryable_exceptions: Set of exception types that should trigger retry
            attempt_limits: Optional per-type cap on total attempts, lower than
                     config.max_attempts (e.g. one retry for network errors)
            on_retry: Optional callback called before each retry with
                     (attempt_number, exception, delay_seconds)

        Returns:
            Result of successful function execution

        Raises:
            Exception: The last exception if all retries are exhausted
        """
        attempt_limits = attempt_limits or {}
        attempt = 0

        while True:
            try:
                return await func()
            except Exception as e:
                should_retry = any(
                    isinstance(e, exc_type) for exc_type in retryable_exceptions
                )
                if not should_retry:
                    raise

                max_attempts = self.config.max_attempts
                for exc_type, limit in attempt_limits.items():
                    if isinstance(e, exc_type):
                        max_attempts = min(max_attempts, limit)

                if attempt + 1 >= max_attempts:
                    raise

                delay = self.calculate_delay(attempt)

                logger.warning(
                    "retry_attempt",
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    delay_seconds=delay,
                )

                if on_retry is not None:
                    on_retry(attempt + 1, e, delay)

                await self._sleep(delay)
                attempt += 1
