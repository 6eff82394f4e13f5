"""
Retry utilities with backoff for outbound API calls.

Used by the e-mail transport to ride out rate limits, transient server
errors and network failures.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from stock_alerts.utils.logger import get_logger


logger = get_logger(__name__)

SleepFunction = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = False

    retry_on_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_on_exceptions: Tuple[Type[BaseException], ...] = (
        ConnectionError,
        TimeoutError,
    )


class ExponentialBackoff:
    """
    Backoff calculator.

    With the defaults the waits between three attempts are 1s then 2s.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self.attempt = 0

    def reset(self) -> None:
        self.attempt = 0

    def calculate_delay(self) -> float:
        delay = self.config.base_delay * (self.config.exponential_base ** self.attempt)

        # ±25% random variation
        if self.config.jitter:
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)

        delay = min(delay, self.config.max_delay)
        self.attempt += 1
        return delay

    def should_retry(self, exception: BaseException) -> bool:
        """Retry while attempts remain and the failure looks transient."""
        if self.attempt + 1 >= self.config.max_attempts:
            return False

        status_code = getattr(exception, "status_code", None)
        if status_code and status_code in self.config.retry_on_status_codes:
            return True

        return isinstance(exception, self.config.retry_on_exceptions)


class RetryableOperation:
    """
    Runs a coroutine function with retries.

    Example:
        operation = RetryableOperation(RetryConfig(max_attempts=5))
        result = await operation.execute(client.post_message, payload)
    """

    def __init__(self, config: Optional[RetryConfig] = None, sleep: SleepFunction = asyncio.sleep):
        self.config = config or RetryConfig()
        self.backoff = ExponentialBackoff(self.config)
        self._sleep = sleep

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Execute ``func`` until it succeeds or retries are exhausted.

        Raises:
            Exception: The last error when it is not retryable or no attempts remain.
        """
        self.backoff.reset()

        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.backoff.should_retry(e):
                    raise

                delay = self.backoff.calculate_delay()
                logger.warning(
                    f"Attempt {self.backoff.attempt} failed ({e}), retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
