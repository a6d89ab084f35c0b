"""Retry policies with bounded attempts.

Only the TikTok upload-status poll retries; everything else makes a
single attempt and reports failure.

Usage:
    policy = fixed_interval(attempts=10, interval=3.0)

    async for attempt in policy.attempts():
        status = await client.get_upload_status(video_id)
        if status == "UPLOADED":
            break
        if not attempt.should_retry:
            raise TimeoutError(...)
        await attempt.wait()
"""

import asyncio
import logging
import random
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first
        backoff_base: Base delay in seconds
        backoff_factor: Multiplier per attempt (1.0 = fixed interval)
        backoff_max: Maximum delay in seconds
        jitter: Add random jitter to delays
    """

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_factor: float = 2.0
    backoff_max: float = 60.0
    jitter: bool = True

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after a given attempt number (0-indexed)."""
        delay = self.backoff_base * (self.backoff_factor**attempt)
        delay = min(delay, self.backoff_max)

        if self.jitter:
            # Up to 25% jitter either way
            delay = delay * (0.75 + random.random() * 0.5)

        return delay

    async def attempts(self):
        """Async generator yielding one RetryAttempt per allowed attempt."""
        for i in range(self.max_attempts):
            yield RetryAttempt(
                number=i,
                policy=self,
                is_last=i >= self.max_attempts - 1,
            )


@dataclass
class RetryAttempt:
    """Represents a single attempt."""

    number: int
    policy: RetryPolicy
    is_last: bool

    @property
    def should_retry(self) -> bool:
        """Whether another attempt follows this one."""
        return not self.is_last

    async def wait(self) -> None:
        """Sleep before the next attempt."""
        delay = self.policy.get_delay(self.number)
        logger.debug("Attempt %d done, waiting %.2fs", self.number + 1, delay)
        await asyncio.sleep(delay)


def fixed_interval(attempts: int, interval: float) -> RetryPolicy:
    """Policy with a fixed wait between a bounded number of attempts."""
    return RetryPolicy(
        max_attempts=attempts,
        backoff_base=interval,
        backoff_factor=1.0,
        backoff_max=interval,
        jitter=False,
    )
