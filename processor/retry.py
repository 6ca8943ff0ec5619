"""Retry-with-backoff policy for page fetches.

Kept separate from the fetcher so the policy can be tested without
driving a crawl.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from env_config import (
    get_crawler_retry_base_delay,
    get_crawler_retry_times,
    get_crawler_timeout_retry_base_delay,
)

logger = logging.getLogger(__name__)


class RetryableResult(Protocol):
    """Shape of a result the policy can retry on."""

    success: bool

    @property
    def is_timeout(self) -> bool: ...


@dataclass
class RetryPolicy:
    """Bounded retries with linear-in-attempt backoff.

    The delay before retry ``n`` (1-based) is ``base_delay * n``; a failure
    caused by a timeout uses ``timeout_base_delay`` instead.

    Attributes:
        max_retries: Retries after the first attempt (2 means 3 attempts total).
        base_delay: Base delay in seconds for generic failures.
        timeout_base_delay: Base delay in seconds after a timeout.
        sleep: Function used to wait; injectable for tests.
    """

    max_retries: int = 2
    base_delay: float = 1.0
    timeout_base_delay: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        """Build a policy from CRAWLER_RETRY_* environment settings."""
        return cls(
            max_retries=get_crawler_retry_times(),
            base_delay=get_crawler_retry_base_delay(),
            timeout_base_delay=get_crawler_timeout_retry_base_delay(),
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_number: int, timed_out: bool = False) -> float:
        """Return the wait in seconds before the given 1-based retry."""
        base = self.timeout_base_delay if timed_out else self.base_delay
        return base * retry_number

    def execute(self, operation: Callable[[int], RetryableResult], label: str = "") -> RetryableResult:
        """Run ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Callable receiving the 1-based attempt number and
                returning a result with ``success`` and ``is_timeout``.
            label: Text used in log messages (usually the URL).

        Returns:
            The first successful result, or the last failed one.
        """
        attempt = 1
        result = operation(attempt)
        while not result.success and attempt < self.max_attempts:
            delay = self.delay_for(attempt, timed_out=result.is_timeout)
            logger.info(
                f"Retrying {label} in {delay:.1f}s "
                f"(attempt {attempt + 1}/{self.max_attempts})"
            )
            self.sleep(delay)
            attempt += 1
            result = operation(attempt)

        if not result.success:
            logger.warning(f"Giving up on {label} after {attempt} attempts")
        return result
