"""Retry policy with exponential backoff and bounded jitter."""

import random
from dataclasses import dataclass
from typing import Optional

# Upper bound of the random jitter added to each backoff, in milliseconds
MAX_JITTER_MS = 250


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for per-target retry behavior."""

    max_attempts: int = 4
    base_delay_ms: int = 500
    max_delay_ms: int = 8000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 1 or self.max_delay_ms < 1:
            raise ValueError("backoff delays must be positive")


def is_retryable_status(status: int) -> bool:
    """
    Whether an HTTP status is presumed transient.

    Request timeout, rate limiting and server errors are retried. Other
    4xx codes are permanent.
    """
    return status in (408, 429) or 500 <= status <= 599


def compute_backoff_ms(
    attempt: int,
    policy: RetryPolicy,
    rng: Optional[random.Random] = None
) -> int:
    """
    Delay to sleep after a failed attempt.

    Args:
        attempt: 1-based number of the attempt that just failed
        policy: Retry policy
        rng: Random source for jitter

    Returns:
        Delay in milliseconds, never above ``policy.max_delay_ms``
    """
    rng = rng or random
    exp = min(policy.max_delay_ms, policy.base_delay_ms * 2 ** (attempt - 1))
    jitter_bound = min(MAX_JITTER_MS, exp)
    jitter = rng.randrange(jitter_bound) if jitter_bound > 0 else 0
    return min(policy.max_delay_ms, exp + jitter)
