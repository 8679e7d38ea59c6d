"""Error handling utilities."""

from eventrelay.errors.retry import (
    RetryPolicy,
    MAX_JITTER_MS,
    is_retryable_status,
    compute_backoff_ms,
)

__all__ = [
    "RetryPolicy",
    "MAX_JITTER_MS",
    "is_retryable_status",
    "compute_backoff_ms",
]
