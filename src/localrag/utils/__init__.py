"""
Shared utilities.
"""

from .retry import RetryPolicy, RetryResult, calculate_delay, poll_until, retry_with_backoff

__all__ = [
    "RetryPolicy",
    "RetryResult",
    "calculate_delay",
    "poll_until",
    "retry_with_backoff",
]
