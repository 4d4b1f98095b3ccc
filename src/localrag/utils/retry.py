"""
Retry and polling with exponential backoff.

One policy object drives both the per-chunk embedding retry and the
fixed-interval polls used while waiting for the runtime or a model to
become available.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including first try)
        base_delay_ms: Delay before the second attempt, in milliseconds
        max_delay_ms: Upper bound for any single delay, in milliseconds
        backoff_multiplier: Growth factor per attempt (1.0 = fixed interval)
        jitter: Whether to add ±25% random variation to each delay
    """
    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    backoff_multiplier: float = 2.0
    jitter: bool = False

    @classmethod
    def fixed(cls, attempts: int, interval_ms: float) -> "RetryPolicy":
        """Policy that polls at a constant interval."""
        return cls(
            max_attempts=attempts,
            base_delay_ms=interval_ms,
            max_delay_ms=interval_ms,
            backoff_multiplier=1.0,
            jitter=False,
        )


@dataclass
class RetryResult:
    """
    Result of a retry operation.

    Attributes:
        success: Whether the operation succeeded
        result: The result value if successful
        attempts: Number of attempts made
        error: The last error if failed
        exhausted: True when every attempt failed with a retryable error
        error_history: Messages from each failed attempt
    """
    success: bool
    result: Any = None
    attempts: int = 0
    error: Optional[Exception] = None
    exhausted: bool = False
    error_history: List[str] = field(default_factory=list)


def calculate_delay(attempt: int, policy: RetryPolicy) -> float:
    """
    Calculate delay after a failed attempt.

    Args:
        attempt: Attempt number (0-based)
        policy: Retry policy

    Returns:
        Delay in seconds
    """
    delay_ms = min(
        policy.base_delay_ms * (policy.backoff_multiplier ** attempt),
        policy.max_delay_ms,
    )

    if policy.jitter:
        delay_ms *= 0.75 + (random.random() * 0.5)

    return delay_ms / 1000.0


def retry_with_backoff(
    operation: Callable[[], Any],
    policy: RetryPolicy,
    retry_on: tuple = (Exception,),
    operation_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult:
    """
    Execute an operation with retry and exponential backoff.

    Exceptions outside ``retry_on`` stop immediately and are reported as a
    non-exhausted failure.

    Args:
        operation: Callable to execute (takes no arguments)
        policy: Retry policy
        retry_on: Tuple of exception types to retry on
        operation_name: Name for logging
        sleep: Sleep function (injectable for tests)

    Returns:
        RetryResult with success/failure info

    Example:
        >>> result = retry_with_backoff(lambda: client.embed("hi"), RetryPolicy())
        >>> if result.success:
        ...     vector = result.result
    """
    error_history = []
    last_error: Optional[Exception] = None

    for attempt in range(policy.max_attempts):
        try:
            result = operation()

            if attempt > 0:
                logger.info(f"{operation_name} succeeded after {attempt + 1} attempts")

            return RetryResult(
                success=True,
                result=result,
                attempts=attempt + 1,
                error_history=error_history,
            )

        except retry_on as e:
            last_error = e
            error_history.append(str(e))
            logger.warning(
                f"{operation_name} failed on attempt {attempt + 1}/{policy.max_attempts}: {e}"
            )

            # No sleep after the last attempt
            if attempt < policy.max_attempts - 1:
                delay = calculate_delay(attempt, policy)
                logger.debug(f"Backing off for {delay:.3f}s before retry")
                sleep(delay)

        except Exception as e:
            logger.error(f"{operation_name} failed with non-retryable error: {e}")
            error_history.append(str(e))
            return RetryResult(
                success=False,
                attempts=attempt + 1,
                error=e,
                error_history=error_history,
            )

    logger.error(f"{operation_name} exhausted all {policy.max_attempts} attempts")

    return RetryResult(
        success=False,
        attempts=policy.max_attempts,
        error=last_error,
        exhausted=True,
        error_history=error_history,
    )


def poll_until(
    check: Callable[[], bool],
    policy: RetryPolicy,
    operation_name: str = "poll",
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Call ``check`` until it returns True or attempts run out.

    The first check happens immediately; later ones wait according to the
    policy. Exceptions raised by ``check`` count as a failed attempt.

    Returns:
        True if the check passed within the allowed attempts
    """
    for attempt in range(policy.max_attempts):
        if attempt > 0:
            sleep(calculate_delay(attempt - 1, policy))
        try:
            if check():
                logger.debug(f"{operation_name} satisfied on attempt {attempt + 1}")
                return True
        except Exception as e:
            logger.debug(f"{operation_name} attempt {attempt + 1} raised: {e}")

    logger.warning(f"{operation_name} not satisfied after {policy.max_attempts} attempts")
    return False
