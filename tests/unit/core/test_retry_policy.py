"""
Unit tests for retry and polling utilities.

Tests for:
- RetryPolicy defaults and fixed-interval policies
- calculate_delay
- retry_with_backoff
- poll_until
"""

import pytest

from localrag.core.exceptions import RagUpstreamError, RagValidationError
from localrag.utils.retry import (
    RetryPolicy,
    calculate_delay,
    poll_until,
    retry_with_backoff,
)


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_default_policy(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.base_delay_ms == 1000.0
        assert policy.backoff_multiplier == 2.0
        assert policy.jitter is False

    def test_fixed_policy(self):
        policy = RetryPolicy.fixed(5, 500)

        assert policy.max_attempts == 5
        assert calculate_delay(0, policy) == 0.5
        assert calculate_delay(3, policy) == 0.5


class TestCalculateDelay:
    """Tests for calculate_delay function."""

    def test_exponential_backoff(self):
        policy = RetryPolicy(base_delay_ms=1000, backoff_multiplier=2.0)

        assert calculate_delay(0, policy) == 1.0
        assert calculate_delay(1, policy) == 2.0
        assert calculate_delay(2, policy) == 4.0

    def test_max_delay_cap(self):
        policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=3000)

        assert calculate_delay(5, policy) == 3.0

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(base_delay_ms=1000, jitter=True)

        for _ in range(50):
            delay = calculate_delay(0, policy)
            assert 0.75 <= delay <= 1.25


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    def test_success_first_attempt(self, no_sleep):
        result = retry_with_backoff(lambda: "ok", RetryPolicy(), sleep=no_sleep)

        assert result.success is True
        assert result.result == "ok"
        assert result.attempts == 1
        assert no_sleep.delays == []

    def test_success_after_retries(self, no_sleep):
        calls = {"count": 0}

        def flaky():
            calls["count"] += 1
            if calls["count"] < 3:
                raise RagUpstreamError("busy")
            return "done"

        result = retry_with_backoff(
            flaky, RetryPolicy(), retry_on=(RagUpstreamError,), sleep=no_sleep
        )

        assert result.success is True
        assert result.attempts == 3
        assert no_sleep.delays == [1.0, 2.0]
        assert result.error_history == ["busy", "busy"]

    def test_exhausted(self, no_sleep):
        def always_fails():
            raise RagUpstreamError("down")

        result = retry_with_backoff(
            always_fails, RetryPolicy(max_attempts=3), retry_on=(RagUpstreamError,), sleep=no_sleep
        )

        assert result.success is False
        assert result.exhausted is True
        assert result.attempts == 3
        assert isinstance(result.error, RagUpstreamError)
        # No sleep after the final attempt
        assert len(no_sleep.delays) == 2

    def test_non_retryable_stops_immediately(self, no_sleep):
        calls = {"count": 0}

        def invalid():
            calls["count"] += 1
            raise RagValidationError("empty")

        result = retry_with_backoff(
            invalid, RetryPolicy(), retry_on=(RagUpstreamError,), sleep=no_sleep
        )

        assert result.success is False
        assert result.exhausted is False
        assert calls["count"] == 1
        assert isinstance(result.error, RagValidationError)


class TestPollUntil:
    """Tests for poll_until."""

    def test_immediate_success_does_not_sleep(self, no_sleep):
        assert poll_until(lambda: True, RetryPolicy.fixed(5, 500), sleep=no_sleep) is True
        assert no_sleep.delays == []

    def test_success_on_later_attempt(self, no_sleep):
        answers = iter([False, False, True])

        assert poll_until(lambda: next(answers), RetryPolicy.fixed(5, 500), sleep=no_sleep) is True
        assert no_sleep.delays == [0.5, 0.5]

    def test_gives_up(self, no_sleep):
        assert poll_until(lambda: False, RetryPolicy.fixed(4, 100), sleep=no_sleep) is False
        assert len(no_sleep.delays) == 3

    def test_exception_counts_as_failed_attempt(self, no_sleep):
        calls = {"count": 0}

        def check():
            calls["count"] += 1
            if calls["count"] == 1:
                raise RagUpstreamError("not up yet")
            return True

        assert poll_until(check, RetryPolicy.fixed(3, 10), sleep=no_sleep) is True
        assert calls["count"] == 2
