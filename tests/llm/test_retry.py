"""Tests for the retry policy."""

from __future__ import annotations

import pytest

from doctree.errors import ComputeError, FatalComputeError, TransientComputeError
from doctree.llm.retry import RetryPolicy, next_delay


def test_transient_errors_back_off_exponentially() -> None:
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, multiplier=2.0, max_delay=30.0)
    error = TransientComputeError("timeout")

    assert [next_delay(policy, attempt, error) for attempt in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]


def test_gives_up_at_attempt_ceiling() -> None:
    policy = RetryPolicy(max_attempts=3)
    error = TransientComputeError("timeout")

    assert next_delay(policy, 2, error) is not None
    assert next_delay(policy, 3, error) is None


def test_delay_is_capped() -> None:
    policy = RetryPolicy(max_attempts=10, base_delay=2.0, multiplier=10.0, max_delay=5.0)

    assert next_delay(policy, 4, TransientComputeError("slow")) == pytest.approx(5.0)


@pytest.mark.parametrize("error", [FatalComputeError("401"), ComputeError("400"), ValueError("bug")])
def test_non_transient_errors_are_not_retried(error: Exception) -> None:
    assert next_delay(RetryPolicy(), 1, error) is None
