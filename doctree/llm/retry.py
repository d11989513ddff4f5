"""Retry policy for the compute step.

The policy is a pure function of the attempt number and the error; the
caller owns the loop and the sleeping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import FatalComputeError, TransientComputeError


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: float = 30.0


def next_delay(policy: RetryPolicy, attempt: int, error: BaseException) -> Optional[float]:
    """Return seconds to wait before the next attempt, or None to give up.

    ``attempt`` is the 1-based number of the attempt that just failed.
    Only transient errors are retried.
    """
    if isinstance(error, FatalComputeError) or not isinstance(error, TransientComputeError):
        return None
    if attempt >= policy.max_attempts:
        return None
    delay = policy.base_delay * (policy.multiplier ** (attempt - 1))
    return max(0.0, min(delay, policy.max_delay))


__all__ = ["RetryPolicy", "next_delay"]
