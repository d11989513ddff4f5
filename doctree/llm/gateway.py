"""Retry loop and parallel-call cap around the compute step."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from ..errors import ComputeError, FatalComputeError, TransientComputeError
from ..logging import get_logger
from .client import ComputeClient, ComputeRequest
from .retry import RetryPolicy, next_delay


class ComputeGateway:
    """Runs compute requests off the event loop with bounded parallelism.

    At most ``max_parallel_calls`` requests are in flight at once, no matter
    how many workers are waiting. Transient failures are retried according
    to ``policy``; once it gives up a plain :class:`ComputeError` is raised.
    Fatal errors propagate unchanged.
    """

    def __init__(
        self,
        client: ComputeClient,
        *,
        max_parallel_calls: int = 4,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.max_parallel_calls = max_parallel_calls
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._slots: asyncio.Semaphore | None = None
        self.attempts = 0

    async def summarize(self, request: ComputeRequest) -> str:
        logger = get_logger("compute")
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._semaphore():
                    self.attempts += 1
                    return await asyncio.to_thread(self.client.summarize, request)
            except FatalComputeError:
                raise
            except TransientComputeError as exc:
                delay = next_delay(self.policy, attempt, exc)
                if delay is None:
                    raise ComputeError(
                        f"{request.context_path or '.'}: gave up after {attempt} attempts: {exc}"
                    ) from exc
                logger.warning(
                    "Compute call for %s failed (attempt %d/%d): %s; retrying in %.1fs",
                    request.context_path or ".",
                    attempt,
                    self.policy.max_attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)

    def _semaphore(self) -> asyncio.Semaphore:
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.max_parallel_calls)
        return self._slots


__all__ = ["ComputeGateway"]
