"""
Rate-limited fetch queue shared by every outbound network call.

Two layers:
1. Admission: at most `concurrency` tasks in flight and at most
   `interval_cap` task starts per rolling `interval` seconds.
2. Retry: a failed attempt that is retryable (no status, 429, 5xx) is
   retried after base_delay * 2**attempt, up to `retries` times.

Each attempt passes through admission on its own and the backoff sleep
happens outside the concurrency slot, so a retrying task never holds a
slot while it waits.
"""

from __future__ import annotations

import asyncio
from collections import deque
import logging
import time
from typing import Awaitable, Callable, TypeVar

from ..config import QueueConfig
from ..errors import is_retryable
from ..utils.logging import log_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchQueue:
    """Admission control plus per-task retry with exponential backoff.

    Args:
        concurrency: Maximum attempts running at once
        interval_cap: Maximum attempt starts per rolling window
        interval: Window length in seconds
        retries: Retries after the first attempt
        base_delay: Backoff base in seconds
        clock: Monotonic clock, injectable for tests
        sleep: Async sleep, injectable for tests
    """

    def __init__(
        self,
        concurrency: int = 4,
        interval_cap: int = 10,
        interval: float = 1.0,
        retries: int = 3,
        base_delay: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if concurrency < 1 or interval_cap < 1:
            raise ValueError("concurrency and interval_cap must be at least 1")
        self.concurrency = concurrency
        self.interval_cap = interval_cap
        self.interval = interval
        self.retries = retries
        self.base_delay = base_delay
        self._clock = clock
        self._sleep = sleep
        self._slots = asyncio.Semaphore(concurrency)
        self._window_lock = asyncio.Lock()
        self._starts: deque[float] = deque()
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = 0

    @classmethod
    def from_config(cls, cfg: QueueConfig) -> "FetchQueue":
        return cls(
            concurrency=cfg.concurrency,
            interval_cap=cfg.interval_cap,
            interval=cfg.interval_ms / 1000.0,
            retries=cfg.retries,
            base_delay=cfg.base_delay_ms / 1000.0,
        )

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2**attempt)

    async def enqueue(self, task: Callable[[], Awaitable[T]], label: str | None = None) -> T:
        """Run task under admission control, retrying retryable failures.

        Args:
            task: Zero-argument coroutine factory; called once per attempt
            label: Optional name (usually the URL) for log events

        Returns:
            The task's result from the first successful attempt

        Raises:
            The last error once it is non-retryable or the retry budget is spent
        """
        attempt = 0
        while True:
            try:
                return await self._run_once(task)
            except Exception as exc:
                if not is_retryable(exc) or attempt >= self.retries:
                    raise
                delay = self.backoff_delay(attempt)
                log_event(
                    logger,
                    "Fetch retry",
                    level=logging.WARNING,
                    event="fetch_retry",
                    target=label,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                    error=f"{type(exc).__name__}: {exc}",
                )
                await self._sleep(delay)
                attempt += 1

    async def _run_once(self, task: Callable[[], Awaitable[T]]) -> T:
        async with self._slots:
            await self._admit()
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                return await task()
            finally:
                self.in_flight -= 1

    async def _admit(self) -> None:
        # FIFO lock: waiters are admitted in arrival order.
        async with self._window_lock:
            while True:
                now = self._clock()
                while self._starts and now - self._starts[0] >= self.interval:
                    self._starts.popleft()
                if len(self._starts) < self.interval_cap:
                    self._starts.append(now)
                    self.started += 1
                    return
                wait = self.interval - (now - self._starts[0])
                await self._sleep(max(wait, 0.001))
