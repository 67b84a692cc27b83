"""
Supervised pool for detached background work.

Callers submit a coroutine and return immediately. The pool keeps a strong
reference to every task until it finishes, logs failures and keeps the most
recent ones in `failures`. Nothing is re-raised into the submitter.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Coroutine

from .utils.logging import log_event

logger = logging.getLogger(__name__)


@dataclass
class TaskFailure:
    name: str
    error: str
    failed_at: datetime


class BackgroundTasks:
    def __init__(self, max_failures: int = 100):
        self._tasks: set[asyncio.Task] = set()
        self.failures: deque[TaskFailure] = deque(maxlen=max_failures)
        self.completed = 0

    def submit(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        log_event(logger, "Background task submitted", level=logging.DEBUG, event="task_submitted", task=name)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            self.completed += 1
            return
        self.failures.append(
            TaskFailure(task.get_name(), f"{type(exc).__name__}: {exc}", datetime.now(timezone.utc))
        )
        logger.error(
            "Background task failed",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"event": "task_failed", "task": task.get_name()},
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every submitted task, including ones submitted meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.join()
