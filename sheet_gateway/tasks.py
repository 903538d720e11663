# sheet_gateway/tasks.py
from __future__ import annotations
import asyncio
from typing import Awaitable, Set

import structlog

logger = structlog.get_logger()


class DetachedTasks:
    """
    Fire-and-forget side effects (usage counters, activity logs).

    `spawn` schedules the coroutine and returns immediately. A strong reference
    is kept until the task finishes so it is not garbage collected mid-flight,
    and any failure is logged here and then dropped.
    """

    def __init__(self) -> None:
        self._pending: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, label: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(label)
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.debug("detached.cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("detached.failed", task=task.get_name(), error=repr(exc))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        # Tasks spawned while draining are picked up by the next loop pass.
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
