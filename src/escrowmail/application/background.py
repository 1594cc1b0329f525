"""
Detached asyncio work that must not affect the request that spawned it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """
    Keeps strong references to spawned tasks and logs their failures.

    drain() lets tests and graceful shutdown wait for in-flight work.
    """

    def __init__(self, name: str = "background"):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable[None], *, label: str = "") -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, label))
        return task

    def _on_done(self, task: asyncio.Task, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "%s task %s failed: %s", self.name, label or task.get_name(), exc, exc_info=exc
            )

    async def drain(self) -> None:
        # Tasks may spawn more tasks; loop until quiet.
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
