"""
Fire-and-forget task spawner.

Request handlers hand work to the spawner and return immediately. Tasks are
tracked so the application can drain them on shutdown and tests can wait for
them deterministically instead of sleeping.
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class TaskSpawner:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task:
        """Schedule coro on the running loop without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s crashed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for every tracked task, including tasks spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give running tasks `timeout` seconds to finish, then cancel the rest."""
        if not self._tasks:
            return
        logger.info("Waiting for %d background task(s)", len(self._tasks))
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except asyncio.TimeoutError:
            remaining = list(self._tasks)
            logger.warning("Cancelling %d background task(s) still running", len(remaining))
            for task in remaining:
                task.cancel()
            await asyncio.gather(*remaining, return_exceptions=True)
