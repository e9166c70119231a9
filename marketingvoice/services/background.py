# marketingvoice/services/background.py
import asyncio
import logging
from typing import Coroutine, Optional

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Owns work that must outlive the request that started it.

    Tasks are kept referenced until they finish so the event loop cannot
    collect them; failures are logged here and remain available on the task.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc!r}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every outstanding task, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)
            if timeout is not None:
                break

    async def shutdown(self, timeout: float = 30.0) -> None:
        await self.drain(timeout=timeout)
        for task in list(self._tasks):
            logger.warning(f"Cancelling unfinished background task {task.get_name()}")
            task.cancel()
