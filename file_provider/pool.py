"""
Background task pool.

Runs long-lived coroutines that each receive their own stop signal.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

StoppableTask = Callable[[asyncio.Event], Awaitable[None]]


class TaskPool:
    """Spawns stoppable background tasks and stops them together."""

    def __init__(self):
        """Initialize task pool."""
        self._tasks: List[Tuple[asyncio.Task, asyncio.Event]] = []

    def go(self, fn: StoppableTask, name: Optional[str] = None) -> asyncio.Task:
        """
        Spawn a background task.

        Args:
            fn: Coroutine function called with the task's stop event
            name: Task name for logging

        Returns:
            The created asyncio task
        """
        stop = asyncio.Event()
        task = asyncio.create_task(self._run(fn, stop), name=name)
        self._tasks.append((task, stop))
        return task

    async def _run(self, fn: StoppableTask, stop: asyncio.Event) -> None:
        try:
            await fn(stop)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Background task failed: {e}", exc_info=True)

    @property
    def running(self) -> int:
        """Number of tasks still running."""
        return sum(1 for task, _ in self._tasks if not task.done())

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Signal every task to stop and wait for them.

        Tasks that ignore the stop signal past the timeout are cancelled.
        """
        if not self._tasks:
            return

        logger.info(f"Stopping {self.running} background tasks")

        for _, stop in self._tasks:
            stop.set()

        tasks = [task for task, _ in self._tasks]
        done, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            logger.warning(f"Task {task.get_name()} did not stop in time, cancelling")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._tasks.clear()
