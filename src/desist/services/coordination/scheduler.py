"""
Keyed Timer and Task Scheduler

Single-shot timers keyed by run or session ID, plus supervision of
the background tasks (pipeline runs) started by the managers.

Scheduling a key that is already pending cancels the earlier timer, so
a superseded timer can never fire. Delays use the event loop's
monotonic clock.
"""

import asyncio
from typing import Callable, Coroutine, Optional

from desist.config.logging_config import get_logger

logger = get_logger(__name__)


class TaskScheduler:
    """
    Cancelable, keyed single-shot timers and supervised tasks on the
    running event loop.

    Usage:
        scheduler = TaskScheduler()
        scheduler.schedule("countdown:<run_id>", 5.0, on_countdown_elapsed)
        scheduler.cancel("countdown:<run_id>")
    """

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, key: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        """
        Arm a timer, replacing any pending timer with the same key.

        Args:
            key: Timer identity
            delay_seconds: Delay on the loop's monotonic clock
            callback: Synchronous callable invoked on the loop
        """
        self.cancel(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(
            max(0.0, delay_seconds), self._fire, key, callback
        )

    def cancel(self, key: str) -> bool:
        """
        Cancel a pending timer.

        Returns:
            True if a pending timer was cancelled
        """
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_prefix(self, prefix: str) -> int:
        """Cancel every timer whose key starts with prefix."""
        keys = [k for k in self._handles if k.startswith(prefix)]
        for key in keys:
            self.cancel(key)
        return len(keys)

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def is_pending(self, key: str) -> bool:
        return key in self._handles

    def deadline(self, key: str) -> Optional[float]:
        """Loop time at which the timer fires, if pending."""
        handle = self._handles.get(key)
        return handle.when() if handle else None

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        self._handles.pop(key, None)
        try:
            callback()
        except Exception as e:
            logger.error(
                "Timer callback failed",
                timer=key,
                error_type=type(e).__name__,
                error_message=str(e),
            )

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Start a supervised background task."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    @property
    def active_tasks(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    async def shutdown(self) -> None:
        """Cancel every timer and task."""
        self.cancel_all()
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Background task failed",
                task=task.get_name(),
                error_type=type(error).__name__,
                error_message=str(error),
            )
