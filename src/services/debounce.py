"""Single-slot debounced callback on the running asyncio loop."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

logger = logging.getLogger(__name__)


class DebouncedTask:
    """Schedules one async callback after a delay; re-arming replaces it.

    Only the most recently armed callback can start: ``arm`` cancels any
    callback still waiting out its delay. A callback that has already
    started is left to finish, and ``wait`` follows it.

    Example:
        settle = DebouncedTask(1.0)
        settle.arm(save_latest)   # pending
        settle.arm(save_latest)   # previous one cancelled
        await settle.wait()       # runs once, ~1s after the last arm
    """

    def __init__(self, delay: float) -> None:
        self._delay = delay
        self._task: Optional[asyncio.Task[None]] = None
        self._started: set[asyncio.Task[None]] = set()
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """True while an armed or started callback has not finished."""
        return any(not task.done() for task in self._tasks())

    def arm(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Cancel any callback still sleeping and schedule ``callback``."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._fire(callback))

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task in self._started:
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
        else:
            task.cancel()

    async def wait(self) -> None:
        """Wait until no callback is pending, following any re-arms."""
        while True:
            waiting = [task for task in self._tasks() if not task.done()]
            if not waiting:
                return
            for task in waiting:
                try:
                    await asyncio.shield(task)
                except asyncio.CancelledError:
                    if not task.cancelled():
                        raise

    def _tasks(self) -> list[asyncio.Task[None]]:
        tasks = list(self._in_flight)
        if self._task is not None:
            tasks.append(self._task)
        return tasks

    async def _fire(self, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self._delay)
        task = asyncio.current_task()
        self._started.add(task)
        try:
            await callback()
        except Exception as e:
            logger.warning("Debounced callback failed: %s", e)
        finally:
            self._started.discard(task)
