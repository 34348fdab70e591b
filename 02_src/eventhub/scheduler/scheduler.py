"""Cancellable delayed-task schedulers.

AsyncioScheduler runs callbacks on wall-clock time. VirtualScheduler keeps
its own clock that only moves when advance() is awaited, so time-driven
flows can be stepped through deterministically.
"""

import asyncio
import heapq
import itertools
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle:
    """One delayed callback. Cancellable until it starts running."""

    def __init__(self, when: float, callback: TimerCallback):
        self.when = when
        self._callback = callback
        self._started = False
        self._cancelled = False
        self._task: asyncio.Task | None = None

    @property
    def started(self) -> bool:
        return self._started

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Cancel the callback. Returns False if it already started or was cancelled."""
        if self._started or self._cancelled:
            return False
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
        return True

    async def run(self) -> None:
        """Invoke the callback unless cancelled. Errors propagate to the scheduler."""
        if self._cancelled or self._started:
            return
        self._started = True
        await self._callback()


class IScheduler(Protocol):
    """Cancellable delayed-task queue."""

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run callback after delay seconds."""
        ...

    async def close(self) -> None:
        """Cancel everything that has not started yet."""
        ...


class AsyncioScheduler:
    """Wall-clock scheduler: one asyncio task per pending timer."""

    def __init__(self):
        self._handles: set[TimerHandle] = set()

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """
        Run callback after delay seconds.

        Raises:
            ValueError: if delay is negative.
            RuntimeError: if there is no running event loop.
        """
        if delay < 0:
            raise ValueError(f"Delay must be non-negative, got {delay}")

        loop = asyncio.get_running_loop()
        handle = TimerHandle(loop.time() + delay, callback)
        handle._task = loop.create_task(self._sleep_then_run(handle, delay))
        self._handles.add(handle)
        handle._task.add_done_callback(lambda _: self._handles.discard(handle))
        return handle

    async def _sleep_then_run(self, handle: TimerHandle, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await handle.run()
        except Exception:
            logger.exception("Scheduled callback failed")

    @property
    def pending(self) -> int:
        """Timers that have neither started nor been cancelled."""
        return sum(1 for h in self._handles if not h.started and not h.cancelled)

    async def close(self) -> None:
        """Cancel pending timers and wait for their tasks to finish."""
        tasks = []
        for handle in list(self._handles):
            handle.cancel()
            if handle._task is not None:
                tasks.append(handle._task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._handles.clear()


class VirtualScheduler:
    """Scheduler driven by a virtual clock."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        """Current virtual time in seconds."""
        return self._now

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Queue callback to run once the clock passes now + delay."""
        if delay < 0:
            raise ValueError(f"Delay must be non-negative, got {delay}")

        handle = TimerHandle(self._now + delay, callback)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        """Timers queued and not cancelled."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    async def advance(self, seconds: float) -> None:
        """
        Move the clock forward, running every due callback in time order.

        Callbacks scheduled while advancing run too if they fall due before
        the new time.
        """
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")

        deadline = self._now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            self._now = when
            if handle.cancelled:
                continue
            try:
                await handle.run()
            except Exception:
                logger.exception("Scheduled callback failed")
        self._now = deadline

    async def close(self) -> None:
        """Cancel and drop every queued timer."""
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()
