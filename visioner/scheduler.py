"""Delayed-task scheduling for throttles, debounces and retries.

The orchestrator never touches timers directly. It asks a ``Scheduler`` to
run a callback after a delay and gets back a handle it can cancel, which
keeps cancel-and-reschedule semantics in one place and lets ``disable``
cancel every outstanding task.

Two implementations:

  * ``ManualScheduler`` — a virtual clock that only moves when ``advance``
    is called. Tasks due within the advanced span run in due order (ties in
    scheduling order). Tests use it to drive throttles and breakers
    deterministically.
  * ``AsyncioScheduler`` — wraps ``loop.call_later`` for hosts running an
    asyncio event loop.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TaskHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    @abstractmethod
    def now(self) -> float:
        """Current time in seconds (monotonic)."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TaskHandle:
        ...


class _ManualHandle(TaskHandle):
    def __init__(self, due: float):
        self.due = due
        self._cancelled = False
        self.done = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, _ManualHandle, Callback]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback) -> TaskHandle:
        handle = _ManualHandle(self._now + max(0.0, delay))
        entry = (handle.due, next(self._seq), handle, callback)
        heapq.heappush(self._queue, entry)
        return handle

    @property
    def pending(self) -> int:
        return sum(
            1 for _, _, h, _ in self._queue if not h.cancelled and not h.done
        )

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due tasks; returns how many ran."""
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            if handle.cancelled:
                continue
            handle.done = True
            callback()
            ran += 1
        self._now = target
        return ran

    def run_all(self, limit: int = 1000) -> int:
        """Advance until nothing is pending (at most ``limit`` tasks)."""
        ran = 0
        while self._queue and ran < limit:
            due = self._queue[0][0]
            ran += self.advance(max(0.0, due - self._now))
        return ran


class _AsyncioHandle(TaskHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callback) -> TaskHandle:
        return _AsyncioHandle(self.loop.call_later(delay, self._guard(callback)))

    @staticmethod
    def _guard(callback: Callback) -> Callback:
        def run() -> None:
            try:
                callback()
            except Exception:
                logger.exception("scheduled task failed")

        return run
