"""Timer scheduling seam shared by debounce, dedupe expiry, polling, and playback frames.

Production code schedules on the running asyncio loop; tests drive the same
code through :class:`ManualScheduler`, whose clock only moves when told to.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A pending callback that can be cancelled before it fires."""

    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """Clock plus one-shot timers."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop's monotonic clock."""

    __slots__ = ("_loop",)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback)


class _ManualHandle:
    __slots__ = ("_scheduler", "cancelled", "serial")

    def __init__(self, scheduler: ManualScheduler, serial: int) -> None:
        self._scheduler = scheduler
        self.serial = serial
        self.cancelled = False

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._scheduler._timers.pop(self.serial, None)


class ManualScheduler:
    """Deterministic scheduler whose time only advances via :meth:`advance`.

    Pending timers live in an arena keyed by serial number; a heap orders
    them by due time, then by scheduling order.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._serials = itertools.count()
        self._heap: list[tuple[float, int]] = []
        self._timers: dict[int, tuple[_ManualHandle, Callable[[], None]]] = {}

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of timers scheduled and not yet fired or cancelled."""
        return len(self._timers)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        serial = next(self._serials)
        handle = _ManualHandle(self, serial)
        self._timers[serial] = (handle, callback)
        heapq.heappush(self._heap, (self._now + max(0.0, delay), serial))
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that comes due. Returns fired count."""
        target = self._now + seconds
        fired = 0
        while self._heap and self._heap[0][0] <= target:
            due, serial = heapq.heappop(self._heap)
            entry = self._timers.pop(serial, None)
            if entry is None:
                continue
            self._now = max(self._now, due)
            _handle, callback = entry
            callback()
            fired += 1
        self._now = target
        return fired


__all__ = [
    "AsyncioScheduler",
    "ManualScheduler",
    "Scheduler",
    "TimerHandle",
]
