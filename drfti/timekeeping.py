"""Timer scheduling used to pace replays and note timeouts.

Everything that waits goes through a scheduler with
``schedule(delay, callback) -> token``; the token's ``cancel()`` prevents
the callback from running if it has not fired yet.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Any, Callable, List, Optional, Protocol, Tuple


class CancelToken(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> CancelToken: ...


def normalize_delay(value: object) -> float:
    try:
        delay = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return max(delay, 0.0)


class ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """Simulated clock; nothing runs until :meth:`advance` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, ManualTimer]] = []
        self._counter = itertools.count()

    def schedule(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + normalize_delay(delay), callback)
        heapq.heappush(self._queue, (timer.due, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if timer.pending)

    def next_due(self) -> Optional[float]:
        for due, _, timer in sorted(self._queue):
            if timer.pending:
                return due
        return None

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in order. Returns the count fired."""
        target = self.now + normalize_delay(seconds)
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if not timer.pending:
                continue
            self.now = due
            timer.fired = True
            timer.callback()
            fired += 1
        self.now = target
        return fired

    def run_until_idle(self, *, limit: int = 10_000) -> int:
        fired = 0
        while fired < limit:
            due = self.next_due()
            if due is None:
                break
            fired += self.advance(due - self.now)
        return fired


class AsyncioScheduler:
    """Schedules callbacks on a running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(normalize_delay(delay), callback)
