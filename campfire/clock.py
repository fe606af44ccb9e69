"""Simulated time and delayed callbacks.

All durations in the core are simulated milliseconds. The clock only moves
when the simulation advances it, so tests can step time precisely.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple


class SimulationClock:
    """Monotonic simulated clock in milliseconds."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)

    @property
    def now(self) -> float:
        return self._now

    def advance(self, dt_ms: float) -> float:
        if dt_ms < 0:
            raise ValueError("dt_ms must be >= 0")
        self._now += dt_ms
        return self._now


@dataclass
class TimerHandle:
    """Returned by ``Scheduler.call_later``; cancel to drop the callback."""

    due: float
    callback: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(order=True)
class _Entry:
    due: float
    seq: int
    handle: TimerHandle = field(compare=False)


class Scheduler:
    """Runs callbacks once the clock reaches their due time."""

    def __init__(self, clock: SimulationClock) -> None:
        self.clock = clock
        self._queue: List[_Entry] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle(due=self.clock.now + max(0.0, delay_ms), callback=callback, args=args)
        heapq.heappush(self._queue, _Entry(handle.due, next(self._seq), handle))
        return handle

    def run_due(self) -> int:
        """Run every callback due at or before now. Returns how many ran.

        Callbacks scheduled while running are picked up in the same pass when
        already due.
        """

        ran = 0
        now = self.clock.now
        while self._queue and self._queue[0].due <= now:
            entry = heapq.heappop(self._queue)
            if entry.handle.cancelled:
                continue
            entry.handle.callback(*entry.handle.args)
            ran += 1
        return ran

    def __len__(self) -> int:
        return sum(1 for entry in self._queue if not entry.handle.cancelled)


__all__ = ["SimulationClock", "Scheduler", "TimerHandle"]
