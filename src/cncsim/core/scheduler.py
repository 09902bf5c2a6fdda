"""Cooperative timer scheduler — one-shot and repeating callbacks.

Every timed behaviour in the simulator goes through a :class:`Scheduler`
so the same code runs on the real asyncio loop (NiceGUI) and on a virtual
clock in tests.

Key behaviours:
* ``after(delay, fn)`` / ``every(interval, fn)`` return a :class:`TimerHandle`
  whose ``cancel()`` is idempotent.
* A repeating timer cancelled from inside its own callback is not
  rescheduled.
* Repeating timers are anchored to their origin (``origin + n * interval``)
  so they do not drift.
* A callback that raises is **auto-cancelled** (logged + its timer stopped).
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable

_log = logging.getLogger(__name__)

# Tolerance for float accumulation when comparing virtual due times.
_EPSILON = 1e-9


class TimerHandle:
    """Cancel token for a scheduled callback."""

    def __init__(self, callback: Callable[[], None], interval: float | None = None) -> None:
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self._on_cancel: Callable[[], None] | None = None

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None


class Scheduler(ABC):
    """Clock plus timer factory shared by every simulator component."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time in seconds (monotonic)."""

    @abstractmethod
    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run *callback* once, *delay* seconds from now."""

    @abstractmethod
    def every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run *callback* every *interval* seconds until cancelled."""

    @staticmethod
    def _invoke(handle: TimerHandle) -> None:
        if handle.cancelled:
            return
        try:
            handle.callback()
        except Exception:
            _log.exception("Timer callback %s raised, auto-cancelling", handle.callback)
            handle.cancel()


# ---------------------------------------------------------------------------
# Real clock
# ---------------------------------------------------------------------------

class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop.

    Args:
        loop: Event loop to schedule on.  Defaults to the running loop, so
            construct this from ``async`` code (e.g. a NiceGUI startup hook).
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)
        native = self._loop.call_later(max(0.0, delay), self._invoke, handle)
        handle._on_cancel = native.cancel
        return handle

    def every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        handle = TimerHandle(callback, interval)
        origin = self._loop.time()
        self._arm(handle, origin, 1)
        return handle

    def _arm(self, handle: TimerHandle, origin: float, n: int) -> None:
        assert handle.interval is not None
        native = self._loop.call_at(origin + n * handle.interval, self._fire, handle, origin, n)
        handle._on_cancel = native.cancel

    def _fire(self, handle: TimerHandle, origin: float, n: int) -> None:
        self._invoke(handle)
        if not handle.cancelled:
            self._arm(handle, origin, n + 1)


# ---------------------------------------------------------------------------
# Virtual clock
# ---------------------------------------------------------------------------

class VirtualScheduler(Scheduler):
    """Deterministic scheduler driven by :meth:`advance`.

    Callbacks due within an ``advance`` window run in due-time order (FIFO
    on ties), with the clock set to each callback's due time while it runs.
    Callbacks scheduled from inside the window also run if they fall due
    before the window closes.

    Args:
        start: Initial clock value in seconds.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        # (due, seq, handle, origin, n)
        self._queue: list[tuple[float, int, TimerHandle, float, int]] = []

    def now(self) -> float:
        return self._now

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(callback)
        due = self._now + max(0.0, delay)
        heapq.heappush(self._queue, (due, next(self._seq), handle, due, 0))
        return handle

    def every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        handle = TimerHandle(callback, interval)
        origin = self._now
        heapq.heappush(self._queue, (origin + interval, next(self._seq), handle, origin, 1))
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward by *seconds*, firing everything that falls due."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target + _EPSILON:
            due, _, handle, origin, n = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            self._invoke(handle)
            if handle.repeating and not handle.cancelled:
                assert handle.interval is not None
                heapq.heappush(
                    self._queue,
                    (origin + (n + 1) * handle.interval, next(self._seq), handle, origin, n + 1),
                )
        self._now = max(self._now, target)

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers."""
        return sum(1 for entry in self._queue if not entry[2].cancelled)
