"""Tests for the virtual and asyncio schedulers."""

from __future__ import annotations

import asyncio

import pytest

from cncsim.core.scheduler import AsyncioScheduler, VirtualScheduler
from tests.helpers.runtime import wait_for


class TestVirtualSchedulerOneShot:
    def test_fires_at_due_time(self, scheduler: VirtualScheduler):
        fired: list[float] = []
        scheduler.after(2.0, lambda: fired.append(scheduler.now()))

        scheduler.advance(1.5)
        assert fired == []

        scheduler.advance(0.5)
        assert fired == [pytest.approx(2.0)]

    def test_fires_only_once(self, scheduler: VirtualScheduler):
        fired: list[int] = []
        scheduler.after(1.0, lambda: fired.append(1))
        scheduler.advance(10.0)
        assert fired == [1]

    def test_cancel_prevents_fire_and_is_idempotent(self, scheduler: VirtualScheduler):
        fired: list[int] = []
        handle = scheduler.after(1.0, lambda: fired.append(1))
        handle.cancel()
        handle.cancel()
        scheduler.advance(2.0)
        assert fired == []
        assert handle.cancelled

    def test_ties_run_in_scheduling_order(self, scheduler: VirtualScheduler):
        order: list[str] = []
        scheduler.after(1.0, lambda: order.append("a"))
        scheduler.after(1.0, lambda: order.append("b"))
        scheduler.after(0.5, lambda: order.append("first"))
        scheduler.advance(1.0)
        assert order == ["first", "a", "b"]

    def test_callback_scheduled_inside_window_runs(self, scheduler: VirtualScheduler):
        fired: list[float] = []
        scheduler.after(1.0, lambda: scheduler.after(1.0, lambda: fired.append(scheduler.now())))
        scheduler.advance(3.0)
        assert fired == [pytest.approx(2.0)]
        assert scheduler.now() == pytest.approx(3.0)


class TestVirtualSchedulerRepeating:
    def test_every_is_anchored(self, scheduler: VirtualScheduler):
        ticks: list[float] = []
        scheduler.every(0.1, lambda: ticks.append(scheduler.now()))
        scheduler.advance(1.0)
        assert len(ticks) == 10
        assert ticks[-1] == pytest.approx(1.0)

    def test_cancel_from_own_callback_stops_rescheduling(self, scheduler: VirtualScheduler):
        count = 0

        def tick() -> None:
            nonlocal count
            count += 1
            if count == 3:
                handle.cancel()

        handle = scheduler.every(1.0, tick)
        scheduler.advance(10.0)
        assert count == 3
        assert scheduler.pending == 0

    def test_raising_callback_is_auto_cancelled(self, scheduler: VirtualScheduler):
        calls = 0

        def bad() -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        handle = scheduler.every(1.0, bad)
        scheduler.advance(5.0)
        assert calls == 1
        assert handle.cancelled

    def test_non_positive_interval_rejected(self, scheduler: VirtualScheduler):
        with pytest.raises(ValueError):
            scheduler.every(0, lambda: None)

    def test_pending_counts_live_timers(self, scheduler: VirtualScheduler):
        a = scheduler.after(1.0, lambda: None)
        scheduler.every(1.0, lambda: None)
        assert scheduler.pending == 2
        a.cancel()
        assert scheduler.pending == 1


class TestAsyncioScheduler:
    async def test_after_fires(self):
        sched = AsyncioScheduler()
        fired: list[bool] = []
        sched.after(0.05, lambda: fired.append(True))
        await wait_for(lambda: fired == [True], timeout=2.0)

    async def test_every_repeats_until_cancelled(self):
        sched = AsyncioScheduler()
        ticks: list[float] = []
        handle = sched.every(0.02, lambda: ticks.append(sched.now()))
        await wait_for(lambda: len(ticks) >= 3, timeout=2.0)
        handle.cancel()
        seen = len(ticks)
        await asyncio.sleep(0.1)
        assert len(ticks) == seen

    async def test_cancelled_one_shot_never_fires(self):
        sched = AsyncioScheduler()
        fired: list[bool] = []
        handle = sched.after(0.02, lambda: fired.append(True))
        handle.cancel()
        marker: list[bool] = []
        sched.after(0.1, lambda: marker.append(True))
        await wait_for(lambda: marker == [True], timeout=2.0)
        assert fired == []
