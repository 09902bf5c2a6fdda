"""Tests for the device SystemLog ring buffer."""

from __future__ import annotations

import asyncio

from cncsim.core import events
from cncsim.core.event_bus import EventBus
from cncsim.core.models.event import Event
from cncsim.core.models.state import LogLevel
from cncsim.core.system_log import SystemLog


class TestSystemLog:
    def test_entries_in_order(self):
        log = SystemLog()
        log.info("one")
        log.warn("two")
        log.error("three")
        assert [(e.level, e.message) for e in log.entries] == [
            (LogLevel.INFO, "one"),
            (LogLevel.WARN, "two"),
            (LogLevel.ERROR, "three"),
        ]

    def test_bounded(self):
        log = SystemLog(max_entries=3)
        for i in range(5):
            log.debug(f"line {i}")
        assert [e.message for e in log.entries] == ["line 2", "line 3", "line 4"]

    def test_clear_levels_keeps_the_rest(self):
        log = SystemLog()
        log.debug("noise")
        log.info("keep")
        log.debug("more noise")
        log.clear_levels([LogLevel.DEBUG])
        assert [e.message for e in log.entries] == ["keep"]

    def test_clear(self):
        log = SystemLog()
        log.info("x")
        log.clear()
        assert log.entries == []

    async def test_publishes_log_added(self, event_bus: EventBus):
        received: list[Event] = []
        event_bus.subscribe(events.LOG_ADDED, received.append)

        SystemLog(event_bus).warn("ICMP Ping to 10.0.0.1: Failed (Attempt 1/3).")
        await asyncio.sleep(0.1)

        assert len(received) == 1
        assert received[0].payload == {
            "level": "WARN",
            "message": "ICMP Ping to 10.0.0.1: Failed (Attempt 1/3).",
        }
