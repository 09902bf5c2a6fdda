"""Async event bus — ``asyncio.Queue``-based pub/sub for UI collaborators.

The simulator core never awaits: state changes are pushed with
:meth:`EventBus.publish_nowait` from scheduler callbacks running on the
loop, and a single consumer task fans them out to subscribers.

Key behaviours:
* Handlers may be sync or async.
* A handler that raises is **auto-unsubscribed** (logged + removed).
* ``filter_dict`` on subscribe is AND-matched against the event payload.
* Bounded queue — on overflow the oldest event is dropped with a warning.
* Publishing while the bus is stopped drops the event with a debug log, so
  a headless simulator (tests, scripts) can run without a consumer.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from cncsim.core.models.event import Event

_log = logging.getLogger(__name__)


@dataclass
class _Subscription:
    sub_id: str
    event_type: str
    handler: Callable[..., Any]
    filter_dict: dict[str, Any] | None = None

    def matches(self, event: Event) -> bool:
        if self.filter_dict is None:
            return True
        return all(event.payload.get(k) == v for k, v in self.filter_dict.items())


class EventBus:
    """Async event bus backed by an :class:`asyncio.Queue`.

    Args:
        queue_size: Maximum number of events queued before overflow handling.
    """

    def __init__(self, queue_size: int = 1000) -> None:
        self._queue_size = queue_size
        self._queue: asyncio.Queue[Event] | None = None
        # event_type → {sub_id: subscription}, in subscription order
        self._by_type: dict[str, dict[str, _Subscription]] = {}
        self._consumer_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._consumer_task is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Create the queue and start the consumer on the running loop."""
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._consumer_task = asyncio.create_task(self._consume(), name="event-bus-consumer")
        _log.info("Event bus started (queue_size=%d)", self._queue_size)

    async def stop(self) -> None:
        """Cancel the consumer, discard queued events and all subscriptions."""
        task, self._consumer_task = self._consumer_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._queue = None
        self._by_type.clear()
        _log.info("Event bus stopped")

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, event_type: str, payload: dict[str, Any] | None = None) -> None:
        """Coroutine form of :meth:`publish_nowait` for async callers."""
        self.publish_nowait(event_type, payload)

    def publish_nowait(self, event_type: str, payload: dict[str, Any] | None = None) -> None:
        """Enqueue an event; must be called on the bus's event loop."""
        queue = self._queue
        if queue is None:
            _log.debug("Event bus not running, dropped %s", event_type)
            return
        event = Event(event_type=event_type, payload=payload or {})
        if queue.full():
            dropped = queue.get_nowait()
            _log.warning("Event bus queue overflow, dropped oldest (%s)", dropped.event_type)
        queue.put_nowait(event)

    # ------------------------------------------------------------------
    # Subscribe / unsubscribe
    # ------------------------------------------------------------------

    def subscribe(
        self,
        event_type: str,
        handler: Callable[..., Any],
        filter_dict: dict[str, Any] | None = None,
    ) -> str:
        """Register *handler* for *event_type*, returning a subscription id.

        If *filter_dict* is given, the handler only fires when **all**
        key/value pairs in the dict match the event payload.
        """
        sub = _Subscription(uuid.uuid4().hex, event_type, handler, filter_dict)
        self._by_type.setdefault(event_type, {})[sub.sub_id] = sub
        return sub.sub_id

    def unsubscribe(self, sub_id: str) -> None:
        """Remove the subscription identified by *sub_id* (unknown ids are ignored)."""
        for subs in self._by_type.values():
            if subs.pop(sub_id, None) is not None:
                return

    # ------------------------------------------------------------------
    # Consumer loop
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            await self._dispatch(event)

    async def _dispatch(self, event: Event) -> None:
        subs = self._by_type.get(event.event_type, {})
        for sub in list(subs.values()):
            if sub.sub_id not in subs or not sub.matches(event):
                continue
            try:
                result = sub.handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                _log.exception(
                    "Handler %s for '%s' raised, auto-unsubscribing",
                    sub.handler,
                    event.event_type,
                )
                self.unsubscribe(sub.sub_id)
