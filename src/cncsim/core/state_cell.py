"""Observable state cell — the shared-state primitive of the simulator.

Components receive the cells they read or own through their constructors
and register callbacks against exactly the cells they depend on.
Notification is synchronous and only happens when the value changes.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

_log = logging.getLogger(__name__)

T = TypeVar("T")


class StateCell(Generic[T]):
    """A single value with change notification.

    If a subscriber writes the cell while a notification round is running,
    the older round stops early: every subscriber has already been (or is
    about to be) told about the newer value, so none of them sees a stale
    value after a fresh one.  A subscriber that raises is logged and the
    round carries on with the next one.
    """

    def __init__(self, value: T, name: str = "") -> None:
        self._value = value
        self._name = name
        self._version = 0
        self._subscribers: list[Callable[[T], None]] = []

    def __repr__(self) -> str:
        return f"StateCell({self._name or '?'}={self._value!r})"

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        self._version += 1
        version = self._version
        for callback in list(self._subscribers):
            if self._version != version:
                break
            try:
                callback(value)
            except Exception:
                _log.exception("Subscriber %s of %r raised", callback, self)

    def update(self, fn: Callable[[T], T]) -> None:
        """Set the cell to ``fn(current_value)``."""
        self.set(fn(self._value))

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register *callback(new_value)*; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe
