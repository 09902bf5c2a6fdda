"""Connectivity state machine for the dashboard ↔ controller link.

:class:`ConnectionStateMachine` is the sole writer of the
:class:`ConnectionStatus` cell.  :class:`CncLinkSimulator` derives the
downstream controller ↔ CNC link from it.
"""

from __future__ import annotations

import logging

from cncsim.core.models.state import ConnectionStatus
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell

_log = logging.getLogger(__name__)

CONNECT_DELAY_SECONDS = 2.0
CNC_LINK_SETTLE_SECONDS = 1.5
CNC_LINK_CONNECT_SECONDS = 2.0


class ConnectionStateMachine:
    """Owns the link status and its connected / failed timestamps.

    Args:
        scheduler: Clock and timer source.
        status: Cell this machine writes; everything else only reads it.
    """

    def __init__(self, scheduler: Scheduler, status: StateCell[ConnectionStatus]) -> None:
        self._scheduler = scheduler
        self._status = status
        self._connect_timer: TimerHandle | None = None
        self.last_connected_at: float | None = None
        self.last_failed_at: float | None = None

    @property
    def status(self) -> ConnectionStatus:
        return self._status.get()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def simulate_connect(self) -> None:
        """Go ``connecting`` now and ``connected`` after the connect delay."""
        self.cancel()
        _log.info("Connecting to controller …")
        self._status.set(ConnectionStatus.CONNECTING)
        self._connect_timer = self._scheduler.after(CONNECT_DELAY_SECONDS, self._on_connected)

    def simulate_disconnect(self) -> None:
        """Drop the link, unless a restart is in progress."""
        self.cancel()
        if self._status.get() is ConnectionStatus.RESTARTING:
            _log.debug("Ignoring disconnect while restarting")
            return
        _log.info("Controller disconnected")
        self.last_connected_at = None
        self.last_failed_at = self._scheduler.now()
        self._status.set(ConnectionStatus.DISCONNECTED)

    def set_restarting(self) -> None:
        self.cancel()
        _log.info("Controller restarting")
        self.last_connected_at = None
        self.last_failed_at = self._scheduler.now()
        self._status.set(ConnectionStatus.RESTARTING)

    def cancel(self) -> None:
        """Cancel a pending connect-delay timer (idempotent)."""
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

    def _on_connected(self) -> None:
        self._connect_timer = None
        self.last_connected_at = self._scheduler.now()
        _log.info("Controller connected")
        self._status.set(ConnectionStatus.CONNECTED)


class CncLinkSimulator:
    """Follows the controller link with a slower, two-step CNC connection."""

    def __init__(
        self,
        scheduler: Scheduler,
        controller_status: StateCell[ConnectionStatus],
        link_status: StateCell[ConnectionStatus],
    ) -> None:
        self._scheduler = scheduler
        self._controller = controller_status
        self._link = link_status
        self._settle_timer: TimerHandle | None = None
        self._connect_timer: TimerHandle | None = None
        self.last_connected_at: float | None = None
        self.last_failed_at: float | None = None
        self._unsubscribe = controller_status.subscribe(self._on_controller_status)

    @property
    def status(self) -> ConnectionStatus:
        return self._link.get()

    def stop(self) -> None:
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

    def close(self) -> None:
        """Stop and detach from the controller status cell."""
        self.stop()
        self._unsubscribe()

    def _on_controller_status(self, status: ConnectionStatus) -> None:
        self.stop()
        if status is ConnectionStatus.CONNECTED:
            self._settle_timer = self._scheduler.after(CNC_LINK_SETTLE_SECONDS, self._begin_connect)
            return
        self.last_connected_at = None
        self.last_failed_at = self._scheduler.now()
        self._link.set(ConnectionStatus.DISCONNECTED)

    def _begin_connect(self) -> None:
        self._settle_timer = None
        self._link.set(ConnectionStatus.CONNECTING)
        self._connect_timer = self._scheduler.after(CNC_LINK_CONNECT_SECONDS, self._on_connected)

    def _on_connected(self) -> None:
        self._connect_timer = None
        self.last_connected_at = self._scheduler.now()
        self.last_failed_at = None
        _log.info("CNC link connected")
        self._link.set(ConnectionStatus.CONNECTED)
