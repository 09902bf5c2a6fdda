"""OnboardIndicator — the single status LED on the controller board."""

from __future__ import annotations

import logging
from typing import Any, Callable

from cncsim.core.models.config import NetworkConfig
from cncsim.core.models.state import ConnectionStatus, OnboardLedState
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell

_log = logging.getLogger(__name__)

FLASH_SECONDS = 3.0
STATIC_COLOR = "#00FF00"
DYNAMIC_COLOR = "#0000FF"


class OnboardIndicator:
    """Green when reached on the static address, blue otherwise.

    The LED flashes for a few seconds after every connect, then holds.
    ``disconnected`` switches it off; other statuses leave it unchanged.

    Args:
        scheduler: Timer source for the flash hold.
        status: Link status cell.
        network: Network config cell (static address).
        active_ip: Returns the address the controller is currently reached on.
        state: Cell this indicator writes.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        status: StateCell[ConnectionStatus],
        network: StateCell[NetworkConfig],
        active_ip: Callable[[], str],
        state: StateCell[OnboardLedState],
    ) -> None:
        self._scheduler = scheduler
        self._network = network
        self._active_ip = active_ip
        self._state = state
        self._flash_timer: TimerHandle | None = None
        self._unsubscribe = status.subscribe(self._on_status)

    @property
    def state(self) -> OnboardLedState:
        return self._state.get()

    def update(self, **fields: Any) -> None:
        """Override individual fields (colour, flashing, brightness)."""
        self._state.update(lambda s: s.model_copy(update=fields))
        _log.debug("Onboard LED state updated: %s", self._state.get())

    def stop(self) -> None:
        if self._flash_timer is not None:
            self._flash_timer.cancel()
            self._flash_timer = None

    def close(self) -> None:
        self.stop()
        self._unsubscribe()

    def _on_status(self, status: ConnectionStatus) -> None:
        if status is ConnectionStatus.CONNECTED:
            self.stop()
            static = self._active_ip() == self._network.get().static_ip
            color = STATIC_COLOR if static else DYNAMIC_COLOR
            self._state.set(OnboardLedState(color=color, flashing=True, brightness=255))
            self._flash_timer = self._scheduler.after(FLASH_SECONDS, self._hold)
        elif status is ConnectionStatus.DISCONNECTED:
            self.stop()
            self._state.set(OnboardLedState(color="off", flashing=False, brightness=255))

    def _hold(self) -> None:
        self._flash_timer = None
        self.update(flashing=False)
