"""NetworkMonitor — Wi-Fi simulation and active-address resolution.

The wired link is the dashboard connection itself (the status cell).
Wi-Fi only comes up as a fallback while that link is down:

* mode ``Disabled`` → Wi-Fi ``disabled``
* wired ``connected`` → Wi-Fi ``disconnected``
* wired ``disconnected`` + ``Station`` → joins after 2 s, then the signal wanders
* wired ``disconnected`` + ``AP`` → access point up at full signal

The address the controller answers on follows Ethernet > AP > Station.
"""

from __future__ import annotations

import logging
import random

from cncsim.core.models.config import NetworkConfig, WifiConfig
from cncsim.core.models.state import ConnectionStatus, WifiStatus
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell

_log = logging.getLogger(__name__)

UNASSIGNED = "0.0.0.0"
STATION_JOIN_SECONDS = 2.0
SIGNAL_UPDATE_SECONDS = 3.0
SIGNAL_MIN = 5
SIGNAL_MAX = 100

DHCP_LEASE = WifiStatus(
    status="connected",
    signal_strength=75,
    allocated_ip="192.168.1.105",
    allocated_subnet="255.255.255.0",
    allocated_gateway="192.168.1.1",
)


def signal_bars(status: WifiStatus) -> int:
    """0–4 bars for *status*; always 0 unless connected."""
    if status.status != "connected":
        return 0
    strength = status.signal_strength
    if strength > 80:
        return 4
    if strength > 55:
        return 3
    if strength > 30:
        return 2
    if strength > 0:
        return 1
    return 0


class NetworkMonitor:
    """Drives :class:`WifiStatus` and resolves the active IP address.

    Args:
        scheduler: Clock and timer source.
        status: Wired link status cell.
        network: Wired / AP addressing config cell.
        wifi: Wi-Fi config cell.
        wifi_status: Cell this monitor writes.
        rng: Random source for signal fluctuation.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        status: StateCell[ConnectionStatus],
        network: StateCell[NetworkConfig],
        wifi: StateCell[WifiConfig],
        wifi_status: StateCell[WifiStatus],
        rng: random.Random | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._status = status
        self._network = network
        self._wifi = wifi
        self._wifi_status = wifi_status
        self._rng = rng or random.Random()
        self._join_timer: TimerHandle | None = None
        self._signal_timer: TimerHandle | None = None
        self._unsubscribes = [
            status.subscribe(lambda _s: self._evaluate()),
            network.subscribe(lambda _n: self._evaluate()),
            wifi.subscribe(lambda _w: self.start()),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def wifi_status(self) -> WifiStatus:
        return self._wifi_status.get()

    @property
    def active_ip(self) -> str:
        """Address the controller is reachable on right now."""
        network = self._network.get()
        wifi = self._wifi.get()
        wifi_status = self._wifi_status.get()
        if self._status.get() is ConnectionStatus.CONNECTED:
            return network.static_ip or UNASSIGNED
        if wifi.mode == "AP":
            return network.ap_ip or UNASSIGNED
        if (
            wifi.mode == "Station"
            and wifi_status.status == "connected"
            and wifi_status.allocated_ip != UNASSIGNED
        ):
            return wifi_status.allocated_ip
        return UNASSIGNED

    @property
    def signal_bars(self) -> int:
        return signal_bars(self._wifi_status.get())

    def start(self) -> None:
        self.stop()
        self._evaluate()

    def stop(self) -> None:
        if self._join_timer is not None:
            self._join_timer.cancel()
            self._join_timer = None
        if self._signal_timer is not None:
            self._signal_timer.cancel()
            self._signal_timer = None

    def close(self) -> None:
        self.stop()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evaluate(self) -> None:
        mode = self._wifi.get().mode
        status = self._status.get()
        if mode == "Disabled":
            self.stop()
            self._wifi_status.set(WifiStatus(status="disabled"))
        elif status is ConnectionStatus.CONNECTED:
            self.stop()
            self._wifi_status.set(WifiStatus(status="disconnected"))
        elif status is ConnectionStatus.DISCONNECTED and mode == "Station":
            self._start_station()
        elif status is ConnectionStatus.DISCONNECTED and mode == "AP":
            self.stop()
            network = self._network.get()
            self._wifi_status.set(
                WifiStatus(
                    status="connected",
                    signal_strength=100,
                    allocated_ip=network.ap_ip,
                    allocated_subnet=network.ap_subnet,
                    allocated_gateway=network.ap_ip,
                )
            )

    def _start_station(self) -> None:
        if self._join_timer is not None or self._signal_timer is not None:
            return
        _log.info("Wi-Fi station joining …")
        self._join_timer = self._scheduler.after(STATION_JOIN_SECONDS, self._on_joined)

    def _on_joined(self) -> None:
        self._join_timer = None
        wifi = self._wifi.get()
        if wifi.ip_assignment == "DHCP":
            lease = DHCP_LEASE
        else:
            lease = WifiStatus(
                status="connected",
                signal_strength=80,
                allocated_ip=wifi.static_ip,
                allocated_subnet=wifi.subnet,
                allocated_gateway=wifi.gateway_ip,
            )
        _log.info("Wi-Fi station connected (%s, %s)", wifi.ip_assignment, lease.allocated_ip)
        self._wifi_status.set(lease)
        self._signal_timer = self._scheduler.every(SIGNAL_UPDATE_SECONDS, self._fluctuate)

    def _fluctuate(self) -> None:
        current = self._wifi_status.get()
        if current.status != "connected":
            return
        strength = current.signal_strength + (self._rng.random() - 0.5) * 20
        strength = max(SIGNAL_MIN, min(SIGNAL_MAX, strength))
        self._wifi_status.set(current.model_copy(update={"signal_strength": round(strength)}))
