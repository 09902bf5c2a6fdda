"""DeviceSimulator — wires every subsystem together behind one facade.

Holds one :class:`StateCell` per config section and per piece of runtime
state, hands those cells to the subsystems that read or own them, and
exposes the inbound calls (fault injection, reboot / shutdown, config
updates) and outbound state the dashboard uses.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

from cncsim.config.persistence import PersistenceStore
from cncsim.core import events
from cncsim.core.compositor import ChaseOverlay, LedCompositor, PhaseTracker
from cncsim.core.connectivity import CncLinkSimulator, ConnectionStateMachine
from cncsim.core.event_bus import EventBus
from cncsim.core.interfaces.hardware import HardwareFactory
from cncsim.core.lifecycle import LifecycleSequencer
from cncsim.core.models.config import SimConfig
from cncsim.core.models.state import (
    Axis,
    ChaseState,
    ConnectionStatus,
    HealthStats,
    LedStrip,
    MasterLedState,
    OnboardLedState,
    RebootReason,
    SdCardErrorState,
    SdCardInfo,
    ServoAxisState,
    ShutdownState,
    SystemPhase,
    WifiStatus,
)
from cncsim.core.motion import MotionSimulator
from cncsim.core.network import NetworkMonitor
from cncsim.core.onboard_led import OnboardIndicator
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell
from cncsim.core.system_log import SystemLog
from cncsim.core.watchdog import HeartbeatWatchdog, IcmpWatchdog

_log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _merged(model: M, changes: dict[str, Any]) -> M:
    """Return a validated copy of *model* with *changes* applied."""
    return type(model).model_validate({**model.model_dump(), **changes})


class DeviceSimulator:
    """The simulated controller.

    Args:
        config: Validated configuration (its sections seed the config cells).
        scheduler: Clock and timer source (asyncio at runtime, virtual in tests).
        persistence: Store for the reboot reason and health counters.
        hardware: Factory for the buzzer and reachability probe.
        event_bus: Optional bus that receives state-change notifications.
        rng: Random source for Wi-Fi signal fluctuation.
    """

    def __init__(
        self,
        config: SimConfig,
        scheduler: Scheduler,
        persistence: PersistenceStore,
        hardware: HardwareFactory,
        event_bus: EventBus | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._bus = event_bus
        self._fast_tick_seconds = config.system.fast_tick_ms / 1000
        self._fast_timer: TimerHandle | None = None

        # -- Config cells ------------------------------------------------
        self.watchdog_config = StateCell(config.watchdog, "watchdog_config")
        self.leds_config = StateCell(config.leds, "leds_config")
        self.table_config = StateCell(config.table, "table_config")
        self.network_config = StateCell(config.network, "network_config")
        self.wifi_config = StateCell(config.wifi, "wifi_config")

        # -- Runtime state cells -----------------------------------------
        self.status: StateCell[ConnectionStatus] = StateCell(ConnectionStatus.DISCONNECTED, "status")
        self.cnc_link: StateCell[ConnectionStatus] = StateCell(
            ConnectionStatus.DISCONNECTED, "cnc_link"
        )
        self.phase: StateCell[SystemPhase] = StateCell(SystemPhase.STARTUP, "phase")
        self.master_leds: StateCell[MasterLedState] = StateCell(MasterLedState(), "master_leds")
        self.chase: StateCell[ChaseState] = StateCell(ChaseState(), "chase")
        self.onboard: StateCell[OnboardLedState] = StateCell(OnboardLedState(), "onboard")
        self.wifi_status: StateCell[WifiStatus] = StateCell(WifiStatus(), "wifi_status")
        now = scheduler.now()
        self.axes: dict[Axis, StateCell[ServoAxisState]] = {
            axis: StateCell(ServoAxisState(last_moved_at=now), f"servo_{axis.value}") for axis in Axis
        }
        self.strips: StateCell[dict[Axis, LedStrip]] = StateCell({}, "strips")

        # -- Peripherals -------------------------------------------------
        self._buzzer = hardware.create_buzzer()
        self._probe = hardware.create_probe()
        self.system_log = SystemLog(event_bus)

        # -- Subsystems (lifecycle first: it counts reboot completions) --
        self.connectivity = ConnectionStateMachine(scheduler, self.status)
        self.lifecycle = LifecycleSequencer(
            scheduler,
            self.connectivity,
            self.status,
            self.watchdog_config,
            persistence,
            self._buzzer,
            self.system_log,
            event_bus,
        )
        self.cnc = CncLinkSimulator(scheduler, self.status, self.cnc_link)
        self.heartbeat = HeartbeatWatchdog(
            scheduler,
            self.status,
            self.watchdog_config,
            self.lifecycle.uptime_seconds,
            self.lifecycle.watchdog_reboot,
            self.system_log,
        )
        self.icmp = IcmpWatchdog(
            scheduler,
            self.status,
            self.watchdog_config,
            self._probe,
            lambda: self.lifecycle.reboot_device(RebootReason.ICMP_WATCHDOG_TIMEOUT),
            self.system_log,
        )
        self.motion = MotionSimulator(scheduler, self.table_config, self.axes)
        self.phase_tracker = PhaseTracker(scheduler, self.status, self.leds_config, self.phase)
        self.chase_overlay = ChaseOverlay(scheduler, self.leds_config, self.chase)
        self.compositor = LedCompositor(
            scheduler,
            self.leds_config,
            self.table_config,
            self.master_leds,
            self.phase,
            self.lifecycle.shutdown,
            self.lifecycle.sd_error,
            self.chase,
            self.axes,
        )
        self.network = NetworkMonitor(
            scheduler,
            self.status,
            self.network_config,
            self.wifi_config,
            self.wifi_status,
            rng,
        )
        self.onboard_led = OnboardIndicator(
            scheduler,
            self.status,
            self.network_config,
            lambda: self.network.active_ip,
            self.onboard,
        )

        self._forwarders: list[Callable[[], None]] = []
        self._wire_events()

    # ------------------------------------------------------------------
    # Start / stop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin ticking and initiate the first connection."""
        self.stop()
        _log.info("Device simulator starting (fast tick %.0f ms)", self._fast_tick_seconds * 1000)
        self.strips.set(self.compositor.render_all())
        self._fast_timer = self._scheduler.every(self._fast_tick_seconds, self._fast_tick)
        self.lifecycle.start()
        self.chase_overlay.start()
        self.connectivity.simulate_connect()
        self.network.start()

    def stop(self) -> None:
        """Cancel every timer the simulator owns (idempotent)."""
        if self._fast_timer is not None:
            self._fast_timer.cancel()
            self._fast_timer = None
            _log.info("Device simulator stopped")
        self.connectivity.cancel()
        self.cnc.stop()
        self.heartbeat.stop()
        self.icmp.stop()
        self.lifecycle.stop()
        self.phase_tracker.stop()
        self.chase_overlay.stop()
        self.network.stop()
        self.onboard_led.stop()

    def close(self) -> None:
        """Stop, then detach every subsystem from the shared cells.

        After ``close()`` no config or status write can re-arm a timer.
        """
        self.stop()
        for subsystem in (
            self.lifecycle,
            self.cnc,
            self.heartbeat,
            self.icmp,
            self.phase_tracker,
            self.chase_overlay,
            self.network,
            self.onboard_led,
        ):
            subsystem.close()
        for unsubscribe in self._forwarders:
            unsubscribe()
        self._forwarders.clear()

    def _fast_tick(self) -> None:
        if not self.lifecycle.shutdown.get().in_progress:
            self.motion.step()
        self.compositor.tick()
        self.strips.set(self.compositor.render_all())

    # ------------------------------------------------------------------
    # Inbound: connectivity & lifecycle
    # ------------------------------------------------------------------

    def simulate_connect(self) -> None:
        self.connectivity.simulate_connect()

    def simulate_disconnect(self) -> None:
        self.connectivity.simulate_disconnect()

    def set_restarting(self) -> None:
        self.connectivity.set_restarting()

    def reboot_device(self, reason: RebootReason = RebootReason.USER_REBOOT) -> None:
        self.lifecycle.reboot_device(reason)

    def shutdown_device(self) -> None:
        self.lifecycle.shutdown_device()

    def trigger_sd_error(self, reason: str) -> None:
        self.lifecycle.trigger_sd_error(reason)

    def simulate_sd_write_failure(self) -> None:
        self.lifecycle.simulate_sd_write_failure()

    def clear_sd_error(self) -> None:
        self.lifecycle.clear_sd_error()

    def set_sd_card_present(self, present: bool) -> None:
        self.lifecycle.set_sd_card_present(present)

    def simulate_hang(self, hung: bool) -> None:
        self.lifecycle.simulate_hang(hung)

    def set_buzzer_enabled(self, enabled: bool) -> None:
        self._buzzer.set_enabled(enabled)

    # ------------------------------------------------------------------
    # Inbound: configuration
    # ------------------------------------------------------------------

    def update_watchdog_config(self, **changes: Any) -> None:
        self.watchdog_config.set(_merged(self.watchdog_config.get(), changes))

    def update_leds_config(self, **changes: Any) -> None:
        self.leds_config.set(_merged(self.leds_config.get(), changes))

    def update_table_config(self, **changes: Any) -> None:
        self.table_config.set(_merged(self.table_config.get(), changes))

    def update_network_config(self, **changes: Any) -> None:
        self.network_config.set(_merged(self.network_config.get(), changes))

    def update_wifi_config(self, **changes: Any) -> None:
        self.wifi_config.set(_merged(self.wifi_config.get(), changes))

    def update_master_leds(self, **changes: Any) -> None:
        self.master_leds.set(_merged(self.master_leds.get(), changes))

    # ------------------------------------------------------------------
    # Outbound state
    # ------------------------------------------------------------------

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.status.get()

    @property
    def system_phase(self) -> SystemPhase:
        return self.phase.get()

    @property
    def health(self) -> HealthStats:
        return self.lifecycle.health.get()

    @property
    def uptime(self) -> str:
        return self.lifecycle.uptime

    @property
    def shutdown_state(self) -> ShutdownState:
        return self.lifecycle.shutdown.get()

    @property
    def sd_error(self) -> SdCardErrorState:
        return self.lifecycle.sd_error.get()

    @property
    def sd_card(self) -> SdCardInfo:
        return self.lifecycle.sd_card.get()

    @property
    def onboard_led_state(self) -> OnboardLedState:
        return self.onboard.get()

    @property
    def active_ip(self) -> str:
        return self.network.active_ip

    @property
    def last_reboot_reason(self) -> RebootReason | None:
        return self.lifecycle.last_reboot_reason

    def servo(self, axis: Axis) -> ServoAxisState:
        return self.axes[axis].get()

    def strip(self, axis: Axis) -> LedStrip:
        return self.strips.get().get(axis, ())

    # ------------------------------------------------------------------
    # Event forwarding
    # ------------------------------------------------------------------

    def _wire_events(self) -> None:
        if self._bus is None:
            return
        bus = self._bus
        self._forwarders = [
            self.status.subscribe(
                lambda s: bus.publish_nowait(events.CONNECTION_CHANGED, {"status": s.value})
            ),
            self.cnc_link.subscribe(
                lambda s: bus.publish_nowait(events.CNC_LINK_CHANGED, {"status": s.value})
            ),
            self.phase.subscribe(
                lambda p: bus.publish_nowait(events.PHASE_CHANGED, {"phase": p.value})
            ),
            self.lifecycle.sd_error.subscribe(
                lambda e: bus.publish_nowait(
                    events.SD_ERROR_CHANGED, {"active": e.active, "since": e.since}
                )
            ),
            self.lifecycle.health.subscribe(
                lambda h: bus.publish_nowait(events.HEALTH_CHANGED, h.model_dump())
            ),
        ]
