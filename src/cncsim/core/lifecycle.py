"""LifecycleSequencer — reboot / shutdown sequencing, uptime, SD faults.

Owns the boot counters (:class:`HealthStats`), the pending reboot reason
handed across a simulated restart, the uptime counter that doubles as the
controller heartbeat, and the SD-card fault state.
"""

from __future__ import annotations

import logging

from cncsim.config.persistence import PersistenceStore
from cncsim.core import events
from cncsim.core.connectivity import ConnectionStateMachine
from cncsim.core.event_bus import EventBus
from cncsim.core.interfaces.hardware import BuzzerInterface
from cncsim.core.models.config import WatchdogConfig
from cncsim.core.models.state import (
    ConnectionStatus,
    HealthStats,
    RebootReason,
    SdCardErrorState,
    SdCardInfo,
    ShutdownState,
)
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell
from cncsim.core.system_log import SystemLog

_log = logging.getLogger(__name__)

RESTART_REASON_KEY = "cncsim.restart_reason"
HEALTH_STATS_KEY = "cncsim.health_stats"

REBOOT_DELAY_SECONDS = 5.0
# Longer than the compositor's 5 s fade so the strips reach black first.
SHUTDOWN_REBOOT_DELAY_SECONDS = 5.5
UPTIME_TICK_SECONDS = 1.0
SD_INIT_DELAY_SECONDS = 1.0

_QUIET_REASONS = (RebootReason.NORMAL_POWER_UP, RebootReason.USER_REBOOT)


def format_uptime(seconds: int) -> str:
    """Format *seconds* as ``"1d 2h 3m 4s"`` (days omitted when zero)."""
    d, rem = divmod(seconds, 86400)
    h, rem = divmod(rem, 3600)
    m, s = divmod(rem, 60)
    prefix = f"{d}d " if d > 0 else ""
    return f"{prefix}{h}h {m}m {s}s"


class LifecycleSequencer:
    """Reboot and shutdown orchestration for the simulated controller.

    Construction is the simulated power-up: the persisted reboot reason is
    classified into a startup log line, ``startups`` is incremented and the
    buzzer sounds twice.  :meth:`start` then begins the uptime counter.

    Args:
        scheduler: Clock and timer source.
        connectivity: The link state machine driven during reboots.
        status: Link status cell (watched for reboot completion).
        watchdog_config: Watchdog config cell (SD-failure reboot settings).
        persistence: Store for the reboot reason and health counters.
        buzzer: Audible cue sink.
        system_log: Device log.
        event_bus: Optional bus for reboot / shutdown notifications.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        connectivity: ConnectionStateMachine,
        status: StateCell[ConnectionStatus],
        watchdog_config: StateCell[WatchdogConfig],
        persistence: PersistenceStore,
        buzzer: BuzzerInterface,
        system_log: SystemLog,
        event_bus: EventBus | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._connectivity = connectivity
        self._status = status
        self._watchdog_config = watchdog_config
        self._store = persistence
        self._buzzer = buzzer
        self._system_log = system_log
        self._bus = event_bus

        self.uptime_seconds: StateCell[int] = StateCell(0, "uptime_seconds")
        self.shutdown: StateCell[ShutdownState] = StateCell(ShutdownState(), "shutdown")
        self.sd_error: StateCell[SdCardErrorState] = StateCell(SdCardErrorState(), "sd_error")
        self.sd_card: StateCell[SdCardInfo] = StateCell(SdCardInfo(), "sd_card")
        self.health: StateCell[HealthStats] = StateCell(self._load_health(), "health")

        self.hung = False
        self.last_reboot_reason: RebootReason | None = None
        self._reboot_in_progress = False

        self._uptime_timer: TimerHandle | None = None
        self._reboot_timer: TimerHandle | None = None
        self._shutdown_timer: TimerHandle | None = None
        self._sd_reboot_timer: TimerHandle | None = None
        self._sd_init_timer: TimerHandle | None = None

        self._unsubscribe = status.subscribe(self._on_status)

        self.classify_startup()
        self._increment_health(startups=1)
        self._buzzer.beep(2)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def uptime(self) -> str:
        return format_uptime(self.uptime_seconds.get())

    @property
    def reboot_pending(self) -> bool:
        return self._reboot_timer is not None

    # ------------------------------------------------------------------
    # Start / stop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin uptime counting and the SD-card mount delay."""
        self._start_uptime()
        if self._sd_init_timer is not None:
            self._sd_init_timer.cancel()
        self._sd_init_timer = self._scheduler.after(SD_INIT_DELAY_SECONDS, self._on_sd_initialized)

    def stop(self) -> None:
        """Cancel every timer this sequencer owns (idempotent)."""
        self._stop_uptime()
        for name in ("_reboot_timer", "_shutdown_timer", "_sd_reboot_timer", "_sd_init_timer"):
            handle: TimerHandle | None = getattr(self, name)
            if handle is not None:
                handle.cancel()
                setattr(self, name, None)

    def close(self) -> None:
        self.stop()
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Startup classification & health counters
    # ------------------------------------------------------------------

    def classify_startup(self) -> RebootReason:
        """Log why the controller (re)started and consume the stored reason."""
        stored = self._store.get_item(RESTART_REASON_KEY)
        try:
            reason = RebootReason(stored) if stored is not None else RebootReason.NORMAL_POWER_UP
        except ValueError:
            _log.warning("Unknown persisted restart reason %r; treating as power-up", stored)
            reason = RebootReason.NORMAL_POWER_UP

        message = f"System startup detected. Reason: {reason.value}."
        if reason in _QUIET_REASONS:
            self._system_log.info(message)
        else:
            self._system_log.warn(message)
        self._store.set_item(RESTART_REASON_KEY, None)
        return reason

    def _load_health(self) -> HealthStats:
        stored = self._store.get_item(HEALTH_STATS_KEY)
        if stored is None:
            return HealthStats()
        try:
            return HealthStats.model_validate(stored)
        except ValueError as exc:
            _log.error("Discarding invalid persisted health stats: %s", exc)
            return HealthStats()

    def _increment_health(self, startups: int = 0, watchdog_reboots: int = 0) -> None:
        current = self.health.get()
        updated = HealthStats(
            startups=current.startups + startups,
            watchdog_reboots=current.watchdog_reboots + watchdog_reboots,
        )
        self._store.set_item(HEALTH_STATS_KEY, updated.model_dump())
        self.health.set(updated)

    def _on_status(self, status: ConnectionStatus) -> None:
        if status is ConnectionStatus.RESTARTING:
            self._reboot_in_progress = True
        elif status is ConnectionStatus.CONNECTED and self._reboot_in_progress:
            self._increment_health(startups=1)
            self._reboot_in_progress = False
            _log.info("Reboot cycle complete; startups=%d", self.health.get().startups)

    # ------------------------------------------------------------------
    # Reboot & shutdown
    # ------------------------------------------------------------------

    def reboot_device(self, reason: RebootReason = RebootReason.USER_REBOOT) -> None:
        """Restart the controller: link drops now, reconnects after 5 s."""
        if self._reboot_timer is not None:
            _log.info("Reboot already pending; ignoring request (%s)", reason.value)
            return
        _log.info("Rebooting device (reason: %s)", reason.value)
        self.last_reboot_reason = reason
        self._store.set_item(RESTART_REASON_KEY, reason.value)
        self._buzzer.beep(3)
        self._connectivity.set_restarting()
        self._stop_uptime()
        if self._bus is not None:
            self._bus.publish_nowait(events.REBOOT_REQUESTED, {"reason": reason.value})
        self._reboot_timer = self._scheduler.after(REBOOT_DELAY_SECONDS, self._complete_reboot)

    def watchdog_reboot(self) -> None:
        """Count a heartbeat-watchdog reboot, then reboot."""
        self._increment_health(watchdog_reboots=1)
        _log.warning("Watchdog reboot triggered; count=%d", self.health.get().watchdog_reboots)
        self.reboot_device(RebootReason.WATCHDOG_TIMEOUT)

    def shutdown_device(self) -> None:
        """Start the shutdown fade; a second call while in progress is ignored."""
        if self.shutdown.get().in_progress:
            return
        now = self._scheduler.now()
        _log.info("Shutdown initiated")
        self.shutdown.set(ShutdownState(in_progress=True, started_at=now))
        if self._bus is not None:
            self._bus.publish_nowait(events.SHUTDOWN_STARTED, {"started_at": now})
        self._shutdown_timer = self._scheduler.after(
            SHUTDOWN_REBOOT_DELAY_SECONDS, self._on_shutdown_elapsed
        )

    def _on_shutdown_elapsed(self) -> None:
        self._shutdown_timer = None
        self.reboot_device(RebootReason.SHUTDOWN_PIN)

    def _complete_reboot(self) -> None:
        self._reboot_timer = None
        _log.info("Simulated reboot finished; resetting state and reconnecting")
        if self._shutdown_timer is not None:
            self._shutdown_timer.cancel()
            self._shutdown_timer = None
        self.shutdown.set(ShutdownState())
        self.hung = False
        self.uptime_seconds.set(0)
        self._start_uptime()
        self.classify_startup()
        self._connectivity.simulate_connect()

    # ------------------------------------------------------------------
    # Uptime / hang injection
    # ------------------------------------------------------------------

    def simulate_hang(self, hung: bool) -> None:
        """Freeze (or resume) the uptime counter, which is also the heartbeat."""
        self.hung = hung
        _log.warning("Controller hang %s", "injected" if hung else "cleared")

    def _start_uptime(self) -> None:
        self._stop_uptime()
        self._uptime_timer = self._scheduler.every(UPTIME_TICK_SECONDS, self._tick_uptime)

    def _stop_uptime(self) -> None:
        if self._uptime_timer is not None:
            self._uptime_timer.cancel()
            self._uptime_timer = None

    def _tick_uptime(self) -> None:
        if self.hung:
            return
        self.uptime_seconds.update(lambda s: s + 1)

    # ------------------------------------------------------------------
    # SD card
    # ------------------------------------------------------------------

    def trigger_sd_error(self, reason: str) -> None:
        """Latch an SD-card fault; optionally schedule an SD-failure reboot."""
        if self.sd_error.get().active:
            return
        self.sd_error.set(SdCardErrorState(active=True, since=self._scheduler.now()))
        self._buzzer.beep(3)
        self._system_log.error(f"SD Card Error Triggered: {reason}")

        config = self._watchdog_config.get()
        if config.sd_failure_reboot:
            _log.info(
                "Scheduling reboot in %d seconds due to SD card failure",
                config.sd_failure_reboot_timeout_seconds,
            )
            self._sd_reboot_timer = self._scheduler.after(
                config.sd_failure_reboot_timeout_seconds, self._on_sd_reboot_due
            )

    def simulate_sd_write_failure(self) -> None:
        message = "SD Card Error: Failed to write to file."
        self._system_log.error(message)
        self.trigger_sd_error(message)

    def clear_sd_error(self) -> None:
        if self._sd_reboot_timer is not None:
            self._sd_reboot_timer.cancel()
            self._sd_reboot_timer = None
        if self.sd_error.get().active:
            _log.info("SD card error cleared")
        self.sd_error.set(SdCardErrorState())

    def set_sd_card_present(self, present: bool) -> None:
        status = "Mounted" if present else "Not Present"
        self.sd_card.update(lambda info: info.model_copy(update={"status": status}))

    def _on_sd_reboot_due(self) -> None:
        self._sd_reboot_timer = None
        self.reboot_device(RebootReason.SD_CARD_FAILURE)

    def _on_sd_initialized(self) -> None:
        self._sd_init_timer = None
        self.sd_card.update(lambda info: info.model_copy(update={"status": "Mounted"}))
        self._system_log.info("SD Card initialized and mounted successfully.")
