"""Watchdog supervisors — heartbeat and ICMP reachability.

Both watchdogs are gated on configuration *and* on the link being
``connected``; they re-evaluate whenever either cell changes.  Every
``start()`` calls ``stop()`` first, so reconfiguration never leaves a
second interval running.
"""

from __future__ import annotations

import logging
from typing import Callable

from cncsim.core.interfaces.hardware import ReachabilityProbe
from cncsim.core.models.config import WatchdogConfig
from cncsim.core.models.state import ConnectionStatus
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell
from cncsim.core.system_log import SystemLog
from cncsim.log_config.logger import ContextualLogger, get_logger

HEARTBEAT_CHECK_SECONDS = 1.0


class HeartbeatWatchdog:
    """Reboots the controller when its heartbeat stops.

    The heartbeat is fed by every change of the *heartbeat* cell (the
    lifecycle's uptime counter), so a hung controller stops feeding it.

    Args:
        scheduler: Clock and timer source.
        status: Link status cell.
        config: Watchdog configuration cell.
        heartbeat: Any cell whose changes count as a heartbeat.
        on_timeout: Called once when the watchdog trips.
        system_log: Device log for the trip message.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        status: StateCell[ConnectionStatus],
        config: StateCell[WatchdogConfig],
        heartbeat: StateCell[int],
        on_timeout: Callable[[], None],
        system_log: SystemLog | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._status = status
        self._config = config
        self._on_timeout = on_timeout
        self._system_log = system_log
        self._log = ContextualLogger(get_logger(__name__), watchdog="heartbeat")
        self._timer: TimerHandle | None = None
        self.last_heartbeat = scheduler.now()
        self._unsubscribes = [
            status.subscribe(lambda _s: self._reevaluate()),
            config.subscribe(lambda _c: self._reevaluate()),
            heartbeat.subscribe(lambda _v: self.feed()),
        ]

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def should_run(self) -> bool:
        return self._config.get().enabled and self._status.get() is ConnectionStatus.CONNECTED

    def feed(self) -> None:
        """Record a heartbeat."""
        self.last_heartbeat = self._scheduler.now()

    def start(self) -> None:
        self.stop()
        self.feed()
        timeout = self._config.get().timeout_seconds
        self._log.info("Started with a timeout of %d seconds", timeout)
        self._timer = self._scheduler.every(HEARTBEAT_CHECK_SECONDS, self._check)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._log.info("Stopped")

    def close(self) -> None:
        self.stop()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    def _reevaluate(self) -> None:
        if not self.should_run:
            self.stop()
        elif not self.running:
            self.start()

    def _check(self) -> None:
        timeout = self._config.get().timeout_seconds
        if self._scheduler.now() - self.last_heartbeat < timeout:
            return
        self._log.error("Timeout! Device unresponsive. Rebooting …")
        if self._system_log is not None:
            self._system_log.error("Hardware Watchdog timeout! Device unresponsive. Rebooting...")
        self.stop()
        self._on_timeout()


class IcmpWatchdog:
    """Pings a target address and reboots after too many consecutive misses.

    Args:
        scheduler: Clock and timer source.
        status: Link status cell.
        config: Watchdog configuration cell (target, delay, interval, threshold).
        probe: Reachability probe used for each ping.
        on_timeout: Called once when the failure threshold is reached.
        system_log: Device log for probe results.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        status: StateCell[ConnectionStatus],
        config: StateCell[WatchdogConfig],
        probe: ReachabilityProbe,
        on_timeout: Callable[[], None],
        system_log: SystemLog,
    ) -> None:
        self._scheduler = scheduler
        self._status = status
        self._config = config
        self._probe = probe
        self._on_timeout = on_timeout
        self._system_log = system_log
        self._log = ContextualLogger(get_logger(__name__), watchdog="icmp")
        self._delay_timer: TimerHandle | None = None
        self._interval_timer: TimerHandle | None = None
        self.failure_count = 0
        self._unsubscribes = [
            status.subscribe(self._on_status),
            config.subscribe(lambda _c: self._on_config()),
        ]

    @property
    def running(self) -> bool:
        return self._delay_timer is not None or self._interval_timer is not None

    @property
    def should_run(self) -> bool:
        return bool(self._config.get().icmp_target) and self._status.get() is ConnectionStatus.CONNECTED

    def start(self) -> None:
        self.stop()
        config = self._config.get()
        self._log.info(
            "Will start pinging %s after a delay of %d seconds",
            config.icmp_target,
            config.icmp_delay_seconds,
        )
        self._delay_timer = self._scheduler.after(config.icmp_delay_seconds, self._begin_probing)

    def stop(self) -> None:
        """Cancel both the initial-delay and the interval timer."""
        if self._delay_timer is not None:
            self._delay_timer.cancel()
            self._delay_timer = None
        if self._interval_timer is not None:
            self._interval_timer.cancel()
            self._interval_timer = None
        if self.failure_count > 0:
            self._log.info("Stopped. Failure count reset.")
        self.failure_count = 0

    def close(self) -> None:
        self.stop()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_status(self, _status: ConnectionStatus) -> None:
        if not self.should_run:
            self.stop()
        elif not self.running:
            self.start()

    def _on_config(self) -> None:
        if self.should_run:
            self.start()
        else:
            self.stop()

    def _begin_probing(self) -> None:
        self._delay_timer = None
        interval = self._config.get().icmp_interval_seconds
        self._log.debug("Initial delay finished; pinging every %d seconds", interval)
        self._interval_timer = self._scheduler.every(interval, self.ping)
        self.ping()

    def ping(self) -> None:
        """Probe the target once and act on the result."""
        config = self._config.get()
        ip = config.icmp_target
        if self._probe.probe(ip):
            self._system_log.debug(f"ICMP Ping to {ip}: Success.")
            if self.failure_count > 0:
                self._system_log.info(f"ICMP Watchdog target {ip} is responsive again.")
            self.failure_count = 0
            return

        self.failure_count += 1
        self._system_log.warn(
            f"ICMP Ping to {ip}: Failed (Attempt {self.failure_count}/{config.icmp_fail_count})."
        )
        if self.failure_count >= config.icmp_fail_count:
            self._system_log.error(f"ICMP Watchdog: Target {ip} unresponsive. Rebooting device.")
            self.stop()
            self._on_timeout()
