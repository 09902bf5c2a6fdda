"""Dev panel — fault-injection controls and live readouts for the simulator.

Renders three LED strip previews, the onboard status LED, link / phase /
uptime / health readouts, a button for every inbound simulator call, and
the device system log.  Strips and readouts are polled with ``ui.timer``;
connection changes and log lines arrive over the event bus.
"""

from __future__ import annotations

import logging as _logging
from typing import Any, Sequence

from nicegui import ui

from cncsim.core import events
from cncsim.core.event_bus import EventBus
from cncsim.core.models.config import MIN_HEARTBEAT_TIMEOUT_SECONDS
from cncsim.core.models.event import Event
from cncsim.core.models.state import STRIP_AXES, Axis, LedPixel, RebootReason
from cncsim.core.network import signal_bars
from cncsim.core.simulator import DeviceSimulator
from cncsim.hardware.mock.mock_factory import MockHardwareFactory

_log = _logging.getLogger(__name__)

REFRESH_SECONDS = 0.2
PREVIEW_SAMPLES = 80

_STATUS_COLORS: dict[str, str] = {
    "connected": "#22c55e",
    "connecting": "#eab308",
    "restarting": "#3b82f6",
    "disconnected": "#ef4444",
}


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def pixel_css(pixel: LedPixel) -> str:
    """CSS colour of *pixel* with its brightness applied."""
    if pixel.color == "off" or pixel.brightness <= 0:
        return "#000000"
    value = pixel.color.lstrip("#")
    scale = pixel.brightness / 255
    r, g, b = (round(int(value[i:i + 2], 16) * scale) for i in (0, 2, 4))
    return f"#{r:02x}{g:02x}{b:02x}"


def strip_gradient(strip: Sequence[LedPixel], samples: int = PREVIEW_SAMPLES) -> str:
    """CSS ``linear-gradient`` approximating *strip* with at most *samples* stops."""
    if not strip:
        return "#000000"
    count = min(samples, len(strip))
    stops = [pixel_css(strip[i * len(strip) // count]) for i in range(count)]
    if count == 1:
        return stops[0]
    return f"linear-gradient(to right, {', '.join(stops)})"


class DevPanel:
    """Simulator control panel.

    Args:
        simulator: The running :class:`DeviceSimulator`.
        factory: Mock hardware (buzzer state and beep history).
        event_bus: The global event bus for connection and log events.
    """

    def __init__(
        self,
        simulator: DeviceSimulator,
        factory: MockHardwareFactory,
        event_bus: EventBus,
    ) -> None:
        self._sim = simulator
        self._factory = factory
        self._bus = event_bus

        # Populated during build
        self._strip_previews: dict[Axis, Any] = {}
        self._onboard_badge: Any = None
        self._status_label: Any = None
        self._readouts: dict[str, Any] = {}
        self._log_view: Any = None
        self._sub_ids: list[str] = []

    def build(self) -> None:
        with ui.column().classes("w-full").style("gap: 10px; padding: 8px;"):
            self._build_status_row()
            self._build_strip_previews()
            with ui.row().classes("w-full items-start").style("gap: 24px;"):
                self._build_lifecycle_controls()
                self._build_fault_controls()
                self._build_led_controls()
            self._build_log()

        self._sub_ids = [
            self._bus.subscribe(events.CONNECTION_CHANGED, self._on_connection_changed),
            self._bus.subscribe(events.LOG_ADDED, self._on_log_added),
        ]
        ui.timer(REFRESH_SECONDS, self.refresh)

    def teardown(self) -> None:
        for sub_id in self._sub_ids:
            self._bus.unsubscribe(sub_id)
        self._sub_ids.clear()

    # ------------------------------------------------------------------
    # Build sections
    # ------------------------------------------------------------------

    def _build_status_row(self) -> None:
        with ui.row().classes("items-center").style("gap: 16px;"):
            self._onboard_badge = ui.badge("").style(
                "width: 18px; height: 18px; border-radius: 50%; background: #444444;"
            ).tooltip("Onboard status LED")
            self._status_label = ui.label(self._sim.connection_status.value).style(
                f"font-weight: bold; color: {_STATUS_COLORS[self._sim.connection_status.value]};"
            )
            for key in ("cnc", "phase", "uptime", "health", "network", "sd", "buzzer"):
                self._readouts[key] = ui.label("").style(
                    "font-family: 'Courier New', monospace; font-size: 13px;"
                )

    def _build_strip_previews(self) -> None:
        with ui.column().classes("w-full").style("gap: 4px;"):
            for axis in STRIP_AXES:
                with ui.row().classes("w-full items-center no-wrap").style("gap: 8px;"):
                    ui.label(axis.value).style("width: 28px; color: #888888; font-weight: bold;")
                    self._strip_previews[axis] = ui.element("div").style(
                        "flex: 1 1 auto; height: 14px; border-radius: 3px; background: #000000;"
                    )

    def _build_lifecycle_controls(self) -> None:
        with ui.column().style("gap: 6px;"):
            ui.label("LINK / LIFECYCLE").style("color: #888888; font-size: 12px; font-weight: bold;")
            ui.button("Connect", on_click=lambda: self._sim.simulate_connect())
            ui.button("Disconnect", on_click=lambda: self._sim.simulate_disconnect())
            ui.button("Restarting", on_click=lambda: self._sim.set_restarting())
            ui.button("Reboot", on_click=lambda: self._sim.reboot_device(RebootReason.USER_REBOOT))
            ui.button("Shutdown pin", on_click=lambda: self._sim.shutdown_device()).props("color=negative")

    def _build_fault_controls(self) -> None:
        watchdog = self._sim.watchdog_config.get()
        with ui.column().style("gap: 6px;"):
            ui.label("FAULTS").style("color: #888888; font-size: 12px; font-weight: bold;")
            ui.button("SD write failure", on_click=lambda: self._sim.simulate_sd_write_failure())
            ui.button("Clear SD error", on_click=lambda: self._sim.clear_sd_error())
            ui.switch(
                "SD card present",
                value=True,
                on_change=lambda e: self._sim.set_sd_card_present(bool(e.value)),
            )
            ui.switch("Controller hung", on_change=lambda e: self._sim.simulate_hang(bool(e.value)))
            ui.switch(
                "ICMP target reachable",
                value=True,
                on_change=lambda e: self._on_target_reachable(bool(e.value)),
            )
            ui.switch(
                "Heartbeat watchdog",
                value=watchdog.enabled,
                on_change=lambda e: self._sim.update_watchdog_config(enabled=bool(e.value)),
            )
            ui.number(
                "Watchdog timeout (s)",
                value=watchdog.timeout_seconds,
                min=MIN_HEARTBEAT_TIMEOUT_SECONDS,
                on_change=lambda e: self._on_watchdog_timeout(e.value),
            )

    def _build_led_controls(self) -> None:
        master = self._sim.master_leds.get()
        leds = self._sim.leds_config.get()
        with ui.column().style("gap: 6px; min-width: 220px;"):
            ui.label("LEDS").style("color: #888888; font-size: 12px; font-weight: bold;")
            ui.slider(
                min=0,
                max=255,
                value=master.brightness,
                on_change=lambda e: self._sim.update_master_leds(brightness=int(e.value)),
            )
            ui.color_input(
                "Master colour",
                value=master.color,
                on_change=lambda e: self._on_master_color(e.value),
            )
            ui.switch(
                "Chase",
                value=leds.chase_enabled,
                on_change=lambda e: self._sim.update_leds_config(chase_enabled=bool(e.value)),
            )
            ui.switch(
                "Buzzer",
                value=self._factory.buzzer.enabled,
                on_change=lambda e: self._sim.set_buzzer_enabled(bool(e.value)),
            )

    def _build_log(self) -> None:
        ui.label("SYSTEM LOG").style("color: #888888; font-size: 12px; font-weight: bold;")
        self._log_view = ui.log(max_lines=200).classes("w-full").style("height: 180px;")
        for entry in self._sim.system_log.entries:
            self._log_view.push(f"{entry.timestamp:%H:%M:%S} [{entry.level.value}] {entry.message}")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _on_watchdog_timeout(self, value: Any) -> None:
        if value is None or int(value) < MIN_HEARTBEAT_TIMEOUT_SECONDS:
            return
        self._sim.update_watchdog_config(timeout_seconds=int(value))

    def _on_target_reachable(self, reachable: bool) -> None:
        if reachable:
            self._factory.probe.simulate_reachable()
        else:
            self._factory.probe.simulate_unreachable()

    def _on_master_color(self, value: str | None) -> None:
        if not value or len(value) != 7:
            return
        self._sim.update_master_leds(color=value.upper())

    # ------------------------------------------------------------------
    # Refresh & event handlers
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Copy current simulator state into the widgets."""
        sim = self._sim
        try:
            for axis, preview in self._strip_previews.items():
                preview.style(f"background: {strip_gradient(sim.strip(axis))};")
            if self._onboard_badge is not None:
                led = sim.onboard_led_state
                color = "#444444" if led.color == "off" else led.color
                blink = "animation: pulse 0.5s infinite;" if led.flashing else ""
                self._onboard_badge.style(f"background: {color}; {blink}")
            health = sim.health
            wifi = sim.network.wifi_status
            texts = {
                "cnc": f"CNC: {sim.cnc_link.get().value}",
                "phase": f"phase: {sim.system_phase.value}",
                "uptime": f"up {sim.uptime}",
                "health": f"boots {health.startups} / wd {health.watchdog_reboots}",
                "network": f"IP {sim.active_ip}  wifi {wifi.status} ({signal_bars(wifi)}/4)",
                "sd": f"SD {sim.sd_card.status}{' ERROR' if sim.sd_error.active else ''}",
                "buzzer": f"beeps {len(self._factory.buzzer.beeps)}",
            }
            for key, text in texts.items():
                label = self._readouts.get(key)
                if label is not None:
                    label.text = text
        except RuntimeError:
            _log.debug("dev panel client gone, skipping refresh")

    async def _on_connection_changed(self, event: Event) -> None:
        status = event.payload.get("status", "")
        if self._status_label is None:
            return
        try:
            self._status_label.text = status
            self._status_label.style(f"color: {_STATUS_COLORS.get(status, '#ffffff')};")
        except RuntimeError:
            _log.debug("status_label client gone, ignoring update")

    async def _on_log_added(self, event: Event) -> None:
        if self._log_view is None:
            return
        level = event.payload.get("level", "INFO")
        message = event.payload.get("message", "")
        try:
            self._log_view.push(f"[{level}] {message}")
        except RuntimeError:
            _log.debug("log view client gone, ignoring entry")
