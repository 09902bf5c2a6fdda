"""LED compositor — renders the X / Y / YY strips from simulator state.

Every fast tick each strip is rebuilt from scratch by :meth:`LedCompositor.render_strip`.
The first matching layer wins:

1. shutdown fade
2. SD-card error
3. startup (X flasher, Y/YY scanners)
4. post-startup white (Y/YY only; X falls through)
5. running (base, limit overlay or position window, optional chase)

:class:`PhaseTracker` and :class:`ChaseOverlay` own the two timed inputs
to the compositor: the system phase and the chase window.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Mapping

from cncsim.core.models.config import LedsConfig, TableConfig
from cncsim.core.models.state import (
    STRIP_AXES,
    Axis,
    ChaseState,
    ConnectionStatus,
    LedPixel,
    LedStrip,
    MasterLedState,
    SdCardErrorState,
    ServoAxisState,
    ShutdownState,
    SystemPhase,
)
from cncsim.core.motion import rail_length
from cncsim.core.scheduler import Scheduler, TimerHandle
from cncsim.core.state_cell import StateCell

_log = logging.getLogger(__name__)

BLUE = "#0000FF"
BLACK = "#000000"
RED = "#FF0000"
WHITE = "#FFFFFF"
GREEN = "#00FF00"
AMBER = "#FFA500"
PURPLE = "#800080"

SHUTDOWN_HOLD_SECONDS = 2.0
SHUTDOWN_FADE_SECONDS = 3.0
SD_FLASH_SECONDS = 10.0
SCANNER_TAIL = 15
LIMIT_PIXELS = 20
CHASE_DURATION_SECONDS = 4.0
WHITE_PHASE_DELAY_SECONDS = 10.0

# Brightness at the end of a tail is exp(-TAIL_DECAY) of the head.
TAIL_DECAY = 3.0


def tail_brightness(distance: int, tail: int, peak: float = 255.0) -> float:
    """Exponentially decaying brightness *distance* pixels from a scanner head."""
    return peak * math.exp(-TAIL_DECAY * distance / tail)


def strip_length(axis: Axis, leds: LedsConfig) -> int:
    if axis is Axis.X:
        return leds.count_x
    if axis is Axis.Y:
        return leds.count_y
    return leds.count_yy


def default_brightness(axis: Axis, leds: LedsConfig) -> int:
    if axis is Axis.X:
        return leds.default_brightness_x
    if axis is Axis.Y:
        return leds.default_brightness_y
    return leds.default_brightness_yy


def solid(color: str, brightness: int, count: int) -> LedStrip:
    pixel = LedPixel(color, brightness)
    return (pixel,) * count


@dataclass
class Scanner:
    """Bouncing head position for a startup scanner strip."""

    position: int = 0
    direction: int = 1

    def advance(self, length: int) -> None:
        if length <= 0:
            return
        self.position += self.direction * max(1, length // 50)
        if self.position >= length:
            self.position = length - 1
            self.direction = -1
        if self.position < 0:
            self.position = 0
            self.direction = 1


# ---------------------------------------------------------------------------
# Phase tracker
# ---------------------------------------------------------------------------

class PhaseTracker:
    """Derives :class:`SystemPhase` from the link status.

    ``startup`` on connect initiation or restart, ``post_startup_white``
    10 s after connecting, then ``running`` after ``white_hold_seconds``
    when that is non-zero.  Disconnects leave the phase alone.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        status: StateCell[ConnectionStatus],
        leds: StateCell[LedsConfig],
        phase: StateCell[SystemPhase],
    ) -> None:
        self._scheduler = scheduler
        self._leds = leds
        self._phase = phase
        self._timer: TimerHandle | None = None
        self._unsubscribe = status.subscribe(self._on_status)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        self.stop()
        self._unsubscribe()

    def _on_status(self, status: ConnectionStatus) -> None:
        if status is ConnectionStatus.CONNECTED:
            self.stop()
            self._timer = self._scheduler.after(WHITE_PHASE_DELAY_SECONDS, self._enter_white)
        elif status in (ConnectionStatus.CONNECTING, ConnectionStatus.RESTARTING):
            self.stop()
            self._phase.set(SystemPhase.STARTUP)

    def _enter_white(self) -> None:
        self._timer = None
        self._phase.set(SystemPhase.POST_STARTUP_WHITE)
        hold = self._leds.get().white_hold_seconds
        if hold > 0:
            self._timer = self._scheduler.after(hold, self._enter_running)

    def _enter_running(self) -> None:
        self._timer = None
        self._phase.set(SystemPhase.RUNNING)


# ---------------------------------------------------------------------------
# Chase overlay
# ---------------------------------------------------------------------------

class ChaseOverlay:
    """Opens a 4 s chase window every ``chase_interval_seconds``."""

    def __init__(
        self,
        scheduler: Scheduler,
        leds: StateCell[LedsConfig],
        chase: StateCell[ChaseState],
    ) -> None:
        self._scheduler = scheduler
        self._leds = leds
        self._chase = chase
        self._interval: TimerHandle | None = None
        self._expiry: TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        self.stop()
        if self._unsubscribe is None:
            self._unsubscribe = self._leds.subscribe(lambda _c: self.start())
        leds = self._leds.get()
        if leds.chase_enabled:
            self._interval = self._scheduler.every(leds.chase_interval_seconds, self._begin)

    def stop(self) -> None:
        """Cancel the interval and any running window."""
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
        self._chase.set(ChaseState())

    def close(self) -> None:
        self.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None

    def _begin(self) -> None:
        if self._chase.get().active:
            return
        _log.debug("Chase overlay started")
        self._chase.set(ChaseState(active=True, started_at=self._scheduler.now()))
        self._expiry = self._scheduler.after(CHASE_DURATION_SECONDS, self._end)

    def _end(self) -> None:
        self._expiry = None
        self._chase.set(ChaseState())


# ---------------------------------------------------------------------------
# Compositor
# ---------------------------------------------------------------------------

class LedCompositor:
    """Turns simulator state into per-pixel strip buffers.

    Only the flash bit and the two startup scanners are carried between
    ticks; everything else is read from the injected cells on each render.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        leds: StateCell[LedsConfig],
        table: StateCell[TableConfig],
        master: StateCell[MasterLedState],
        phase: StateCell[SystemPhase],
        shutdown: StateCell[ShutdownState],
        sd_error: StateCell[SdCardErrorState],
        chase: StateCell[ChaseState],
        axes: Mapping[Axis, StateCell[ServoAxisState]],
    ) -> None:
        self._scheduler = scheduler
        self._leds = leds
        self._table = table
        self._master = master
        self._phase = phase
        self._shutdown = shutdown
        self._sd_error = sd_error
        self._chase = chase
        self._axes = axes
        self.flash = False
        self.scanners: dict[Axis, Scanner] = {Axis.Y: Scanner(), Axis.YY: Scanner()}

    def tick(self) -> None:
        """Advance the per-tick animation state (flash bit, scanners)."""
        leds = self._leds.get()
        for axis, scanner in self.scanners.items():
            scanner.advance(strip_length(axis, leds))
        self.flash = not self.flash

    def render_all(self) -> dict[Axis, LedStrip]:
        return {axis: self.render_strip(axis) for axis in STRIP_AXES}

    def render_strip(self, axis: Axis) -> LedStrip:
        count = strip_length(axis, self._leds.get())
        if self._shutdown.get().in_progress:
            return self._render_shutdown(count)
        if self._sd_error.get().active:
            return self._render_sd_error(count)

        phase = self._phase.get()
        if phase is SystemPhase.STARTUP:
            return self._render_startup(axis, count)
        if phase is SystemPhase.POST_STARTUP_WHITE and axis is not Axis.X:
            return solid(WHITE, self._master.get().brightness, count)
        return self._render_running(axis, count)

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def _render_shutdown(self, count: int) -> LedStrip:
        started = self._shutdown.get().started_at
        elapsed = self._scheduler.now() - started if started is not None else 0.0
        progress = min(1.0, max(0.0, (elapsed - SHUTDOWN_HOLD_SECONDS) / SHUTDOWN_FADE_SECONDS))
        return solid(BLUE, round(255 * (1 - progress)), count)

    def _render_sd_error(self, count: int) -> LedStrip:
        since = self._sd_error.get().since
        flashing = since is not None and self._scheduler.now() - since < SD_FLASH_SECONDS
        color = (RED if self.flash else BLACK) if flashing else RED
        return solid(color, 255, count)

    def _render_startup(self, axis: Axis, count: int) -> LedStrip:
        if axis is Axis.X:
            return solid(BLUE if self.flash else BLACK, 255, count)
        head = self.scanners[axis].position
        off = LedPixel(BLACK, 0)
        pixels: list[LedPixel] = []
        for i in range(count):
            distance = abs(i - head)
            if distance == 0:
                pixels.append(LedPixel(BLUE, 255))
            elif distance <= SCANNER_TAIL:
                pixels.append(LedPixel(BLUE, round(tail_brightness(distance, SCANNER_TAIL))))
            else:
                pixels.append(off)
        return tuple(pixels)

    def _render_running(self, axis: Axis, count: int) -> LedStrip:
        leds = self._leds.get()
        master = self._master.get()
        servo = self._axes[axis].get()
        now = self._scheduler.now()

        idle = now - servo.last_moved_at > leds.idle_servo_seconds
        factor = (leds.idle_servo_dim / 100 if idle else 1.0) * (master.brightness / 255)
        base_brightness = round(default_brightness(axis, leds) * factor)
        lit = round(255 * factor)

        pixels = [LedPixel(master.color, base_brightness)] * count

        if servo.limit_min or servo.limit_max:
            red = LedPixel(RED, lit, flashing=True)
            amber = LedPixel(AMBER, base_brightness)
            if servo.limit_min:
                for i in range(count):
                    pixels[i] = red if i < LIMIT_PIXELS else amber
            if servo.limit_max:
                for i in range(count):
                    pixels[i] = red if i >= count - LIMIT_PIXELS else amber
        else:
            rail = rail_length(axis, self._table.get())
            ratio = servo.position / rail if rail > 0 else 0.0
            center = math.floor(ratio * count)
            half = leds.axis_position_display
            green = LedPixel(GREEN, lit)
            for i in range(max(0, center - half), min(count - 1, center + half) + 1):
                pixels[i] = green

        chase = self._chase.get()
        if chase.active and chase.started_at is not None and master.color.upper() == WHITE:
            self._overlay_chase(pixels, now - chase.started_at, factor)

        return tuple(pixels)

    @staticmethod
    def _overlay_chase(pixels: list[LedPixel], elapsed: float, factor: float) -> None:
        count = len(pixels)
        head = math.floor(elapsed / CHASE_DURATION_SECONDS * count)
        tail = max(10, count // 10)
        for i in range(max(0, head - tail), min(count, head + tail + 1)):
            distance = abs(i - head)
            brightness = 255.0 if distance == 0 else tail_brightness(distance, tail)
            pixels[i] = LedPixel(PURPLE, round(brightness * factor), pixels[i].flashing)
