"""Runtime state models and enumerations.

Hot-path records that are rebuilt every fast tick (pixels, servo axes) are
frozen dataclasses; slower-moving state that crosses the UI boundary is
Pydantic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ConnectionStatus(str, Enum):
    """Link state between the dashboard and the controller."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RESTARTING = "restarting"


class SystemPhase(str, Enum):
    """Coarse post-connection classification driving the LED strips."""

    STARTUP = "startup"
    POST_STARTUP_WHITE = "post_startup_white"
    RUNNING = "running"


class RebootReason(str, Enum):
    """Why the controller last restarted.

    Values are the strings written to persistence, so they must stay stable.
    """

    USER_REBOOT = "User Reboot"
    WATCHDOG_TIMEOUT = "Watchdog Timeout"
    ICMP_WATCHDOG_TIMEOUT = "ICMP Watchdog Timeout"
    SD_CARD_FAILURE = "SD Card Failure"
    SHUTDOWN_PIN = "Shutdown Pin"
    NORMAL_POWER_UP = "Normal Power-Up"


class Axis(str, Enum):
    """Servo axes. Only X, Y and YY carry an LED strip."""

    X = "X"
    Y = "Y"
    YY = "YY"
    Z = "Z"


STRIP_AXES: tuple[Axis, ...] = (Axis.X, Axis.Y, Axis.YY)


class LogLevel(str, Enum):
    """Severity of a system log entry."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


# ---------------------------------------------------------------------------
# Hot-path records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LedPixel:
    """One addressable pixel: ``#RRGGBB`` (or ``"off"``) plus brightness."""

    color: str
    brightness: int
    flashing: bool = False


LedStrip = tuple[LedPixel, ...]


@dataclass(frozen=True)
class ServoAxisState:
    position: float = 0.0
    limit_min: bool = False
    limit_max: bool = False
    last_moved_at: float = 0.0


@dataclass(frozen=True)
class SdCardErrorState:
    active: bool = False
    since: float | None = None


@dataclass(frozen=True)
class ShutdownState:
    in_progress: bool = False
    started_at: float | None = None


@dataclass(frozen=True)
class ChaseState:
    active: bool = False
    started_at: float | None = None


# ---------------------------------------------------------------------------
# UI-facing state
# ---------------------------------------------------------------------------

class HealthStats(BaseModel):
    """Persisted boot counters."""

    startups: int = Field(default=0, ge=0)
    watchdog_reboots: int = Field(default=0, ge=0)


class MasterLedState(BaseModel):
    """User-selected master colour and brightness for the strips."""

    power: bool = Field(default=True)
    brightness: int = Field(default=128, ge=0, le=255)
    color: str = Field(default="#FFFFFF", pattern=r"^#[0-9A-Fa-f]{6}$")


class OnboardLedState(BaseModel):
    """The single status LED on the controller board."""

    color: str = Field(default="off")
    flashing: bool = Field(default=False)
    brightness: int = Field(default=255, ge=0, le=255)


class SdCardInfo(BaseModel):
    status: Literal["Uninitialized", "Mounted", "Not Present", "Error"] = "Uninitialized"
    used_gb: float = 14.8
    total_gb: float = 15.9


class WifiStatus(BaseModel):
    """Simulated Wi-Fi interface status and the address it was given."""

    status: Literal["connected", "disconnected", "disabled"] = "disconnected"
    signal_strength: int = Field(default=0, ge=0, le=100)
    allocated_ip: str = "0.0.0.0"
    allocated_subnet: str = "0.0.0.0"
    allocated_gateway: str = "0.0.0.0"


class LogEntry(BaseModel):
    """One line of the simulated controller's system log."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel
    message: str
