"""Configuration Pydantic models: SimConfig and its sections."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Must exceed the 1 s heartbeat period.
MIN_HEARTBEAT_TIMEOUT_SECONDS = 2


class WatchdogConfig(BaseModel):
    """Heartbeat / ICMP watchdogs and SD-card fault escalation."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Enable the heartbeat watchdog")
    timeout_seconds: int = Field(
        default=120,
        ge=MIN_HEARTBEAT_TIMEOUT_SECONDS,
        description="Seconds without a heartbeat before the watchdog reboots",
    )
    icmp_target: str = Field(
        default="192.168.1.1", description="Address probed by the ICMP watchdog ('' disables it)"
    )
    icmp_interval_seconds: int = Field(default=60, ge=1, description="Seconds between probes")
    icmp_fail_count: int = Field(
        default=3, ge=1, description="Consecutive failed probes that trigger a reboot"
    )
    icmp_delay_seconds: int = Field(
        default=120, ge=0, description="Grace period after connecting before the first probe"
    )
    sd_failure_reboot: bool = Field(default=True, description="Reboot after an SD-card failure")
    sd_failure_reboot_timeout_seconds: int = Field(
        default=60, ge=0, description="Delay between an SD-card failure and the reboot"
    )


class LedsConfig(BaseModel):
    """Strip lengths and the compositor's tunables.

    ``idle_servo_dim`` is a percentage of nominal brightness applied to an
    axis that has not moved for ``idle_servo_seconds``.
    """

    model_config = ConfigDict(extra="forbid")

    count_x: int = Field(default=400, ge=0, description="Pixels on the X strip")
    count_y: int = Field(default=700, ge=0, description="Pixels on the Y strip")
    count_yy: int = Field(default=700, ge=0, description="Pixels on the YY strip")
    default_brightness_x: int = Field(default=128, ge=0, le=255)
    default_brightness_y: int = Field(default=128, ge=0, le=255)
    default_brightness_yy: int = Field(default=128, ge=0, le=255)
    axis_position_display: int = Field(
        default=5, ge=0, description="Half-width of the green position window in pixels"
    )
    idle_servo_seconds: int = Field(default=60, ge=0)
    idle_servo_dim: int = Field(default=50, ge=0, le=100)
    chase_enabled: bool = Field(default=True, description="Run the periodic chase overlay")
    chase_interval_seconds: int = Field(default=60, ge=1, description="Seconds between chases")
    white_hold_seconds: int = Field(
        default=0,
        ge=0,
        description="Seconds Y/YY stay white after startup before running (0 = hold)",
    )


class TableConfig(BaseModel):
    """Rail lengths in millimetres. YY shares the Y rail."""

    model_config = ConfigDict(extra="forbid")

    rail_x: float = Field(default=2000, ge=0)
    rail_y: float = Field(default=3000, ge=0)
    rail_z: float = Field(default=200, ge=0)


class NetworkConfig(BaseModel):
    """Wired interface and access-point addressing."""

    model_config = ConfigDict(extra="forbid")

    static_ip: str = Field(default="192.168.1.20")
    subnet: str = Field(default="255.255.255.0")
    gateway_ip: str = Field(default="192.168.1.1")
    ap_ip: str = Field(default="192.168.4.1")
    ap_subnet: str = Field(default="255.255.255.0")


class WifiConfig(BaseModel):
    """Wi-Fi mode and station-mode addressing."""

    model_config = ConfigDict(extra="forbid")

    mode: Literal["AP", "Station", "Disabled"] = Field(default="Station")
    ip_assignment: Literal["DHCP", "Static"] = Field(default="DHCP")
    static_ip: str = Field(default="192.168.1.21")
    subnet: str = Field(default="255.255.255.0")
    gateway_ip: str = Field(default="192.168.1.1")


class SystemConfig(BaseModel):
    """Non-simulation runtime settings."""

    model_config = ConfigDict(extra="forbid")

    log_level: str = Field(default="INFO", description="Root log level")
    log_dir: str = Field(default="logs", description="Directory for rotating log files")
    event_bus_queue_size: int = Field(default=1000, description="Max queued events")
    webui_port: int = Field(default=8080, description="NiceGUI listen port")
    state_file: str = Field(
        default="state/cncsim_state.json",
        description="JSON file holding the persisted reboot reason and health counters",
    )
    fast_tick_ms: int = Field(default=100, ge=10, description="Motion / LED tick period")
    buzzer_enabled: bool = Field(default=True)


class SimConfig(BaseModel):
    """Top-level configuration loaded from ``sim_config.json``."""

    model_config = ConfigDict(extra="forbid")

    watchdog: WatchdogConfig = Field(default_factory=WatchdogConfig)
    leds: LedsConfig = Field(default_factory=LedsConfig)
    table: TableConfig = Field(default_factory=TableConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    wifi: WifiConfig = Field(default_factory=WifiConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)
