"""Pydantic models and state records."""

from cncsim.core.models.config import (
    LedsConfig,
    NetworkConfig,
    SimConfig,
    SystemConfig,
    TableConfig,
    WatchdogConfig,
    WifiConfig,
)
from cncsim.core.models.event import Event
from cncsim.core.models.state import (
    Axis,
    ChaseState,
    ConnectionStatus,
    HealthStats,
    LedPixel,
    LogEntry,
    LogLevel,
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

__all__ = [
    "Axis",
    "ChaseState",
    "ConnectionStatus",
    "Event",
    "HealthStats",
    "LedPixel",
    "LedsConfig",
    "LogEntry",
    "LogLevel",
    "MasterLedState",
    "NetworkConfig",
    "OnboardLedState",
    "RebootReason",
    "SdCardErrorState",
    "SdCardInfo",
    "ServoAxisState",
    "ShutdownState",
    "SimConfig",
    "SystemConfig",
    "SystemPhase",
    "TableConfig",
    "WatchdogConfig",
    "WifiConfig",
    "WifiStatus",
]
