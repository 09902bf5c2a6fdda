"""Hardware abstraction interfaces."""

from cncsim.core.interfaces.hardware import (
    BuzzerInterface,
    HardwareFactory,
    ReachabilityProbe,
)

__all__ = [
    "BuzzerInterface",
    "HardwareFactory",
    "ReachabilityProbe",
]
