"""Mock hardware backend for development and testing."""

from cncsim.hardware.mock.mock_factory import MockHardwareFactory
from cncsim.hardware.mock.mock_hardware import MockBuzzer, SimulatedProbe

__all__ = [
    "MockBuzzer",
    "MockHardwareFactory",
    "SimulatedProbe",
]
