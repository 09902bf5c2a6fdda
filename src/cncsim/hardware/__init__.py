"""Hardware abstraction backends (mock)."""

from cncsim.hardware.mock.mock_factory import MockHardwareFactory

__all__ = ["MockHardwareFactory"]
