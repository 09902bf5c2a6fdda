"""MockHardwareFactory — creates in-memory peripherals for dev and test.

All created instances are stored as public attributes so the dev panel
and tests can reach the ``simulate_*()`` helpers directly.
"""

from __future__ import annotations

from cncsim.core.interfaces.hardware import (
    BuzzerInterface,
    HardwareFactory,
    ReachabilityProbe,
)
from cncsim.hardware.mock.mock_hardware import MockBuzzer, SimulatedProbe


class MockHardwareFactory(HardwareFactory):
    """Factory that returns in-memory mock implementations.

    After creation the individual mock objects are available as attributes
    (``factory.buzzer``, ``factory.probe``).
    """

    def __init__(self, buzzer_enabled: bool = True) -> None:
        self.buzzer = MockBuzzer(enabled=buzzer_enabled)
        self.probe = SimulatedProbe()

    def create_buzzer(self) -> BuzzerInterface:
        return self.buzzer

    def create_probe(self) -> ReachabilityProbe:
        return self.probe
