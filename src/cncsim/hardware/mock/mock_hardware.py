"""Mock hardware implementations for development and testing.

Each class implements the corresponding ABC from
:mod:`cncsim.core.interfaces.hardware` with in-memory state and
``simulate_*()`` / ``set_*()`` helpers for the dev panel and tests.
"""

from __future__ import annotations

import logging

from cncsim.core.interfaces.hardware import BuzzerInterface, ReachabilityProbe

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Buzzer
# ---------------------------------------------------------------------------

class MockBuzzer(BuzzerInterface):
    """Log-only buzzer that counts beeps.

    Attributes:
        beeps: Every ``beep(times)`` request that was sounded, in order.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.beeps: list[int] = []

    def beep(self, times: int) -> None:
        if not self.enabled:
            return
        self.beeps.append(times)
        _log.info("MockBuzzer: BEEP x%d", times)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        _log.info("MockBuzzer: %s", "ON" if enabled else "OFF")


# ---------------------------------------------------------------------------
# Reachability probe
# ---------------------------------------------------------------------------

class SimulatedProbe(ReachabilityProbe):
    """Probe that succeeds unless an address has been marked unreachable.

    Attributes:
        probed: Addresses probed so far, in order.
    """

    def __init__(self) -> None:
        self._unreachable: set[str] = set()
        self._all_unreachable = False
        self.probed: list[str] = []

    def probe(self, address: str) -> bool:
        self.probed.append(address)
        return not (self._all_unreachable or address in self._unreachable)

    # -- Simulation helpers --

    def simulate_unreachable(self, address: str | None = None) -> None:
        """Make *address* (or every address when ``None``) fail to answer."""
        if address is None:
            self._all_unreachable = True
        else:
            self._unreachable.add(address)

    def simulate_reachable(self, address: str | None = None) -> None:
        """Undo :meth:`simulate_unreachable` for *address* (or everything)."""
        if address is None:
            self._all_unreachable = False
            self._unreachable.clear()
        else:
            self._unreachable.discard(address)
