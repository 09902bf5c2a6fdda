"""Hardware abstraction interfaces (ABCs).

The simulator never talks to real peripherals; these seams exist so the
buzzer cue and the reachability probe can be swapped for fakes in tests
(or for real implementations on a bench rig).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# ---------------------------------------------------------------------------
# Buzzer
# ---------------------------------------------------------------------------

class BuzzerInterface(ABC):
    """The controller's piezo buzzer — audible cue for boots and faults."""

    @abstractmethod
    def beep(self, times: int) -> None:
        """Emit *times* short beeps (no-op when disabled)."""

    @abstractmethod
    def set_enabled(self, enabled: bool) -> None:
        """Enable or mute the buzzer."""


# ---------------------------------------------------------------------------
# Reachability probe
# ---------------------------------------------------------------------------

class ReachabilityProbe(ABC):
    """Answers "is *address* reachable right now?" for the ICMP watchdog.

    Implementations must return promptly; the simulator is single-threaded.
    """

    @abstractmethod
    def probe(self, address: str) -> bool:
        """Return ``True`` if *address* answered."""


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class HardwareFactory(ABC):
    """Creates the peripheral implementations used by the simulator."""

    @abstractmethod
    def create_buzzer(self) -> BuzzerInterface: ...

    @abstractmethod
    def create_probe(self) -> ReachabilityProbe: ...

    def cleanup(self) -> None:
        """Release hardware resources.  No-op by default (mock)."""
