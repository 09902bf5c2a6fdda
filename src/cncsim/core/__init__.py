"""Core services: scheduler, state cells, event bus, and the device simulator."""

from cncsim.core.compositor import ChaseOverlay, LedCompositor, PhaseTracker
from cncsim.core.connectivity import CncLinkSimulator, ConnectionStateMachine
from cncsim.core.event_bus import EventBus
from cncsim.core.lifecycle import LifecycleSequencer
from cncsim.core.motion import MotionSimulator
from cncsim.core.network import NetworkMonitor
from cncsim.core.onboard_led import OnboardIndicator
from cncsim.core.scheduler import AsyncioScheduler, Scheduler, TimerHandle, VirtualScheduler
from cncsim.core.simulator import DeviceSimulator
from cncsim.core.state_cell import StateCell
from cncsim.core.system_log import SystemLog
from cncsim.core.watchdog import HeartbeatWatchdog, IcmpWatchdog

__all__ = [
    "AsyncioScheduler",
    "ChaseOverlay",
    "CncLinkSimulator",
    "ConnectionStateMachine",
    "DeviceSimulator",
    "EventBus",
    "HeartbeatWatchdog",
    "IcmpWatchdog",
    "LedCompositor",
    "LifecycleSequencer",
    "MotionSimulator",
    "NetworkMonitor",
    "OnboardIndicator",
    "PhaseTracker",
    "Scheduler",
    "StateCell",
    "SystemLog",
    "TimerHandle",
    "VirtualScheduler",
]
