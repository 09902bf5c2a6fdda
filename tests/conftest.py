"""Shared pytest fixtures for cncsim tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from cncsim.config.persistence import PersistenceStore
from cncsim.core.event_bus import EventBus
from cncsim.core.models.config import SimConfig
from cncsim.core.scheduler import VirtualScheduler
from cncsim.core.simulator import DeviceSimulator
from cncsim.hardware.mock.mock_factory import MockHardwareFactory


@pytest.fixture
async def event_bus():
    """Provide a started EventBus that is stopped after the test."""
    bus = EventBus(queue_size=100)
    await bus.start()
    yield bus
    await bus.stop()


@pytest.fixture(scope="session")
def sim_config() -> SimConfig:
    """Session-scoped default config (no file I/O)."""
    return SimConfig()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    """Virtual clock starting at t=0."""
    return VirtualScheduler()


@pytest.fixture
def store() -> PersistenceStore:
    """In-memory persistence store."""
    return PersistenceStore()


@pytest.fixture
def factory() -> MockHardwareFactory:
    return MockHardwareFactory()


@pytest.fixture
def make_simulator(
    scheduler: VirtualScheduler,
    store: PersistenceStore,
    factory: MockHardwareFactory,
) -> Callable[..., DeviceSimulator]:
    """Build a DeviceSimulator on the virtual clock.

    Keyword arguments are per-section overrides, e.g.
    ``make_simulator(watchdog={"timeout_seconds": 5})``.
    """
    built: list[DeviceSimulator] = []

    def _make(**sections: dict[str, Any]) -> DeviceSimulator:
        config = SimConfig(**sections)
        sim = DeviceSimulator(config, scheduler, store, factory)
        built.append(sim)
        return sim

    yield _make
    for sim in built:
        sim.close()
