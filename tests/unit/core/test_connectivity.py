"""Tests for the link state machine and the derived CNC link."""

from __future__ import annotations

import pytest

from cncsim.core.connectivity import CncLinkSimulator, ConnectionStateMachine
from cncsim.core.models.state import ConnectionStatus
from cncsim.core.scheduler import VirtualScheduler
from cncsim.core.state_cell import StateCell


@pytest.fixture
def status() -> StateCell[ConnectionStatus]:
    return StateCell(ConnectionStatus.DISCONNECTED, "status")


@pytest.fixture
def machine(scheduler: VirtualScheduler, status) -> ConnectionStateMachine:
    return ConnectionStateMachine(scheduler, status)


class TestConnectionStateMachine:
    def test_connect_goes_through_connecting(self, scheduler, machine, status):
        seen: list[ConnectionStatus] = []
        status.subscribe(seen.append)

        machine.simulate_connect()
        assert machine.status is ConnectionStatus.CONNECTING

        scheduler.advance(1.9)
        assert machine.status is ConnectionStatus.CONNECTING

        scheduler.advance(0.1)
        assert seen == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        assert machine.last_connected_at == pytest.approx(2.0)

    def test_disconnect_cancels_pending_connect(self, scheduler, machine):
        machine.simulate_connect()
        scheduler.advance(1.0)
        machine.simulate_disconnect()
        scheduler.advance(5.0)

        assert machine.status is ConnectionStatus.DISCONNECTED
        assert machine.last_connected_at is None
        assert machine.last_failed_at == pytest.approx(1.0)
        assert scheduler.pending == 0

    def test_disconnect_ignored_while_restarting(self, machine):
        machine.set_restarting()
        machine.simulate_disconnect()
        assert machine.status is ConnectionStatus.RESTARTING

    def test_reconnect_restarts_delay(self, scheduler, machine):
        machine.simulate_connect()
        scheduler.advance(1.5)
        machine.simulate_connect()
        scheduler.advance(1.5)
        assert machine.status is ConnectionStatus.CONNECTING
        scheduler.advance(0.5)
        assert machine.status is ConnectionStatus.CONNECTED

    def test_cancel_is_idempotent(self, scheduler, machine):
        machine.simulate_connect()
        machine.cancel()
        machine.cancel()
        scheduler.advance(3.0)
        assert machine.status is ConnectionStatus.CONNECTING


class TestCncLinkSimulator:
    @pytest.fixture
    def link(self) -> StateCell[ConnectionStatus]:
        return StateCell(ConnectionStatus.DISCONNECTED, "cnc_link")

    def test_follows_controller_with_two_steps(self, scheduler, machine, link, status):
        cnc = CncLinkSimulator(scheduler, status, link)
        machine.simulate_connect()
        scheduler.advance(2.0)
        assert link.get() is ConnectionStatus.DISCONNECTED

        scheduler.advance(1.5)
        assert link.get() is ConnectionStatus.CONNECTING

        scheduler.advance(2.0)
        assert link.get() is ConnectionStatus.CONNECTED
        assert cnc.last_connected_at == pytest.approx(5.5)
        assert cnc.last_failed_at is None

    def test_controller_drop_drops_link_immediately(self, scheduler, machine, link, status):
        cnc = CncLinkSimulator(scheduler, status, link)
        machine.simulate_connect()
        scheduler.advance(10.0)
        machine.set_restarting()

        assert link.get() is ConnectionStatus.DISCONNECTED
        assert cnc.last_connected_at is None
        assert cnc.last_failed_at == pytest.approx(10.0)

    def test_drop_during_settle_cancels_timers(self, scheduler, machine, link, status):
        CncLinkSimulator(scheduler, status, link)
        machine.simulate_connect()
        scheduler.advance(2.5)
        machine.simulate_disconnect()
        scheduler.advance(10.0)
        assert link.get() is ConnectionStatus.DISCONNECTED
        assert scheduler.pending == 0

    def test_close_detaches(self, scheduler, machine, link, status):
        cnc = CncLinkSimulator(scheduler, status, link)
        cnc.close()
        machine.simulate_connect()
        scheduler.advance(10.0)
        assert link.get() is ConnectionStatus.DISCONNECTED
