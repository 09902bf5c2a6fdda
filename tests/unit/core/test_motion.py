"""Tests for the servo motion simulator."""

from __future__ import annotations

import pytest

from cncsim.core.models.config import TableConfig
from cncsim.core.models.state import Axis, ServoAxisState
from cncsim.core.motion import MotionSimulator, rail_length, step_size
from cncsim.core.state_cell import StateCell


@pytest.fixture
def table() -> StateCell[TableConfig]:
    return StateCell(TableConfig(rail_x=200, rail_y=300, rail_z=2))


@pytest.fixture
def axes() -> dict[Axis, StateCell[ServoAxisState]]:
    return {axis: StateCell(ServoAxisState()) for axis in Axis}


@pytest.fixture
def motion(scheduler, table, axes) -> MotionSimulator:
    return MotionSimulator(scheduler, table, axes)


class TestGeometry:
    def test_rail_lengths(self):
        table = TableConfig(rail_x=1, rail_y=2, rail_z=3)
        assert rail_length(Axis.X, table) == 1
        assert rail_length(Axis.Y, table) == 2
        assert rail_length(Axis.YY, table) == 2
        assert rail_length(Axis.Z, table) == 3

    def test_step_sizes(self):
        table = TableConfig(rail_x=200, rail_y=500, rail_z=50)
        assert step_size(Axis.X, table) == pytest.approx(1.0)
        assert step_size(Axis.Y, table) == pytest.approx(2.5)
        assert step_size(Axis.YY, table) == pytest.approx(2.0)
        assert step_size(Axis.Z, table) == pytest.approx(0.5)


class TestMotionSimulator:
    def test_single_step(self, scheduler, motion, axes):
        scheduler.advance(0.1)
        motion.step()
        x = axes[Axis.X].get()
        assert x.position == pytest.approx(1.0)
        assert axes[Axis.Y].get().position == pytest.approx(1.5)
        assert axes[Axis.YY].get().position == pytest.approx(1.2)
        assert x.last_moved_at == pytest.approx(0.1)
        assert not x.limit_min and not x.limit_max

    def test_bounces_between_rail_ends(self, motion, axes):
        positions = []
        for _ in range(9):
            motion.step()
            positions.append(axes[Axis.Z].get().position)
        assert positions == pytest.approx([0.5, 1.0, 1.5, 2.0, 1.5, 1.0, 0.5, 0.0, 0.5])

    def test_limit_flags_at_ends(self, motion, axes):
        for _ in range(4):
            motion.step()
        top = axes[Axis.Z].get()
        assert top.limit_max and not top.limit_min
        assert motion.direction(Axis.Z) == -1

        for _ in range(4):
            motion.step()
        bottom = axes[Axis.Z].get()
        assert bottom.limit_min and not bottom.limit_max
        assert motion.direction(Axis.Z) == 1

    def test_position_clamped_to_rail(self, table, motion, axes):
        table.set(TableConfig(rail_x=200, rail_y=300, rail_z=1.2))
        for _ in range(20):
            motion.step()
            assert 0.0 <= axes[Axis.Z].get().position <= 1.2

    def test_zero_rail_stays_put(self, table, motion, axes):
        table.set(TableConfig(rail_x=0, rail_y=300, rail_z=2))
        for _ in range(3):
            motion.step()
        assert axes[Axis.X].get().position == 0.0

    def test_reflecting_invariant_over_many_ticks(self, scheduler, table, motion, axes):
        table.set(TableConfig(rail_x=333, rail_y=517, rail_z=7.3))
        rails = {axis: rail_length(axis, table.get()) for axis in Axis}
        hit_min = {axis: False for axis in Axis}
        hit_max = {axis: False for axis in Axis}

        for _ in range(2000):
            scheduler.advance(0.1)
            motion.step()
            for axis, cell in axes.items():
                state = cell.get()
                assert 0.0 <= state.position <= rails[axis]
                assert not (state.limit_min and state.limit_max)
                hit_min[axis] |= state.limit_min
                hit_max[axis] |= state.limit_max

        assert all(hit_min.values())
        assert all(hit_max.values())
