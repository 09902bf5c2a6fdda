"""MotionSimulator — bouncing servo positions for the four axes."""

from __future__ import annotations

from typing import Mapping

from cncsim.core.models.config import TableConfig
from cncsim.core.models.state import Axis, ServoAxisState
from cncsim.core.scheduler import Scheduler
from cncsim.core.state_cell import StateCell

# Limit switches trip within this distance (mm) of either rail end.
LIMIT_EPSILON = 1.0

Z_STEP = 0.5


def rail_length(axis: Axis, table: TableConfig) -> float:
    """Rail an axis travels on. YY shares the Y rail."""
    if axis is Axis.X:
        return table.rail_x
    if axis is Axis.Z:
        return table.rail_z
    return table.rail_y


def step_size(axis: Axis, table: TableConfig) -> float:
    """Distance moved per fast tick."""
    if axis is Axis.X:
        return table.rail_x / 200
    if axis is Axis.Y:
        return table.rail_y / 200
    if axis is Axis.YY:
        return table.rail_y / 250
    return Z_STEP


class MotionSimulator:
    """Advances every axis by a fixed step and reflects at the rail ends.

    Positions stay within ``[0, rail]``; the limit flags and
    ``last_moved_at`` are written in the same record as the position.

    Args:
        scheduler: Clock source for ``last_moved_at``.
        table: Rail-length config cell.
        axes: One state cell per axis.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        table: StateCell[TableConfig],
        axes: Mapping[Axis, StateCell[ServoAxisState]],
    ) -> None:
        self._scheduler = scheduler
        self._table = table
        self._axes = axes
        self._direction: dict[Axis, int] = {axis: 1 for axis in axes}

    def direction(self, axis: Axis) -> int:
        return self._direction[axis]

    def step(self) -> None:
        """Advance all axes by one tick."""
        table = self._table.get()
        now = self._scheduler.now()
        for axis, cell in self._axes.items():
            rail = rail_length(axis, table)
            position = cell.get().position + self._direction[axis] * step_size(axis, table)
            if position >= rail:
                position = rail
                self._direction[axis] = -1
            if position <= 0:
                position = 0.0
                self._direction[axis] = 1
            cell.set(
                ServoAxisState(
                    position=position,
                    limit_min=position < LIMIT_EPSILON,
                    limit_max=position > rail - LIMIT_EPSILON,
                    last_moved_at=now,
                )
            )
