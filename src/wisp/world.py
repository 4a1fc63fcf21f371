"""Authoritative world state: slot positions and the server clock."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .config import MAX_PLAYER_SLOTS

# Server time unit: 100 ns ticks.
TICKS_PER_SECOND = 10_000_000

_Y = 1


class WorldState:
    """Positions of every player slot plus the monotonic server time.

    ``positions`` is a ``(MAX_PLAYER_SLOTS, 3)`` float32 array, row ``slot - 1``
    holding x/y/z.  float32 matches the wire representation, so what is stored
    is exactly what clients receive.
    """

    def __init__(self, started_at: float = 0.0) -> None:
        self.started_at = started_at
        self.server_time = 0
        self.positions = np.zeros((MAX_PLAYER_SLOTS, 3), dtype=np.float32)

    @staticmethod
    def _row(slot: int) -> int:
        if not 1 <= slot <= MAX_PLAYER_SLOTS:
            raise IndexError(f"slot {slot} is not a position slot")
        return slot - 1

    def position(self, slot: int) -> Tuple[float, float, float]:
        x, y, z = self.positions[self._row(slot)]
        return float(x), float(y), float(z)

    def set_position(self, slot: int, x: float, y: float, z: float) -> None:
        self.positions[self._row(slot)] = (x, y, z)

    def move_vertical(self, slot: int, offset: float) -> None:
        row = self._row(slot)
        self.positions[row, _Y] += np.float32(offset)

    def refresh_time(self, now: float) -> int:
        """Advance ``server_time`` to *now*; never moves backwards."""
        ticks = int((now - self.started_at) * TICKS_PER_SECOND)
        if ticks > self.server_time:
            self.server_time = ticks
        return self.server_time
