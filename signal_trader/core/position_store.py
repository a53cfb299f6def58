"""Thread-safe store holding at most one open position per instrument."""

from __future__ import annotations

import threading
from typing import Iterator

from signal_trader.core.errors import PositionConflict
from signal_trader.core.models import Position


class PositionStore:
    """Single source of truth for which instruments have an open position.

    All reads and writes go through an RLock. Callers that need an atomic
    read-decide-write sequence hold ``store.lock`` around it; the lock is
    reentrant, so the store's own methods can be called while it is held.
    """

    def __init__(self) -> None:
        self._positions: dict[str, Position] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def get(self, instrument: str) -> Position | None:
        with self._lock:
            return self._positions.get(instrument)

    def contains(self, instrument: str) -> bool:
        with self._lock:
            return instrument in self._positions

    def insert(self, position: Position) -> None:
        """Insert a new position.

        Raises:
            PositionConflict: If a position is already open for the instrument
        """
        with self._lock:
            if position.instrument in self._positions:
                raise PositionConflict(position.instrument)
            self._positions[position.instrument] = position

    def remove(self, instrument: str) -> Position | None:
        """Remove and return the position for ``instrument``, if any."""
        with self._lock:
            return self._positions.pop(instrument, None)

    def snapshot(self) -> list[Position]:
        """Return copies of all open positions."""
        with self._lock:
            return [position.snapshot() for position in self._positions.values()]

    def instruments(self) -> list[str]:
        with self._lock:
            return list(self._positions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    def __contains__(self, instrument: object) -> bool:
        with self._lock:
            return instrument in self._positions

    def __iter__(self) -> Iterator[Position]:
        return iter(self.snapshot())


__all__ = ["PositionStore"]
