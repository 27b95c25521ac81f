"""
Bounded in-memory sample buffers.

Both buffers evict FIFO once full. They are owned by the anomaly engine and are
touched from a single logical thread, so no locking is done here.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Sequence

from .schema import SensorReading


@dataclass
class RecentSampleBuffer:
    """
    Most-recent-N queue of raw per-axis vectors for the density scorers.
    """

    capacity: int = 50
    _values: Deque[List[float]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._values = deque(maxlen=self.capacity)

    def append(self, vector: Sequence[float]) -> None:
        self._values.append([float(v) for v in vector])

    def snapshot(self) -> List[List[float]]:
        return [list(v) for v in self._values]

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class SensorHistory:
    """
    Rolling reading history for one sensor type.

    Seeds baseline computation; the latest reading is what gets scored.
    """

    capacity: int = 1000
    _readings: Deque[SensorReading] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._readings = deque(maxlen=self.capacity)

    def append(self, reading: SensorReading) -> None:
        self._readings.append(reading)

    def tail(self, count: int) -> List[SensorReading]:
        """Return up to `count` most recent readings, oldest first."""
        if count <= 0:
            return []
        readings = list(self._readings)
        return readings[-count:]

    def vectors(self, count: int) -> List[List[float]]:
        return [r.as_vector() for r in self.tail(count)]

    @property
    def latest(self) -> Optional[SensorReading]:
        return self._readings[-1] if self._readings else None

    def clear(self) -> None:
        self._readings.clear()

    def __len__(self) -> int:
        return len(self._readings)
