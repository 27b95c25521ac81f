"""
Canonical sensor sample schema.

Every reading that reaches the anomaly engine is one of these models, whether it
arrived from the live socket bridge or from a recorded session file.

Design rationale:
- One reading = one sensor, three axes, one UTC timestamp
- Non-finite floats (NaN/Infinity) are rejected at validation time, so no
  scorer ever sees them
- Performance metrics travel separately from motion readings
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field


class SensorType(str, Enum):
    """Motion sensors exposed by the paired device."""

    ACCELEROMETER = "accelerometer"
    GYROSCOPE = "gyroscope"
    MAGNETOMETER = "magnetometer"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorReading(BaseModel):
    """
    A single 3-axis motion reading.

    Attributes:
        sensor_type: Which sensor produced the reading
        x, y, z: Axis values (m/s^2 for accelerometer, deg/s for gyroscope, uT for magnetometer)
        timestamp: UTC time the reading was taken
    """

    model_config = ConfigDict(allow_inf_nan=False, frozen=True)

    sensor_type: SensorType
    x: float
    y: float
    z: float
    timestamp: datetime = Field(default_factory=_utcnow)

    def as_vector(self) -> List[float]:
        return [self.x, self.y, self.z]

    @property
    def magnitude(self) -> float:
        return vector_magnitude(self.as_vector())


class PerformanceSample(BaseModel):
    """
    Device performance metrics sampled alongside motion data.

    Attributes:
        cpu: CPU utilisation in percent
        memory: Memory utilisation in percent
        temperature: Device temperature in degrees Celsius
        timestamp: UTC time the sample was taken
    """

    model_config = ConfigDict(allow_inf_nan=False, frozen=True)

    cpu: float = Field(..., ge=0.0)
    memory: float = Field(..., ge=0.0)
    temperature: float
    timestamp: datetime = Field(default_factory=_utcnow)


def vector_magnitude(values: Sequence[float]) -> float:
    """Euclidean norm of a 3-axis vector (extra components are ignored)."""
    return math.sqrt(sum(v * v for v in values[:3]))


def is_finite_vector(values: Sequence[float]) -> bool:
    """True if the vector is non-empty and every component is a finite number."""
    if not values:
        return False
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False
