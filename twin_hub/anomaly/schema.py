"""
Schema definitions for sensor anomaly detection.

Every emitted event carries the raw values that triggered it, the score the
detector assigned, and the window it was judged against, so an operator can see
why it fired.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from twin_hub.sensors.schema import SensorType


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies, lowest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyType(str, Enum):
    """Anomaly taxonomy."""

    # Motion
    UNEXPECTED_ACCELERATION = "unexpected_acceleration"
    UNEXPECTED_DECELERATION = "unexpected_deceleration"
    UNUSUAL_ROTATION = "unusual_rotation"
    EXCESSIVE_VIBRATION = "excessive_vibration"
    SUDDEN_MOVEMENT = "sudden_movement"

    # Performance
    CPU_SPIKE = "cpu_spike"
    MEMORY_LEAK = "memory_leak"
    TEMPERATURE_SPIKE = "temperature_spike"
    THERMAL_THROTTLING = "thermal_throttling"

    # Pattern
    PATTERN_DEVIATION = "pattern_deviation"
    PERIODIC_ANOMALY = "periodic_anomaly"
    DRIFT_DETECTED = "drift_detected"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class SensorBaseline(BaseModel):
    """
    Per-axis summary statistics of "normal" behaviour for one sensor type.

    Fields:
    - mean/std: population mean and standard deviation
    - min/max: extrema
    - median/percentile25/percentile75: nearest-rank percentiles
    - iqr: percentile75 - percentile25
    - samples_count: number of samples summarized
    - time_window_minutes: span implied by the nominal sample rate (not measured)
    - last_updated: when the baseline was computed
    """

    sensor_type: SensorType
    mean: List[float]
    std: List[float]
    min: List[float]
    max: List[float]
    median: List[float]
    percentile25: List[float]
    percentile75: List[float]
    iqr: List[float]
    samples_count: int = Field(ge=0)
    time_window_minutes: int = Field(ge=0)
    last_updated: datetime

    @model_validator(mode="after")
    def _axes_aligned(self) -> "SensorBaseline":
        lengths = {
            len(self.mean),
            len(self.std),
            len(self.min),
            len(self.max),
            len(self.median),
            len(self.percentile25),
            len(self.percentile75),
            len(self.iqr),
        }
        if len(lengths) != 1:
            raise ValueError("all per-axis statistics must have the same length")
        return self

    @property
    def axes(self) -> int:
        return len(self.mean)


class AnomalyCandidate(BaseModel):
    """
    Raw detector output, before threshold and severity filtering.
    """

    type: AnomalyType
    score: float = Field(ge=0.0, le=1.0)
    detector: str
    description: str
    sensor_values: Dict[str, float] = Field(default_factory=dict)


class AnomalyEvent(BaseModel):
    """
    A surfaced anomaly.

    Fields:
    - event_id: unique identifier
    - detected_at: detection timestamp
    - type/severity: what was detected and how bad it is
    - confidence: detector score in [0.0, 1.0]
    - description: human-readable summary
    - sensor_values: raw readings that triggered the event
    - window_size_ms: evaluation window configured for this type
    - baseline_deviation: deviation from baseline in percent (score * 100)
    - acknowledged/acknowledged_at/notes: set by an operator
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    detected_at: datetime
    type: AnomalyType
    severity: AnomalySeverity
    confidence: float = Field(ge=0.0, le=1.0)
    description: str
    sensor_values: Dict[str, float] = Field(default_factory=dict)
    window_size_ms: int = Field(ge=0)
    baseline_deviation: float
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None

    def acknowledge(
        self, notes: Optional[str] = None, at: Optional[datetime] = None
    ) -> "AnomalyEvent":
        """Return an acknowledged copy; every other field is preserved."""
        return self.model_copy(
            update={
                "acknowledged": True,
                "acknowledged_at": at or datetime.now(timezone.utc),
                "notes": notes,
            }
        )


class AnomalyPattern(BaseModel):
    """
    Running tally of one anomaly type, kept by the store.
    """

    pattern_id: str = Field(default_factory=lambda: str(uuid4()))
    type: AnomalyType
    occurrences: int = Field(1, ge=1)
    first_seen: datetime
    last_seen: datetime
    latest_severity: AnomalySeverity


class AnomalyStatistics(BaseModel):
    """
    Summary of the anomalies currently held by the store.
    """

    total_anomalies: int = 0
    by_type: Dict[AnomalyType, int] = Field(default_factory=dict)
    by_severity: Dict[AnomalySeverity, int] = Field(default_factory=dict)
    average_confidence: float = 0.0
    anomaly_rate: float = Field(0.0, description="Anomalies in the trailing hour")
    most_common_type: Optional[AnomalyType] = None
    last_anomaly_time: Optional[datetime] = None
