"""
Baseline estimation for motion sensors.

A baseline is recomputed wholesale from a trailing window of samples; it is
never updated incrementally. Percentiles use the nearest-rank rule on the
ascending-sorted values (index floor(N * p)), with no interpolation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from twin_hub.sensors.schema import SensorType

from .schema import SensorBaseline

DEFAULT_AXES = 3


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Value at index floor(N * p) of an ascending sequence."""
    index = min(int(math.floor(len(sorted_values) * p)), len(sorted_values) - 1)
    return sorted_values[index]


def compute_baseline(
    sensor_type: SensorType,
    samples: Sequence[Sequence[float]],
    *,
    sample_rate_hz: int = 60,
    axes: int = DEFAULT_AXES,
    updated_at: Optional[datetime] = None,
) -> SensorBaseline:
    """
    Summarize `samples` per axis.

    Empty input yields a degenerate baseline (mean 0, std 1) so downstream
    division is always safe. Missing axis components count as 0. The
    time_window_minutes field assumes the nominal `sample_rate_hz`; it is not
    measured from timestamps.
    """
    updated_at = updated_at or datetime.now(timezone.utc)

    if not samples:
        zeros = [0.0] * axes
        return SensorBaseline(
            sensor_type=sensor_type,
            mean=list(zeros),
            std=[1.0] * axes,
            min=list(zeros),
            max=list(zeros),
            median=list(zeros),
            percentile25=list(zeros),
            percentile75=list(zeros),
            iqr=list(zeros),
            samples_count=0,
            time_window_minutes=0,
            last_updated=updated_at,
        )

    stats: Dict[str, List[float]] = {
        "mean": [],
        "std": [],
        "min": [],
        "max": [],
        "median": [],
        "percentile25": [],
        "percentile75": [],
        "iqr": [],
    }
    n = len(samples)

    for axis in range(axes):
        values = [float(s[axis]) if axis < len(s) else 0.0 for s in samples]

        mean = sum(values) / n
        # Population variance (divide by N)
        variance = sum((v - mean) ** 2 for v in values) / n
        ordered = sorted(values)
        q1 = nearest_rank(ordered, 0.25)
        q3 = nearest_rank(ordered, 0.75)

        stats["mean"].append(mean)
        stats["std"].append(math.sqrt(variance))
        stats["min"].append(ordered[0])
        stats["max"].append(ordered[-1])
        stats["median"].append(nearest_rank(ordered, 0.5))
        stats["percentile25"].append(q1)
        stats["percentile75"].append(q3)
        stats["iqr"].append(q3 - q1)

    return SensorBaseline(
        sensor_type=sensor_type,
        samples_count=n,
        time_window_minutes=n // sample_rate_hz if sample_rate_hz > 0 else 0,
        last_updated=updated_at,
        **stats,
    )


@dataclass
class BaselineRegistry:
    """
    Keyed baseline container owned by the engine.

    `put` overwrites whatever baseline was stored for that sensor type.
    """

    _baselines: Dict[SensorType, SensorBaseline] = field(default_factory=dict)

    def get(self, sensor_type: SensorType) -> Optional[SensorBaseline]:
        return self._baselines.get(sensor_type)

    def put(self, baseline: SensorBaseline) -> None:
        self._baselines[baseline.sensor_type] = baseline

    def has(self, sensor_type: SensorType) -> bool:
        return sensor_type in self._baselines

    def clear(self) -> None:
        self._baselines.clear()

    def as_dict(self) -> Dict[SensorType, SensorBaseline]:
        return dict(self._baselines)

    def __len__(self) -> int:
        return len(self._baselines)
