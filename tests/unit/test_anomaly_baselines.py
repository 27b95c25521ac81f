"""
Unit tests for baseline estimation.
"""

from datetime import datetime, timezone
from math import isclose, sqrt

import pytest
from pydantic import ValidationError

from twin_hub.anomaly.baselines import BaselineRegistry, compute_baseline, nearest_rank
from twin_hub.anomaly.schema import SensorBaseline
from twin_hub.sensors.schema import SensorType

UPDATED = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_per_axis_statistics():
    samples = [[1.0, 10.0, 0.0], [2.0, 20.0, 0.0], [3.0, 30.0, 0.0], [4.0, 40.0, 0.0]]
    baseline = compute_baseline(SensorType.ACCELEROMETER, samples, updated_at=UPDATED)

    assert baseline.sensor_type == SensorType.ACCELEROMETER
    assert baseline.mean == [2.5, 25.0, 0.0]
    # Population std (divide by N)
    assert isclose(baseline.std[0], sqrt(1.25))
    assert isclose(baseline.std[1], sqrt(125.0))
    assert baseline.std[2] == 0.0
    assert baseline.min == [1.0, 10.0, 0.0]
    assert baseline.max == [4.0, 40.0, 0.0]
    # Nearest rank: sorted[floor(N * p)]
    assert baseline.median == [3.0, 30.0, 0.0]
    assert baseline.percentile25 == [2.0, 20.0, 0.0]
    assert baseline.percentile75 == [4.0, 40.0, 0.0]
    assert baseline.iqr == [2.0, 20.0, 0.0]
    assert baseline.samples_count == 4
    assert baseline.last_updated == UPDATED


def test_percentiles_do_not_interpolate():
    assert nearest_rank([1.0, 2.0, 3.0], 0.5) == 2.0
    assert nearest_rank([1.0, 2.0, 3.0, 4.0, 5.0], 0.75) == 4.0
    assert nearest_rank([7.0], 0.75) == 7.0


def test_empty_input_yields_degenerate_baseline():
    baseline = compute_baseline(SensorType.GYROSCOPE, [], updated_at=UPDATED)

    assert baseline.mean == [0.0, 0.0, 0.0]
    assert baseline.std == [1.0, 1.0, 1.0]
    assert baseline.iqr == [0.0, 0.0, 0.0]
    assert baseline.samples_count == 0
    assert baseline.time_window_minutes == 0


def test_missing_axis_components_count_as_zero():
    baseline = compute_baseline(SensorType.ACCELEROMETER, [[1.0], [3.0]], updated_at=UPDATED)
    assert baseline.mean == [2.0, 0.0, 0.0]
    assert baseline.axes == 3


def test_time_window_uses_nominal_sample_rate():
    samples = [[0.0, 0.0, 9.8]] * 125
    assert compute_baseline(SensorType.ACCELEROMETER, samples).time_window_minutes == 2
    assert (
        compute_baseline(SensorType.ACCELEROMETER, samples, sample_rate_hz=25).time_window_minutes
        == 5
    )


def test_compute_baseline_is_idempotent():
    samples = [[0.1 * i, -0.2 * i, 9.8 + 0.01 * i] for i in range(150)]
    snapshot = [list(s) for s in samples]

    first = compute_baseline(SensorType.ACCELEROMETER, samples, updated_at=UPDATED)
    second = compute_baseline(SensorType.ACCELEROMETER, samples, updated_at=UPDATED)

    assert first == second
    assert first.model_dump() == second.model_dump()
    assert samples == snapshot


def test_baseline_rejects_misaligned_axes():
    with pytest.raises(ValidationError):
        SensorBaseline(
            sensor_type=SensorType.ACCELEROMETER,
            mean=[0.0, 0.0, 0.0],
            std=[1.0, 1.0],
            min=[0.0, 0.0, 0.0],
            max=[0.0, 0.0, 0.0],
            median=[0.0, 0.0, 0.0],
            percentile25=[0.0, 0.0, 0.0],
            percentile75=[0.0, 0.0, 0.0],
            iqr=[0.0, 0.0, 0.0],
            samples_count=0,
            time_window_minutes=0,
            last_updated=UPDATED,
        )


def test_registry_overwrites_by_sensor_type():
    registry = BaselineRegistry()
    old = compute_baseline(SensorType.ACCELEROMETER, [[1.0, 1.0, 1.0]], updated_at=UPDATED)
    new = compute_baseline(SensorType.ACCELEROMETER, [[2.0, 2.0, 2.0]], updated_at=UPDATED)

    registry.put(old)
    registry.put(new)

    assert len(registry) == 1
    assert registry.get(SensorType.ACCELEROMETER).mean == [2.0, 2.0, 2.0]
    assert registry.get(SensorType.GYROSCOPE) is None
    assert not registry.has(SensorType.MAGNETOMETER)
