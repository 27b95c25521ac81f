"""
Unit tests for the anomaly detection engine.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from twin_hub.anomaly.config import AnomalyDetectionConfig, TypeThreshold
from twin_hub.anomaly.engine import AnomalyEngine
from twin_hub.anomaly.schema import AnomalySeverity, AnomalyType
from twin_hub.anomaly.store import AnomalyStore
from twin_hub.core.config import BufferSettings, config as default_config
from twin_hub.core.exceptions import ConfigurationError
from twin_hub.sensors.schema import PerformanceSample, SensorReading, SensorType

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _reading(sensor_type, x, y, z, offset_ms=0):
    return SensorReading(
        sensor_type=sensor_type,
        x=x,
        y=y,
        z=z,
        timestamp=T0 + timedelta(milliseconds=offset_ms),
    )


def _perf(cpu=35.0, memory=55.0, temperature=36.0):
    return PerformanceSample(cpu=cpu, memory=memory, temperature=temperature, timestamp=T0)


def _make_engine(**kwargs):
    kwargs.setdefault("clock", lambda: T0)
    return AnomalyEngine(**kwargs)


def _feed_resting(engine, count):
    """Alternating readings around gravity: x/y +-0.1, z 9.8 +- 0.2."""
    for i in range(count):
        sign = 1 if i % 2 == 0 else -1
        engine.ingest_reading(
            _reading(SensorType.ACCELEROMETER, 0.1 * sign, 0.1 * sign, 9.8 + 0.2 * sign, i * 16)
        )


class TestRulePath:

    def test_cpu_spike_is_critical(self):
        engine = _make_engine()
        engine.ingest_performance(_perf(cpu=95.0, memory=40.0, temperature=35.0))

        events = engine.run_pass()

        assert len(events) == 1
        event = events[0]
        assert event.type == AnomalyType.CPU_SPIKE
        assert event.severity == AnomalySeverity.CRITICAL
        assert event.confidence == pytest.approx(0.95)
        assert event.window_size_ms == 5000
        assert event.baseline_deviation == pytest.approx(95.0)
        assert event.detected_at == T0
        assert event.sensor_values == {"cpu": 95.0, "memory": 40.0, "temperature": 35.0}
        assert not event.acknowledged

    def test_severity_threshold_filters(self):
        engine = _make_engine()
        engine.ingest_performance(_perf(cpu=82.0))

        assert [e.severity for e in engine.run_pass()] == [AnomalySeverity.HIGH]

        engine.update_config(severity_threshold=AnomalySeverity.CRITICAL)
        assert engine.run_pass() == []

    def test_type_threshold_filters(self):
        engine = _make_engine()
        engine.update_config(
            anomaly_thresholds={AnomalyType.CPU_SPIKE: {"threshold": 0.85}}
        )
        engine.ingest_performance(_perf(cpu=82.0))

        assert engine.run_pass() == []

    def test_disabled_alert_never_emits(self):
        engine = _make_engine()
        engine.update_config(
            anomaly_thresholds={AnomalyType.CPU_SPIKE: {"enable_alert": False}}
        )
        engine.ingest_performance(_perf(cpu=99.0))

        assert engine.run_pass() == []

    def test_type_without_threshold_is_skipped(self, caplog):
        engine = _make_engine()
        engine.detection_config.anomaly_thresholds.pop(AnomalyType.CPU_SPIKE)
        engine.ingest_performance(_perf(cpu=99.0))

        with caplog.at_level(logging.WARNING):
            assert engine.run_pass() == []
        assert "cpu_spike" in caplog.text

    def test_hot_device_emits_both_temperature_events_in_order(self):
        engine = _make_engine()
        engine.ingest_performance(_perf(temperature=70.0))

        events = engine.run_pass()

        assert [e.type for e in events] == [
            AnomalyType.TEMPERATURE_SPIKE,
            AnomalyType.THERMAL_THROTTLING,
        ]
        assert all(e.confidence == pytest.approx(0.875) for e in events)

    def test_motion_rules_need_both_sensors(self):
        engine = _make_engine()
        engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 45.0, 0.0, 0.0))
        assert engine.run_pass() == []

        engine.ingest_reading(_reading(SensorType.GYROSCOPE, 0.0, 0.0, 0.0))
        events = engine.run_pass()

        assert [e.type for e in events] == [AnomalyType.EXCESSIVE_VIBRATION]
        assert events[0].window_size_ms == 1000
        assert events[0].sensor_values["accel_x"] == 45.0


class TestBaselines:

    def test_seeded_only_past_minimum_history(self):
        engine = _make_engine()
        for i in range(100):
            engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 9.8, i))
        engine.run_pass()
        assert engine.baselines == {}

        engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 9.8, 100))
        engine.run_pass()

        baseline = engine.baselines[SensorType.ACCELEROMETER]
        assert baseline.samples_count == 101
        assert baseline.last_updated == T0
        assert SensorType.GYROSCOPE not in engine.baselines

    def test_refresh_uses_trailing_window(self):
        engine = _make_engine()
        for i in range(400):
            engine.ingest_reading(_reading(SensorType.ACCELEROMETER, float(i), 0.0, 9.8, i))

        baseline = engine.refresh_baseline(SensorType.ACCELEROMETER, force=True)

        assert baseline.samples_count == 300
        assert baseline.min[0] == 100.0
        assert baseline.max[0] == 399.0
        assert engine.baselines[SensorType.ACCELEROMETER] is baseline

    def test_refresh_without_force_needs_history(self):
        engine = _make_engine()
        assert engine.refresh_baseline(SensorType.GYROSCOPE) is None

    def test_only_scored_sensor_feeds_recent_buffer(self):
        engine = _make_engine()
        engine.ingest_reading(_reading(SensorType.GYROSCOPE, 1.0, 2.0, 3.0))
        engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 9.8))

        assert engine.recent_samples() == [[0.0, 0.0, 9.8]]


class TestModelScorers:

    def test_statistical_spike_is_pattern_deviation(self):
        engine = _make_engine()
        engine.update_config(
            algorithms={"isolation_forest": False, "local_outlier_factor": False}
        )
        _feed_resting(engine, 150)
        assert engine.run_pass() == []

        engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 15.0, 150 * 16))
        events = engine.run_pass()

        assert [e.type for e in events] == [AnomalyType.PATTERN_DEVIATION]
        event = events[0]
        assert event.confidence == pytest.approx(2 / 3, abs=1e-6)
        assert event.severity == AnomalySeverity.MEDIUM
        assert event.sensor_values == {"x": 0.0, "y": 0.0, "z": 15.0}
        assert event.description == "pattern deviation: Statistical deviation detected"

    def test_statistical_disabled(self):
        engine = _make_engine()
        engine.update_config(
            algorithms={
                "statistical": False,
                "isolation_forest": False,
                "local_outlier_factor": False,
            }
        )
        _feed_resting(engine, 150)
        engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 15.0, 150 * 16))

        assert engine.run_pass() == []

    def test_steady_readings_look_isolated(self):
        # The isolation formula scores a duplicate of recent samples as 1.0
        engine = _make_engine()
        for i in range(150):
            engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 9.8, i * 16))

        events = engine.run_pass()

        assert [e.type for e in events] == [AnomalyType.UNEXPECTED_ACCELERATION]
        assert events[0].severity == AnomalySeverity.CRITICAL
        assert events[0].window_size_ms == 2000

    def test_density_scorers_wait_for_baseline(self):
        engine = _make_engine()
        for i in range(50):
            engine.ingest_reading(_reading(SensorType.ACCELEROMETER, 0.0, 0.0, 9.8, i * 16))

        assert engine.run_pass() == []


class TestFailureIsolation:

    def test_failing_scorer_is_skipped(self, monkeypatch, caplog):
        engine = _make_engine()
        engine.ingest_performance(_perf(cpu=95.0))

        def _boom():
            raise RuntimeError("scorer exploded")

        monkeypatch.setattr(engine, "_motion_candidates", _boom)

        with caplog.at_level(logging.ERROR):
            events = engine.run_pass()

        assert [e.type for e in events] == [AnomalyType.CPU_SPIKE]
        assert "scorer exploded" in caplog.text

    def test_failing_sink_does_not_lose_events(self, caplog):
        def _sink(event):
            raise RuntimeError("sink down")

        engine = _make_engine(sink=_sink)
        engine.ingest_performance(_perf(cpu=95.0))

        with caplog.at_level(logging.ERROR):
            events = engine.run_pass()

        assert len(events) == 1
        assert "sink down" in caplog.text

    def test_invalid_input_is_rejected(self):
        engine = _make_engine()

        nan_reading = {"sensor_type": "accelerometer", "x": float("nan"), "y": 0.0, "z": 9.8}
        assert engine.ingest_reading(nan_reading) is False
        assert engine.ingest_reading({"sensor_type": "accelerometer", "x": 1.0}) is False
        assert engine.ingest_performance({"cpu": -5.0, "memory": 10.0, "temperature": 30.0}) is False
        assert engine.latest_reading(SensorType.ACCELEROMETER) is None
        assert engine.run_pass() == []

    def test_dict_input_is_accepted(self):
        engine = _make_engine()
        assert engine.ingest_reading(
            {"sensor_type": "gyroscope", "x": 1.0, "y": 2.0, "z": 3.0}
        )
        assert engine.latest_reading(SensorType.GYROSCOPE).as_vector() == [1.0, 2.0, 3.0]


class TestLifecycle:

    def test_events_reach_store_and_can_be_acknowledged(self):
        store = AnomalyStore(clock=lambda: T0)
        engine = _make_engine(sink=store)
        engine.ingest_performance(_perf(cpu=95.0))

        event = engine.run_pass()[0]
        acked = store.acknowledge(event.event_id, notes="known load test")

        assert acked.acknowledged
        assert acked.acknowledged_at == T0
        assert acked.notes == "known load test"
        ack_fields = {"acknowledged", "acknowledged_at", "notes"}
        assert acked.model_dump(exclude=ack_fields) == event.model_dump(exclude=ack_fields)
        assert store.current[0].acknowledged
        assert store.recent[0].acknowledged

    def test_update_config_replaces_whole_config(self):
        engine = _make_engine()
        new_config = AnomalyDetectionConfig(
            anomaly_thresholds={
                AnomalyType.CPU_SPIKE: TypeThreshold(threshold=0.5, window_size_ms=250),
            },
            severity_threshold=AnomalySeverity.LOW,
        )
        assert engine.update_config(new_config) is new_config

        engine.ingest_performance(_perf(cpu=85.0, memory=90.0))
        events = engine.run_pass()

        # memory_leak was not configured, so it is silenced
        assert [e.type for e in events] == [AnomalyType.CPU_SPIKE]
        assert events[0].window_size_ms == 250

    def test_invalid_config_update_keeps_current(self):
        engine = _make_engine()
        current = engine.detection_config

        with pytest.raises(ConfigurationError):
            engine.update_config(confidence_threshold=2.0)
        assert engine.detection_config is current

    @pytest.mark.parametrize(
        "changes",
        [
            {"anomaly_thresholds": {"bogus_type": {"threshold": 0.5}}},
            {"anomaly_thresholds": {"cpu_spike": 0.5}},
            {"anomaly_thresholds": ["cpu_spike"]},
            {"algorithms": True},
        ],
    )
    def test_malformed_config_update_keeps_current(self, changes):
        engine = _make_engine()
        current = engine.detection_config

        with pytest.raises(ConfigurationError):
            engine.update_config(**changes)
        assert engine.detection_config is current

    def test_isolation_window_stays_at_fifty(self):
        settings = default_config.model_copy(
            update={"buffers": BufferSettings(recent_capacity=80)}
        )
        engine = _make_engine(settings=settings)
        for i in range(100):
            engine.ingest_reading(_reading(SensorType.ACCELEROMETER, float(i), 0.0, 9.8, i))

        assert len(engine.recent_samples()) == 80
        assert engine._isolation.window == 50

    def test_reset(self):
        engine = _make_engine()
        _feed_resting(engine, 150)
        engine.ingest_performance(_perf(cpu=95.0))
        engine.run_pass()

        engine.reset()

        assert engine.baselines == {}
        assert engine.recent_samples() == []
        assert engine.latest_reading(SensorType.ACCELEROMETER) is None
        assert engine.run_pass() == []
