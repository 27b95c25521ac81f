"""
Anomaly detection engine for paired device sensors.

Holds the latest readings, rolling histories, the recent-sample buffer and the
baselines; a detection pass scores the latest readings and turns qualifying
candidates into AnomalyEvent objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from twin_hub.core.config import Config, config as default_config
from twin_hub.core.exceptions import ConfigurationError
from twin_hub.sensors.buffers import RecentSampleBuffer, SensorHistory
from twin_hub.sensors.schema import PerformanceSample, SensorReading, SensorType

from .baselines import BaselineRegistry, compute_baseline
from .config import AnomalyDetectionConfig
from .detectors import ISOLATION_WINDOW, IsolationDetector, LOFDetector, StatisticalDetector
from .rules import detect_motion_anomalies, detect_performance_anomalies
from .schema import AnomalyCandidate, AnomalyEvent, AnomalyType, SensorBaseline
from .scoring import determine_severity, meets_severity

logger = logging.getLogger(__name__)

AnomalySink = Callable[[AnomalyEvent], Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnomalyEngine:
    """
    Sliding-window anomaly detection engine.

    Notes:
    - Single-threaded: ingestion and passes must run on the same thread/loop.
    - Only the latest reading of each sensor is scored per pass; readings that
      arrive between passes reach the scorers only through history and buffers.
    - A scorer that fails is logged and skipped for that pass.
    """

    detection_config: AnomalyDetectionConfig = field(default_factory=AnomalyDetectionConfig)
    sink: Optional[AnomalySink] = None
    settings: Config = field(default_factory=lambda: default_config)
    clock: Callable[[], datetime] = _utcnow
    scored_sensor: SensorType = SensorType.ACCELEROMETER

    def __post_init__(self) -> None:
        detectors = self.settings.detectors
        buffers = self.settings.buffers

        self._baselines = BaselineRegistry()
        self._recent = RecentSampleBuffer(capacity=buffers.recent_capacity)
        self._histories: Dict[SensorType, SensorHistory] = {
            sensor: SensorHistory(capacity=self.settings.baseline.history_capacity)
            for sensor in SensorType
        }
        self._latest_performance: Optional[PerformanceSample] = None

        self._statistical = StatisticalDetector(
            zscore_threshold=detectors.zscore_threshold,
            iqr_multiplier=detectors.iqr_multiplier,
        )
        self._isolation = IsolationDetector(
            min_samples=buffers.min_recent_samples,
            window=min(buffers.recent_capacity, ISOLATION_WINDOW),
        )
        self._lof = LOFDetector(k=max(detectors.lof_neighbors, buffers.min_recent_samples))

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_reading(self, reading: Any) -> bool:
        """
        Record a motion reading. Accepts a SensorReading or a dict of its fields.

        Returns False (and logs) when the reading is invalid.
        """
        reading = self._coerce(reading, SensorReading)
        if reading is None:
            return False

        self._histories[reading.sensor_type].append(reading)
        if reading.sensor_type == self.scored_sensor:
            self._recent.append(reading.as_vector())
        return True

    def ingest_performance(self, sample: Any) -> bool:
        """
        Record a performance sample. Accepts a PerformanceSample or a dict.

        Returns False (and logs) when the sample is invalid.
        """
        sample = self._coerce(sample, PerformanceSample)
        if sample is None:
            return False
        self._latest_performance = sample
        return True

    def _coerce(self, value: Any, model: type) -> Optional[Any]:
        if isinstance(value, model):
            return value
        try:
            return model.model_validate(value)
        except ValidationError as e:
            logger.warning(f"Rejected {model.__name__}: {e.error_count()} validation error(s)")
            return None

    # ------------------------------------------------------------------
    # Baselines
    # ------------------------------------------------------------------

    def refresh_baseline(
        self, sensor_type: SensorType, force: bool = False
    ) -> Optional[SensorBaseline]:
        """
        Recompute the baseline for `sensor_type` from its trailing history.

        Without `force`, the history must hold more than baseline.min_samples
        readings. The new baseline replaces any previous one.
        """
        history = self._histories[sensor_type]
        if not force and len(history) <= self.settings.baseline.min_samples:
            return None

        baseline = compute_baseline(
            sensor_type,
            history.vectors(self.settings.baseline.history_window),
            sample_rate_hz=self.settings.sample_rate_hz,
            updated_at=self.clock(),
        )
        self._baselines.put(baseline)
        logger.info(
            f"Baseline updated for {sensor_type.value} from {baseline.samples_count} samples"
        )
        return baseline

    def _seed_baselines(self) -> None:
        for sensor_type in SensorType:
            if not self._baselines.has(sensor_type):
                self.refresh_baseline(sensor_type)

    @property
    def baselines(self) -> Dict[SensorType, SensorBaseline]:
        return self._baselines.as_dict()

    def recent_samples(self) -> List[List[float]]:
        return self._recent.snapshot()

    def latest_reading(self, sensor_type: SensorType) -> Optional[SensorReading]:
        return self._histories[sensor_type].latest

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_config(
        self, new_config: Optional[AnomalyDetectionConfig] = None, **changes: Any
    ) -> AnomalyDetectionConfig:
        """
        Replace the detection config, or merge `changes` into the current one.

        Raises:
            ConfigurationError: If the merged config does not validate or names
                an unknown anomaly type; the current config is kept
        """
        if new_config is None:
            try:
                new_config = self.detection_config.merged(**changes)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid detection config: {e}") from e
        self.detection_config = new_config
        return new_config

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def run_pass(self) -> List[AnomalyEvent]:
        """
        Run one detection pass and return the emitted events, in order.

        Each emitted event is also pushed to the sink, if any.
        """
        cfg = self.detection_config
        self._seed_baselines()

        candidates: List[AnomalyCandidate] = []
        candidates += self._guarded("motion rules", self._motion_candidates)
        candidates += self._guarded("performance rules", self._performance_candidates)
        candidates += self._guarded("statistical", self._statistical_candidates, cfg.algorithms.statistical)
        candidates += self._guarded("isolation", self._isolation_candidates, cfg.algorithms.isolation_forest)
        candidates += self._guarded("lof", self._lof_candidates, cfg.algorithms.local_outlier_factor)

        events: List[AnomalyEvent] = []
        for candidate in candidates:
            event = self._qualify(candidate, cfg)
            if event is None:
                continue
            events.append(event)
            logger.debug(
                f"[Anomaly] {event.type.value}: {event.severity.value} "
                f"(confidence: {event.confidence:.2f})"
            )
            if self.sink is not None:
                self._emit(event)

        return events

    def _guarded(
        self, name: str, scorer: Callable[[], List[AnomalyCandidate]], enabled: bool = True
    ) -> List[AnomalyCandidate]:
        if not enabled:
            return []
        try:
            return scorer()
        except Exception as e:
            logger.error(f"Scorer '{name}' failed, skipping for this pass: {e}")
            return []

    def _emit(self, event: AnomalyEvent) -> None:
        try:
            self.sink(event)
        except Exception as e:
            logger.error(f"Anomaly sink rejected event {event.event_id}: {e}")

    def _qualify(
        self, candidate: AnomalyCandidate, cfg: AnomalyDetectionConfig
    ) -> Optional[AnomalyEvent]:
        rule = cfg.anomaly_thresholds.get(candidate.type)
        if rule is None:
            logger.warning(f"No threshold configured for {candidate.type.value}; not alerting")
            return None
        if not rule.enable_alert or candidate.score < rule.threshold:
            return None

        severity = determine_severity(candidate.score)
        if not meets_severity(severity, cfg.severity_threshold):
            return None

        return AnomalyEvent(
            detected_at=self.clock(),
            type=candidate.type,
            severity=severity,
            confidence=candidate.score,
            description=candidate.description,
            sensor_values=dict(candidate.sensor_values),
            window_size_ms=rule.window_size_ms,
            baseline_deviation=candidate.score * 100,
        )

    def _motion_candidates(self) -> List[AnomalyCandidate]:
        accel = self.latest_reading(SensorType.ACCELEROMETER)
        gyro = self.latest_reading(SensorType.GYROSCOPE)
        if accel is None or gyro is None:
            return []
        return detect_motion_anomalies(accel.as_vector(), gyro.as_vector(), self.settings.rules)

    def _performance_candidates(self) -> List[AnomalyCandidate]:
        sample = self._latest_performance
        if sample is None:
            return []
        return detect_performance_anomalies(
            sample.cpu, sample.memory, sample.temperature, self.settings.rules
        )

    def _statistical_candidates(self) -> List[AnomalyCandidate]:
        reading = self.latest_reading(self.scored_sensor)
        if reading is None:
            return []
        score = self._statistical.score(reading.as_vector(), self._baselines.get(self.scored_sensor))
        if score is None or score <= self.settings.detectors.statistical_floor:
            return []
        return [
            self._model_candidate(
                AnomalyType.PATTERN_DEVIATION, score, "statistical", reading,
                "Statistical deviation detected",
            )
        ]

    def _isolation_candidates(self) -> List[AnomalyCandidate]:
        reading = self.latest_reading(self.scored_sensor)
        if reading is None or not self._baselines.has(self.scored_sensor):
            return []
        score = self._isolation.score(reading.as_vector(), self._recent.snapshot())
        if score <= self.settings.detectors.isolation_floor:
            return []
        return [
            self._model_candidate(
                AnomalyType.UNEXPECTED_ACCELERATION, score, "isolation", reading,
                "Isolated from recent samples",
            )
        ]

    def _lof_candidates(self) -> List[AnomalyCandidate]:
        reading = self.latest_reading(self.scored_sensor)
        if reading is None or not self._baselines.has(self.scored_sensor):
            return []
        score = self._lof.score(reading.as_vector(), self._recent.snapshot())
        if score <= self.settings.detectors.lof_floor:
            return []
        return [
            self._model_candidate(
                AnomalyType.DRIFT_DETECTED, score, "lof", reading,
                "Local density below neighbors",
            )
        ]

    @staticmethod
    def _model_candidate(
        anomaly_type: AnomalyType,
        score: float,
        detector: str,
        reading: SensorReading,
        detail: str,
    ) -> AnomalyCandidate:
        return AnomalyCandidate(
            type=anomaly_type,
            score=score,
            detector=detector,
            description=f"{anomaly_type.label}: {detail}",
            sensor_values={"x": reading.x, "y": reading.y, "z": reading.z},
        )

    def reset(self) -> None:
        """Drop all readings, buffers and baselines."""
        self._baselines.clear()
        self._recent.clear()
        for history in self._histories.values():
            history.clear()
        self._latest_performance = None
