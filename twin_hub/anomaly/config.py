"""
Runtime anomaly detection configuration.

This is the operator-facing half of the configuration: alert thresholds per
anomaly type, the minimum severity to surface, and which model-based scorers
run. It can be swapped at runtime; the engine reads the latest value each pass.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from pydantic import BaseModel, Field, model_validator

from twin_hub.core.exceptions import ConfigurationError

from .schema import AnomalySeverity, AnomalyType

logger = logging.getLogger(__name__)


class TypeThreshold(BaseModel):
    """
    Alerting rule for one anomaly type.

    Notes:
    - threshold: minimum detector score to alert on.
    - window_size_ms: evaluation window reported on events of this type.
    - enable_alert: False silences the type entirely.
    """

    threshold: float = Field(..., ge=0.0, le=1.0)
    window_size_ms: int = Field(..., ge=0)
    enable_alert: bool = True


class AlgorithmToggles(BaseModel):
    """
    Enable/disable switches for the model-based scorers.

    Rule-based detectors always run when their inputs are present.
    """

    statistical: bool = True
    isolation_forest: bool = True
    local_outlier_factor: bool = True


def default_thresholds() -> Dict[AnomalyType, TypeThreshold]:
    return {
        AnomalyType.UNEXPECTED_ACCELERATION: TypeThreshold(threshold=0.7, window_size_ms=2000),
        AnomalyType.UNEXPECTED_DECELERATION: TypeThreshold(threshold=0.7, window_size_ms=2000),
        AnomalyType.UNUSUAL_ROTATION: TypeThreshold(threshold=0.75, window_size_ms=3000),
        AnomalyType.EXCESSIVE_VIBRATION: TypeThreshold(threshold=0.8, window_size_ms=1000),
        AnomalyType.SUDDEN_MOVEMENT: TypeThreshold(threshold=0.8, window_size_ms=2000),
        AnomalyType.CPU_SPIKE: TypeThreshold(threshold=0.7, window_size_ms=5000),
        AnomalyType.MEMORY_LEAK: TypeThreshold(threshold=0.75, window_size_ms=10000),
        AnomalyType.TEMPERATURE_SPIKE: TypeThreshold(threshold=0.7, window_size_ms=5000),
        AnomalyType.THERMAL_THROTTLING: TypeThreshold(threshold=0.8, window_size_ms=5000),
        AnomalyType.PATTERN_DEVIATION: TypeThreshold(threshold=0.65, window_size_ms=5000),
        AnomalyType.PERIODIC_ANOMALY: TypeThreshold(
            threshold=0.7, window_size_ms=10000, enable_alert=False
        ),
        AnomalyType.DRIFT_DETECTED: TypeThreshold(threshold=0.65, window_size_ms=15000),
    }


class AnomalyDetectionConfig(BaseModel):
    """
    Detection sensitivity and scheduling.

    Fields:
    - confidence_threshold: global sensitivity; also the threshold given to
      types missing from anomaly_thresholds
    - severity_threshold: minimum severity to surface
    - sliding_window_ms: default evaluation window
    - update_interval_ms: time between detection passes
    - algorithms: model-based scorer switches
    - anomaly_thresholds: per-type alerting rules (complete over AnomalyType)
    """

    confidence_threshold: float = Field(0.7, ge=0.0, le=1.0)
    severity_threshold: AnomalySeverity = AnomalySeverity.MEDIUM
    sliding_window_ms: int = Field(5000, ge=1)
    update_interval_ms: int = Field(1000, ge=1)
    algorithms: AlgorithmToggles = AlgorithmToggles()
    anomaly_thresholds: Dict[AnomalyType, TypeThreshold] = Field(
        default_factory=default_thresholds
    )

    @model_validator(mode="after")
    def _complete_thresholds(self) -> "AnomalyDetectionConfig":
        missing = [t for t in AnomalyType if t not in self.anomaly_thresholds]
        if missing:
            names = ", ".join(t.value for t in missing)
            logger.warning(f"No threshold configured for {names}; alerting disabled for those types")
            for anomaly_type in missing:
                self.anomaly_thresholds[anomaly_type] = TypeThreshold(
                    threshold=self.confidence_threshold,
                    window_size_ms=self.sliding_window_ms,
                    enable_alert=False,
                )
        return self

    def merged(self, **changes: Any) -> "AnomalyDetectionConfig":
        """
        Return a validated copy with `changes` applied.

        `anomaly_thresholds` entries are merged per type rather than replacing
        the whole map.

        Raises:
            ConfigurationError: On an unknown anomaly type or a rule or toggle
                set that is not a mapping
            ValidationError: If the merged values do not validate
        """
        data = self.model_dump()
        thresholds = changes.pop("anomaly_thresholds", None)
        if thresholds:
            for anomaly_type, rule in _as_mapping(thresholds, "anomaly_thresholds").items():
                try:
                    key = AnomalyType(anomaly_type)
                except ValueError as e:
                    raise ConfigurationError(f"Unknown anomaly type: {anomaly_type!r}") from e
                if isinstance(rule, TypeThreshold):
                    rule = rule.model_dump()
                rule = _as_mapping(rule, f"threshold for {key.value}")
                data["anomaly_thresholds"][key] = {**data["anomaly_thresholds"][key], **rule}
        algorithms = changes.pop("algorithms", None)
        if algorithms:
            if isinstance(algorithms, AlgorithmToggles):
                algorithms = algorithms.model_dump()
            data["algorithms"].update(_as_mapping(algorithms, "algorithms"))
        data.update(changes)
        return AnomalyDetectionConfig.model_validate(data)


def _as_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{name} must be a mapping, got {type(value).__name__}")
    return value
