"""
Anomaly module: sliding-window anomaly scoring for motion and performance data.

Implements baselines, statistical/density/rule-based detectors, severity mapping,
the detection engine, its periodic loop, and the in-memory anomaly store.
"""

from .baselines import BaselineRegistry, compute_baseline
from .config import AlgorithmToggles, AnomalyDetectionConfig, TypeThreshold
from .detectors import IsolationDetector, LOFDetector, StatisticalDetector
from .engine import AnomalyEngine
from .rules import detect_motion_anomalies, detect_performance_anomalies
from .scheduler import DetectionLoop
from .schema import (
	AnomalyCandidate,
	AnomalyEvent,
	AnomalyPattern,
	AnomalySeverity,
	AnomalyStatistics,
	AnomalyType,
	SensorBaseline,
)
from .scoring import determine_severity, meets_severity
from .store import AnomalyStore

__all__ = [
	"AnomalyEngine",
	"AnomalyStore",
	"DetectionLoop",
	"AnomalyDetectionConfig",
	"TypeThreshold",
	"AlgorithmToggles",
	"AnomalyCandidate",
	"AnomalyEvent",
	"AnomalyPattern",
	"AnomalySeverity",
	"AnomalyStatistics",
	"AnomalyType",
	"SensorBaseline",
	"BaselineRegistry",
	"compute_baseline",
	"StatisticalDetector",
	"IsolationDetector",
	"LOFDetector",
	"detect_motion_anomalies",
	"detect_performance_anomalies",
	"determine_severity",
	"meets_severity",
]
