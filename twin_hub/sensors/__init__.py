"""
Sensors module: sample schema, bounded buffers, and recorded session input.

    Recording (CSV / JSON / NDJSON)
        ↓
    Ingestion (ingestion.py) → raw rows
        ↓
    Normalization (normalizers.py) → SensorReading / PerformanceSample
        ↓
    Anomaly engine (twin_hub.anomaly)
"""

from .buffers import RecentSampleBuffer, SensorHistory
from .ingestion import (
    CSVRecordingSource,
    JSONRecordingSource,
    RecordingIngestionError,
    ingest_recording,
)
from .normalizers import NormalizationError, normalize_row, normalize_rows
from .schema import (
    PerformanceSample,
    SensorReading,
    SensorType,
    is_finite_vector,
    vector_magnitude,
)

__all__ = [
    # Schema
    "SensorType",
    "SensorReading",
    "PerformanceSample",
    "vector_magnitude",
    "is_finite_vector",

    # Buffers
    "RecentSampleBuffer",
    "SensorHistory",

    # Ingestion
    "ingest_recording",
    "CSVRecordingSource",
    "JSONRecordingSource",
    "RecordingIngestionError",

    # Normalization
    "normalize_row",
    "normalize_rows",
    "NormalizationError",
]
