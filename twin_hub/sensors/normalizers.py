"""
Row normalization: raw recording rows -> typed samples.

A row's "sensor" (or "type") column selects the sample kind: one of the motion
sensor names, or "performance". Timestamps may be epoch seconds, epoch
milliseconds (what the browser's Date.now() produces), or ISO 8601.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple, Union

from pydantic import ValidationError

from twin_hub.core.exceptions import DataValidationError

from .schema import PerformanceSample, SensorReading, SensorType

logger = logging.getLogger(__name__)

Sample = Union[SensorReading, PerformanceSample]

PERFORMANCE_KIND = "performance"

_SENSOR_ALIASES = {
    "accel": SensorType.ACCELEROMETER,
    "accelerometer": SensorType.ACCELEROMETER,
    "gyro": SensorType.GYROSCOPE,
    "gyroscope": SensorType.GYROSCOPE,
    "mag": SensorType.MAGNETOMETER,
    "magnetometer": SensorType.MAGNETOMETER,
}

# Epoch values above this are treated as milliseconds (year 3000 in seconds)
_EPOCH_MILLIS_CUTOFF = 32503680000


class NormalizationError(DataValidationError):
    """Raised when a row cannot be turned into a sample."""
    pass


def normalize_timestamp(value: Any) -> datetime:
    """
    Normalize a raw timestamp to a UTC datetime.

    Raises:
        NormalizationError: If the value is empty or not recognized
    """
    if value is None or value == "":
        raise NormalizationError("Empty timestamp")

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    text = str(value).strip()
    try:
        epoch = float(text)
    except ValueError:
        epoch = None

    if epoch is not None:
        if epoch >= _EPOCH_MILLIS_CUTOFF:
            epoch /= 1000.0
        try:
            return datetime.fromtimestamp(epoch, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise NormalizationError(f"Timestamp out of range: {text}") from e

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise NormalizationError(f"Could not parse timestamp: {text}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_kind(value: Any) -> Union[SensorType, str]:
    """Map a raw sensor column value to a SensorType or PERFORMANCE_KIND."""
    kind = str(value or "").strip().lower()
    if kind in ("performance", "perf", "metrics"):
        return PERFORMANCE_KIND
    if kind in _SENSOR_ALIASES:
        return _SENSOR_ALIASES[kind]
    raise NormalizationError(f"Unknown sensor kind: {value!r}")


def normalize_row(row: Dict[str, Any]) -> Sample:
    """
    Convert one raw row into a SensorReading or PerformanceSample.

    Raises:
        NormalizationError: On a missing field, an unknown kind, or a value that
            fails validation (including NaN/Infinity)
    """
    kind = normalize_kind(row.get("sensor", row.get("type")))
    timestamp = normalize_timestamp(row.get("timestamp"))

    try:
        if kind == PERFORMANCE_KIND:
            return PerformanceSample(
                cpu=row["cpu"],
                memory=row["memory"],
                temperature=row["temperature"],
                timestamp=timestamp,
            )
        return SensorReading(
            sensor_type=kind,
            x=row["x"],
            y=row["y"],
            z=row["z"],
            timestamp=timestamp,
        )
    except KeyError as e:
        raise NormalizationError(f"Missing field {e.args[0]!r} for {_kind_name(kind)}") from e
    except ValidationError as e:
        raise NormalizationError(
            f"Invalid {_kind_name(kind)} row: {e.error_count()} error(s)"
        ) from e


def _kind_name(kind: Union[SensorType, str]) -> str:
    return kind.value if isinstance(kind, SensorType) else kind


def normalize_rows(rows: Iterable[Dict[str, Any]]) -> Tuple[List[Sample], int]:
    """
    Normalize rows, skipping the ones that fail.

    Returns:
        (samples, skipped_count)
    """
    samples: List[Sample] = []
    skipped = 0

    for row in rows:
        try:
            samples.append(normalize_row(row))
        except NormalizationError as e:
            skipped += 1
            position = row.get("_source", {}).get("position")
            logger.warning(f"Skipping row {position}: {e}")

    if skipped:
        logger.info(f"Normalized {len(samples)} rows, skipped {skipped}")
    return samples, skipped
