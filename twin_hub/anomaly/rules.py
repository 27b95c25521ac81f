"""
Rule-based pattern detectors.

Fixed limits on motion magnitudes and device performance. Every limit is a
strict ">" comparison, and several rules may fire on the same sample (a hot
enough device is both a temperature spike and thermal throttling).
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from twin_hub.core.config import RuleThresholds, config
from twin_hub.sensors.schema import vector_magnitude

from .schema import AnomalyCandidate, AnomalyType

DETECTOR_NAME = "rules"


def _motion_context(accel: Sequence[float], gyro: Sequence[float]) -> dict:
    return {
        "accel_x": accel[0],
        "accel_y": accel[1],
        "accel_z": accel[2],
        "gyro_x": gyro[0],
        "gyro_y": gyro[1],
        "gyro_z": gyro[2],
    }


def _motion_description(anomaly_type: AnomalyType, accel: Sequence[float]) -> str:
    return (
        f"{anomaly_type.label}: Accel X={accel[0]:.2f} "
        f"Y={accel[1]:.2f} Z={accel[2]:.2f}"
    )


def detect_motion_anomalies(
    accel: Sequence[float],
    gyro: Sequence[float],
    thresholds: Optional[RuleThresholds] = None,
) -> List[AnomalyCandidate]:
    """
    Score vibration, rotation and sudden movement from one accel/gyro pair.

    Args:
        accel: Accelerometer [x, y, z] in m/s^2
        gyro: Gyroscope [x, y, z] in deg/s
        thresholds: Rule limits (defaults to config.rules)
    """
    limits = thresholds or config.rules
    accel_mag = vector_magnitude(accel)
    gyro_mag = vector_magnitude(gyro)

    scored = []
    if accel_mag > limits.vibration_magnitude:
        scored.append(
            (AnomalyType.EXCESSIVE_VIBRATION, min(accel_mag / limits.vibration_scale, 1.0))
        )
    if gyro_mag > limits.rotation_magnitude:
        scored.append(
            (AnomalyType.UNUSUAL_ROTATION, min(gyro_mag / limits.rotation_scale, 1.0))
        )
    if accel_mag > limits.sudden_accel_magnitude and gyro_mag > limits.sudden_gyro_magnitude:
        combined = (
            accel_mag / limits.sudden_accel_magnitude + gyro_mag / limits.sudden_gyro_magnitude
        ) / 2
        scored.append((AnomalyType.SUDDEN_MOVEMENT, min(combined, 1.0)))

    if not scored:
        return []

    values = _motion_context(accel, gyro)
    return [
        AnomalyCandidate(
            type=anomaly_type,
            score=score,
            detector=DETECTOR_NAME,
            description=_motion_description(anomaly_type, accel),
            sensor_values=values,
        )
        for anomaly_type, score in scored
    ]


def detect_performance_anomalies(
    cpu: float,
    memory: float,
    temperature: float,
    thresholds: Optional[RuleThresholds] = None,
) -> List[AnomalyCandidate]:
    """
    Score CPU, memory and temperature readings.

    Args:
        cpu: CPU utilisation in percent
        memory: Memory utilisation in percent
        temperature: Device temperature in degrees Celsius
        thresholds: Rule limits (defaults to config.rules)
    """
    limits = thresholds or config.rules

    scored = []
    if cpu > limits.cpu_percent:
        scored.append((AnomalyType.CPU_SPIKE, min(cpu / 100.0, 1.0)))
    if memory > limits.memory_percent:
        scored.append((AnomalyType.MEMORY_LEAK, min(memory / 100.0, 1.0)))
    if temperature > limits.temperature_spike_c:
        scored.append(
            (AnomalyType.TEMPERATURE_SPIKE, min(temperature / limits.temperature_scale, 1.0))
        )
    if temperature > limits.thermal_throttling_c:
        scored.append(
            (AnomalyType.THERMAL_THROTTLING, min(temperature / limits.temperature_scale, 1.0))
        )

    values = {"cpu": cpu, "memory": memory, "temperature": temperature}
    return [
        AnomalyCandidate(
            type=anomaly_type,
            score=score,
            detector=DETECTOR_NAME,
            description=(
                f"{anomaly_type.label}: CPU={cpu:.1f}% "
                f"Memory={memory:.1f}% Temp={temperature:.1f}°C"
            ),
            sensor_values=values,
        )
        for anomaly_type, score in scored
    ]
