"""
Pytest configuration and shared fixtures.

Provides a recorded session for the integration tests.
"""

from datetime import datetime, timezone

import pandas as pd
import pytest

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
T0_MS = int(T0.timestamp() * 1000)


@pytest.fixture
def recording_frame() -> pd.DataFrame:
    """
    Ten seconds of a resting device at ~60 Hz, with a CPU spike in the last
    two seconds and one corrupt row.

    Columns: timestamp (epoch ms), sensor, x, y, z, cpu, memory, temperature
    """
    rows = []
    for i in range(600):
        ts = T0_MS + i * 16
        sign = 1 if i % 2 == 0 else -1
        rows.append({"timestamp": ts, "sensor": "accelerometer",
                     "x": 0.1 * sign, "y": -0.1 * sign, "z": 9.8 + 0.1 * sign})
        rows.append({"timestamp": ts, "sensor": "gyroscope",
                     "x": 0.5 * sign, "y": 0.2, "z": -0.3})

    for i in range(20):
        ts = T0_MS + i * 500
        cpu = 96.0 if i >= 16 else 35.0
        rows.append({"timestamp": ts, "sensor": "performance",
                     "cpu": cpu, "memory": 55.0, "temperature": 36.0})

    rows.append({"timestamp": T0_MS + 5000, "sensor": "barometer", "x": 1.0, "y": 1.0, "z": 1.0})
    return pd.DataFrame(rows)


@pytest.fixture
def recording_csv(tmp_path, recording_frame):
    path = tmp_path / "session.csv"
    recording_frame.to_csv(path, index=False)
    return path


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
