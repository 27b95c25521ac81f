"""
Replay a recorded session through the anomaly engine.

Detection passes are scheduled on recording time instead of wall-clock time, so
a replay is deterministic and runs as fast as the samples can be scored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from twin_hub.anomaly.engine import AnomalyEngine
from twin_hub.anomaly.schema import AnomalyEvent
from twin_hub.sensors.normalizers import Sample
from twin_hub.sensors.schema import PerformanceSample

logger = logging.getLogger(__name__)


class ReplayClock:
    """Settable clock; pass it as the engine's (and store's) clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def replay_samples(
    engine: AnomalyEngine,
    samples: Iterable[Sample],
    clock: Optional[ReplayClock] = None,
) -> List[AnomalyEvent]:
    """
    Feed samples in timestamp order, running a pass each time recording time
    crosses the next update_interval_ms boundary, plus one final pass.

    After a gap longer than one interval, a single pass is run and the schedule
    resumes from the current sample.
    """
    ordered = sorted(samples, key=lambda s: s.timestamp)
    if not ordered:
        return []

    events: List[AnomalyEvent] = []
    next_pass: Optional[datetime] = None

    def _run(at: datetime) -> None:
        if clock is not None:
            clock.now = at
        events.extend(engine.run_pass())

    for sample in ordered:
        interval = timedelta(milliseconds=engine.detection_config.update_interval_ms)
        if next_pass is None:
            next_pass = sample.timestamp + interval
        elif sample.timestamp >= next_pass:
            _run(next_pass)
            next_pass += interval
            if sample.timestamp >= next_pass:
                next_pass = sample.timestamp + interval

        if clock is not None:
            clock.now = sample.timestamp
        if isinstance(sample, PerformanceSample):
            engine.ingest_performance(sample)
        else:
            engine.ingest_reading(sample)

    _run(ordered[-1].timestamp)
    logger.info(f"Replayed {len(ordered)} samples, {len(events)} anomalies emitted")
    return events
