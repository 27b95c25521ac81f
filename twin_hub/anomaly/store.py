"""
In-memory anomaly store.

Default sink for the engine: keeps the newest events, per-type patterns and
the rolling one-hour rate, and applies operator acknowledgments.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from twin_hub.core.config import StoreSettings, config

from .schema import AnomalyEvent, AnomalyPattern, AnomalyStatistics, AnomalyType

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnomalyStore:
    """
    Holds surfaced anomalies for display and acknowledgment.

    - current: newest `current_limit` events, newest first
    - recent: newest `recent_limit` events within the horizon, newest first
    - patterns: one running tally per anomaly type
    """

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings or config.store
        self.clock = clock
        self.current: List[AnomalyEvent] = []
        self.recent: List[AnomalyEvent] = []
        self.patterns: Dict[AnomalyType, AnomalyPattern] = {}
        self.anomaly_count = 0
        self.anomaly_rate = 0.0
        self.last_detection_time: Optional[datetime] = None

    def __call__(self, event: AnomalyEvent) -> None:
        self.add(event)

    def add(self, event: AnomalyEvent) -> None:
        horizon = self.clock() - timedelta(seconds=self.settings.horizon_seconds)
        still_recent = [e for e in self.recent if e.detected_at > horizon]

        pattern = self.patterns.get(event.type)
        if pattern is None:
            self.patterns[event.type] = AnomalyPattern(
                type=event.type,
                first_seen=event.detected_at,
                last_seen=event.detected_at,
                latest_severity=event.severity,
            )
        else:
            pattern.occurrences += 1
            pattern.last_seen = event.detected_at
            pattern.latest_severity = event.severity

        self.current = [event, *self.current][: self.settings.current_limit]
        self.recent = [event, *still_recent][: self.settings.recent_limit]
        self.anomaly_count += 1
        # Events per hour, measured over the trailing horizon
        self.anomaly_rate = (len(still_recent) + 1) * 3600.0 / self.settings.horizon_seconds
        self.last_detection_time = event.detected_at

    def acknowledge(self, event_id: str, notes: Optional[str] = None) -> Optional[AnomalyEvent]:
        """
        Mark an event acknowledged in both lists.

        Returns the acknowledged event, or None if the id is unknown.
        """
        at = self.clock()
        acknowledged: Optional[AnomalyEvent] = None

        def _apply(events: List[AnomalyEvent]) -> List[AnomalyEvent]:
            nonlocal acknowledged
            updated = []
            for e in events:
                if e.event_id == event_id:
                    e = e.acknowledge(notes=notes, at=at)
                    acknowledged = e
                updated.append(e)
            return updated

        self.current = _apply(self.current)
        self.recent = _apply(self.recent)

        if acknowledged is None:
            logger.warning(f"Cannot acknowledge unknown anomaly {event_id}")
        return acknowledged

    def unacknowledged(self) -> List[AnomalyEvent]:
        return [e for e in self.current if not e.acknowledged]

    def clear(self) -> None:
        self.current = []
        self.recent = []
        self.patterns = {}
        self.anomaly_count = 0
        self.anomaly_rate = 0.0
        self.last_detection_time = None

    def reset_patterns(self) -> None:
        """Forget patterns and counters; stored events are kept."""
        self.patterns = {}
        self.anomaly_count = 0
        self.anomaly_rate = 0.0

    def statistics(self) -> AnomalyStatistics:
        """Summarize the recent events."""
        events = self.recent
        if not events:
            return AnomalyStatistics(total_anomalies=self.anomaly_count)

        by_type = Counter(e.type for e in events)
        by_severity = Counter(e.severity for e in events)

        return AnomalyStatistics(
            total_anomalies=self.anomaly_count,
            by_type=dict(by_type),
            by_severity=dict(by_severity),
            average_confidence=sum(e.confidence for e in events) / len(events),
            anomaly_rate=self.anomaly_rate,
            most_common_type=by_type.most_common(1)[0][0],
            last_anomaly_time=self.last_detection_time,
        )
