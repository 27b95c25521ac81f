"""
Severity mapping for anomaly scores.

Maps a detector score in [0, 1] to an ordinal severity with fixed cutoffs.
"""

from __future__ import annotations

from .schema import AnomalySeverity

SEVERITY_ORDER = [
    AnomalySeverity.LOW,
    AnomalySeverity.MEDIUM,
    AnomalySeverity.HIGH,
    AnomalySeverity.CRITICAL,
]

CRITICAL_CUTOFF = 0.9
HIGH_CUTOFF = 0.75
MEDIUM_CUTOFF = 0.6


def determine_severity(score: float) -> AnomalySeverity:
    """
    Map a score to a severity. Cutoffs are inclusive lower bounds.
    """
    if score >= CRITICAL_CUTOFF:
        return AnomalySeverity.CRITICAL
    if score >= HIGH_CUTOFF:
        return AnomalySeverity.HIGH
    if score >= MEDIUM_CUTOFF:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def severity_rank(severity: AnomalySeverity) -> int:
    return SEVERITY_ORDER.index(AnomalySeverity(severity))


def meets_severity(severity: AnomalySeverity, minimum: AnomalySeverity) -> bool:
    """True if `severity` is at or above `minimum` (LOW < MEDIUM < HIGH < CRITICAL)."""
    return severity_rank(severity) >= severity_rank(minimum)
