"""
Detectors for outlying sensor samples.

Implements explainable methods:
- Z-score + IQR fence distance against a baseline
- Distance-based isolation against recent samples
- An approximate local outlier factor (LOF)

All detectors are pure given their inputs and return scores in [0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from twin_hub.sensors.schema import is_finite_vector

from .schema import SensorBaseline

EPSILON = 1e-4
MAX_AXES = 3
ISOLATION_WINDOW = 50


def _clip(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    n = min(len(a), len(b))
    return math.sqrt(sum((a[i] - b[i]) ** 2 for i in range(n)))


@dataclass
class StatisticalDetector:
    """
    Z-score and IQR scorer against a baseline.

    Per axis, the z component saturates at `zscore_threshold` standard
    deviations and the IQR component grows with the distance outside the
    fences [Q1 - m*IQR, Q3 + m*IQR]. A value on a fence is inside.
    """

    zscore_threshold: float = 2.5
    iqr_multiplier: float = 3.0

    def axis_scores(
        self, sample: Sequence[float], baseline: SensorBaseline
    ) -> List[Tuple[float, float]]:
        """Return (z_component, iqr_component) per contributing axis."""
        components = []
        axes = min(len(sample), MAX_AXES, baseline.axes)

        for i in range(axes):
            value = sample[i]
            mean = baseline.mean[i]
            std = baseline.std[i]
            q1 = baseline.percentile25[i]
            q3 = baseline.percentile75[i]

            z_component = 0.0
            if std > 0:
                z = abs(value - mean) / std
                z_component = min(z / self.zscore_threshold, 1.0)

            iqr_component = 0.0
            iqr = q3 - q1
            if iqr > 0:
                lower = q1 - self.iqr_multiplier * iqr
                upper = q3 + self.iqr_multiplier * iqr
                if value < lower:
                    iqr_component = min((lower - value) / iqr, 1.0)
                elif value > upper:
                    iqr_component = min((value - upper) / iqr, 1.0)

            components.append((z_component, iqr_component))

        return components

    def score(
        self, sample: Sequence[float], baseline: Optional[SensorBaseline]
    ) -> Optional[float]:
        """
        Combined score in [0, 1], or None when there is no baseline or the
        sample is not finite.
        """
        if baseline is None or not is_finite_vector(sample):
            return None

        components = self.axis_scores(sample, baseline)
        if not components:
            return 0.0

        total = sum(z + iqr for z, iqr in components)
        return _clip(total / len(components))


@dataclass
class IsolationDetector:
    """
    Distance-based isolation score: 1 - min_distance / mean_distance over the
    most recent samples.

    Note: this scores a sample that nearly duplicates a recent one close to 1
    and a sample far from everything close to 0.
    """

    min_samples: int = 5
    window: int = ISOLATION_WINDOW

    def score(self, sample: Sequence[float], recent: Sequence[Sequence[float]]) -> float:
        if len(recent) < self.min_samples or not is_finite_vector(sample):
            return 0.0

        distances = [euclidean_distance(sample, other) for other in recent[-self.window:]]
        mean_distance = sum(distances) / len(distances)
        min_distance = min(distances)

        return _clip(1.0 - min_distance / (mean_distance + EPSILON))


@dataclass
class LOFDetector:
    """
    Approximate local outlier factor over the k nearest neighbors.

    A neighbor's k-distance is not computed recursively; it is approximated by
    the RMS of the neighbor's own components, and its local reachability
    density by the inverse of that value.
    """

    k: int = 5

    def score(self, sample: Sequence[float], neighbors: Sequence[Sequence[float]]) -> float:
        if len(neighbors) < self.k or not is_finite_vector(sample):
            return 0.0

        ranked = sorted(
            ((euclidean_distance(sample, n), n) for n in neighbors),
            key=lambda pair: pair[0],
        )
        nearest = ranked[: self.k]

        reachability = sum(max(d, self._k_distance(n)) for d, n in nearest)
        density = len(nearest) / (reachability + EPSILON)

        neighbor_density = sum(self._density(n) for _, n in nearest) / len(nearest)
        lof = neighbor_density / (density + EPSILON)

        return _clip(lof - 1.0)

    @staticmethod
    def _k_distance(vector: Sequence[float]) -> float:
        if not vector:
            return 0.0
        return math.sqrt(sum(v * v for v in vector) / len(vector))

    def _density(self, vector: Sequence[float]) -> float:
        return 1.0 / (self._k_distance(vector) + EPSILON)
