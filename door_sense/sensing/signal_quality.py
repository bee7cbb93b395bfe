"""
Signal quality assessment for a single normalized sample.

A resting accelerometer measures exactly 1 g, so the deviation of the
magnitude from 1 g is a cheap proxy for noise, loose mounting or a sensor
that is being moved. The report is purely observational and never feeds
back into classification.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from door_sense.sensing.samples import PositionSample

logger = logging.getLogger(__name__)


IDEAL_MAGNITUDE = 1.0
ACCEPTABLE_RANGE = (0.8, 1.2)


class MagnitudeQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


class SignalStability(str, Enum):
    VERY_STABLE = "very_stable"
    STABLE = "stable"
    MODERATELY_STABLE = "moderately_stable"
    UNSTABLE = "unstable"


@dataclass(frozen=True)
class SignalQualityReport:
    """Quality assessment of one sample."""

    magnitude: float
    clarity_score: float
    magnitude_quality: MagnitudeQuality
    noise_level: float
    signal_stability: SignalStability
    recommendations: List[str] = field(default_factory=list)

    @property
    def should_recalibrate(self) -> bool:
        return (
            self.clarity_score < 0.5
            or "high_noise_detected" in self.recommendations
            or self.magnitude_quality == MagnitudeQuality.POOR
        )


class SignalQualityAnalyzer:
    """Score a g-force sample by how close it is to a clean 1 g reading."""

    def __init__(self, noise_threshold: float = 0.3) -> None:
        self._noise_threshold = noise_threshold

    def analyze(self, sample: PositionSample) -> SignalQualityReport:
        x, y, z = sample.as_tuple()
        magnitude = (x * x + y * y + z * z) ** 0.5
        noise = self._noise_level(x, y, z, magnitude)

        report = SignalQualityReport(
            magnitude=magnitude,
            clarity_score=self._clarity_score(magnitude),
            magnitude_quality=self._magnitude_quality(magnitude),
            noise_level=noise,
            signal_stability=self._stability(magnitude),
            recommendations=self._recommendations(x, y, z, magnitude, noise),
        )
        if report.should_recalibrate:
            logger.debug("Signal quality suggests recalibration: %s", report.recommendations)
        return report

    @staticmethod
    def _clarity_score(magnitude: float) -> float:
        clarity = 1.0 - min(abs(magnitude - IDEAL_MAGNITUDE), 1.0)
        if ACCEPTABLE_RANGE[0] <= magnitude <= ACCEPTABLE_RANGE[1]:
            clarity = max(0.8, clarity)
        return clarity

    @staticmethod
    def _magnitude_quality(magnitude: float) -> MagnitudeQuality:
        if ACCEPTABLE_RANGE[0] <= magnitude <= ACCEPTABLE_RANGE[1]:
            return MagnitudeQuality.EXCELLENT
        if 0.6 <= magnitude <= 1.4:
            return MagnitudeQuality.GOOD
        if 0.4 <= magnitude <= 1.6:
            return MagnitudeQuality.ACCEPTABLE
        return MagnitudeQuality.POOR

    @staticmethod
    def _noise_level(x: float, y: float, z: float, magnitude: float) -> float:
        # Share of the magnitude not explained by the dominant axis
        if magnitude <= 0.0:
            return 1.0
        dominant = max(abs(x), abs(y), abs(z))
        return min(1.0, (magnitude - dominant) / magnitude)

    @staticmethod
    def _stability(magnitude: float) -> SignalStability:
        deviation = abs(magnitude - IDEAL_MAGNITUDE)
        if deviation < 0.05:
            return SignalStability.VERY_STABLE
        if deviation < 0.1:
            return SignalStability.STABLE
        if deviation < 0.2:
            return SignalStability.MODERATELY_STABLE
        return SignalStability.UNSTABLE

    def _recommendations(self, x: float, y: float, z: float, magnitude: float, noise: float) -> List[str]:
        recommendations: List[str] = []

        if magnitude < 0.6:
            recommendations += ["signal_too_weak", "check_sensor_placement"]
        if magnitude > 1.4:
            recommendations += ["signal_too_strong", "check_for_interference"]
        if noise > self._noise_threshold:
            recommendations += ["high_noise_detected", "consider_recalibration"]
        if abs(x) + abs(y) + abs(z) < 0.5:
            recommendations += ["low_activity_detected", "sensor_may_be_disconnected"]

        return recommendations
