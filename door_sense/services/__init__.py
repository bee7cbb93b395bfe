"""
Services around the detection engine.

The ingestion pipeline lives in ``door_sense.services.pipeline`` and is not
imported here since it depends on the engine, which depends on this package.
"""

from door_sense.services.metrics import (
    AccuracyMetrics,
    AccuracyTracker,
    DetectionMetricsService,
)
from door_sense.services.telemetry import TelemetryHistory

__all__ = [
    "AccuracyMetrics",
    "AccuracyTracker",
    "DetectionMetricsService",
    "TelemetryHistory",
]
