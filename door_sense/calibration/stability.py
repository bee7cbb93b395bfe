"""
Position stability analysis used to gate calibration.

Two modes:

- calibration mode trusts the most recent motion-stopped event that has no
  later motion-started event; without any motion event it falls back to
  the latest raw sample.
- live mode computes the per-axis variance of the samples seen in the last
  observation window and compares the worst axis with ``max_variance``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol, runtime_checkable

import numpy as np

from door_sense.calibration.models import Position, PositionSource, StabilityReport
from door_sense.sensing.samples import MotionEvent, MotionEventType, PositionSample

logger = logging.getLogger(__name__)


@runtime_checkable
class TelemetrySource(Protocol):
    """Read access to the recent raw telemetry of each sensor."""

    def latest_event(self, sensor_id: str, event_type: MotionEventType) -> Optional[MotionEvent]: ...

    def has_event_since(self, sensor_id: str, event_type: MotionEventType, since: float) -> bool: ...

    def latest_sample(self, sensor_id: str) -> Optional[PositionSample]: ...

    def samples_since(self, sensor_id: str, since: float, limit: Optional[int] = None) -> List[PositionSample]: ...


def _position(sample: PositionSample) -> Position:
    return Position(sample.x, sample.y, sample.z)


class StabilityAnalyzer:
    """
    Decide whether a sensor position can be used as a calibration reference.

    Parameters
    ----------
    source : TelemetrySource
        Recent samples and motion events per sensor.
    max_variance : float
        Largest per-axis variance (device units squared) of a stable position (default 1.0).
    window_seconds : float
        Live observation window (default 30).
    min_samples : int
        Fewer samples than this in the window is "insufficient data" (default 3).
    preferred_samples : int
        Most recent samples used by the live check (default 10).
    clock : callable
        Wall clock in UNIX seconds, matching sample timestamps.
    """

    def __init__(
        self,
        source: TelemetrySource,
        max_variance: float = 1.0,
        window_seconds: float = 30.0,
        min_samples: int = 3,
        preferred_samples: int = 10,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_variance <= 0:
            raise ValueError("max_variance must be positive")
        if min_samples < 1 or preferred_samples < min_samples:
            raise ValueError("require 1 <= min_samples <= preferred_samples")
        self._source = source
        self._max_variance = max_variance
        self._window = window_seconds
        self._min_samples = min_samples
        self._preferred = preferred_samples
        self._clock = clock

    def check(self, sensor_id: str, for_calibration: bool = False) -> StabilityReport:
        if for_calibration:
            return self._check_for_calibration(sensor_id)
        return self._check_live(sensor_id)

    def has_telemetry(self, sensor_id: str) -> bool:
        """True once the sensor has reported any sample or motion event."""
        if self._source.latest_sample(sensor_id) is not None:
            return True
        return any(
            self._source.latest_event(sensor_id, event_type) is not None
            for event_type in MotionEventType
        )

    def current_position(self, sensor_id: str) -> Optional[Position]:
        """Latest sample inside the live window, if any."""
        recent = self._source.samples_since(sensor_id, self._clock() - self._window, limit=1)
        return _position(recent[-1]) if recent else None

    # -- calibration mode ----------------------------------------------------

    def _check_for_calibration(self, sensor_id: str) -> StabilityReport:
        stop = self._source.latest_event(sensor_id, MotionEventType.MOTION_STOPPED)

        if stop is not None:
            if self._source.has_event_since(sensor_id, MotionEventType.MOTION_STARTED, stop.timestamp):
                logger.debug("Sensor %s moved after its last motion-stopped event", sensor_id)
                return StabilityReport(
                    stable=False,
                    overall_stability=0.0,
                    sample_count=0,
                    reason="Sensor has moved since its last motion-stopped event",
                )
            sample = stop.position or self._source.latest_sample(sensor_id)
            if sample is None:
                return StabilityReport(
                    stable=False,
                    overall_stability=0.0,
                    sample_count=0,
                    reason="Motion-stopped event carries no position and no sample is available",
                )
            return StabilityReport(
                stable=True,
                overall_stability=1.0,
                sample_count=1,
                position=_position(sample),
                position_source=PositionSource.MOTION_STOPPED,
                reason="Using last motion-stopped position",
            )

        latest = self._source.latest_sample(sensor_id)
        if latest is None:
            return StabilityReport(
                stable=False,
                overall_stability=0.0,
                sample_count=0,
                reason="No position data available",
            )

        # No motion events at all: the caller accepts the risk of a raw sample
        return StabilityReport(
            stable=True,
            overall_stability=1.0,
            sample_count=1,
            position=_position(latest),
            position_source=PositionSource.LATEST_SAMPLE,
            reason="No motion events recorded, using latest raw sample",
        )

    # -- live mode -----------------------------------------------------------

    def _check_live(self, sensor_id: str) -> StabilityReport:
        samples = self._source.samples_since(
            sensor_id, self._clock() - self._window, limit=self._preferred
        )

        if len(samples) < self._min_samples:
            return StabilityReport(
                stable=False,
                overall_stability=0.0,
                sample_count=len(samples),
                observation_period=self._window,
                reason="insufficient data",
            )

        positions = np.array([s.as_tuple() for s in samples], dtype=np.float64)
        variances = np.var(positions, axis=0)
        max_variance = float(np.max(variances))
        overall = max(0.0, min(1.0, 1.0 - max_variance / self._max_variance))
        stable = max_variance <= self._max_variance

        return StabilityReport(
            stable=stable,
            overall_stability=overall,
            sample_count=len(samples),
            variance_x=float(variances[0]),
            variance_y=float(variances[1]),
            variance_z=float(variances[2]),
            observation_period=self._window,
            position=_position(samples[-1]),
            position_source=PositionSource.LIVE_WINDOW,
            reason=None if stable else f"Position variance {max_variance:.3f} exceeds {self._max_variance}",
        )
