"""
Telemetry ingestion pipeline.

Validates inbound sensor messages at the boundary, records them in the
telemetry history used by calibration, converts raw device units to g-force
and hands each sample to the detection engine.
"""

import logging
import math
import time
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from door_sense.calibration.models import (
    CalibrationResult,
    ComparisonState,
    Position,
    StabilityReport,
)
from door_sense.calibration.service import CalibrationService
from door_sense.calibration.sql_store import build_store
from door_sense.calibration.stability import StabilityAnalyzer
from door_sense.calibration.store import CalibrationStore, CalibrationStoreError
from door_sense.config.settings import Settings
from door_sense.sensing.engine import DetectionResult, DoorDetectionEngine
from door_sense.sensing.samples import (
    AccelerometerNormalizer,
    MotionEvent,
    MotionEventType,
    PositionSample,
)
from door_sense.services.metrics import AccuracyMetrics
from door_sense.services.telemetry import TelemetryHistory

logger = logging.getLogger(__name__)


class TelemetryMessage(BaseModel):
    """One accelerometer reading as published by a sensor, in device units."""

    sensor_id: str = Field(..., description="Sensor identifier")
    x: float = Field(..., strict=True, description="X axis in raw device units")
    y: float = Field(..., strict=True, description="Y axis in raw device units")
    z: float = Field(..., strict=True, description="Z axis in raw device units")
    timestamp: Optional[float] = Field(
        default=None,
        strict=True,
        description="UNIX seconds; receive time is used when missing"
    )
    event: Optional[MotionEventType] = Field(
        default=None,
        description="Motion event reported together with this position"
    )

    @field_validator("sensor_id")
    @classmethod
    def validate_sensor_id(cls, v):
        """Reject blank sensor identifiers."""
        v = v.strip()
        if not v:
            raise ValueError("sensor_id must not be empty")
        return v

    @field_validator("x", "y", "z", "timestamp")
    @classmethod
    def validate_finite(cls, v):
        """Reject NaN and infinite readings."""
        if v is not None and not math.isfinite(v):
            raise ValueError("value must be finite")
        return v


class IngestionPipeline:
    """
    Entry point for sensor telemetry.

    Parameters
    ----------
    engine : DoorDetectionEngine
        Detection engine fed with g-force samples.
    calibration : CalibrationService
        Calibration subsystem sharing ``history`` as its telemetry source.
    history : TelemetryHistory
        Recent raw samples and motion events per sensor.
    normalizer : AccelerometerNormalizer, optional
        Device unit conversion (64 units per g by default).
    drift_enabled : bool
        Let closed readings nudge the calibration reference (default False).
    clock : callable
        Wall clock used when a message carries no timestamp.
    """

    def __init__(
        self,
        engine: DoorDetectionEngine,
        calibration: CalibrationService,
        history: TelemetryHistory,
        normalizer: Optional[AccelerometerNormalizer] = None,
        drift_enabled: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.engine = engine
        self.calibration = calibration
        self.history = history
        self.normalizer = normalizer if normalizer is not None else AccelerometerNormalizer()
        self.drift_enabled = drift_enabled
        self._clock = clock
        self._dropped = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[CalibrationStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> "IngestionPipeline":
        """Wire engine, telemetry history and calibration from ``settings``."""
        history = TelemetryHistory()
        analyzer = StabilityAnalyzer(
            history,
            max_variance=settings.max_position_variance,
            window_seconds=settings.stability_window_seconds,
            min_samples=settings.min_stability_samples,
            preferred_samples=settings.preferred_stability_samples,
            clock=clock,
        )
        if store is None:
            store = build_store(settings.database_url, echo=settings.db_echo)
        calibration = CalibrationService.from_settings(settings, store, analyzer)
        return cls(
            engine=DoorDetectionEngine.from_settings(settings, wall_clock=clock),
            calibration=calibration,
            history=history,
            normalizer=AccelerometerNormalizer(settings.device_scale),
            drift_enabled=settings.reference_drift_enabled,
            clock=clock,
        )

    @property
    def dropped_count(self) -> int:
        """Messages rejected at validation so far."""
        return self._dropped

    # -- ingestion -----------------------------------------------------------

    def handle(self, message: Mapping[str, Any]) -> Optional[DetectionResult]:
        """
        Process one raw telemetry message.

        Malformed messages are dropped and counted, never raised.

        Returns
        -------
        DetectionResult or None
            None when the message was dropped.
        """
        try:
            msg = TelemetryMessage.model_validate(message)
        except ValidationError as e:
            self._dropped += 1
            logger.warning(
                "Dropping malformed telemetry message (%d dropped so far): %s",
                self._dropped, "; ".join(err["msg"] for err in e.errors()),
                extra={"sensor_id": message.get("sensor_id") if isinstance(message, Mapping) else None},
            )
            return None

        timestamp = msg.timestamp if msg.timestamp is not None else self._clock()
        sample = PositionSample(msg.x, msg.y, msg.z, timestamp)

        if msg.event is not None:
            self.history.record_event(msg.sensor_id, MotionEvent(msg.event, timestamp, sample))
        else:
            self.history.record_sample(msg.sensor_id, sample)

        g = self.normalizer.normalize(sample)
        result = self.engine.detect(msg.sensor_id, g.x, g.y, g.z, timestamp)

        if self.drift_enabled:
            try:
                self.calibration.adapt_reference(msg.sensor_id, Position(msg.x, msg.y, msg.z))
            except CalibrationStoreError as e:
                logger.error(
                    "Reference drift update failed for sensor %s: %s", msg.sensor_id, e,
                    extra={"sensor_id": msg.sensor_id},
                )

        return result

    def handle_event(
        self,
        sensor_id: str,
        event_type: MotionEventType,
        position: Optional[Position] = None,
        timestamp: Optional[float] = None,
    ) -> None:
        """Record a motion event that is not tied to a detection."""
        if timestamp is None:
            timestamp = self._clock()
        sample = None
        if position is not None:
            sample = PositionSample(position.x, position.y, position.z, timestamp)
        self.history.record_event(sensor_id, MotionEvent(event_type, timestamp, sample))

    # -- calibration ---------------------------------------------------------

    def calibrate(
        self,
        sensor_id: str,
        position: Optional[Position] = None,
        calibrated_by: Optional[str] = None,
        override_existing: bool = True,
    ) -> CalibrationResult:
        return self.calibration.calibrate(
            sensor_id,
            position=position,
            calibrated_by=calibrated_by,
            override_existing=override_existing,
        )

    def compare(self, sensor_id: str, position: Position) -> ComparisonState:
        return self.calibration.compare(sensor_id, position)

    def check_stability(self, sensor_id: str, for_calibration: bool = False) -> StabilityReport:
        return self.calibration.check_stability(sensor_id, for_calibration=for_calibration)

    # -- runtime state -------------------------------------------------------

    def reset_state(self, sensor_id: str) -> None:
        self.engine.reset_state(sensor_id)

    def get_accuracy_metrics(self, sensor_id: str) -> AccuracyMetrics:
        return self.engine.get_accuracy_metrics(sensor_id)

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.engine.metrics.get_global_metrics()
        stats["dropped_messages"] = self._dropped
        return stats
