"""
Calibration service: anchors the closed reference position of each sensor.

Failures are returned as ``CalibrationResult`` values carrying a
``CalibrationError`` code, never raised into the ingestion pipeline. All of
them are recoverable; the caller may retry once the sensor has settled.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from door_sense.calibration.models import (
    CalibrationErrorCode,
    CalibrationHistoryEntry,
    CalibrationInfo,
    CalibrationRecord,
    CalibrationResult,
    CalibrationStatistics,
    ComparisonState,
    HistoryKind,
    Position,
    PositionSource,
    PositionValidation,
    ResetResult,
    StabilityReport,
)
from door_sense.calibration.stability import StabilityAnalyzer
from door_sense.calibration.store import CalibrationStore, SensorCalibration
from door_sense.config.settings import Settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CalibrationService:
    """Calibrate, compare and audit closed reference positions."""

    MAX_HISTORY_LIMIT = 50

    def __init__(
        self,
        store: CalibrationStore,
        stability: StabilityAnalyzer,
        tolerance: float = 0.5,
        position_min: float = -127,
        position_max: float = 127,
        history_size: int = 10,
        drift_weight: float = 0.1,
        drift_max_step: float = 0.5,
        now: Callable[[], datetime] = _utcnow,
    ):
        if position_min >= position_max:
            raise ValueError("position_min must be lower than position_max")
        self.store = store
        self.stability = stability
        self.tolerance = tolerance
        self.position_min = position_min
        self.position_max = position_max
        self.history_size = history_size
        self.drift_weight = drift_weight
        self.drift_max_step = drift_max_step
        self._now = now

    @classmethod
    def from_settings(cls, settings: Settings, store: CalibrationStore,
                      stability: StabilityAnalyzer, **kwargs) -> "CalibrationService":
        return cls(
            store=store,
            stability=stability,
            tolerance=settings.position_tolerance,
            position_min=settings.position_min,
            position_max=settings.position_max,
            history_size=settings.calibration_history_size,
            drift_weight=settings.reference_drift_weight,
            drift_max_step=settings.reference_drift_max_step,
            **kwargs,
        )

    # -- calibration ---------------------------------------------------------

    def calibrate(
        self,
        sensor_id: str,
        position: Optional[Position] = None,
        calibrated_by: Optional[str] = None,
        override_existing: bool = True,
    ) -> CalibrationResult:
        """Record the current position as the sensor's closed reference.

        Args:
            sensor_id: Sensor to calibrate
            position: Explicit position in device units; taken from the last
                stable telemetry when omitted
            calibrated_by: Operator identifier kept for audit
            override_existing: When False, an existing calibration is kept
                and ``CALIBRATION_EXISTS`` is returned

        Returns:
            CalibrationResult with the new record and the one it replaced
        """
        logger.info("Starting door position calibration for sensor %s", sensor_id)

        report = self.stability.check(sensor_id, for_calibration=True)

        if position is None:
            if not report.stable or report.position is None:
                return self._fail(
                    sensor_id, CalibrationErrorCode.NO_STABLE_DATA,
                    "No stable position available for calibration. Make sure the sensor "
                    "has reported a motion-stopped event and has not moved since.",
                    report,
                )
            position = report.position
        elif not report.stable and not self.stability.has_telemetry(sensor_id):
            # Fresh sensor: the provided position is the only data there is
            report = StabilityReport(
                stable=True,
                overall_stability=1.0,
                sample_count=0,
                position=position,
                position_source=PositionSource.PROVIDED,
                reason="Provided position, no telemetry recorded yet",
            )
        else:
            report = StabilityReport(
                stable=report.stable,
                overall_stability=report.overall_stability,
                sample_count=report.sample_count,
                position=position,
                position_source=PositionSource.PROVIDED,
                reason=report.reason,
            )

        if not self.is_valid_position(position):
            return self._fail(
                sensor_id, CalibrationErrorCode.INVALID_POSITION,
                f"Position values outside the device range [{self.position_min}, {self.position_max}]",
                report, position=position.to_dict(),
            )

        if not report.stable:
            return self._fail(
                sensor_id, CalibrationErrorCode.UNSTABLE_DATA,
                "Sensor values are not stable, hold the opening still and retry",
                report,
            )

        with self.store.locked(sensor_id):
            current = self.store.load(sensor_id)
            previous = current.active
            if previous is not None and not override_existing:
                return self._fail(
                    sensor_id, CalibrationErrorCode.CALIBRATION_EXISTS,
                    "Sensor is already calibrated, pass override_existing to replace it",
                    report, existing=previous.to_dict(),
                )

            now = self._now()
            record = CalibrationRecord(
                sensor_id=sensor_id,
                closed_reference=position,
                tolerance=self.tolerance,
                confidence=report.overall_stability,
                calibrated_at=now,
                calibrated_by=calibrated_by,
            )
            entry = CalibrationHistoryEntry(
                kind=HistoryKind.CALIBRATION,
                record=record,
                timestamp=now,
                previous=previous,
            )
            self.store.save(current.with_active(record, entry, self.history_size))

        logger.info(
            "Door position calibration completed for sensor %s: %s (replaced previous: %s)",
            sensor_id, position.to_dict(), previous is not None,
        )
        return CalibrationResult(success=True, record=record, previous=previous, stability=report)

    def check_stability(self, sensor_id: str, for_calibration: bool = False) -> StabilityReport:
        return self.stability.check(sensor_id, for_calibration=for_calibration)

    def is_valid_position(self, position: Position) -> bool:
        for axis, value in position.to_dict().items():
            if not self.position_min <= value <= self.position_max:
                logger.warning(
                    "Position value out of range: axis=%s value=%s range=[%s, %s]",
                    axis, value, self.position_min, self.position_max,
                )
                return False
        return True

    # -- comparison ----------------------------------------------------------

    def compare(self, sensor_id: str, position: Position) -> ComparisonState:
        """CLOSED iff every axis is within tolerance of the reference."""
        record = self.store.load(sensor_id).active
        if record is None:
            return ComparisonState.UNKNOWN
        if position.within(record.closed_reference, record.tolerance):
            return ComparisonState.CLOSED
        return ComparisonState.OPENED

    def validate_position(self, sensor_id: str, position: Optional[Position] = None):
        """Compare a position against the reference with per-axis detail.

        Returns a ``PositionValidation`` or a failed ``CalibrationResult``.
        """
        if position is None:
            position = self.stability.current_position(sensor_id)
            if position is None:
                return CalibrationResult.failure(
                    CalibrationErrorCode.NO_RECENT_DATA, "No current position available"
                )

        record = self.store.load(sensor_id).active
        if record is None:
            return CalibrationResult.failure(
                CalibrationErrorCode.NOT_CALIBRATED, "Sensor not calibrated"
            )

        within = position.within(record.closed_reference, record.tolerance)
        return PositionValidation(
            door_state=ComparisonState.CLOSED if within else ComparisonState.OPENED,
            current_position=position,
            calibrated_position=record.closed_reference,
            differences=position.delta(record.closed_reference),
            tolerance=record.tolerance,
            confidence=record.confidence,
        )

    def adapt_reference(self, sensor_id: str, position: Position) -> Optional[CalibrationRecord]:
        """Move the reference slightly toward a position that compares closed.

        Weighted average of old and new reference, rounded to two decimals;
        rejected when any axis would move by more than ``drift_max_step``.
        Drift updates are not calibration events and add no history entry.
        """
        with self.store.locked(sensor_id):
            current = self.store.load(sensor_id)
            record = current.active
            if record is None or not position.within(record.closed_reference, record.tolerance):
                return None

            old = record.closed_reference
            w = self.drift_weight
            new = Position(
                x=round(old.x * (1 - w) + position.x * w, 2),
                y=round(old.y * (1 - w) + position.y * w, 2),
                z=round(old.z * (1 - w) + position.z * w, 2),
            )
            step = new.max_abs_delta(old)
            if step > self.drift_max_step or new == old:
                return None

            updated = record.with_reference(new, self._now())
            self.store.save(current.with_active(updated))

        logger.debug("Reference drift applied for sensor %s: %s -> %s", sensor_id, old, new)
        return updated

    # -- reset and audit -----------------------------------------------------

    def reset(self, sensor_id: str, reason: Optional[str] = None) -> ResetResult:
        """Remove the active calibration; the removed record goes to history."""
        with self.store.locked(sensor_id):
            current = self.store.load(sensor_id)
            removed = current.active
            now = self._now()
            if removed is not None:
                entry = CalibrationHistoryEntry(
                    kind=HistoryKind.RESET, record=removed, timestamp=now, reason=reason,
                )
                self.store.save(current.with_active(None, entry, self.history_size))

        logger.info("Calibration reset for sensor %s (reason: %s, had calibration: %s)",
                    sensor_id, reason, removed is not None)
        return ResetResult(removed=removed, reset_at=now, reason=reason)

    def get_history(
        self,
        sensor_id: str,
        limit: int = 10,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[CalibrationHistoryEntry]:
        """History entries newest first, optionally filtered by time range."""
        limit = min(self.MAX_HISTORY_LIMIT, max(1, limit))
        since = _as_utc(since) if since is not None else None
        until = _as_utc(until) if until is not None else None
        entries = [
            entry for entry in self.store.load(sensor_id).history
            if (since is None or _as_utc(entry.timestamp) >= since)
            and (until is None or _as_utc(entry.timestamp) <= until)
        ]
        entries.sort(key=lambda entry: _as_utc(entry.timestamp), reverse=True)
        return entries[:limit]

    def get_info(self, sensor_id: str) -> CalibrationInfo:
        snapshot: SensorCalibration = self.store.load(sensor_id)
        record = snapshot.active
        current_position = self.stability.current_position(sensor_id)

        current_state = ComparisonState.UNKNOWN
        if record is not None and current_position is not None:
            current_state = (
                ComparisonState.CLOSED
                if current_position.within(record.closed_reference, record.tolerance)
                else ComparisonState.OPENED
            )

        statistics = CalibrationStatistics(
            calibrations_count=sum(1 for e in snapshot.history if e.kind == HistoryKind.CALIBRATION),
            last_calibrated_at=record.calibrated_at if record else None,
            last_confidence=record.confidence if record else 0.0,
        )
        return CalibrationInfo(
            sensor_id=sensor_id,
            calibrated=record is not None,
            record=record,
            statistics=statistics,
            current_position=current_position,
            current_state=current_state,
            history=list(snapshot.history),
        )

    # -- internals -----------------------------------------------------------

    def _fail(self, sensor_id: str, code: CalibrationErrorCode, message: str,
              report: Optional[StabilityReport] = None, **details) -> CalibrationResult:
        logger.warning("Calibration of sensor %s failed: %s (%s)", sensor_id, code.value, message)
        return CalibrationResult.failure(code, message, stability=report, **details)
