"""
Data types for the calibration subsystem.

Positions here are always in raw device units (the same units the sensor
firmware reports), never normalized g-force.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ComparisonState(str, Enum):
    """Outcome of comparing a live position against the closed reference."""

    CLOSED = "closed"
    OPENED = "opened"
    UNKNOWN = "unknown"


class CalibrationErrorCode(str, Enum):
    NO_STABLE_DATA = "NO_STABLE_DATA"
    NO_RECENT_DATA = "NO_RECENT_DATA"
    INVALID_POSITION = "INVALID_POSITION"
    UNSTABLE_DATA = "UNSTABLE_DATA"
    CALIBRATION_EXISTS = "CALIBRATION_EXISTS"
    NOT_CALIBRATED = "NOT_CALIBRATED"


class HistoryKind(str, Enum):
    CALIBRATION = "calibration"
    RESET = "reset"


class PositionSource(str, Enum):
    """Where the position used by a stability report came from."""

    MOTION_STOPPED = "motion_stopped"
    LATEST_SAMPLE = "latest_sample"
    LIVE_WINDOW = "live_window"
    PROVIDED = "provided"


@dataclass(frozen=True)
class Position:
    """An ``(x, y, z)`` position in device units."""

    x: float
    y: float
    z: float

    def delta(self, other: "Position") -> "Position":
        """Signed per-axis difference ``self - other``."""
        return Position(self.x - other.x, self.y - other.y, self.z - other.z)

    def max_abs_delta(self, other: "Position") -> float:
        d = self.delta(other)
        return max(abs(d.x), abs(d.y), abs(d.z))

    def within(self, other: "Position", tolerance: float) -> bool:
        d = self.delta(other)
        return abs(d.x) <= tolerance and abs(d.y) <= tolerance and abs(d.z) <= tolerance

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(x=float(data["x"]), y=float(data["y"]), z=float(data["z"]))


@dataclass(frozen=True)
class CalibrationRecord:
    """The active closed-position reference of one sensor."""

    sensor_id: str
    closed_reference: Position
    tolerance: float
    confidence: float                 # 0.0 to 1.0
    calibrated_at: datetime
    calibrated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    def with_reference(self, reference: Position, updated_at: datetime) -> "CalibrationRecord":
        return replace(self, closed_reference=reference, updated_at=updated_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "closed_reference": self.closed_reference.to_dict(),
            "tolerance": self.tolerance,
            "confidence": self.confidence,
            "calibrated_at": self.calibrated_at.isoformat(),
            "calibrated_by": self.calibrated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationRecord":
        updated_at = data.get("updated_at")
        return cls(
            sensor_id=data["sensor_id"],
            closed_reference=Position.from_dict(data["closed_reference"]),
            tolerance=float(data["tolerance"]),
            confidence=float(data["confidence"]),
            calibrated_at=datetime.fromisoformat(data["calibrated_at"]),
            calibrated_by=data.get("calibrated_by"),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )


@dataclass(frozen=True)
class CalibrationHistoryEntry:
    """
    One past calibration event.

    ``record`` is the calibration written (for CALIBRATION) or removed (for
    RESET); ``previous`` is the record a calibration replaced, if any.
    """

    kind: HistoryKind
    record: CalibrationRecord
    timestamp: datetime
    previous: Optional[CalibrationRecord] = None
    reason: Optional[str] = None

    @property
    def replaced_previous(self) -> bool:
        return self.previous is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "record": self.record.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "previous": self.previous.to_dict() if self.previous else None,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationHistoryEntry":
        previous = data.get("previous")
        return cls(
            kind=HistoryKind(data["kind"]),
            record=CalibrationRecord.from_dict(data["record"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            previous=CalibrationRecord.from_dict(previous) if previous else None,
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class CalibrationError:
    """Recoverable calibration failure, meant for operator-facing display."""

    code: CalibrationErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StabilityReport:
    """Whether a sensor's position is trustworthy enough to calibrate from."""

    stable: bool
    overall_stability: float          # 0.0 to 1.0
    sample_count: int
    variance_x: float = 0.0
    variance_y: float = 0.0
    variance_z: float = 0.0
    observation_period: float = 0.0   # seconds
    position: Optional[Position] = None
    position_source: Optional[PositionSource] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stable": self.stable,
            "overall_stability": self.overall_stability,
            "sample_count": self.sample_count,
            "variance_x": self.variance_x,
            "variance_y": self.variance_y,
            "variance_z": self.variance_z,
            "observation_period": self.observation_period,
            "position": self.position.to_dict() if self.position else None,
            "position_source": self.position_source.value if self.position_source else None,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of a calibration attempt."""

    success: bool
    record: Optional[CalibrationRecord] = None
    previous: Optional[CalibrationRecord] = None
    stability: Optional[StabilityReport] = None
    error: Optional[CalibrationError] = None

    @property
    def replaced_previous(self) -> bool:
        return self.previous is not None

    @classmethod
    def failure(cls, code: CalibrationErrorCode, message: str,
                stability: Optional[StabilityReport] = None, **details: Any) -> "CalibrationResult":
        return cls(success=False, stability=stability,
                   error=CalibrationError(code=code, message=message, details=details))


@dataclass(frozen=True)
class ResetResult:
    """Outcome of a calibration reset."""

    removed: Optional[CalibrationRecord]
    reset_at: datetime
    reason: Optional[str] = None


@dataclass(frozen=True)
class PositionValidation:
    """Detailed comparison of a live position against the closed reference."""

    door_state: ComparisonState
    current_position: Position
    calibrated_position: Position
    differences: Position
    tolerance: float
    confidence: float

    @property
    def within_tolerance(self) -> bool:
        return self.door_state == ComparisonState.CLOSED


@dataclass(frozen=True)
class CalibrationStatistics:
    calibrations_count: int
    last_calibrated_at: Optional[datetime]
    last_confidence: float


@dataclass(frozen=True)
class CalibrationInfo:
    """Active calibration plus summary statistics, for display and audit."""

    sensor_id: str
    calibrated: bool
    record: Optional[CalibrationRecord]
    statistics: CalibrationStatistics
    current_position: Optional[Position] = None
    current_state: ComparisonState = ComparisonState.UNKNOWN
    history: List[CalibrationHistoryEntry] = field(default_factory=list)
