"""
Closed-position calibration
===========================

Stores a closed reference position per sensor, compares live positions
against it and keeps a bounded audit history. Positions are raw device
units.
"""

from door_sense.calibration.models import (
    CalibrationError,
    CalibrationErrorCode,
    CalibrationHistoryEntry,
    CalibrationInfo,
    CalibrationRecord,
    CalibrationResult,
    ComparisonState,
    HistoryKind,
    Position,
    PositionValidation,
    ResetResult,
    StabilityReport,
)
from door_sense.calibration.stability import StabilityAnalyzer, TelemetrySource
from door_sense.calibration.store import (
    CalibrationStore,
    CalibrationStoreError,
    ConcurrentUpdateError,
    InMemoryCalibrationStore,
    SensorCalibration,
)
from door_sense.calibration.sql_store import SqlCalibrationStore, build_store
from door_sense.calibration.service import CalibrationService

__all__ = [
    "CalibrationError",
    "CalibrationErrorCode",
    "CalibrationHistoryEntry",
    "CalibrationInfo",
    "CalibrationRecord",
    "CalibrationResult",
    "ComparisonState",
    "HistoryKind",
    "Position",
    "PositionValidation",
    "ResetResult",
    "StabilityReport",
    "StabilityAnalyzer",
    "TelemetrySource",
    "CalibrationStore",
    "CalibrationStoreError",
    "ConcurrentUpdateError",
    "InMemoryCalibrationStore",
    "SensorCalibration",
    "SqlCalibrationStore",
    "build_store",
    "CalibrationService",
]
