"""
Calibration storage.

A store holds, per sensor, at most one active ``CalibrationRecord`` and a
bounded history of past calibration events. Stores never mutate a saved
snapshot in place: callers load a ``SensorCalibration``, derive a new one
and save it back, which replaces the sensor's entry atomically.

Writes for one sensor are serialized with ``locked(sensor_id)``; ``save``
additionally checks the snapshot version so a lost update is detected
instead of silently overwriting history.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from door_sense.calibration.models import CalibrationHistoryEntry, CalibrationRecord

logger = logging.getLogger(__name__)


DEFAULT_HISTORY_SIZE = 10


class CalibrationStoreError(Exception):
    """Raised when calibration data cannot be read or written."""
    pass


class ConcurrentUpdateError(CalibrationStoreError):
    """Raised when a snapshot was modified since it was loaded."""
    pass


@dataclass(frozen=True)
class SensorCalibration:
    """Immutable snapshot of one sensor's calibration state."""

    sensor_id: str
    active: Optional[CalibrationRecord] = None
    history: Tuple[CalibrationHistoryEntry, ...] = ()
    version: int = 0

    def with_active(
        self,
        active: Optional[CalibrationRecord],
        entry: Optional[CalibrationHistoryEntry] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> "SensorCalibration":
        """New snapshot with ``active`` set and ``entry`` appended, oldest entries dropped first."""
        history = self.history
        if entry is not None:
            history = (history + (entry,))[-history_size:]
        return replace(self, active=active, history=history)


@runtime_checkable
class CalibrationStore(Protocol):
    """Durable get/replace of one ``SensorCalibration`` per sensor."""

    def load(self, sensor_id: str) -> SensorCalibration: ...

    def save(self, calibration: SensorCalibration) -> SensorCalibration: ...

    def locked(self, sensor_id: str) -> ContextManager[None]: ...

    def sensor_ids(self) -> List[str]: ...


class SensorLocks:
    """Lazily created per-sensor locks."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def locked(self, sensor_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(sensor_id, threading.RLock())
        with lock:
            yield


class InMemoryCalibrationStore(SensorLocks):
    """Process-local calibration store."""

    def __init__(self) -> None:
        super().__init__()
        self._data: Dict[str, SensorCalibration] = {}
        self._data_lock = threading.Lock()

    def load(self, sensor_id: str) -> SensorCalibration:
        with self._data_lock:
            return self._data.get(sensor_id) or SensorCalibration(sensor_id=sensor_id)

    def save(self, calibration: SensorCalibration) -> SensorCalibration:
        with self._data_lock:
            current = self._data.get(calibration.sensor_id)
            current_version = current.version if current else 0
            if calibration.version != current_version:
                raise ConcurrentUpdateError(
                    f"Calibration of sensor {calibration.sensor_id} changed "
                    f"(version {current_version}, expected {calibration.version})"
                )
            saved = replace(calibration, version=current_version + 1)
            self._data[calibration.sensor_id] = saved
            return saved

    def sensor_ids(self) -> List[str]:
        with self._data_lock:
            return list(self._data)
