"""
Accelerometer sample types shared by detection and calibration.

Provides:
    - PositionSample: one raw tri-axial reading in device units
    - MotionEvent: discrete motion-started / motion-stopped notifications
    - RingBuffer: thread-safe bounded history
    - AccelerometerNormalizer: raw device units to g-force conversion
"""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Generic, List, Optional, TypeVar

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionSample:
    """A single tri-axial acceleration reading."""

    x: float
    y: float
    z: float
    timestamp: float = 0.0    # UNIX epoch seconds

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z, self.timestamp))


class MotionEventType(Enum):
    """Discrete movement notifications emitted by the sensor firmware."""

    MOTION_STARTED = "motion-started"
    MOTION_STOPPED = "motion-stopped"


@dataclass(frozen=True)
class MotionEvent:
    """A motion-started / motion-stopped event and the position it reported."""

    event_type: MotionEventType
    timestamp: float
    position: Optional[PositionSample] = None


# ---------------------------------------------------------------------------
# Thread-safe ring buffer
# ---------------------------------------------------------------------------

class RingBuffer(Generic[T]):
    """Thread-safe fixed-size ring buffer."""

    def __init__(self, max_size: int) -> None:
        if max_size < 1:
            raise ValueError("RingBuffer requires a positive max_size")
        self._buf: Deque[T] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._buf.maxlen or 0

    def append(self, item: T) -> None:
        with self._lock:
            self._buf.append(item)

    def get_all(self) -> List[T]:
        """Return a snapshot of all items (oldest first)."""
        with self._lock:
            return list(self._buf)

    def get_last_n(self, n: int) -> List[T]:
        """Return the most recent *n* items."""
        if n <= 0:
            return []
        with self._lock:
            items = list(self._buf)
            return items[-n:] if n < len(items) else items

    def latest(self) -> Optional[T]:
        with self._lock:
            return self._buf[-1] if self._buf else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buf)

    def clear(self) -> None:
        with self._lock:
            self._buf.clear()


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------

class AccelerometerNormalizer:
    """
    Convert raw device units to g-force and back.

    The sensors report each axis as a signed integer where ``scale`` units
    correspond to 1 g (64 for the deployed firmware).
    """

    def __init__(self, scale: float = 64.0) -> None:
        if scale <= 0:
            raise ValueError("scale must be positive")
        self._scale = scale

    @property
    def scale(self) -> float:
        return self._scale

    def normalize(self, sample: PositionSample) -> PositionSample:
        return PositionSample(
            x=sample.x / self._scale,
            y=sample.y / self._scale,
            z=sample.z / self._scale,
            timestamp=sample.timestamp,
        )

    def to_device_units(self, sample: PositionSample) -> PositionSample:
        return PositionSample(
            x=float(round(sample.x * self._scale)),
            y=float(round(sample.y * self._scale)),
            z=float(round(sample.z * self._scale)),
            timestamp=sample.timestamp,
        )
