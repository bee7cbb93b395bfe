"""
Per-sensor runtime state and hysteresis-based state stabilization.

``SensorStateStore`` is the single owner of the ephemeral per-sensor state.
State is created lazily on the first sample for a sensor id and lives until
``reset`` or process restart; it is never persisted.

Samples for one sensor must reach ``HysteresisStabilizer.apply`` in
non-decreasing timestamp order. The store lives in process memory, so an
ingestion layer running several workers must pin each sensor to one worker.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from door_sense.sensing.classifier import DoorState
from door_sense.sensing.samples import PositionSample, RingBuffer

logger = logging.getLogger(__name__)


DEFAULT_BUFFER_SIZE = 50


@dataclass(frozen=True)
class SignatureSample:
    """Derived per-sample signature kept for diagnostics."""

    magnitude: float
    angle_degrees: float
    timestamp: float


@dataclass
class SensorRuntimeState:
    """Ephemeral state for one sensor."""

    sensor_id: str
    buffer_size: int = DEFAULT_BUFFER_SIZE
    previous_angle: Optional[float] = None
    previous_state: Optional[DoorState] = None
    recent_samples: RingBuffer[PositionSample] = field(init=False)
    recent_signature_samples: RingBuffer[SignatureSample] = field(init=False)

    def __post_init__(self) -> None:
        self.recent_samples = RingBuffer(self.buffer_size)
        self.recent_signature_samples = RingBuffer(self.buffer_size)

    @property
    def is_seeded(self) -> bool:
        return self.previous_state is not None

    def commit(self, angle: float, state: DoorState) -> None:
        """Replace the previous angle and state together."""
        self.previous_angle, self.previous_state = angle, state


class SensorStateStore:
    """Keyed store of ``SensorRuntimeState`` objects."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self._buffer_size = buffer_size
        self._states: Dict[str, SensorRuntimeState] = {}
        self._lock = threading.Lock()

    def get_or_create(self, sensor_id: str) -> SensorRuntimeState:
        with self._lock:
            state = self._states.get(sensor_id)
            if state is None:
                state = SensorRuntimeState(sensor_id=sensor_id, buffer_size=self._buffer_size)
                self._states[sensor_id] = state
                logger.debug("Created runtime state for sensor %s", sensor_id)
            return state

    def get(self, sensor_id: str) -> Optional[SensorRuntimeState]:
        with self._lock:
            return self._states.get(sensor_id)

    def reset(self, sensor_id: str) -> bool:
        """Drop the runtime state of one sensor. Returns True if it existed."""
        with self._lock:
            return self._states.pop(sensor_id, None) is not None

    def sensor_ids(self) -> List[str]:
        with self._lock:
            return list(self._states)

    def __contains__(self, sensor_id: object) -> bool:
        with self._lock:
            return sensor_id in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


class HysteresisStabilizer:
    """
    Debounce state flips caused by small tilt jitter.

    With ``delta = |angle - previous_angle|``:

    - first observation: seed the state and return the raw state
    - ``delta < threshold``: keep the previous state
    - ``delta >= threshold``: CLOSED -> OPENED only if the angle rose by more
      than the threshold, OPENED -> CLOSED only if it fell by more than the
      threshold, otherwise accept the raw state

    Parameters
    ----------
    threshold_degrees : float
        Minimum tilt change before a transition is considered (default 2.0).
    """

    def __init__(self, threshold_degrees: float = 2.0) -> None:
        if threshold_degrees < 0:
            raise ValueError("threshold_degrees must be non-negative")
        self._threshold = threshold_degrees

    @property
    def threshold_degrees(self) -> float:
        return self._threshold

    def apply(self, state: SensorRuntimeState, raw_state: DoorState, angle: float) -> DoorState:
        if not state.is_seeded or state.previous_angle is None:
            state.commit(angle, raw_state)
            return raw_state

        previous_angle = state.previous_angle
        previous_state = state.previous_state
        delta = abs(angle - previous_angle)

        if delta >= self._threshold:
            if previous_state == DoorState.CLOSED and angle > previous_angle + self._threshold:
                new_state = DoorState.OPENED
            elif previous_state == DoorState.OPENED and angle < previous_angle - self._threshold:
                new_state = DoorState.CLOSED
            else:
                new_state = raw_state
        else:
            new_state = previous_state

        if new_state != previous_state:
            logger.info(
                "Sensor %s state changed %s -> %s (angle %.2f -> %.2f)",
                state.sensor_id, previous_state.value, new_state.value, previous_angle, angle,
            )

        state.commit(angle, new_state)
        return new_state
