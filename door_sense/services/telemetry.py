"""
In-memory telemetry history per sensor.

Keeps the recent raw position samples and motion events of every sensor so
the stability analyzer can judge whether a position is trustworthy. Samples
and events for one sensor are expected in non-decreasing timestamp order.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from door_sense.sensing.samples import (
    MotionEvent,
    MotionEventType,
    PositionSample,
    RingBuffer,
)

logger = logging.getLogger(__name__)


class TelemetryHistory:
    """
    Bounded per-sensor history of raw samples and motion events.

    Parameters
    ----------
    max_samples : int
        Samples kept per sensor (default 500).
    max_events : int
        Motion events kept per sensor (default 100).
    """

    def __init__(self, max_samples: int = 500, max_events: int = 100) -> None:
        self._max_samples = max_samples
        self._max_events = max_events
        self._samples: Dict[str, RingBuffer[PositionSample]] = {}
        self._events: Dict[str, RingBuffer[MotionEvent]] = {}
        self._lock = threading.Lock()

    # -- writes --------------------------------------------------------------

    def record_sample(self, sensor_id: str, sample: PositionSample) -> None:
        self._buffer(self._samples, sensor_id, self._max_samples).append(sample)

    def record_event(self, sensor_id: str, event: MotionEvent) -> None:
        self._buffer(self._events, sensor_id, self._max_events).append(event)
        if event.position is not None:
            self.record_sample(sensor_id, event.position)
        logger.debug("Sensor %s reported %s", sensor_id, event.event_type.value)

    def sensor_ids(self) -> List[str]:
        with self._lock:
            return sorted(set(self._samples) | set(self._events))

    def clear(self, sensor_id: str) -> None:
        with self._lock:
            self._samples.pop(sensor_id, None)
            self._events.pop(sensor_id, None)

    # -- TelemetrySource -----------------------------------------------------

    def latest_event(self, sensor_id: str, event_type: MotionEventType) -> Optional[MotionEvent]:
        for event in reversed(self._snapshot(self._events, sensor_id)):
            if event.event_type == event_type:
                return event
        return None

    def has_event_since(self, sensor_id: str, event_type: MotionEventType, since: float) -> bool:
        return any(
            event.event_type == event_type and event.timestamp > since
            for event in self._snapshot(self._events, sensor_id)
        )

    def latest_sample(self, sensor_id: str) -> Optional[PositionSample]:
        with self._lock:
            buf = self._samples.get(sensor_id)
        return buf.latest() if buf is not None else None

    def samples_since(self, sensor_id: str, since: float, limit: Optional[int] = None) -> List[PositionSample]:
        """Samples newer than or at ``since``, oldest first, at most the last ``limit``."""
        recent = [s for s in self._snapshot(self._samples, sensor_id) if s.timestamp >= since]
        if limit is not None and limit < len(recent):
            recent = recent[-limit:]
        return recent

    # -- internals -----------------------------------------------------------

    def _buffer(self, table: Dict[str, RingBuffer], sensor_id: str, size: int) -> RingBuffer:
        with self._lock:
            buf = table.get(sensor_id)
            if buf is None:
                buf = RingBuffer(size)
                table[sensor_id] = buf
            return buf

    def _snapshot(self, table: Dict[str, RingBuffer], sensor_id: str) -> list:
        with self._lock:
            buf = table.get(sensor_id)
        return buf.get_all() if buf is not None else []
