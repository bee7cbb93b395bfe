"""
Metrics collection for the detection engine
"""

import logging
import threading
import time
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from collections import defaultdict, deque

from door_sense.sensing.classifier import DoorState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccuracyEntry:
    """One stabilized detection as seen by the accuracy tracker."""
    state: DoorState
    confidence: float       # 0.0 to 1.0
    timestamp: float


@dataclass(frozen=True)
class AccuracyMetrics:
    """Rolling accuracy estimate for one sensor, in percent."""
    accuracy: float
    confidence: float
    stability: float
    samples: int
    state_changes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accuracy": self.accuracy,
            "confidence": self.confidence,
            "stability": self.stability,
            "samples": self.samples,
            "state_changes": self.state_changes,
        }


class AccuracyTracker:
    """Rolling confidence and state-change statistics per sensor.

    Observational only: nothing here feeds back into classification.
    """

    def __init__(self, window_size: int = 100, min_samples: int = 10, max_accuracy: float = 0.95):
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.window_size = window_size
        self.min_samples = min_samples
        self.max_accuracy = max_accuracy
        self._windows: Dict[str, deque] = {}
        self._lock = threading.Lock()

    def record(self, sensor_id: str, state: DoorState, confidence: float,
               timestamp: Optional[float] = None) -> None:
        """Add a detection to the sensor's window."""
        entry = AccuracyEntry(
            state=state,
            confidence=confidence,
            timestamp=time.time() if timestamp is None else timestamp,
        )
        with self._lock:
            window = self._windows.get(sensor_id)
            if window is None:
                window = deque(maxlen=self.window_size)
                self._windows[sensor_id] = window
            window.append(entry)

    def entries(self, sensor_id: str) -> List[AccuracyEntry]:
        with self._lock:
            return list(self._windows.get(sensor_id, ()))

    def reset(self, sensor_id: str) -> None:
        with self._lock:
            self._windows.pop(sensor_id, None)

    def get_metrics(self, sensor_id: str) -> AccuracyMetrics:
        """Compute accuracy, average confidence and stability for a sensor.

        ``accuracy = min(max_accuracy, avg_confidence * (1 - change_rate) * 1.1)``
        where ``change_rate`` is the share of consecutive entries whose state
        differs. Below ``min_samples`` entries only the sample count is reported.
        """
        history = self.entries(sensor_id)
        samples = len(history)

        if samples < max(1, self.min_samples):
            return AccuracyMetrics(accuracy=0.0, confidence=0.0, stability=0.0,
                                   samples=samples, state_changes=0)

        avg_confidence = sum(e.confidence for e in history) / samples
        state_changes = sum(
            1 for previous, current in zip(history, history[1:])
            if previous.state != current.state
        )
        stability = 1.0 - state_changes / samples
        accuracy = min(self.max_accuracy, avg_confidence * stability * 1.1)

        return AccuracyMetrics(
            accuracy=round(accuracy * 100, 2),
            confidence=round(avg_confidence * 100, 2),
            stability=round(stability * 100, 2),
            samples=samples,
            state_changes=state_changes,
        )


@dataclass
class SensorDetectionMetrics:
    """Processing statistics for one sensor."""
    total_detections: int = 0
    slow_detections: int = 0
    processing_times: deque = field(default_factory=lambda: deque(maxlen=100))
    confidence_scores: deque = field(default_factory=lambda: deque(maxlen=100))
    state_counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    @property
    def average_processing_time(self) -> float:
        if not self.processing_times:
            return 0.0
        return sum(self.processing_times) / len(self.processing_times)

    @property
    def average_confidence(self) -> float:
        if not self.confidence_scores:
            return 0.0
        return sum(self.confidence_scores) / len(self.confidence_scores)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "slow_detections": self.slow_detections,
            "average_processing_time_ms": self.average_processing_time,
            "average_confidence": self.average_confidence,
            "state_counts": dict(self.state_counts),
        }


class DetectionMetricsService:
    """Tracks processing time, confidence and state counts per sensor."""

    def __init__(self, processing_budget_ms: float = 25.0, history_size: int = 100):
        self.processing_budget_ms = processing_budget_ms
        self.history_size = history_size
        self._sensors: Dict[str, SensorDetectionMetrics] = {}
        self._lock = threading.Lock()

    def _new_metrics(self) -> SensorDetectionMetrics:
        return SensorDetectionMetrics(
            processing_times=deque(maxlen=self.history_size),
            confidence_scores=deque(maxlen=self.history_size),
        )

    def record_detection(self, sensor_id: str, state: DoorState,
                         confidence: float, processing_time_ms: float) -> None:
        """Record one detection; confidence is a percentage."""
        with self._lock:
            metrics = self._sensors.get(sensor_id)
            if metrics is None:
                metrics = self._new_metrics()
                self._sensors[sensor_id] = metrics

            metrics.total_detections += 1
            metrics.processing_times.append(processing_time_ms)
            metrics.confidence_scores.append(confidence)
            metrics.state_counts[state.value] += 1
            if processing_time_ms > self.processing_budget_ms:
                metrics.slow_detections += 1

    def get_metrics(self, sensor_id: str) -> Dict[str, Any]:
        with self._lock:
            metrics = self._sensors.get(sensor_id) or self._new_metrics()
            return metrics.to_dict()

    def get_global_metrics(self) -> Dict[str, Any]:
        """Aggregate metrics across all sensors."""
        with self._lock:
            sensors = list(self._sensors.values())

        processing_times: List[float] = []
        confidence_scores: List[float] = []
        state_counts: Dict[str, int] = defaultdict(int)
        for metrics in sensors:
            processing_times.extend(metrics.processing_times)
            confidence_scores.extend(metrics.confidence_scores)
            for state, count in metrics.state_counts.items():
                state_counts[state] += count

        return {
            "sensors": len(sensors),
            "total_detections": sum(m.total_detections for m in sensors),
            "slow_detections": sum(m.slow_detections for m in sensors),
            "average_processing_time_ms": (
                sum(processing_times) / len(processing_times) if processing_times else 0.0
            ),
            "average_confidence": (
                sum(confidence_scores) / len(confidence_scores) if confidence_scores else 0.0
            ),
            "state_counts": dict(state_counts),
        }

    def reset(self, sensor_id: str) -> None:
        with self._lock:
            self._sensors.pop(sensor_id, None)
