"""
Door/window detection engine.

Wires the feature extractor, state classifier and hysteresis stabilizer
into the per-sample ``detect`` entry point, and keeps the per-sensor
runtime state and accuracy window that go with it.

Each sample is processed to completion before the next one. The soft
processing budget only produces a warning; a slow detection is never
aborted or discarded.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from door_sense.config.settings import Settings
from door_sense.sensing.classifier import (
    Certainty,
    DoorState,
    OpeningType,
    StateClassifier,
)
from door_sense.sensing.feature_extractor import AccelFeatureExtractor
from door_sense.sensing.samples import PositionSample
from door_sense.sensing.stabilizer import (
    HysteresisStabilizer,
    SensorStateStore,
    SignatureSample,
)
from door_sense.services.metrics import (
    AccuracyMetrics,
    AccuracyTracker,
    DetectionMetricsService,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetectionResult:
    """Stabilized detection for one sample."""

    sensor_id: str
    door_state: DoorState
    confidence: float                 # percentage, 0 to 95
    opening_type: OpeningType
    angle: float                      # degrees from the closed reference axis
    magnitude: float
    processing_time_ms: float
    raw_state: DoorState              # classifier output before hysteresis
    certainty: Certainty
    needs_confirmation: bool
    timestamp: float

    @property
    def is_open(self) -> bool:
        return self.door_state == DoorState.OPENED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("door_state", "raw_state", "opening_type", "certainty"):
            data[key] = data[key].value
        return data


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class DoorDetectionEngine:
    """
    Stateful door/window detection engine.

    Parameters
    ----------
    extractor : AccelFeatureExtractor, optional
        Feature extractor (created with defaults if not provided).
    classifier : StateClassifier, optional
        Classifier (created with defaults if not provided).
    stabilizer : HysteresisStabilizer, optional
        Debouncer (created with defaults if not provided).
    state_store : SensorStateStore, optional
        Owner of the per-sensor runtime state.
    accuracy_tracker : AccuracyTracker, optional
        Rolling accuracy window.
    metrics : DetectionMetricsService, optional
        Processing statistics.
    processing_budget_ms : float
        Soft per-sample budget; exceeding it logs a warning (default 25).
    clock : callable
        Monotonic clock used for the processing time.
    wall_clock : callable
        Clock used to timestamp results when the caller gives no timestamp.
    """

    def __init__(
        self,
        extractor: Optional[AccelFeatureExtractor] = None,
        classifier: Optional[StateClassifier] = None,
        stabilizer: Optional[HysteresisStabilizer] = None,
        state_store: Optional[SensorStateStore] = None,
        accuracy_tracker: Optional[AccuracyTracker] = None,
        metrics: Optional[DetectionMetricsService] = None,
        processing_budget_ms: float = 25.0,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._extractor = extractor if extractor is not None else AccelFeatureExtractor()
        self._classifier = classifier if classifier is not None else StateClassifier()
        self._stabilizer = stabilizer if stabilizer is not None else HysteresisStabilizer()
        self._states = state_store if state_store is not None else SensorStateStore()
        self._accuracy = accuracy_tracker if accuracy_tracker is not None else AccuracyTracker()
        self._metrics = metrics if metrics is not None else DetectionMetricsService(processing_budget_ms)
        self._budget_ms = processing_budget_ms
        self._clock = clock
        self._wall_clock = wall_clock

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "DoorDetectionEngine":
        """Build an engine whose policy knobs come from ``settings``."""
        return cls(
            classifier=StateClassifier(
                opened_angle=settings.opened_angle_degrees,
                closed_angle=settings.closed_angle_degrees,
                max_confidence=settings.max_confidence,
            ),
            stabilizer=HysteresisStabilizer(settings.hysteresis_degrees),
            state_store=SensorStateStore(settings.runtime_buffer_size),
            accuracy_tracker=AccuracyTracker(
                window_size=settings.accuracy_window_size,
                min_samples=settings.accuracy_min_samples,
                max_accuracy=settings.max_confidence,
            ),
            metrics=DetectionMetricsService(settings.processing_budget_ms),
            processing_budget_ms=settings.processing_budget_ms,
            **kwargs,
        )

    @property
    def state_store(self) -> SensorStateStore:
        return self._states

    @property
    def accuracy_tracker(self) -> AccuracyTracker:
        return self._accuracy

    @property
    def metrics(self) -> DetectionMetricsService:
        return self._metrics

    # -- public API ----------------------------------------------------------

    def detect(
        self,
        sensor_id: str,
        x: float,
        y: float,
        z: float,
        timestamp: Optional[float] = None,
    ) -> DetectionResult:
        """
        Classify one g-force sample and apply per-sensor hysteresis.

        Parameters
        ----------
        sensor_id : str
            Sensor the sample belongs to.
        x, y, z : float
            Acceleration in g.
        timestamp : float, optional
            Sample time (UNIX seconds); defaults to now.

        Returns
        -------
        DetectionResult
        """
        started = self._clock()
        if timestamp is None:
            timestamp = self._wall_clock()

        features = self._extractor.extract(x, y, z)
        classification = self._classifier.classify(features)

        runtime = self._states.get_or_create(sensor_id)
        state = self._stabilizer.apply(runtime, classification.door_state, features.angle_degrees)
        runtime.recent_samples.append(PositionSample(x, y, z, timestamp))
        runtime.recent_signature_samples.append(
            SignatureSample(features.magnitude, features.angle_degrees, timestamp)
        )

        self._accuracy.record(sensor_id, state, classification.confidence, timestamp)

        confidence_pct = min(self._classifier.max_confidence * 100.0, classification.confidence * 100.0)
        processing_ms = (self._clock() - started) * 1000.0

        result = DetectionResult(
            sensor_id=sensor_id,
            door_state=state,
            confidence=confidence_pct,
            opening_type=classification.opening_type,
            angle=features.angle_degrees,
            magnitude=features.magnitude,
            processing_time_ms=processing_ms,
            raw_state=classification.door_state,
            certainty=classification.certainty,
            needs_confirmation=classification.certainty == Certainty.UNCERTAIN,
            timestamp=timestamp,
        )

        self._metrics.record_detection(sensor_id, state, confidence_pct, processing_ms)
        if processing_ms > self._budget_ms:
            logger.warning(
                "Door detection for sensor %s took %.2f ms, over the %.1f ms budget",
                sensor_id, processing_ms, self._budget_ms,
                extra={"sensor_id": sensor_id, "processing_time_ms": processing_ms},
            )

        logger.debug(
            "Sensor %s: angle=%.2f magnitude=%.3f raw=%s state=%s confidence=%.2f%%",
            sensor_id, features.angle_degrees, features.magnitude,
            classification.door_state.value, state.value, confidence_pct,
        )
        return result

    def reset_state(self, sensor_id: str) -> None:
        """Clear the ephemeral runtime state of a sensor; calibration is untouched."""
        existed = self._states.reset(sensor_id)
        self._accuracy.reset(sensor_id)
        logger.info("Runtime state reset for sensor %s (existed=%s)", sensor_id, existed)

    def get_accuracy_metrics(self, sensor_id: str) -> AccuracyMetrics:
        return self._accuracy.get_metrics(sensor_id)
