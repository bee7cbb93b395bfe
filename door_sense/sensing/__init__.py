"""
Door/window state detection
===========================

Classifies single accelerometer samples as opened or closed and stabilizes
the result per sensor.

Components:
    - samples: sample types, ring buffer and device unit conversion
    - feature_extractor: magnitude, tilt angle and signal clarity
    - classifier: opened/closed decision with confidence and opening type
    - stabilizer: per-sensor runtime state and angle hysteresis
    - signal_quality: advisory signal quality report
    - engine: the ``detect`` entry point (import from
      ``door_sense.sensing.engine``, it depends on ``door_sense.services``)
"""

from door_sense.sensing.samples import (
    AccelerometerNormalizer,
    MotionEvent,
    MotionEventType,
    PositionSample,
    RingBuffer,
)
from door_sense.sensing.feature_extractor import (
    AccelFeatureExtractor,
    AccelFeatures,
)
from door_sense.sensing.classifier import (
    Certainty,
    Classification,
    DoorState,
    OpeningType,
    StateClassifier,
)
from door_sense.sensing.stabilizer import (
    HysteresisStabilizer,
    SensorRuntimeState,
    SensorStateStore,
)
from door_sense.sensing.signal_quality import (
    SignalQualityAnalyzer,
    SignalQualityReport,
)

__all__ = [
    "AccelerometerNormalizer",
    "MotionEvent",
    "MotionEventType",
    "PositionSample",
    "RingBuffer",
    "AccelFeatureExtractor",
    "AccelFeatures",
    "Certainty",
    "Classification",
    "DoorState",
    "OpeningType",
    "StateClassifier",
    "HysteresisStabilizer",
    "SensorRuntimeState",
    "SensorStateStore",
    "SignalQualityAnalyzer",
    "SignalQualityReport",
]
