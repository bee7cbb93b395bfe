"""
door-sense
==========

Door and window state detection from tri-axial accelerometer telemetry.

This package provides:
- Per-sample classification of an opening as opened or closed
- Hysteresis so that sensor jitter does not flip the reported state
- Calibration of a closed reference position per sensor, with audit history
- Rolling accuracy and processing metrics

Example usage:
    >>> from door_sense.sensing.engine import DoorDetectionEngine
    >>>
    >>> engine = DoorDetectionEngine()
    >>> result = engine.detect("front-door", 0.8, 0.1, 0.3)
    >>> result.door_state.value
    'opened'

For CLI usage:
    $ door-sense detect 0.8 0.1 0.3
    $ door-sense replay telemetry.jsonl --calibrate
"""

__version__ = "1.0.0"
__license__ = "MIT"

__title__ = "door-sense"
__description__ = "Door and window state detection from tri-axial accelerometer telemetry"

# Version info tuple
__version_info__ = tuple(int(x) for x in __version__.split('.'))

__all__ = [
    "__version__",
    "__version_info__",
]
