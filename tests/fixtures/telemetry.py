"""
Test data generation utilities for accelerometer telemetry.

Provides controllable clocks and realistic door/window sample streams.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import numpy as np


# Raw device units per 1 g
DEVICE_SCALE = 64.0

# Typical readings in g
CLOSED_WINDOW = (0.05, 0.03, 0.98)
OPEN_DOOR = (0.8, 0.1, 0.3)


class FakeClock:
    """Wall clock in UNIX seconds that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class StepDatetimeClock:
    """Timezone-aware clock that moves forward one step per call."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


def to_device_units(x: float, y: float, z: float) -> Dict[str, float]:
    """Convert a g-force reading to rounded device units."""
    return {
        "x": float(round(x * DEVICE_SCALE)),
        "y": float(round(y * DEVICE_SCALE)),
        "z": float(round(z * DEVICE_SCALE)),
    }


def make_message(sensor_id: str, x: float, y: float, z: float,
                 timestamp: Optional[float] = None, event: Optional[str] = None) -> Dict[str, Any]:
    """Telemetry message with axes already in device units."""
    message: Dict[str, Any] = {"sensor_id": sensor_id, "x": x, "y": y, "z": z}
    if timestamp is not None:
        message["timestamp"] = timestamp
    if event is not None:
        message["event"] = event
    return message


def make_jittered_stream(sensor_id: str, center: Dict[str, float], n: int,
                         start: float, interval: float = 1.0, jitter: float = 0.3,
                         seed: int = 42) -> List[Dict[str, Any]]:
    """``n`` messages jittering around ``center`` (device units)."""
    rng = np.random.default_rng(seed)
    noise = rng.uniform(-jitter, jitter, size=(n, 3))
    return [
        make_message(
            sensor_id,
            center["x"] + float(noise[i, 0]),
            center["y"] + float(noise[i, 1]),
            center["z"] + float(noise[i, 2]),
            timestamp=start + i * interval,
        )
        for i in range(n)
    ]


def to_jsonl(messages: List[Dict[str, Any]]) -> str:
    return "\n".join(json.dumps(m) for m in messages) + "\n"
