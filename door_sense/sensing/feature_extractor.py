"""
Feature extraction from a single tri-axial acceleration sample.

Turns ``(x, y, z)`` in g-force into the quantities the state classifier
works with: magnitude, tilt angle from the axis that is vertical when the
opening is closed, horizontal component, and a signal-clarity multiplier
that lowers confidence for ambiguous near-rest readings.

Extraction is stateless per sample.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)


# Floor applied to the magnitude so the tilt angle is always defined.
MIN_MAGNITUDE = 0.001


# ---------------------------------------------------------------------------
# Feature dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccelFeatures:
    """Container for the features of one sample."""

    x: float
    y: float
    z: float
    magnitude: float
    angle_degrees: float
    horizontal: float           # sqrt(x^2 + y^2)
    signal_strength: float      # max(|x|, |y|, |z|)
    clarity: float              # 0.8 .. 1.0


# ---------------------------------------------------------------------------
# Feature extractor
# ---------------------------------------------------------------------------

class AccelFeatureExtractor:
    """
    Extract tilt and clarity features from one acceleration sample.

    Signal clarity
    --------------
    - both |x| and |y| below ``small_change_threshold`` with |z| above
      ``near_vertical_z``: 0.85 (small but present motion near vertical is
      still weak evidence)
    - signal strength above ``strong_signal``: 1.0
    - signal strength below ``small_change_threshold``: 0.8
    - otherwise: 0.9 + (strength - 0.1) * 0.25

    Parameters
    ----------
    small_change_threshold : float
        Lateral amplitude (g) treated as noise-floor motion (default 0.1).
    near_vertical_z : float
        |z| above which a reading counts as near vertical (default 0.95).
    strong_signal : float
        Dominant-axis amplitude (g) above which a signal is fully clear (default 0.5).
    """

    def __init__(
        self,
        small_change_threshold: float = 0.1,
        near_vertical_z: float = 0.95,
        strong_signal: float = 0.5,
    ) -> None:
        self._small = small_change_threshold
        self._near_vertical = near_vertical_z
        self._strong = strong_signal

    def extract(self, x: float, y: float, z: float) -> AccelFeatures:
        magnitude = max(MIN_MAGNITUDE, math.sqrt(x * x + y * y + z * z))
        # Clamp guards acos against float rounding just above 1.0
        ratio = min(1.0, abs(z) / magnitude)
        angle = math.degrees(math.acos(ratio))
        strength = max(abs(x), abs(y), abs(z))

        return AccelFeatures(
            x=x,
            y=y,
            z=z,
            magnitude=magnitude,
            angle_degrees=angle,
            horizontal=math.sqrt(x * x + y * y),
            signal_strength=strength,
            clarity=self.signal_clarity(x, y, z),
        )

    def signal_clarity(self, x: float, y: float, z: float) -> float:
        strength = max(abs(x), abs(y), abs(z))

        if abs(x) < self._small and abs(y) < self._small and abs(z) > self._near_vertical:
            return 0.85
        if strength > self._strong:
            return 1.0
        if strength < self._small:
            return 0.8
        return 0.9 + (strength - 0.1) * 0.25
