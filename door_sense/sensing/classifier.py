"""
Door/window state classification from acceleration features.

Uses rule-based logic on the tilt angle to classify an opening as:
    CLOSED -- resting near its vertical reference
    OPENED -- tilted away from the reference

and guesses whether the mounting behaves like a DOOR or a WINDOW.
Confidence is the band's base confidence scaled by signal clarity and
never exceeds ``max_confidence``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from door_sense.sensing.feature_extractor import AccelFeatures

logger = logging.getLogger(__name__)


class DoorState(str, Enum):
    """Classified opening state."""

    CLOSED = "closed"
    OPENED = "opened"


class OpeningType(str, Enum):
    """Best-effort guess of the kind of opening the sensor is mounted on."""

    DOOR = "door"
    WINDOW = "window"


class Certainty(str, Enum):
    """How much the classification band can be trusted."""

    PROBABLE = "PROBABLE"
    UNCERTAIN = "UNCERTAIN"


@dataclass(frozen=True)
class Classification:
    """Output of the state classifier, before stabilization."""

    door_state: DoorState
    confidence: float                 # 0.0 to max_confidence
    opening_type: OpeningType
    certainty: Certainty
    base_confidence: float
    clarity: float


class StateClassifier:
    """
    Rule-based opening state classifier.

    Classification rules
    --------------------
    1. angle > ``opened_angle``: OPENED, base = min(cap, 0.7 + angle / 100)
    2. angle < ``closed_angle`` and |z| > 0.9: CLOSED,
       base = min(cap, 0.8 + (|z| - 0.9) * 2)
    3. intermediate band: OPENED (base 0.7) if |x| > 0.4 or |y| > 0.3,
       else CLOSED (base 0.6); certainty is UNCERTAIN

    The final confidence is ``min(cap, base * clarity)``.

    Opening type
    ------------
    Coarse mounting heuristic, not a physical model: strong horizontal
    component with low |z| is a door, a near-vertical reading with little
    lateral x is a window, otherwise door iff the horizontal component
    exceeds 0.4.

    Parameters
    ----------
    opened_angle : float
        Tilt (degrees) above which the opening is classified as opened (default 30).
    closed_angle : float
        Tilt (degrees) below which a vertical reading is closed (default 15).
    max_confidence : float
        Cap applied to every confidence (default 0.95).
    """

    VERTICAL_Z = 0.9

    def __init__(
        self,
        opened_angle: float = 30.0,
        closed_angle: float = 15.0,
        max_confidence: float = 0.95,
    ) -> None:
        if closed_angle > opened_angle:
            raise ValueError("closed_angle must not exceed opened_angle")
        if not 0.0 < max_confidence <= 1.0:
            raise ValueError("max_confidence must be in (0, 1]")
        self._opened_angle = opened_angle
        self._closed_angle = closed_angle
        self._cap = max_confidence

    @property
    def max_confidence(self) -> float:
        return self._cap

    def classify(self, features: AccelFeatures) -> Classification:
        angle = features.angle_degrees
        abs_x = abs(features.x)
        abs_y = abs(features.y)
        abs_z = abs(features.z)

        # -- primary bands ----------------------------------------------------
        if angle > self._opened_angle:
            state = DoorState.OPENED
            certainty = Certainty.PROBABLE
            base = min(self._cap, 0.7 + angle / 100.0)
        elif angle < self._closed_angle and abs_z > self.VERTICAL_Z:
            state = DoorState.CLOSED
            certainty = Certainty.PROBABLE
            base = min(self._cap, 0.8 + (abs_z - self.VERTICAL_Z) * 2)
        # -- intermediate band ------------------------------------------------
        elif abs_x > 0.4 or abs_y > 0.3:
            state = DoorState.OPENED
            certainty = Certainty.UNCERTAIN
            base = 0.7
        else:
            state = DoorState.CLOSED
            certainty = Certainty.UNCERTAIN
            base = 0.6

        confidence = max(0.0, min(self._cap, base * features.clarity))

        return Classification(
            door_state=state,
            confidence=confidence,
            opening_type=self.opening_type(features),
            certainty=certainty,
            base_confidence=base,
            clarity=features.clarity,
        )

    @staticmethod
    def opening_type(features: AccelFeatures) -> OpeningType:
        abs_z = abs(features.z)
        horizontal = features.horizontal

        if horizontal > 0.6 and abs_z < 0.8:
            return OpeningType.DOOR
        if abs(features.x) < 0.3 and abs_z > 0.95:
            return OpeningType.WINDOW
        return OpeningType.DOOR if horizontal > 0.4 else OpeningType.WINDOW
