"""
Unit tests for the door/window sensing module.

Tests cover:
    - RingBuffer and device unit conversion
    - Feature extraction (magnitude floor, tilt angle, signal clarity)
    - Classifier bands, confidence cap and opening-type heuristic
    - Hysteresis stabilizer debounce rules
    - Randomized confidence bounds
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from door_sense.sensing.samples import (
    AccelerometerNormalizer,
    PositionSample,
    RingBuffer,
)
from door_sense.sensing.feature_extractor import (
    MIN_MAGNITUDE,
    AccelFeatureExtractor,
)
from door_sense.sensing.classifier import (
    Certainty,
    DoorState,
    OpeningType,
    StateClassifier,
)
from door_sense.sensing.stabilizer import (
    HysteresisStabilizer,
    SensorRuntimeState,
    SensorStateStore,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def classify(x: float, y: float, z: float):
    features = AccelFeatureExtractor().extract(x, y, z)
    return features, StateClassifier().classify(features)


def seeded_state(angle: float, state: DoorState) -> SensorRuntimeState:
    runtime = SensorRuntimeState(sensor_id="s1")
    runtime.commit(angle, state)
    return runtime


# ===========================================================================
# Samples
# ===========================================================================

class TestRingBuffer:
    def test_append_and_get_all(self):
        buf = RingBuffer(max_size=5)
        for i in range(3):
            buf.append(PositionSample(float(i), 0.0, 1.0, timestamp=float(i)))
        assert len(buf) == 3
        samples = buf.get_all()
        assert samples[0].x == 0.0
        assert samples[2].x == 2.0

    def test_ring_buffer_overflow(self):
        buf = RingBuffer(max_size=3)
        for i in range(5):
            buf.append(i)
        # Oldest two evicted
        assert buf.get_all() == [2, 3, 4]
        assert buf.latest() == 4

    def test_get_last_n(self):
        buf = RingBuffer(max_size=10)
        for i in range(7):
            buf.append(i)
        assert buf.get_last_n(3) == [4, 5, 6]
        assert buf.get_last_n(20) == list(range(7))
        assert buf.get_last_n(0) == []

    def test_clear(self):
        buf = RingBuffer(max_size=2)
        buf.append(1)
        buf.clear()
        assert len(buf) == 0
        assert buf.latest() is None

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            RingBuffer(max_size=0)


class TestAccelerometerNormalizer:
    def test_normalize_divides_by_scale(self):
        g = AccelerometerNormalizer().normalize(PositionSample(64.0, -32.0, 16.0, timestamp=5.0))
        assert g.as_tuple() == (1.0, -0.5, 0.25)
        assert g.timestamp == 5.0

    def test_to_device_units_rounds(self):
        raw = AccelerometerNormalizer(64.0).to_device_units(PositionSample(0.8, 0.1, 0.3))
        assert raw.as_tuple() == (51.0, 6.0, 19.0)

    def test_rejects_non_positive_scale(self):
        with pytest.raises(ValueError):
            AccelerometerNormalizer(0)

    def test_is_finite(self):
        assert PositionSample(1.0, 2.0, 3.0).is_finite()
        assert not PositionSample(math.nan, 2.0, 3.0).is_finite()


# ===========================================================================
# Feature extraction
# ===========================================================================

class TestFeatureExtractor:
    def test_near_vertical_window(self):
        features = AccelFeatureExtractor().extract(0.05, 0.03, 0.98)
        assert features.magnitude == pytest.approx(math.sqrt(0.9638))
        assert features.angle_degrees == pytest.approx(3.405, abs=0.01)
        assert features.clarity == 0.85

    def test_open_door(self):
        features = AccelFeatureExtractor().extract(0.8, 0.1, 0.3)
        assert features.magnitude == pytest.approx(0.8602, abs=1e-4)
        assert features.angle_degrees == pytest.approx(69.59, abs=0.01)
        assert features.signal_strength == 0.8
        assert features.clarity == 1.0

    def test_zero_vector_uses_magnitude_floor(self):
        features = AccelFeatureExtractor().extract(0.0, 0.0, 0.0)
        assert features.magnitude == MIN_MAGNITUDE
        assert features.angle_degrees == pytest.approx(90.0)
        assert features.clarity == 0.8

    def test_pure_vertical_has_zero_angle(self):
        features = AccelFeatureExtractor().extract(0.0, 0.0, -1.0)
        assert features.angle_degrees == pytest.approx(0.0)

    @pytest.mark.parametrize(
        "sample, expected",
        [
            ((0.05, 0.05, 0.99), 0.85),          # small change near vertical
            ((0.6, 0.0, 0.0), 1.0),              # strong signal
            ((0.05, 0.02, 0.05), 0.8),           # weak signal
            ((0.3, 0.0, 0.0), 0.95),             # 0.9 + 0.2 * 0.25
            ((0.1, 0.0, 0.5), 1.0),              # 0.9 + 0.4 * 0.25
        ],
    )
    def test_signal_clarity(self, sample, expected):
        assert AccelFeatureExtractor().signal_clarity(*sample) == pytest.approx(expected)


# ===========================================================================
# Classifier
# ===========================================================================

class TestStateClassifier:
    def test_closed_window_scenario(self):
        _, result = classify(0.05, 0.03, 0.98)
        assert result.door_state == DoorState.CLOSED
        assert result.certainty == Certainty.PROBABLE
        assert result.base_confidence == 0.95
        assert result.confidence == pytest.approx(0.8075)
        assert result.opening_type == OpeningType.WINDOW

    def test_open_door_scenario(self):
        _, result = classify(0.8, 0.1, 0.3)
        assert result.door_state == DoorState.OPENED
        assert result.certainty == Certainty.PROBABLE
        assert result.confidence == pytest.approx(0.95)
        assert result.opening_type == OpeningType.DOOR

    def test_opened_base_grows_with_angle(self):
        # 35 degrees of tilt: base 0.7 + 0.35 = 1.05, capped
        features, result = classify(math.sin(math.radians(35)), 0.0, math.cos(math.radians(35)))
        assert features.angle_degrees == pytest.approx(35.0)
        assert result.base_confidence == 0.95

    def test_intermediate_band_opened_when_lateral(self):
        features, result = classify(0.45, 0.0, 0.9)
        assert 15.0 <= features.angle_degrees <= 30.0
        assert result.door_state == DoorState.OPENED
        assert result.certainty == Certainty.UNCERTAIN
        assert result.confidence == pytest.approx(0.7)

    def test_intermediate_band_closed_otherwise(self):
        features, result = classify(0.3, 0.1, 0.85)
        assert 15.0 <= features.angle_degrees <= 30.0
        assert result.door_state == DoorState.CLOSED
        assert result.certainty == Certainty.UNCERTAIN
        assert result.confidence == pytest.approx(0.6)

    def test_small_angle_needs_vertical_z(self):
        # Under 15 degrees but |z| is exactly 0.9, not above it
        features, result = classify(0.2, 0.1, 0.9)
        assert features.angle_degrees < 15.0
        assert result.door_state == DoorState.CLOSED
        assert result.certainty == Certainty.UNCERTAIN

    @pytest.mark.parametrize(
        "sample, expected",
        [
            ((0.8, 0.1, 0.3), OpeningType.DOOR),      # strong horizontal, low z
            ((0.05, 0.03, 0.98), OpeningType.WINDOW), # near vertical, small x
            ((0.45, 0.0, 0.9), OpeningType.DOOR),     # horizontal above 0.4
            ((0.2, 0.1, 0.9), OpeningType.WINDOW),    # horizontal below 0.4
        ],
    )
    def test_opening_type(self, sample, expected):
        features = AccelFeatureExtractor().extract(*sample)
        assert StateClassifier.opening_type(features) == expected

    def test_rejects_inverted_bands(self):
        with pytest.raises(ValueError):
            StateClassifier(opened_angle=10.0, closed_angle=20.0)

    def test_rejects_bad_cap(self):
        with pytest.raises(ValueError):
            StateClassifier(max_confidence=1.5)

    def test_randomized_confidence_bounds(self):
        rng = np.random.default_rng(2024)
        samples = rng.uniform(-2.0, 2.0, size=(2000, 3))
        extractor = AccelFeatureExtractor()
        classifier = StateClassifier()

        for x, y, z in samples:
            features = extractor.extract(float(x), float(y), float(z))
            result = classifier.classify(features)
            assert 0.0 <= result.confidence <= 0.95
            assert 0.0 <= features.angle_degrees <= 90.0
            if features.angle_degrees > 30.0:
                assert result.door_state == DoorState.OPENED
            if features.angle_degrees < 15.0 and abs(z) > 0.9:
                assert result.door_state == DoorState.CLOSED


# ===========================================================================
# Hysteresis
# ===========================================================================

class TestHysteresisStabilizer:
    def test_first_observation_seeds_state(self):
        runtime = SensorRuntimeState(sensor_id="s1")
        assert not runtime.is_seeded
        state = HysteresisStabilizer().apply(runtime, DoorState.OPENED, 45.0)
        assert state == DoorState.OPENED
        assert runtime.previous_angle == 45.0
        assert runtime.previous_state == DoorState.OPENED

    def test_small_change_keeps_previous_state(self):
        runtime = seeded_state(10.0, DoorState.CLOSED)
        state = HysteresisStabilizer().apply(runtime, DoorState.OPENED, 11.0)
        assert state == DoorState.CLOSED
        assert runtime.previous_angle == 11.0

    def test_same_angle_twice_is_idempotent(self):
        runtime = seeded_state(40.0, DoorState.OPENED)
        stabilizer = HysteresisStabilizer()
        assert stabilizer.apply(runtime, DoorState.CLOSED, 40.0) == DoorState.OPENED
        assert stabilizer.apply(runtime, DoorState.CLOSED, 40.0) == DoorState.OPENED

    def test_rising_angle_opens(self):
        runtime = seeded_state(10.0, DoorState.CLOSED)
        assert HysteresisStabilizer().apply(runtime, DoorState.OPENED, 40.0) == DoorState.OPENED

    def test_falling_angle_closes(self):
        runtime = seeded_state(40.0, DoorState.OPENED)
        assert HysteresisStabilizer().apply(runtime, DoorState.CLOSED, 5.0) == DoorState.CLOSED

    def test_large_change_against_direction_takes_raw_state(self):
        # Closed and the angle fell by 5 degrees: the raw classification wins
        runtime = seeded_state(40.0, DoorState.CLOSED)
        assert HysteresisStabilizer().apply(runtime, DoorState.OPENED, 35.0) == DoorState.OPENED

    def test_change_of_exactly_threshold_is_not_a_transition(self):
        runtime = seeded_state(10.0, DoorState.CLOSED)
        # delta == 2 passes the gate but 12 is not above 10 + 2
        assert HysteresisStabilizer().apply(runtime, DoorState.CLOSED, 12.0) == DoorState.CLOSED

    def test_custom_threshold(self):
        runtime = seeded_state(10.0, DoorState.CLOSED)
        stabilizer = HysteresisStabilizer(threshold_degrees=5.0)
        assert stabilizer.apply(runtime, DoorState.OPENED, 14.0) == DoorState.CLOSED

    def test_rejects_negative_threshold(self):
        with pytest.raises(ValueError):
            HysteresisStabilizer(-1.0)


class TestSensorStateStore:
    def test_get_or_create_returns_same_state(self):
        store = SensorStateStore(buffer_size=5)
        state = store.get_or_create("s1")
        assert store.get_or_create("s1") is state
        assert state.recent_samples.max_size == 5
        assert "s1" in store
        assert len(store) == 1

    def test_reset(self):
        store = SensorStateStore()
        store.get_or_create("s1")
        assert store.reset("s1") is True
        assert store.reset("s1") is False
        assert store.get("s1") is None

    def test_sensors_are_isolated(self):
        store = SensorStateStore()
        store.get_or_create("a").commit(10.0, DoorState.CLOSED)
        assert not store.get_or_create("b").is_seeded
        assert sorted(store.sensor_ids()) == ["a", "b"]
