"""
Unit tests for the advisory signal quality analyzer.
"""

import pytest

from door_sense.sensing.samples import PositionSample
from door_sense.sensing.signal_quality import (
    MagnitudeQuality,
    SignalQualityAnalyzer,
    SignalStability,
)


@pytest.fixture
def analyzer():
    return SignalQualityAnalyzer()


class TestSignalQualityAnalyzer:
    def test_clean_one_g_reading(self, analyzer):
        report = analyzer.analyze(PositionSample(0.0, 0.0, 1.0))

        assert report.magnitude == pytest.approx(1.0)
        assert report.clarity_score == pytest.approx(1.0)
        assert report.magnitude_quality == MagnitudeQuality.EXCELLENT
        assert report.noise_level == pytest.approx(0.0)
        assert report.signal_stability == SignalStability.VERY_STABLE
        assert report.recommendations == []
        assert not report.should_recalibrate

    def test_weak_signal_suggests_recalibration(self, analyzer):
        report = analyzer.analyze(PositionSample(0.1, 0.1, 0.2))

        assert report.magnitude_quality == MagnitudeQuality.POOR
        assert report.clarity_score < 0.5
        assert "signal_too_weak" in report.recommendations
        assert "low_activity_detected" in report.recommendations
        assert report.should_recalibrate

    def test_strong_noisy_signal(self, analyzer):
        report = analyzer.analyze(PositionSample(1.0, 1.0, 1.0))

        assert report.magnitude_quality == MagnitudeQuality.POOR
        assert report.noise_level > 0.3
        assert "signal_too_strong" in report.recommendations
        assert "high_noise_detected" in report.recommendations
        assert report.signal_stability == SignalStability.UNSTABLE
        assert report.should_recalibrate

    def test_good_band(self, analyzer):
        report = analyzer.analyze(PositionSample(0.0, 0.0, 1.3))

        assert report.magnitude_quality == MagnitudeQuality.GOOD
        assert report.clarity_score == pytest.approx(0.7)
        assert not report.should_recalibrate

    def test_acceptable_band(self, analyzer):
        report = analyzer.analyze(PositionSample(0.0, 0.0, 0.5))

        assert report.magnitude_quality == MagnitudeQuality.ACCEPTABLE
        assert report.recommendations == ["signal_too_weak", "check_sensor_placement"]
        assert not report.should_recalibrate

    @pytest.mark.parametrize(
        "z, expected",
        [
            (1.02, SignalStability.VERY_STABLE),
            (1.07, SignalStability.STABLE),
            (0.85, SignalStability.MODERATELY_STABLE),
            (0.7, SignalStability.UNSTABLE),
        ],
    )
    def test_signal_stability_bands(self, analyzer, z, expected):
        assert analyzer.analyze(PositionSample(0.0, 0.0, z)).signal_stability == expected

    def test_custom_noise_threshold(self):
        # noise for (0.5, 0, 1) is (1.118 - 1) / 1.118, about 0.106
        sample = PositionSample(0.5, 0.0, 1.0)
        assert "high_noise_detected" not in SignalQualityAnalyzer().analyze(sample).recommendations
        assert "high_noise_detected" in SignalQualityAnalyzer(noise_threshold=0.05).analyze(sample).recommendations
