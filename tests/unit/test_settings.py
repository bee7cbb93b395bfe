"""
Unit tests for settings and logging configuration.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from door_sense.config.settings import (
    Settings,
    get_settings,
    get_test_settings,
    load_settings_from_file,
    validate_settings,
)
from door_sense.logger import ColoredFormatter, StructuredFormatter, build_logging_config


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.processing_budget_ms == 25.0
        assert settings.hysteresis_degrees == 2.0
        assert settings.opened_angle_degrees == 30.0
        assert settings.closed_angle_degrees == 15.0
        assert settings.max_confidence == 0.95
        assert settings.device_scale == 64.0
        assert settings.position_min == -127
        assert settings.position_max == 127
        assert settings.position_tolerance == 0.5
        assert settings.calibration_history_size == 10
        assert settings.reference_drift_enabled is False
        assert settings.database_url is None
        assert settings.is_development

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DOOR_SENSE_HYSTERESIS_DEGREES", "3.5")
        monkeypatch.setenv("door_sense_log_level", "debug")

        settings = Settings(_env_file=None)

        assert settings.hysteresis_degrees == 3.5
        assert settings.log_level == "DEBUG"

    def test_load_from_file(self, tmp_path):
        env_file = tmp_path / "door-sense.env"
        env_file.write_text("DOOR_SENSE_POSITION_TOLERANCE=1.5\nDOOR_SENSE_ENVIRONMENT=staging\n")

        settings = load_settings_from_file(str(env_file))

        assert settings.position_tolerance == 1.5
        assert settings.environment == "staging"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"environment": "qa"},
            {"log_level": "LOUD"},
            {"max_confidence": 1.5},
            {"max_confidence": 0.0},
            {"hysteresis_degrees": -1.0},
            {"runtime_buffer_size": 0},
            {"device_scale": 0.0},
            {"reference_drift_weight": 1.2},
            {"position_min": 10, "position_max": 10},
            {"closed_angle_degrees": 40.0},
            {"min_stability_samples": 20},
        ],
    )
    def test_invalid_values_are_rejected(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_test_settings(self):
        settings = get_test_settings()
        assert settings.is_testing
        assert settings.database_url == "sqlite:///:memory:"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestValidateSettings:
    def test_development_is_clean(self):
        assert validate_settings(Settings(_env_file=None)) == []

    def test_production_issues(self):
        settings = Settings(
            _env_file=None,
            environment="production",
            debug=True,
            reference_drift_enabled=True,
            reference_drift_weight=0.8,
        )

        issues = validate_settings(settings)

        assert len(issues) == 3
        assert any("Debug mode" in issue for issue in issues)
        assert any("Database URL" in issue for issue in issues)
        assert any("drift weight" in issue for issue in issues)

    def test_zero_budget(self):
        issues = validate_settings(Settings(_env_file=None, processing_budget_ms=0))
        assert any("processing budget" in issue for issue in issues)


class TestLoggingConfig:
    def test_console_only(self):
        config = build_logging_config(Settings(_env_file=None))

        assert set(config["handlers"]) == {"console"}
        assert config["loggers"]["door_sense"]["handlers"] == ["console"]
        assert config["loggers"]["sqlalchemy.engine"]["level"] == "WARNING"

    def test_file_and_structured_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "door-sense.log"
        config = build_logging_config(Settings(_env_file=None, log_file=str(log_file), db_echo=True))

        assert config["handlers"]["file"]["filename"] == str(log_file)
        assert config["handlers"]["structured"]["filename"].endswith("door-sense.json")
        assert config["loggers"][""]["handlers"] == ["console", "file", "structured"]
        assert config["loggers"]["sqlalchemy.engine"]["level"] == "INFO"

    def test_structured_formatter_includes_extras(self):
        record = logging.LogRecord(
            name="door_sense.sensing.engine", level=logging.WARNING, pathname=__file__,
            lineno=1, msg="slow detection %s", args=("door-1",), exc_info=None,
        )
        record.sensor_id = "door-1"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["message"] == "slow detection door-1"
        assert entry["sensor_id"] == "door-1"

    def test_colored_formatter_restores_levelname(self):
        record = logging.LogRecord(
            name="door_sense", level=logging.INFO, pathname=__file__,
            lineno=1, msg="hello", args=None, exc_info=None,
        )

        output = ColoredFormatter("%(levelname)s %(message)s").format(record)

        assert "\033[32m" in output
        assert record.levelname == "INFO"
