"""
Pydantic settings for the door-sense detection engine
"""

import os
from typing import List, Optional
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with environment variable support."""

    # Application settings
    app_name: str = Field(default="door-sense", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development, staging, production, testing)")
    debug: bool = Field(default=False, description="Debug mode")

    # Detection settings
    processing_budget_ms: float = Field(default=25.0, description="Soft per-sample processing budget in milliseconds")
    hysteresis_degrees: float = Field(default=2.0, description="Minimum tilt change before a state transition is accepted")
    opened_angle_degrees: float = Field(default=30.0, description="Tilt above which an opening is classified as opened")
    closed_angle_degrees: float = Field(default=15.0, description="Tilt below which a vertical opening is classified as closed")
    max_confidence: float = Field(default=0.95, description="Upper bound for any reported confidence")
    runtime_buffer_size: int = Field(default=50, description="Per-sensor ring buffer size")
    device_scale: float = Field(default=64.0, description="Raw device units per 1 g")

    # Accuracy tracking settings
    accuracy_window_size: int = Field(default=100, description="Rolling window size for accuracy metrics")
    accuracy_min_samples: int = Field(default=10, description="Samples required before accuracy is estimated")

    # Calibration settings
    position_min: int = Field(default=-127, description="Lowest valid raw axis value")
    position_max: int = Field(default=127, description="Highest valid raw axis value")
    position_tolerance: float = Field(default=0.5, description="Per-axis tolerance around the closed reference")
    max_position_variance: float = Field(default=1.0, description="Maximum per-axis variance for a stable position")
    stability_window_seconds: float = Field(default=30.0, description="Live stability observation window in seconds")
    min_stability_samples: int = Field(default=3, description="Minimum samples for a live stability check")
    preferred_stability_samples: int = Field(default=10, description="Samples used by a live stability check when available")
    calibration_history_size: int = Field(default=10, description="Calibration history entries kept per sensor")
    reference_drift_enabled: bool = Field(default=False, description="Let the closed reference follow slow sensor drift")
    reference_drift_weight: float = Field(default=0.1, description="Weight of the live position in drift adaptation")
    reference_drift_max_step: float = Field(default=0.5, description="Largest per-axis reference move accepted by drift adaptation")

    # Database settings
    database_url: Optional[str] = Field(default=None, description="Database connection URL for durable calibrations")
    db_echo: bool = Field(default=False, description="Enable database query logging")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Max log file size in bytes (10MB)")
    log_backup_count: int = Field(default=5, description="Number of log backup files")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DOOR_SENSE_",
        case_sensitive=False
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_environments = ["development", "staging", "production", "testing"]
        if v not in allowed_environments:
            raise ValueError(f"Environment must be one of: {allowed_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level setting."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("max_confidence")
    @classmethod
    def validate_max_confidence(cls, v):
        """Validate confidence cap."""
        if not 0.0 < v <= 1.0:
            raise ValueError("Maximum confidence must be in (0.0, 1.0]")
        return v

    @field_validator("reference_drift_weight")
    @classmethod
    def validate_drift_weight(cls, v):
        """Validate drift weight."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("Reference drift weight must be between 0.0 and 1.0")
        return v

    @field_validator(
        "hysteresis_degrees", "processing_budget_ms", "position_tolerance",
        "max_position_variance", "stability_window_seconds", "reference_drift_max_step",
    )
    @classmethod
    def validate_non_negative(cls, v):
        """Validate non-negative thresholds."""
        if v < 0:
            raise ValueError("Threshold values must be non-negative")
        return v

    @field_validator(
        "runtime_buffer_size", "accuracy_window_size", "calibration_history_size",
        "min_stability_samples", "preferred_stability_samples",
    )
    @classmethod
    def validate_sizes(cls, v):
        """Validate buffer and window sizes."""
        if v < 1:
            raise ValueError("Buffer and window sizes must be at least 1")
        return v

    @field_validator("device_scale")
    @classmethod
    def validate_device_scale(cls, v):
        """Validate device scale."""
        if v <= 0:
            raise ValueError("Device scale must be positive")
        return v

    @model_validator(mode="after")
    def validate_ranges(self):
        """Validate settings that depend on each other."""
        if self.position_min >= self.position_max:
            raise ValueError("position_min must be lower than position_max")
        if self.closed_angle_degrees > self.opened_angle_degrees:
            raise ValueError("closed_angle_degrees must not exceed opened_angle_degrees")
        if self.min_stability_samples > self.preferred_stability_samples:
            raise ValueError("min_stability_samples must not exceed preferred_stability_samples")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"

    def create_directories(self):
        """Create the log directory when file logging is enabled."""
        if self.log_file:
            directory = os.path.dirname(self.log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    settings.create_directories()
    return settings


def get_test_settings() -> Settings:
    """Get settings for testing."""
    return Settings(
        environment="testing",
        debug=True,
        database_url="sqlite:///:memory:",
        log_level="DEBUG"
    )


def load_settings_from_file(file_path: str) -> Settings:
    """Load settings from a specific file."""
    return Settings(_env_file=file_path)


def validate_settings(settings: Settings) -> List[str]:
    """Validate settings and return list of issues."""
    issues = []

    if settings.is_production:
        if settings.debug:
            issues.append("Debug mode should be disabled in production")

        if not settings.database_url:
            issues.append("Database URL must be set for production, calibrations would be lost on restart")

        if settings.reference_drift_enabled and settings.reference_drift_weight > 0.5:
            issues.append("Reference drift weight above 0.5 lets a single reading dominate the closed reference")

    if settings.processing_budget_ms == 0:
        issues.append("A zero processing budget flags every detection as slow")

    try:
        settings.create_directories()
    except Exception as e:
        issues.append(f"Cannot create log directory: {e}")

    return issues
