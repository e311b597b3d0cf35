"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ErrorDetectorConfig(BaseModel):
    """Which heuristic detectors run, and how noisy findings are filtered."""

    model_config = ConfigDict(frozen=True)

    enable_syntax_check: bool = True
    enable_type_check: bool = True
    enable_logic_check: bool = True
    enable_security_check: bool = True
    enable_style_check: bool = False
    enable_hallucination_detection: bool = True
    min_confidence: float = Field(0.5, ge=0.0, le=1.0)
    language: str = "kotlin"
    max_line_length: int = Field(120, ge=20, le=1000)


class CorrectionConfig(BaseModel):
    """Limits and behaviour switches for one correction session."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(5, ge=1, le=100)
    max_attempts_per_error: int = Field(3, ge=1, le=20)
    auto_correct_threshold: float = Field(0.9, ge=0.0, le=1.0)
    enable_iterative_refinement: bool = True
    validate_after_correction: bool = True
    run_tests_on_correction: bool = True
    rollback_on_failure: bool = True


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("logs/self-correction.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RuntimeConfig(BaseModel):
    """Runtime bounds for the injected corrector and validator."""

    attempt_timeout: float | None = Field(
        None, gt=0, le=3600, description="Deadline for one corrector call in seconds"
    )
    validation_timeout: float | None = Field(
        None, gt=0, le=3600, description="Deadline for one validator call in seconds"
    )
    corrector_rate_limit: float | None = Field(
        None, gt=0, description="Maximum corrector calls per second"
    )


class RetryConfig(BaseModel):
    """Retry configuration for transient corrector failures."""

    max_attempts: int = Field(1, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.0, le=10.0)
    max_delay: float = Field(30.0, ge=0.0, le=300.0)

    @model_validator(mode="after")
    def check_delays(self) -> "RetryConfig":
        """Ensure the backoff window is not inverted."""
        if self.initial_delay > self.max_delay:
            raise ValueError("initial_delay must not exceed max_delay")
        return self


class EngineConfig(BaseSettings):
    """Root configuration for the self-correction engine."""

    detector: ErrorDetectorConfig = ErrorDetectorConfig()
    correction: CorrectionConfig = CorrectionConfig()
    logging: LoggingConfig = LoggingConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_prefix="SELF_CORRECTION_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )
