"""Configuration loading and validation."""

from .loader import load_config, validate_config
from .schema import (
    CorrectionConfig,
    EngineConfig,
    ErrorDetectorConfig,
    FileLoggingConfig,
    LoggingConfig,
    RetryConfig,
    RuntimeConfig,
)

__all__ = [
    # Loader
    "load_config",
    "validate_config",
    # Root config
    "EngineConfig",
    # Engine behaviour
    "CorrectionConfig",
    "ErrorDetectorConfig",
    # Ambient
    "FileLoggingConfig",
    "LoggingConfig",
    "RetryConfig",
    "RuntimeConfig",
]
