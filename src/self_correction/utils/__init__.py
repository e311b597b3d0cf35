"""Utility functions and helpers.

This module provides various utilities for the self-correction engine:
- async_helpers: Exceptions, retry, rate limiting, timeouts and cancellation
- logging: Structured logging with secret sanitization
- metrics: Engine metrics collection
- security: Secret redaction for logged content
"""

from self_correction.utils.async_helpers import (
    CancellationToken,
    CorrectionCancelledError,
    CorrectionEngineError,
    InvalidTransitionError,
    RateLimiter,
    SessionConflictError,
    SessionNotFoundError,
    TimeoutError,
    TransientCorrectionError,
)
from self_correction.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    configure_logging,
)
from self_correction.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
)
from self_correction.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Async helpers
    "CancellationToken",
    "CorrectionCancelledError",
    "CorrectionEngineError",
    # Metrics
    "Counter",
    "Gauge",
    "Histogram",
    "InvalidTransitionError",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    "RateLimiter",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "SessionConflictError",
    "SessionNotFoundError",
    "TimeoutError",
    "Timer",
    "TransientCorrectionError",
    "configure_logging",
]
