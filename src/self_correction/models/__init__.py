"""Data models and transfer objects."""

from .attempt import CorrectionAttempt, CorrectionStatus
from .errors import DetectedError, ErrorLocation, ErrorSeverity, ErrorType
from .events import (
    CorrectionEvent,
    CorrectionFailed,
    CorrectionStarted,
    CorrectionSucceeded,
    ErrorDetected,
    SessionCompleted,
    ValidationCompleted,
    event_to_dict,
)
from .session import CorrectionResult, CorrectionSession, SessionStatus
from .stats import CorrectionStats
from .strategy import CorrectionStrategy
from .validation import ValidationCategory, ValidationCheck, ValidationResult

__all__ = [
    # Error models
    "ErrorType",
    "ErrorSeverity",
    "ErrorLocation",
    "DetectedError",
    # Strategy
    "CorrectionStrategy",
    # Attempt models
    "CorrectionStatus",
    "CorrectionAttempt",
    # Validation models
    "ValidationCategory",
    "ValidationCheck",
    "ValidationResult",
    # Session models
    "SessionStatus",
    "CorrectionSession",
    "CorrectionResult",
    # Events
    "CorrectionEvent",
    "ErrorDetected",
    "CorrectionStarted",
    "CorrectionSucceeded",
    "CorrectionFailed",
    "ValidationCompleted",
    "SessionCompleted",
    "event_to_dict",
    # Statistics
    "CorrectionStats",
]
