"""Lifecycle events published by the correction engine.

``CorrectionEvent`` is a closed union; listeners dispatch with ``match``:

    match event:
        case CorrectionFailed(error_id=error_id, reason=reason):
            ...
        case SessionCompleted():
            ...
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

from .errors import ErrorSeverity, ErrorType
from .strategy import CorrectionStrategy


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ErrorDetected:
    """An error was added to a session."""

    kind: ClassVar[str] = "error_detected"

    session_id: str
    error_id: str
    error_type: ErrorType
    severity: ErrorSeverity
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class CorrectionStarted:
    """The corrector is about to be invoked for an attempt."""

    kind: ClassVar[str] = "correction_started"

    session_id: str
    attempt_id: str
    error_id: str
    strategy: CorrectionStrategy
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class CorrectionSucceeded:
    """An attempt produced content that passed validation."""

    kind: ClassVar[str] = "correction_succeeded"

    session_id: str
    attempt_id: str
    error_id: str
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class CorrectionFailed:
    """An attempt raised, timed out, was cancelled or failed validation."""

    kind: ClassVar[str] = "correction_failed"

    session_id: str
    attempt_id: str
    error_id: str
    reason: str
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ValidationCompleted:
    """Final validation of a correction pass finished."""

    kind: ClassVar[str] = "validation_completed"

    session_id: str
    passed: bool
    pass_rate: float
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class SessionCompleted:
    """A session reached a terminal status."""

    kind: ClassVar[str] = "session_completed"

    session_id: str
    total_errors: int
    corrected_errors: int
    total_attempts: int
    success: bool = False
    timestamp: datetime = field(default_factory=_now)


CorrectionEvent = (
    ErrorDetected
    | CorrectionStarted
    | CorrectionSucceeded
    | CorrectionFailed
    | ValidationCompleted
    | SessionCompleted
)


def event_to_dict(event: CorrectionEvent) -> dict[str, Any]:
    """Serialize an event to JSON-compatible types, tagged with its kind."""
    data: dict[str, Any] = {"kind": event.kind}
    for key, value in asdict(event).items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
        elif hasattr(value, "value"):
            data[key] = value.value
        else:
            data[key] = value
    return data
