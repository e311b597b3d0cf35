"""Data models for correction sessions and their results."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..config.schema import CorrectionConfig
from .attempt import CorrectionAttempt
from .errors import DetectedError
from .validation import ValidationResult


class SessionStatus(Enum):
    """Lifecycle status of a correction session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Only ACTIVE sessions accept further corrections."""
        return self != SessionStatus.ACTIVE


@dataclass(frozen=True)
class CorrectionSession:
    """
    Bookkeeping for correcting one piece of content.

    Sessions are immutable snapshots. The session store swaps in new
    snapshots and bumps ``version`` on every successful write.
    """

    task_id: str
    errors: tuple[DetectedError, ...] = ()
    attempts: tuple[CorrectionAttempt, ...] = ()
    status: SessionStatus = SessionStatus.ACTIVE
    config: CorrectionConfig = field(default_factory=CorrectionConfig)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None
    version: int = 0

    @property
    def error_count(self) -> int:
        """Total error count."""
        return len(self.errors)

    @property
    def critical_error_count(self) -> int:
        """Critical error count."""
        return sum(1 for error in self.errors if error.is_critical)

    @property
    def total_attempts(self) -> int:
        """Total attempts made, including skipped ones."""
        return len(self.attempts)

    @property
    def successful_attempts(self) -> int:
        """Number of attempts that succeeded."""
        return sum(1 for attempt in self.attempts if attempt.is_successful)

    @property
    def uncorrected_errors(self) -> tuple[DetectedError, ...]:
        """Errors without a successful attempt, in detection order."""
        corrected_ids = {a.error_id for a in self.attempts if a.is_successful}
        return tuple(error for error in self.errors if error.id not in corrected_ids)

    @property
    def all_corrected(self) -> bool:
        """Check if every error has a successful attempt."""
        return not self.uncorrected_errors

    @property
    def max_attempts_reached(self) -> bool:
        """Check if the session-wide attempt budget is spent."""
        return self.total_attempts >= self.config.max_attempts

    @property
    def auto_correctable_errors(self) -> tuple[DetectedError, ...]:
        """Errors that must be fixed or whose detection is confident enough to act on."""
        threshold = self.config.auto_correct_threshold
        return tuple(
            error
            for error in self.errors
            if error.severity.requires_correction or error.confidence >= threshold
        )

    @property
    def is_terminal(self) -> bool:
        """Check if the session has ended."""
        return self.status.is_terminal

    def get_error(self, error_id: str) -> DetectedError | None:
        """Look up an error by id."""
        return next((error for error in self.errors if error.id == error_id), None)

    def attempts_for(self, error_id: str) -> tuple[CorrectionAttempt, ...]:
        """Attempts made for one error, in attempt order."""
        return tuple(attempt for attempt in self.attempts if attempt.error_id == error_id)

    def add_error(self, error: DetectedError) -> "CorrectionSession":
        """Return a copy with ``error`` appended."""
        return replace(self, errors=(*self.errors, error))

    def add_attempt(self, attempt: CorrectionAttempt) -> "CorrectionSession":
        """Return a copy with ``attempt`` appended."""
        return replace(self, attempts=(*self.attempts, attempt))

    def replace_attempt(self, attempt: CorrectionAttempt) -> "CorrectionSession":
        """
        Return a copy with the attempt sharing ``attempt.id`` swapped out.

        Raises:
            KeyError: If no attempt with that id exists
        """
        if not any(existing.id == attempt.id for existing in self.attempts):
            raise KeyError(f"Attempt {attempt.id} not in session {self.id}")
        return replace(
            self,
            attempts=tuple(attempt if a.id == attempt.id else a for a in self.attempts),
        )

    def with_status(self, status: SessionStatus) -> "CorrectionSession":
        """Return a copy with a new status, stamping the end time when terminal."""
        ended_at = datetime.now(UTC) if status.is_terminal else None
        return replace(self, status=status, ended_at=ended_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "id": self.id,
            "task_id": self.task_id,
            "status": self.status.value,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "errors": [error.to_dict() for error in self.errors],
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


@dataclass(frozen=True)
class CorrectionResult:
    """Final outcome of a correction pass or an iterative run."""

    session_id: str
    task_id: str
    success: bool
    original_content: str
    final_content: str
    errors_detected: int
    errors_corrected: int
    total_attempts: int
    validation_result: ValidationResult | None
    remaining_errors: tuple[DetectedError, ...]
    duration_ms: int
    iterations: int = 1

    @property
    def correction_rate(self) -> float:
        """Fraction of detected errors corrected; 1.0 when nothing was detected."""
        if self.errors_detected == 0:
            return 1.0
        return self.errors_corrected / self.errors_detected

    @property
    def content_changed(self) -> bool:
        """Check if the final content differs from the original."""
        return self.original_content != self.final_content

    @property
    def has_remaining_errors(self) -> bool:
        """Check if any errors are left."""
        return bool(self.remaining_errors)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "session_id": self.session_id,
            "task_id": self.task_id,
            "success": self.success,
            "errors_detected": self.errors_detected,
            "errors_corrected": self.errors_corrected,
            "correction_rate": self.correction_rate,
            "total_attempts": self.total_attempts,
            "iterations": self.iterations,
            "content_changed": self.content_changed,
            "duration_ms": self.duration_ms,
            "validation": self.validation_result.to_dict() if self.validation_result else None,
            "remaining_errors": [error.to_dict() for error in self.remaining_errors],
            "final_content": self.final_content,
        }
