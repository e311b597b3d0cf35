"""Data models for correction attempts."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..utils.async_helpers import InvalidTransitionError
from .strategy import CorrectionStrategy
from .validation import ValidationResult


class CorrectionStatus(Enum):
    """Lifecycle status of a correction attempt."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses never change again."""
        return self not in (CorrectionStatus.PENDING, CorrectionStatus.IN_PROGRESS)


@dataclass(frozen=True)
class CorrectionAttempt:
    """
    One try at correcting one error.

    Attempts are immutable; every transition returns a new copy:

        PENDING -> IN_PROGRESS -> SUCCEEDED | FAILED | ROLLED_BACK
        PENDING -> SKIPPED
    """

    error_id: str
    strategy: CorrectionStrategy
    original_content: str
    corrected_content: str | None = None
    status: CorrectionStatus = CorrectionStatus.PENDING
    validation_result: ValidationResult | None = None
    attempt_number: int = 1  # 1-based, per error
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def duration_ms(self) -> int | None:
        """Duration in milliseconds, once the attempt is finished."""
        if self.completed_at is None:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    @property
    def is_successful(self) -> bool:
        """Check if the correction succeeded."""
        return self.status == CorrectionStatus.SUCCEEDED

    @property
    def is_in_progress(self) -> bool:
        """Check if the corrector is still working on this attempt."""
        return self.status == CorrectionStatus.IN_PROGRESS

    @property
    def is_terminal(self) -> bool:
        """Check if the attempt reached a final status."""
        return self.status.is_terminal

    def _require(self, target: CorrectionStatus, *allowed: CorrectionStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move attempt {self.id} from {self.status.value} to {target.value}"
            )

    def start(self) -> "CorrectionAttempt":
        """Mark as in progress."""
        self._require(CorrectionStatus.IN_PROGRESS, CorrectionStatus.PENDING)
        return replace(self, status=CorrectionStatus.IN_PROGRESS, started_at=datetime.now(UTC))

    def succeed(
        self, corrected: str, validation: ValidationResult | None = None
    ) -> "CorrectionAttempt":
        """Mark as succeeded with the corrected content."""
        self._require(CorrectionStatus.SUCCEEDED, CorrectionStatus.IN_PROGRESS)
        return replace(
            self,
            corrected_content=corrected,
            status=CorrectionStatus.SUCCEEDED,
            validation_result=validation,
            completed_at=datetime.now(UTC),
        )

    def fail(
        self,
        reason: str | None = None,
        corrected: str | None = None,
        validation: ValidationResult | None = None,
    ) -> "CorrectionAttempt":
        """
        Mark as failed.

        Args:
            reason: Why the attempt failed
            corrected: Rejected corrector output to keep for inspection
            validation: Validation verdict that rejected the output; when
                omitted a failed result carrying ``reason`` is attached

        Returns:
            Failed copy of this attempt
        """
        self._require(CorrectionStatus.FAILED, CorrectionStatus.IN_PROGRESS)
        reason = reason or "Correction failed"
        if validation is None or validation.passed:
            validation = ValidationResult.failed(reason)
        elif validation.message is None:
            validation = replace(validation, message=reason)
        return replace(
            self,
            corrected_content=corrected,
            status=CorrectionStatus.FAILED,
            validation_result=validation,
            completed_at=datetime.now(UTC),
        )

    def skip(self, reason: str | None = None) -> "CorrectionAttempt":
        """Mark as skipped without ever running the corrector."""
        self._require(CorrectionStatus.SKIPPED, CorrectionStatus.PENDING)
        return replace(
            self,
            status=CorrectionStatus.SKIPPED,
            validation_result=ValidationResult.failed(reason or "Correction skipped"),
            completed_at=datetime.now(UTC),
        )

    def roll_back(self, reason: str | None = None) -> "CorrectionAttempt":
        """Mark as rolled back, discarding any corrected content."""
        self._require(CorrectionStatus.ROLLED_BACK, CorrectionStatus.IN_PROGRESS)
        return replace(
            self,
            corrected_content=None,
            status=CorrectionStatus.ROLLED_BACK,
            validation_result=ValidationResult.failed(reason or "Correction rolled back"),
            completed_at=datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "id": self.id,
            "error_id": self.error_id,
            "strategy": self.strategy.value,
            "status": self.status.value,
            "attempt_number": self.attempt_number,
            "corrected_content": self.corrected_content,
            "validation": self.validation_result.to_dict() if self.validation_result else None,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }
