"""Aggregate statistics across correction sessions."""

from dataclasses import dataclass, field
from typing import Any

from .errors import ErrorSeverity, ErrorType
from .strategy import CorrectionStrategy


@dataclass(frozen=True)
class CorrectionStats:
    """Counters over every session an engine has seen."""

    total_sessions: int = 0
    active_sessions: int = 0
    total_errors: int = 0
    total_attempts: int = 0
    successful_corrections: int = 0
    errors_by_type: dict[ErrorType, int] = field(default_factory=dict)
    errors_by_severity: dict[ErrorSeverity, int] = field(default_factory=dict)
    strategies_used: dict[CorrectionStrategy, int] = field(default_factory=dict)
    average_attempts_per_error: float = 0.0

    @property
    def success_rate(self) -> float:
        """Fraction of attempts that succeeded; 0.0 with no attempts."""
        if self.total_attempts == 0:
            return 0.0
        return self.successful_corrections / self.total_attempts

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "total_sessions": self.total_sessions,
            "active_sessions": self.active_sessions,
            "total_errors": self.total_errors,
            "total_attempts": self.total_attempts,
            "successful_corrections": self.successful_corrections,
            "success_rate": self.success_rate,
            "average_attempts_per_error": self.average_attempts_per_error,
            "errors_by_type": {k.value: v for k, v in self.errors_by_type.items()},
            "errors_by_severity": {k.value: v for k, v in self.errors_by_severity.items()},
            "strategies_used": {k.value: v for k, v in self.strategies_used.items()},
        }
