"""Data models for detected errors."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .strategy import CorrectionStrategy


class ErrorType(Enum):
    """Category of a defect found in generated content."""

    SYNTAX_ERROR = "syntax_error"
    LOGIC_ERROR = "logic_error"
    TYPE_ERROR = "type_error"
    MISSING_IMPORT = "missing_import"
    UNDEFINED_REFERENCE = "undefined_reference"
    API_MISUSE = "api_misuse"
    HALLUCINATION = "hallucination"
    SECURITY_ISSUE = "security_issue"
    PERFORMANCE_ISSUE = "performance_issue"
    STYLE_VIOLATION = "style_violation"
    INCOMPLETE_RESPONSE = "incomplete_response"
    CONTEXT_MISMATCH = "context_mismatch"
    TEST_FAILURE = "test_failure"
    BUILD_FAILURE = "build_failure"
    RUNTIME_ERROR = "runtime_error"

    @property
    def display_name(self) -> str:
        """Human-readable error type name."""
        return _ERROR_TYPE_INFO[self][0]

    @property
    def description(self) -> str:
        """One-line explanation of the error type."""
        return _ERROR_TYPE_INFO[self][1]

    @property
    def default_strategy(self) -> CorrectionStrategy:
        """Strategy used when nothing more specific applies."""
        return _ERROR_TYPE_INFO[self][2]


_ERROR_TYPE_INFO: dict[ErrorType, tuple[str, str, CorrectionStrategy]] = {
    ErrorType.SYNTAX_ERROR: (
        "Syntax Error",
        "Invalid code syntax that won't compile",
        CorrectionStrategy.REGENERATE_SECTION,
    ),
    ErrorType.LOGIC_ERROR: (
        "Logic Error",
        "Code compiles but has incorrect logic",
        CorrectionStrategy.TARGETED_FIX,
    ),
    ErrorType.TYPE_ERROR: (
        "Type Error",
        "Type mismatch or incompatible types",
        CorrectionStrategy.TARGETED_FIX,
    ),
    ErrorType.MISSING_IMPORT: (
        "Missing Import",
        "Required import statement missing",
        CorrectionStrategy.ADD_MISSING,
    ),
    ErrorType.UNDEFINED_REFERENCE: (
        "Undefined Reference",
        "Reference to undefined variable, function, or class",
        CorrectionStrategy.TARGETED_FIX,
    ),
    ErrorType.API_MISUSE: (
        "API Misuse",
        "Incorrect use of API or library",
        CorrectionStrategy.REGENERATE_SECTION,
    ),
    ErrorType.HALLUCINATION: (
        "Hallucination",
        "Made up API, function, or information",
        CorrectionStrategy.FULL_REGENERATION,
    ),
    ErrorType.SECURITY_ISSUE: (
        "Security Issue",
        "Potential security vulnerability",
        CorrectionStrategy.TARGETED_FIX,
    ),
    ErrorType.PERFORMANCE_ISSUE: (
        "Performance Issue",
        "Inefficient or slow code pattern",
        CorrectionStrategy.TARGETED_FIX,
    ),
    ErrorType.STYLE_VIOLATION: (
        "Style Violation",
        "Code style or convention violation",
        CorrectionStrategy.TARGETED_FIX,
    ),
    ErrorType.INCOMPLETE_RESPONSE: (
        "Incomplete Response",
        "Response was cut off or incomplete",
        CorrectionStrategy.CONTINUE_GENERATION,
    ),
    ErrorType.CONTEXT_MISMATCH: (
        "Context Mismatch",
        "Response doesn't match the given context",
        CorrectionStrategy.REGENERATE_WITH_CONTEXT,
    ),
    ErrorType.TEST_FAILURE: (
        "Test Failure",
        "Generated code fails tests",
        CorrectionStrategy.ITERATIVE_REFINEMENT,
    ),
    ErrorType.BUILD_FAILURE: (
        "Build Failure",
        "Code fails to compile or build",
        CorrectionStrategy.ITERATIVE_REFINEMENT,
    ),
    ErrorType.RUNTIME_ERROR: (
        "Runtime Error",
        "Code throws exception at runtime",
        CorrectionStrategy.TARGETED_FIX,
    ),
}


class ErrorSeverity(Enum):
    """How urgently a detected error needs fixing."""

    CRITICAL = "critical"  # Must be fixed immediately
    HIGH = "high"  # Should be fixed before use
    MEDIUM = "medium"  # Should be fixed but code may work
    LOW = "low"  # Nice to fix but not urgent
    INFO = "info"  # Informational only

    @property
    def display_name(self) -> str:
        """Human-readable severity name."""
        return self.value.capitalize()

    @property
    def priority(self) -> int:
        """Sort key; higher is corrected first."""
        return _SEVERITY_PRIORITY[self]

    @property
    def requires_correction(self) -> bool:
        """Whether errors of this severity must be corrected."""
        return self in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH)


_SEVERITY_PRIORITY: dict[ErrorSeverity, int] = {
    ErrorSeverity.CRITICAL: 4,
    ErrorSeverity.HIGH: 3,
    ErrorSeverity.MEDIUM: 2,
    ErrorSeverity.LOW: 1,
    ErrorSeverity.INFO: 0,
}


@dataclass(frozen=True)
class ErrorLocation:
    """Where an error sits in the content."""

    file: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    start_column: int | None = None
    end_column: int | None = None

    @property
    def display_string(self) -> str:
        """
        Human-readable location.

        Format: 'file:start-end', with missing parts omitted.
        """
        result = self.file or ""
        if self.start_line is not None:
            if result:
                result += ":"
            result += str(self.start_line)
            if self.end_line is not None and self.end_line != self.start_line:
                result += f"-{self.end_line}"
        return result

    @classmethod
    def line(cls, line_number: int, file: str | None = None) -> "ErrorLocation":
        """Location spanning a single line."""
        return cls(file=file, start_line=line_number, end_line=line_number)

    @classmethod
    def range(cls, start_line: int, end_line: int, file: str | None = None) -> "ErrorLocation":
        """Location spanning a range of lines."""
        return cls(file=file, start_line=start_line, end_line=end_line)


@dataclass(frozen=True)
class DetectedError:
    """A defect found in generated content."""

    type: ErrorType
    severity: ErrorSeverity
    description: str
    location: ErrorLocation | None = None
    context: str | None = None  # Surrounding text
    suggested_fix: str | None = None
    confidence: float = 0.8  # 0.0 to 1.0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    @property
    def is_critical(self) -> bool:
        """Check if this is a critical error."""
        return self.severity == ErrorSeverity.CRITICAL

    @property
    def is_high_confidence(self) -> bool:
        """Check if the detection is high confidence."""
        return self.confidence >= 0.8

    @property
    def has_suggested_fix(self) -> bool:
        """Check if a non-blank fix is suggested."""
        return bool(self.suggested_fix and self.suggested_fix.strip())

    @classmethod
    def syntax(
        cls,
        description: str,
        location: ErrorLocation | None = None,
        fix: str | None = None,
    ) -> "DetectedError":
        """Create a syntax error."""
        return cls(
            type=ErrorType.SYNTAX_ERROR,
            severity=ErrorSeverity.HIGH,
            description=description,
            location=location,
            suggested_fix=fix,
        )

    @classmethod
    def logic(cls, description: str, context: str | None = None) -> "DetectedError":
        """Create a logic error."""
        return cls(
            type=ErrorType.LOGIC_ERROR,
            severity=ErrorSeverity.HIGH,
            description=description,
            context=context,
        )

    @classmethod
    def hallucination(cls, description: str, confidence: float = 0.7) -> "DetectedError":
        """Create a hallucination error."""
        return cls(
            type=ErrorType.HALLUCINATION,
            severity=ErrorSeverity.MEDIUM,
            description=description,
            confidence=confidence,
        )

    @classmethod
    def incomplete(cls, description: str) -> "DetectedError":
        """Create an incomplete response error."""
        return cls(
            type=ErrorType.INCOMPLETE_RESPONSE,
            severity=ErrorSeverity.MEDIUM,
            description=description,
        )

    @classmethod
    def security(
        cls,
        description: str,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        fix: str | None = None,
        confidence: float = 0.8,
    ) -> "DetectedError":
        """Create a security issue."""
        return cls(
            type=ErrorType.SECURITY_ISSUE,
            severity=severity,
            description=description,
            suggested_fix=fix,
            confidence=confidence,
        )

    @classmethod
    def style(
        cls,
        description: str,
        location: ErrorLocation | None = None,
        confidence: float = 0.6,
    ) -> "DetectedError":
        """Create a style violation."""
        return cls(
            type=ErrorType.STYLE_VIOLATION,
            severity=ErrorSeverity.LOW,
            description=description,
            location=location,
            confidence=confidence,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "location": self.location.display_string if self.location else None,
            "context": self.context,
            "suggested_fix": self.suggested_fix,
            "confidence": self.confidence,
            "detected_at": self.detected_at.isoformat(),
        }
