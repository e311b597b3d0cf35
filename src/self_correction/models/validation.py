"""Data models for validation outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ValidationCategory(Enum):
    """What aspect of the content a check looked at."""

    SYNTAX = "syntax"
    SEMANTICS = "semantics"
    TYPES = "types"
    TESTS = "tests"
    BUILD = "build"
    RUNTIME = "runtime"
    STYLE = "style"
    SECURITY = "security"
    PERFORMANCE = "performance"
    GENERAL = "general"


@dataclass(frozen=True)
class ValidationCheck:
    """A single named validation check."""

    name: str
    passed: bool
    message: str | None = None
    category: ValidationCategory = ValidationCategory.GENERAL

    @classmethod
    def pass_(
        cls,
        name: str,
        message: str | None = None,
        category: ValidationCategory = ValidationCategory.GENERAL,
    ) -> "ValidationCheck":
        """Create a passing check."""
        return cls(name=name, passed=True, message=message, category=category)

    @classmethod
    def fail(
        cls,
        name: str,
        message: str,
        category: ValidationCategory = ValidationCategory.GENERAL,
    ) -> "ValidationCheck":
        """Create a failing check."""
        return cls(name=name, passed=False, message=message, category=category)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "category": self.category.value,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Aggregated verdict over zero or more checks."""

    passed: bool
    checks: tuple[ValidationCheck, ...] = ()
    message: str | None = None
    details: dict[str, str] = field(default_factory=dict)

    @property
    def passed_count(self) -> int:
        """Number of passed checks."""
        return sum(1 for check in self.checks if check.passed)

    @property
    def failed_count(self) -> int:
        """Number of failed checks."""
        return sum(1 for check in self.checks if not check.passed)

    @property
    def pass_rate(self) -> float:
        """
        Fraction of checks that passed.

        With no checks the rate follows ``passed``: 1.0 or 0.0.
        """
        if not self.checks:
            return 1.0 if self.passed else 0.0
        return self.passed_count / len(self.checks)

    @classmethod
    def success(cls, message: str | None = None) -> "ValidationResult":
        """Create a passing result without checks."""
        return cls(passed=True, message=message)

    @classmethod
    def failed(cls, message: str) -> "ValidationResult":
        """Create a failing result without checks."""
        return cls(passed=False, message=message)

    @classmethod
    def from_checks(cls, checks: "list[ValidationCheck] | tuple[ValidationCheck, ...]") -> "ValidationResult":
        """Aggregate checks; the result passes only if every check passed."""
        checks = tuple(checks)
        failed = sum(1 for check in checks if not check.passed)
        return cls(
            passed=failed == 0,
            checks=checks,
            message="All checks passed" if failed == 0 else f"{failed} check(s) failed",
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible types."""
        return {
            "passed": self.passed,
            "message": self.message,
            "pass_rate": self.pass_rate,
            "checks": [check.to_dict() for check in self.checks],
            "details": dict(self.details),
        }
