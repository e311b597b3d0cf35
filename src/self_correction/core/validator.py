"""Adapter between the engine and the injected validator.

Maps error types to validation categories, bounds validator calls by a
deadline, and builds the detector-driven composite check used as the final
verdict of a correction pass.
"""

from __future__ import annotations

import structlog

from self_correction.core.error_detector import ErrorDetector
from self_correction.interfaces.corrector import Validator
from self_correction.models.errors import ErrorType
from self_correction.models.validation import (
    ValidationCategory,
    ValidationCheck,
    ValidationResult,
)
from self_correction.utils.async_helpers import maybe_await, with_timeout
from self_correction.utils.logging import LogEventNames

log = structlog.get_logger()

_CATEGORY_BY_ERROR_TYPE: dict[ErrorType, ValidationCategory] = {
    ErrorType.SYNTAX_ERROR: ValidationCategory.SYNTAX,
    ErrorType.TYPE_ERROR: ValidationCategory.TYPES,
    ErrorType.SECURITY_ISSUE: ValidationCategory.SECURITY,
    ErrorType.PERFORMANCE_ISSUE: ValidationCategory.PERFORMANCE,
    ErrorType.TEST_FAILURE: ValidationCategory.TESTS,
    ErrorType.BUILD_FAILURE: ValidationCategory.BUILD,
    ErrorType.RUNTIME_ERROR: ValidationCategory.RUNTIME,
    ErrorType.STYLE_VIOLATION: ValidationCategory.STYLE,
}


def accept_all(content: str, category: ValidationCategory) -> ValidationCheck:
    """Validator that passes everything; used when none is injected."""
    return ValidationCheck.pass_("validation", "Passed", category)


class ValidatorAdapter:
    """Runs validation for corrections and for whole passes.

    Example:
        adapter = ValidatorAdapter(my_validator, ErrorDetector())
        result = await adapter.validate(corrected, ErrorType.SYNTAX_ERROR)
        if not result.passed:
            print(result.message)
    """

    def __init__(
        self,
        validator: Validator | None,
        detector: ErrorDetector,
        timeout: float | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            validator: Injected validator; ``accept_all`` when None
            detector: Detector whose checks back ``validate_content``
            timeout: Deadline for one validator call in seconds
        """
        self._validator: Validator = validator or accept_all
        self._detector = detector
        self._timeout = timeout

    @staticmethod
    def category_for(error_type: ErrorType) -> ValidationCategory:
        """Validation category that confirms a fix for this error type."""
        return _CATEGORY_BY_ERROR_TYPE.get(error_type, ValidationCategory.GENERAL)

    async def _run_validator(self, content: str, category: ValidationCategory) -> ValidationCheck:
        call = maybe_await(self._validator(content, category))
        if self._timeout is None:
            return await call
        return await with_timeout(
            call,
            self._timeout,
            f"Validation ({category.value}) timed out after {self._timeout}s",
        )

    async def validate(self, content: str, error_type: ErrorType) -> ValidationResult:
        """Validate corrected content with the injected validator.

        Raises:
            Exception: Whatever the validator raises, including TimeoutError
        """
        check = await self._run_validator(content, self.category_for(error_type))
        return ValidationResult.from_checks([check])

    def validate_content(self, content: str) -> ValidationResult:
        """Detector-driven composite check of the whole content."""
        checks: list[ValidationCheck] = []

        syntax_errors = self._detector.detect_syntax_errors(content)
        if syntax_errors:
            checks.append(
                ValidationCheck.fail(
                    "syntax",
                    f"Found {len(syntax_errors)} syntax error(s)",
                    ValidationCategory.SYNTAX,
                )
            )
        else:
            checks.append(ValidationCheck.pass_("syntax", "No syntax errors", ValidationCategory.SYNTAX))

        if self._detector.config.enable_security_check:
            security_issues = self._detector.detect_security_issues(content)
            if security_issues:
                checks.append(
                    ValidationCheck.fail(
                        "security",
                        f"Found {len(security_issues)} security issue(s)",
                        ValidationCategory.SECURITY,
                    )
                )
            else:
                checks.append(
                    ValidationCheck.pass_("security", "No security issues", ValidationCategory.SECURITY)
                )

        if self._detector.detect_incomplete_response(content):
            checks.append(
                ValidationCheck.fail(
                    "completeness", "Response appears incomplete", ValidationCategory.GENERAL
                )
            )
        else:
            checks.append(
                ValidationCheck.pass_("completeness", "Response is complete", ValidationCategory.GENERAL)
            )

        return ValidationResult.from_checks(checks)

    async def validate_final(self, content: str, run_tests: bool) -> ValidationResult:
        """Final verdict of a correction pass.

        The composite content check, plus a TESTS check from the injected
        validator when ``run_tests`` is set. A validator that raises yields a
        failing TESTS check instead of aborting the pass.
        """
        result = self.validate_content(content)
        if not run_tests:
            return result

        try:
            tests = await self._run_validator(content, ValidationCategory.TESTS)
        except Exception as e:
            log.warning(
                LogEventNames.VALIDATOR_FAILED,
                category=ValidationCategory.TESTS.value,
                error=str(e),
                exception_type=type(e).__name__,
            )
            tests = ValidationCheck.fail("tests", str(e) or type(e).__name__, ValidationCategory.TESTS)

        return ValidationResult.from_checks([*result.checks, tests])
