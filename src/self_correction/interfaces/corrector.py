"""Interfaces for the injected correction and validation procedures."""

from collections.abc import Awaitable
from typing import Protocol

from ..models.errors import DetectedError
from ..models.strategy import CorrectionStrategy
from ..models.validation import ValidationCategory, ValidationCheck


class Corrector(Protocol):
    """Produces corrected content for one error.

    The engine never fixes content itself; it delegates to a corrector,
    typically an LLM-backed callable. Both plain functions and coroutine
    functions satisfy this protocol.
    """

    def __call__(
        self,
        error: DetectedError,
        content: str,
        strategy: CorrectionStrategy,
    ) -> str | Awaitable[str]:
        """
        Correct ``error`` in ``content`` using ``strategy``.

        Security: ``content`` may contain secrets that the security
        detector flagged. Redact before sending it to a remote service.

        Args:
            error: The error to correct
            content: The full current content
            strategy: How aggressively to correct

        Returns:
            The full corrected content (not a diff)

        Raises:
            TransientCorrectionError: If the call may succeed when retried
            Exception: Any other failure; the attempt is recorded as FAILED
        """
        ...


class Validator(Protocol):
    """Judges corrected content for one validation category.

    Typical implementations compile the content, run a test suite, or
    re-run a linter.
    """

    def __call__(
        self,
        content: str,
        category: ValidationCategory,
    ) -> ValidationCheck | Awaitable[ValidationCheck]:
        """
        Validate ``content``.

        Args:
            content: Content to validate
            category: What aspect to validate

        Returns:
            A single check describing the verdict
        """
        ...
