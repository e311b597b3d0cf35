"""Correction strategy selection."""

from __future__ import annotations

from self_correction.models.errors import DetectedError, ErrorType
from self_correction.models.strategy import CorrectionStrategy

# Escalation ladder indexed by the number of prior attempts
_ESCALATION = (
    CorrectionStrategy.TARGETED_FIX,
    CorrectionStrategy.REGENERATE_SECTION,
    CorrectionStrategy.FULL_REGENERATION,
)

_GENERIC_CATALOG = (
    CorrectionStrategy.TARGETED_FIX,
    CorrectionStrategy.REGENERATE_SECTION,
    CorrectionStrategy.FULL_REGENERATION,
)

_CATALOG: dict[ErrorType, tuple[CorrectionStrategy, ...]] = {
    ErrorType.SYNTAX_ERROR: _GENERIC_CATALOG,
    ErrorType.INCOMPLETE_RESPONSE: (
        CorrectionStrategy.CONTINUE_GENERATION,
        CorrectionStrategy.REGENERATE_SECTION,
    ),
    ErrorType.HALLUCINATION: (
        CorrectionStrategy.FULL_REGENERATION,
        CorrectionStrategy.REGENERATE_WITH_CONTEXT,
    ),
    ErrorType.MISSING_IMPORT: (
        CorrectionStrategy.ADD_MISSING,
        CorrectionStrategy.TARGETED_FIX,
    ),
}


class StrategySelector:
    """Picks how to correct an error.

    All methods are pure: the same inputs always give the same strategy.

    Example:
        selector = StrategySelector()
        selector.default_strategy(ErrorType.HALLUCINATION)  # FULL_REGENERATION
        selector.suggest(error, previous_attempts=1)        # REGENERATE_SECTION
    """

    @staticmethod
    def default_strategy(error_type: ErrorType) -> CorrectionStrategy:
        """Strategy for the first attempt at an error of this type."""
        return error_type.default_strategy

    @staticmethod
    def suggest(error: DetectedError, previous_attempts: int = 0) -> CorrectionStrategy:
        """Escalate with the number of failed attempts, regardless of error type.

        Args:
            error: The error being corrected (unused by the ladder)
            previous_attempts: Attempts already made for this error

        Returns:
            TARGETED_FIX, then REGENERATE_SECTION, then FULL_REGENERATION
        """
        if previous_attempts < 0:
            raise ValueError("previous_attempts cannot be negative")
        return _ESCALATION[min(previous_attempts, len(_ESCALATION) - 1)]

    @staticmethod
    def catalog(error_type: ErrorType) -> list[CorrectionStrategy]:
        """Strategies worth offering an operator for this error type."""
        return list(_CATALOG.get(error_type, _GENERIC_CATALOG))
