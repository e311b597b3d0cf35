"""Data models for correction strategies."""

from enum import Enum


class CorrectionStrategy(Enum):
    """Ways an error can be corrected, from cheapest to most expensive."""

    TARGETED_FIX = "targeted_fix"
    ADD_MISSING = "add_missing"
    REGENERATE_SECTION = "regenerate_section"
    CONTINUE_GENERATION = "continue_generation"
    REGENERATE_WITH_CONTEXT = "regenerate_with_context"
    FULL_REGENERATION = "full_regeneration"
    ITERATIVE_REFINEMENT = "iterative_refinement"
    REQUEST_CLARIFICATION = "request_clarification"
    ROLLBACK = "rollback"
    SKIP = "skip"

    @property
    def display_name(self) -> str:
        """Human-readable strategy name."""
        return _STRATEGY_INFO[self][0]

    @property
    def description(self) -> str:
        """What the corrector is expected to do with this strategy."""
        return _STRATEGY_INFO[self][1]

    @property
    def cost_level(self) -> int:
        """Relative cost, 0 (free) to 5 (full regeneration). Reporting only."""
        return _STRATEGY_INFO[self][2]


# display name, description, cost level
_STRATEGY_INFO: dict[CorrectionStrategy, tuple[str, str, int]] = {
    CorrectionStrategy.TARGETED_FIX: (
        "Targeted Fix",
        "Fix only the specific error location",
        1,
    ),
    CorrectionStrategy.ADD_MISSING: (
        "Add Missing",
        "Add missing imports, types, or declarations",
        1,
    ),
    CorrectionStrategy.REGENERATE_SECTION: (
        "Regenerate Section",
        "Regenerate the section containing the error",
        3,
    ),
    CorrectionStrategy.CONTINUE_GENERATION: (
        "Continue Generation",
        "Continue generating from where it stopped",
        2,
    ),
    CorrectionStrategy.REGENERATE_WITH_CONTEXT: (
        "Regenerate with Context",
        "Regenerate with improved context information",
        3,
    ),
    CorrectionStrategy.FULL_REGENERATION: (
        "Full Regeneration",
        "Completely regenerate the response",
        5,
    ),
    CorrectionStrategy.ITERATIVE_REFINEMENT: (
        "Iterative Refinement",
        "Repeatedly test and fix until passing",
        4,
    ),
    CorrectionStrategy.REQUEST_CLARIFICATION: (
        "Request Clarification",
        "Ask user for more information",
        2,
    ),
    CorrectionStrategy.ROLLBACK: (
        "Rollback",
        "Revert to a previous working version",
        1,
    ),
    CorrectionStrategy.SKIP: (
        "Skip",
        "Skip this correction",
        0,
    ),
}
