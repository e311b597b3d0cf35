"""Interface for pluggable error detectors."""

from typing import Protocol, runtime_checkable

from ..models.errors import DetectedError


@runtime_checkable
class Detector(Protocol):
    """A single heuristic check over generated content.

    Detectors must be pure: the same content always yields the same
    findings (ids and timestamps aside).
    """

    name: str

    def detect(self, content: str) -> list[DetectedError]:
        """
        Scan content for defects.

        Args:
            content: Generated content to scan

        Returns:
            Findings in the order they were found (may be empty)
        """
        ...
