"""Composite error detector.

Runs every enabled detector over a piece of content, drops low-confidence
findings, and exposes each detector individually for validation checks.
"""

from __future__ import annotations

import structlog

from self_correction.config.schema import ErrorDetectorConfig
from self_correction.core.detectors import (
    HallucinationDetector,
    IncompletenessDetector,
    LogicDetector,
    SecurityDetector,
    StyleDetector,
    SyntaxDetector,
    TypeMismatchDetector,
)
from self_correction.interfaces.detector import Detector
from self_correction.models.errors import DetectedError
from self_correction.utils.logging import LogEventNames

log = structlog.get_logger()


class ErrorDetector:
    """Runs the configured detectors over generated content.

    Responsibilities:
    - Gate each built-in detector on its configuration flag
    - Run extra detectors registered at runtime
    - Filter findings below the confidence threshold

    Example:
        detector = ErrorDetector(ErrorDetectorConfig(enable_style_check=True))
        for error in detector.detect(content):
            print(error.severity.display_name, error.description)
    """

    def __init__(self, config: ErrorDetectorConfig | None = None) -> None:
        """Initialize the detector set.

        Args:
            config: Detector configuration (defaults when omitted)
        """
        self.config = config or ErrorDetectorConfig()

        self._syntax = SyntaxDetector()
        self._type = TypeMismatchDetector()
        self._hallucination = HallucinationDetector()
        self._incompleteness = IncompletenessDetector()
        self._security = SecurityDetector()
        self._logic = LogicDetector()
        self._style = StyleDetector(max_line_length=self.config.max_line_length)

        # (detector, enabled) in run order; incompleteness has no gate
        self._detectors: list[tuple[Detector, bool]] = [
            (self._syntax, self.config.enable_syntax_check),
            (self._type, self.config.enable_type_check),
            (self._hallucination, self.config.enable_hallucination_detection),
            (self._incompleteness, True),
            (self._security, self.config.enable_security_check),
            (self._logic, self.config.enable_logic_check),
            (self._style, self.config.enable_style_check),
        ]

    @property
    def detector_names(self) -> list[str]:
        """Names of the detectors that will run, in order."""
        return [detector.name for detector, enabled in self._detectors if enabled]

    def register(self, detector: Detector) -> None:
        """Add a detector that runs after the built-in ones.

        Raises:
            ValueError: If a detector with the same name is already registered
        """
        if any(existing.name == detector.name for existing, _ in self._detectors):
            raise ValueError(f"Detector {detector.name!r} is already registered")
        self._detectors.append((detector, True))

    def detect(self, content: str) -> list[DetectedError]:
        """Run all enabled detectors and filter by confidence.

        Args:
            content: Generated content to scan

        Returns:
            Findings at or above ``min_confidence``, grouped by detector
        """
        findings: list[DetectedError] = []
        for detector, enabled in self._detectors:
            if not enabled:
                log.debug(LogEventNames.DETECTOR_SKIPPED, detector=detector.name)
                continue
            findings.extend(detector.detect(content))

        filtered = [error for error in findings if error.confidence >= self.config.min_confidence]

        log.debug(
            LogEventNames.DETECTION_COMPLETE,
            found=len(findings),
            kept=len(filtered),
            language=self.config.language,
        )
        return filtered

    # Individual checks, ungated and unfiltered

    def detect_syntax_errors(self, content: str) -> list[DetectedError]:
        """Unbalanced delimiters and compiler error messages."""
        return self._syntax.detect(content)

    def detect_type_errors(self, content: str) -> list[DetectedError]:
        """Type mismatch reports."""
        return self._type.detect(content)

    def detect_hallucinations(self, content: str) -> list[DetectedError]:
        """Fabrication indicators and fake API calls."""
        return self._hallucination.detect(content)

    def detect_incomplete_response(self, content: str) -> list[DetectedError]:
        """Short, truncated or unfinished responses."""
        return self._incompleteness.detect(content)

    def detect_security_issues(self, content: str) -> list[DetectedError]:
        """SQL concatenation and hardcoded credentials."""
        return self._security.detect(content)

    def detect_logic_errors(self, content: str) -> list[DetectedError]:
        """Self-comparisons and assignments used as conditions."""
        return self._logic.detect(content)

    def detect_style_issues(self, content: str) -> list[DetectedError]:
        """Overlong lines and mixed indentation."""
        return self._style.detect(content)
