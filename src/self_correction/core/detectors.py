"""Heuristic detectors for defects in generated content.

Each detector implements the ``Detector`` protocol and looks for one family
of defects:
- Syntax: unbalanced delimiters and compiler-style error messages
- Type: type mismatch phrasing
- Hallucination: indicator phrases and obviously fake API calls
- Incompleteness: short, truncated or unfinished responses
- Security: SQL built by concatenation and hardcoded credentials
- Logic: self-comparisons and assignments inside conditions
- Style: overlong lines and mixed indentation

Detection is heuristic; nothing here parses or compiles code. Every
detector is pure, so the same content always yields the same findings.
"""

from __future__ import annotations

import re

from self_correction.models.errors import (
    DetectedError,
    ErrorLocation,
    ErrorSeverity,
    ErrorType,
)


def _line_of(content: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return content.count("\n", 0, offset) + 1


class SyntaxDetector:
    """Unbalanced braces or parentheses and compiler error messages.

    Example:
        >>> [e.description for e in SyntaxDetector().detect("fun f() { ")]
        ['Unbalanced braces: 1 open, 0 close']
    """

    name = "syntax"

    # One finding per pattern, for its first match
    ERROR_PATTERNS = (
        re.compile(r"error:\s*(.+)", re.IGNORECASE),
        re.compile(r"unresolved reference:\s*(.+)", re.IGNORECASE),
        re.compile(r"expecting\s+(.+)", re.IGNORECASE),
    )

    def detect(self, content: str) -> list[DetectedError]:
        """Check delimiter balance and scan for error messages."""
        errors: list[DetectedError] = []

        open_braces = content.count("{")
        close_braces = content.count("}")
        if open_braces != close_braces:
            missing = "closing" if open_braces > close_braces else "opening"
            errors.append(
                DetectedError.syntax(
                    f"Unbalanced braces: {open_braces} open, {close_braces} close",
                    fix=f"Add {abs(open_braces - close_braces)} {missing} brace(s)",
                )
            )

        open_parens = content.count("(")
        close_parens = content.count(")")
        if open_parens != close_parens:
            errors.append(
                DetectedError.syntax(
                    f"Unbalanced parentheses: {open_parens} open, {close_parens} close"
                )
            )

        for pattern in self.ERROR_PATTERNS:
            match = pattern.search(content)
            if match:
                errors.append(
                    DetectedError.syntax(
                        match.group(1),
                        location=ErrorLocation.line(_line_of(content, match.start())),
                    )
                )

        return errors


class TypeMismatchDetector:
    """Compiler-style "type mismatch" reports."""

    name = "type"

    TYPE_MISMATCH_PATTERN = re.compile(
        r"type mismatch.*expected:?\s*(\w+).*found:?\s*(\w+)",
        re.IGNORECASE,
    )

    def detect(self, content: str) -> list[DetectedError]:
        match = self.TYPE_MISMATCH_PATTERN.search(content)
        if not match:
            return []
        expected, found = match.group(1), match.group(2)
        return [
            DetectedError(
                type=ErrorType.TYPE_ERROR,
                severity=ErrorSeverity.HIGH,
                description=f"Type mismatch: expected {expected}, found {found}",
                location=ErrorLocation.line(_line_of(content, match.start())),
                confidence=0.9,
            )
        ]


class HallucinationDetector:
    """Phrases that betray fabricated APIs or facts."""

    name = "hallucination"

    INDICATORS = (
        "nonexistent",
        "deprecated since",
        "not a real",
        "fabricated",
        "doesn't exist",
        "made up",
        "imaginary api",
    )
    FAKE_API_PATTERN = re.compile(r"(\w+)\.doMagic\(|autoSolve\(|fixEverything\(")

    def detect(self, content: str) -> list[DetectedError]:
        errors: list[DetectedError] = []
        lowered = content.lower()

        for indicator in self.INDICATORS:
            if indicator in lowered:
                errors.append(
                    DetectedError.hallucination(
                        f"Possible hallucination detected: content mentions '{indicator}'",
                        confidence=0.6,
                    )
                )

        match = self.FAKE_API_PATTERN.search(content)
        if match:
            errors.append(
                DetectedError.hallucination(
                    f"Suspicious API call detected: {match.group(0)}",
                    confidence=0.8,
                )
            )

        return errors


class IncompletenessDetector:
    """Responses that are too short, truncated, or unfinished."""

    name = "incompleteness"

    MIN_LENGTH = 50
    MAX_TODO_MARKERS = 3
    CODE_FENCE = "```"
    TODO_PATTERN = re.compile(r"//\s*TODO|/\*\s*TODO|#\s*TODO", re.IGNORECASE)

    def detect(self, content: str) -> list[DetectedError]:
        errors: list[DetectedError] = []

        if len(content) < self.MIN_LENGTH:
            errors.append(DetectedError.incomplete(f"Response is too short ({len(content)} chars)"))

        if content.endswith(("...", "…")):
            errors.append(DetectedError.incomplete("Response appears to be truncated"))

        if content.count(self.CODE_FENCE) % 2 == 1:
            errors.append(DetectedError.incomplete("Unclosed code block detected"))

        todo_count = len(self.TODO_PATTERN.findall(content))
        if todo_count > self.MAX_TODO_MARKERS:
            errors.append(
                DetectedError.incomplete(
                    f"Multiple TODO markers ({todo_count}) suggest incomplete implementation"
                )
            )

        return errors


class SecurityDetector:
    """SQL injection risks and hardcoded credentials."""

    name = "security"

    SECRET_PATTERNS = (
        re.compile(r"""password\s*=\s*["'][^"']+["']""", re.IGNORECASE),
        re.compile(r"""api[_-]?key\s*=\s*["'][^"']+["']""", re.IGNORECASE),
        re.compile(r"""secret\s*=\s*["'][^"']+["']""", re.IGNORECASE),
    )

    def detect(self, content: str) -> list[DetectedError]:
        errors: list[DetectedError] = []

        if '"SELECT' in content and "+ " in content:
            errors.append(
                DetectedError.security(
                    "Possible SQL injection vulnerability: string concatenation in SQL query",
                    severity=ErrorSeverity.CRITICAL,
                    fix="Use parameterized queries or prepared statements",
                    confidence=0.85,
                )
            )

        for pattern in self.SECRET_PATTERNS:
            match = pattern.search(content)
            if match:
                # Location only; the literal itself must not end up in reports
                errors.append(
                    DetectedError(
                        type=ErrorType.SECURITY_ISSUE,
                        severity=ErrorSeverity.HIGH,
                        description="Hardcoded credential detected",
                        location=ErrorLocation.line(_line_of(content, match.start())),
                        suggested_fix="Use environment variables or secure configuration",
                        confidence=0.9,
                    )
                )

        return errors


class LogicDetector:
    """Comparisons that are always true and assignments used as conditions."""

    name = "logic"

    SELF_COMPARISON_PATTERN = re.compile(r"(?<![\w.])([A-Za-z_]\w*)\s*==\s*\1\b(?![\w.(\[])")
    ASSIGNMENT_IN_CONDITION_PATTERN = re.compile(r"\bif\s*\(\s*[A-Za-z_][\w.]*\s*=(?!=)")

    def detect(self, content: str) -> list[DetectedError]:
        errors: list[DetectedError] = []

        match = self.SELF_COMPARISON_PATTERN.search(content)
        if match:
            errors.append(
                DetectedError(
                    type=ErrorType.LOGIC_ERROR,
                    severity=ErrorSeverity.MEDIUM,
                    description=f"Comparison of '{match.group(1)}' with itself is always true",
                    location=ErrorLocation.line(_line_of(content, match.start())),
                    context=match.group(0),
                    confidence=0.6,
                )
            )

        match = self.ASSIGNMENT_IN_CONDITION_PATTERN.search(content)
        if match:
            errors.append(
                DetectedError(
                    type=ErrorType.LOGIC_ERROR,
                    severity=ErrorSeverity.MEDIUM,
                    description="Assignment used as a condition; did you mean '=='?",
                    location=ErrorLocation.line(_line_of(content, match.start())),
                    context=match.group(0),
                    suggested_fix="Use '==' to compare",
                    confidence=0.6,
                )
            )

        return errors


class StyleDetector:
    """Overlong lines and mixed tab/space indentation."""

    name = "style"

    def __init__(self, max_line_length: int = 120) -> None:
        self.max_line_length = max_line_length

    def detect(self, content: str) -> list[DetectedError]:
        errors: list[DetectedError] = []
        lines = content.splitlines()

        long_lines = [
            number
            for number, line in enumerate(lines, start=1)
            if len(line) > self.max_line_length
        ]
        if long_lines:
            errors.append(
                DetectedError.style(
                    f"{len(long_lines)} line(s) exceed {self.max_line_length} characters",
                    location=ErrorLocation.line(long_lines[0]),
                )
            )

        first_tab: int | None = None
        first_space: int | None = None
        for number, line in enumerate(lines, start=1):
            if line.startswith("\t") and first_tab is None:
                first_tab = number
            elif line.startswith(" ") and line.strip() and first_space is None:
                first_space = number
        if first_tab is not None and first_space is not None:
            errors.append(
                DetectedError.style(
                    "Mixed tab and space indentation",
                    location=ErrorLocation.line(max(first_tab, first_space)),
                )
            )

        return errors
