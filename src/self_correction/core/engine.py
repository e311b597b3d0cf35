"""Public entry point for the self-correction engine.

This module implements the SelfCorrectionEngine class that wires the
components together and exposes the library surface:
- Session management (create, inspect, end, clear)
- Error detection, optionally recorded into a session
- Single, whole-session and iterative correction
- Validation and strategy queries
- Statistics, metrics and event subscriptions

Each engine owns its own session store, event bus and metrics registry;
nothing is shared between instances.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from self_correction.config.loader import validate_config
from self_correction.config.schema import CorrectionConfig, EngineConfig
from self_correction.core.error_detector import ErrorDetector
from self_correction.core.events import EventBus, EventListener, Subscription
from self_correction.core.orchestrator import CorrectionOrchestrator
from self_correction.core.session_store import SessionStore
from self_correction.core.strategy_selector import StrategySelector
from self_correction.core.validator import ValidatorAdapter
from self_correction.models.stats import CorrectionStats
from self_correction.utils.logging import LogEventNames
from self_correction.utils.metrics import MetricsRegistry

if TYPE_CHECKING:
    from self_correction.interfaces.corrector import Corrector, Validator
    from self_correction.interfaces.detector import Detector
    from self_correction.models.attempt import CorrectionAttempt
    from self_correction.models.errors import DetectedError, ErrorSeverity, ErrorType
    from self_correction.models.session import CorrectionResult, CorrectionSession
    from self_correction.models.strategy import CorrectionStrategy
    from self_correction.models.validation import ValidationResult
    from self_correction.utils.async_helpers import CancellationToken

log = structlog.get_logger()


def pass_through(error: DetectedError, content: str, strategy: CorrectionStrategy) -> str:
    """Corrector that returns the content unchanged; used when none is injected."""
    return content


class SelfCorrectionEngine:
    """Detects, corrects and validates defects in generated content.

    The engine never fixes content itself. It delegates to an injected
    corrector (typically an LLM call) and an optional validator (compiler,
    test runner), and keeps the bookkeeping consistent under concurrent use.

    Example:
        engine = SelfCorrectionEngine(config, corrector=llm_fix)
        with engine.subscribe(print):
            result = await engine.iterative_correction("task-1", generated)
        print(result.success, result.final_content)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        corrector: Corrector | None = None,
        validator: Validator | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration (defaults when omitted)
            corrector: Correction procedure; content is returned unchanged when None
            validator: Validation procedure; everything passes when None

        Raises:
            ValueError: If the configuration limits contradict each other
        """
        self.config = config or EngineConfig()
        validate_config(self.config)

        self.metrics = MetricsRegistry()
        self._store = SessionStore()
        self._detector = ErrorDetector(self.config.detector)
        self._selector = StrategySelector()
        self._validation = ValidatorAdapter(
            validator,
            self._detector,
            timeout=self.config.runtime.validation_timeout,
        )
        self._events = EventBus(self.metrics)
        self._orchestrator = CorrectionOrchestrator(
            store=self._store,
            detector=self._detector,
            selector=self._selector,
            validation=self._validation,
            events=self._events,
            metrics=self.metrics,
            corrector=corrector or pass_through,
            runtime=self.config.runtime,
            retry=self.config.retry,
        )

    @property
    def detector(self) -> ErrorDetector:
        """The engine's error detector."""
        return self._detector

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, task_id: str, config: CorrectionConfig | None = None) -> CorrectionSession:
        """Create a new ACTIVE session; uses the engine's correction config by default."""
        return self._orchestrator.create_session(task_id, config or self.config.correction)

    def get_session(self, session_id: str) -> CorrectionSession | None:
        """Current snapshot of a session."""
        return self._store.get(session_id)

    def get_active_sessions(self) -> list[CorrectionSession]:
        """Snapshots of every ACTIVE session."""
        return self._store.list_active()

    def end_session(self, session_id: str, success: bool = True) -> CorrectionSession | None:
        """End a session as COMPLETED or FAILED; a no-op on ended sessions."""
        return self._orchestrator.end_session(session_id, success)

    def cancel_session(self, session_id: str) -> CorrectionSession | None:
        """End a session as CANCELLED; a no-op on ended sessions."""
        return self._orchestrator.cancel_session(session_id)

    def clear_sessions(self) -> None:
        """Forget every session."""
        self._store.clear()
        self.metrics.active_sessions.set(0)

    # =========================================================================
    # Detection
    # =========================================================================

    def detect_errors(self, content: str, session_id: str | None = None) -> list[DetectedError]:
        """Detect errors in content.

        Args:
            content: Generated content to scan
            session_id: When given, findings are added to this session and
                published as ErrorDetected events

        Returns:
            Findings at or above the configured confidence threshold
        """
        errors = self._detector.detect(content)
        if session_id is not None:
            self._orchestrator.record_errors(session_id, errors)
        return errors

    def register_detector(self, detector: Detector) -> None:
        """Run an additional detector after the built-in ones."""
        self._detector.register(detector)

    # =========================================================================
    # Correction
    # =========================================================================

    async def correct_error(
        self,
        session_id: str,
        error_id: str,
        content: str,
        strategy: CorrectionStrategy | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> CorrectionAttempt | None:
        """Make one correction attempt; see CorrectionOrchestrator.correct_error."""
        return await self._orchestrator.correct_error(
            session_id,
            error_id,
            content,
            strategy,
            cancel_token=cancel_token,
            timeout=timeout,
        )

    async def correct_all_errors(
        self, session_id: str, content: str, *, finalize: bool = True
    ) -> CorrectionResult:
        """Correct every uncorrected error in a session, most severe first."""
        return await self._orchestrator.correct_all_errors(session_id, content, finalize=finalize)

    async def iterative_correction(
        self,
        task_id: str,
        content: str,
        max_iterations: int = 3,
        config: CorrectionConfig | None = None,
    ) -> CorrectionResult:
        """Detect and correct in rounds until the content is clean or rounds run out."""
        return await self._orchestrator.iterative_correction(
            task_id,
            content,
            max_iterations=max_iterations,
            config=config or self.config.correction,
        )

    def skip_error(
        self, session_id: str, error_id: str, reason: str | None = None
    ) -> CorrectionAttempt | None:
        """Record an operator decision not to correct an error."""
        return self._orchestrator.skip_error(session_id, error_id, reason)

    # =========================================================================
    # Validation and strategy
    # =========================================================================

    async def validate_correction(self, content: str, error_type: ErrorType) -> ValidationResult:
        """Validate content with the injected validator for an error type's category."""
        return await self._validation.validate(content, error_type)

    def validate_content(self, content: str) -> ValidationResult:
        """Detector-driven syntax, security and completeness checks."""
        return self._validation.validate_content(content)

    def suggest_strategy(self, error: DetectedError, previous_attempts: int = 0) -> CorrectionStrategy:
        """Escalating strategy for the given number of prior attempts."""
        return self._selector.suggest(error, previous_attempts)

    def get_strategies_for_error(self, error_type: ErrorType) -> list[CorrectionStrategy]:
        """Strategies worth offering for an error type."""
        return self._selector.catalog(error_type)

    # =========================================================================
    # Statistics and events
    # =========================================================================

    def get_stats(self) -> CorrectionStats:
        """Aggregate counters over every session in the store."""
        sessions = self._store.list_all()
        errors = [error for session in sessions for error in session.errors]
        attempts = [attempt for session in sessions for attempt in session.attempts]

        by_type: dict[ErrorType, int] = {}
        by_severity: dict[ErrorSeverity, int] = {}
        for error in errors:
            by_type[error.type] = by_type.get(error.type, 0) + 1
            by_severity[error.severity] = by_severity.get(error.severity, 0) + 1

        strategies: dict[CorrectionStrategy, int] = {}
        for attempt in attempts:
            strategies[attempt.strategy] = strategies.get(attempt.strategy, 0) + 1

        return CorrectionStats(
            total_sessions=len(sessions),
            active_sessions=sum(1 for session in sessions if not session.is_terminal),
            total_errors=len(errors),
            total_attempts=len(attempts),
            successful_corrections=sum(1 for attempt in attempts if attempt.is_successful),
            errors_by_type=by_type,
            errors_by_severity=by_severity,
            strategies_used=strategies,
            average_attempts_per_error=len(attempts) / len(errors) if errors else 0.0,
        )

    def add_listener(self, listener: EventListener) -> None:
        """Register an event listener."""
        self._events.add_listener(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Unregister an event listener."""
        self._events.remove_listener(listener)

    def subscribe(self, listener: EventListener) -> Subscription:
        """Register a listener and get a handle that unregisters it."""
        return self._events.subscribe(listener)


def create_engine(
    config: EngineConfig | None = None,
    corrector: Corrector | None = None,
    validator: Validator | None = None,
) -> SelfCorrectionEngine:
    """Create an engine, logging the effective configuration."""
    engine = SelfCorrectionEngine(config, corrector=corrector, validator=validator)
    log.debug(
        LogEventNames.ENGINE_CREATED,
        detectors=engine.detector.detector_names,
        max_attempts=engine.config.correction.max_attempts,
        max_attempts_per_error=engine.config.correction.max_attempts_per_error,
        custom_corrector=corrector is not None,
        custom_validator=validator is not None,
    )
    return engine
