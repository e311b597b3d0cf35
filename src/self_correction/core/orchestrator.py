"""Correction pipeline orchestrator.

This module implements the CorrectionOrchestrator class that drives the
self-correction loop:
1. Reserve an attempt for an error (atomic, limit-checked)
2. Pick a strategy (explicit, default for the error type, or escalated)
3. Invoke the injected corrector under retry, rate limit, deadline and
   cancellation
4. Validate the corrected content
5. Record the attempt outcome and publish events
6. Repeat over a whole session, and over rounds of re-detection

Every session write goes through the SessionStore compare-and-swap, so
concurrent calls against the same session never lose updates.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import bound_contextvars

from self_correction.config.schema import CorrectionConfig, RetryConfig, RuntimeConfig
from self_correction.models.attempt import CorrectionAttempt
from self_correction.models.events import (
    CorrectionFailed,
    CorrectionStarted,
    CorrectionSucceeded,
    ErrorDetected,
    SessionCompleted,
    ValidationCompleted,
)
from self_correction.models.session import CorrectionResult, CorrectionSession, SessionStatus
from self_correction.models.strategy import CorrectionStrategy
from self_correction.models.validation import ValidationResult
from self_correction.utils.async_helpers import (
    CancellationToken,
    RateLimiter,
    SessionNotFoundError,
    call_with_retry,
    maybe_await,
    run_cancellable,
)
from self_correction.utils.logging import LogEventNames
from self_correction.utils.metrics import Timer
from self_correction.utils.security import content_preview

if TYPE_CHECKING:
    from self_correction.core.error_detector import ErrorDetector
    from self_correction.core.events import EventBus
    from self_correction.core.session_store import SessionStore
    from self_correction.core.strategy_selector import StrategySelector
    from self_correction.core.validator import ValidatorAdapter
    from self_correction.interfaces.corrector import Corrector
    from self_correction.models.errors import DetectedError
    from self_correction.models.events import CorrectionEvent
    from self_correction.utils.metrics import MetricsRegistry

log = structlog.get_logger()


class CorrectionOrchestrator:
    """Coordinates detection, correction, validation and bookkeeping.

    Responsibilities:
    - Create, end and populate sessions
    - Run single attempts with limit checks and strict per-error ordering
    - Run severity-ordered passes over a session
    - Run bounded detect/correct rounds until the content is clean

    Failures of the injected corrector or validator never escape; they are
    recorded as FAILED attempts.

    Example:
        orchestrator = CorrectionOrchestrator(store, detector, selector,
                                              validation, events, metrics, corrector)
        result = await orchestrator.iterative_correction("task-1", generated)
    """

    def __init__(
        self,
        store: SessionStore,
        detector: ErrorDetector,
        selector: StrategySelector,
        validation: ValidatorAdapter,
        events: EventBus,
        metrics: MetricsRegistry,
        corrector: Corrector,
        runtime: RuntimeConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Session store shared with the engine
            detector: Detector used for iterative rounds
            selector: Strategy selector
            validation: Validator adapter
            events: Event bus for lifecycle events
            metrics: Engine metrics registry
            corrector: Injected correction procedure
            runtime: Deadlines and corrector rate limit
            retry: Retry policy for transient corrector failures
        """
        self._store = store
        self._detector = detector
        self._selector = selector
        self._validation = validation
        self._events = events
        self._metrics = metrics
        self._corrector = corrector
        self._runtime = runtime or RuntimeConfig()
        self._retry = retry or RetryConfig()

        self._rate_limiter: RateLimiter | None = None
        if self._runtime.corrector_rate_limit is not None:
            self._rate_limiter = RateLimiter(rate=self._runtime.corrector_rate_limit)

    def _emit(self, event: CorrectionEvent) -> None:
        self._events.emit(event)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def create_session(self, task_id: str, config: CorrectionConfig | None = None) -> CorrectionSession:
        """Create and register an ACTIVE session."""
        session = self._store.create(task_id, config)
        self._metrics.sessions_created.inc()
        self._metrics.active_sessions.inc()
        log.info(LogEventNames.SESSION_CREATED, session_id=session.id, task_id=task_id)
        return session

    def record_errors(self, session_id: str, errors: list[DetectedError]) -> CorrectionSession | None:
        """Append errors to a session and publish ErrorDetected for each.

        Returns:
            Updated session, or None if the session does not exist
        """
        if not errors:
            return self._store.get(session_id)

        def add_all(session: CorrectionSession) -> CorrectionSession:
            for error in errors:
                session = session.add_error(error)
            return session

        try:
            updated = self._store.update(session_id, add_all)
        except SessionNotFoundError:
            log.warning(LogEventNames.SESSION_NOT_FOUND, session_id=session_id)
            return None

        for error in errors:
            self._metrics.errors_detected.inc(labels={"type": error.type.value})
            self._emit(ErrorDetected(session_id, error.id, error.type, error.severity))
        return updated

    def end_session(self, session_id: str, success: bool = True) -> CorrectionSession | None:
        """End a session as COMPLETED or FAILED.

        Ending an already-ended session returns it unchanged and publishes
        nothing.

        Returns:
            The session snapshot, or None if it does not exist
        """
        status = SessionStatus.COMPLETED if success else SessionStatus.FAILED
        return self._finish(session_id, status)

    def cancel_session(self, session_id: str) -> CorrectionSession | None:
        """End a session as CANCELLED."""
        return self._finish(session_id, SessionStatus.CANCELLED)

    def _finish(self, session_id: str, status: SessionStatus) -> CorrectionSession | None:
        transitioned = False

        def finish(session: CorrectionSession) -> CorrectionSession:
            nonlocal transitioned
            transitioned = not session.is_terminal
            return session.with_status(status) if transitioned else session

        try:
            session = self._store.update(session_id, finish)
        except SessionNotFoundError:
            log.warning(LogEventNames.SESSION_NOT_FOUND, session_id=session_id)
            return None

        if not transitioned:
            return session

        self._metrics.active_sessions.dec()
        if status == SessionStatus.COMPLETED:
            self._metrics.sessions_completed.inc()
        else:
            self._metrics.sessions_failed.inc()

        corrected = session.error_count - len(session.uncorrected_errors)
        log.info(
            LogEventNames.SESSION_ENDED,
            session_id=session_id,
            status=status.value,
            errors=session.error_count,
            corrected=corrected,
            attempts=session.total_attempts,
        )
        self._emit(
            SessionCompleted(
                session_id,
                total_errors=session.error_count,
                corrected_errors=corrected,
                total_attempts=session.total_attempts,
                success=status == SessionStatus.COMPLETED,
            )
        )
        return session

    # =========================================================================
    # Single attempt
    # =========================================================================

    def _reserve(
        self,
        session_id: str,
        error_id: str,
        content: str,
        strategy: CorrectionStrategy | None,
        skip: bool = False,
    ) -> tuple[CorrectionAttempt | None, DetectedError | None]:
        """Append a new attempt for ``error_id`` if the limits allow it.

        Returns:
            (attempt, error); attempt is None when the request was rejected
        """
        reserved: CorrectionAttempt | None = None
        target: DetectedError | None = None
        rejection = ""

        def reserve(session: CorrectionSession) -> CorrectionSession:
            nonlocal reserved, target, rejection
            reserved, target, rejection = None, None, ""

            if session.is_terminal:
                rejection = "session_terminal"
                return session
            target = session.get_error(error_id)
            if target is None:
                rejection = "error_not_found"
                return session

            prior = session.attempts_for(error_id)
            if len(prior) >= session.config.max_attempts_per_error:
                rejection = LogEventNames.ATTEMPT_LIMIT_REACHED
                return session
            if any(not attempt.is_terminal for attempt in prior):
                rejection = LogEventNames.ATTEMPT_IN_PROGRESS
                return session

            chosen = strategy or self._selector.default_strategy(target.type)
            reserved = CorrectionAttempt(
                error_id=error_id,
                strategy=CorrectionStrategy.SKIP if skip else chosen,
                original_content=content,
                attempt_number=len(prior) + 1,
            )
            return session.add_attempt(reserved)

        try:
            self._store.update(session_id, reserve)
        except SessionNotFoundError:
            log.warning(LogEventNames.SESSION_NOT_FOUND, session_id=session_id)
            return None, None

        if reserved is None:
            log.info(LogEventNames.CORRECTION_REJECTED, reason=rejection, error_id=error_id)
            self._metrics.attempts_rejected.inc(labels={"reason": rejection})
        return reserved, target

    def _store_attempt(self, session_id: str, attempt: CorrectionAttempt) -> None:
        try:
            self._store.update(session_id, lambda s: s.replace_attempt(attempt))
        except SessionNotFoundError:
            # Session was cleared mid-attempt; the caller still gets the outcome
            log.warning(LogEventNames.SESSION_NOT_FOUND, session_id=session_id, attempt_id=attempt.id)

    async def _invoke_corrector(
        self,
        error: DetectedError,
        content: str,
        strategy: CorrectionStrategy,
        cancel_token: CancellationToken | None,
        timeout: float | None,
    ) -> str:
        async def call_once() -> str:
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()
            return await maybe_await(self._corrector(error, content, strategy))

        corrected = await call_with_retry(
            lambda: run_cancellable(call_once(), cancel_token, timeout),
            max_attempts=self._retry.max_attempts,
            min_wait=self._retry.initial_delay,
            max_wait=self._retry.max_delay,
        )
        if not isinstance(corrected, str):
            raise TypeError(f"Corrector returned {type(corrected).__name__}, expected str")
        return corrected

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
        """Make one correction attempt for one error.

        Args:
            session_id: Session holding the error
            error_id: Error to correct
            content: Current full content
            strategy: Override for the error type's default strategy
            cancel_token: Cancelling it records the attempt as FAILED
            timeout: Deadline in seconds; defaults to runtime.attempt_timeout

        Returns:
            The finished attempt, or None if the session or error is unknown,
            the session has ended, the per-error limit is spent, or another
            attempt for the same error is still running
        """
        with bound_contextvars(session_id=session_id, error_id=error_id):
            session = self._store.get(session_id)
            if session is None:
                log.warning(LogEventNames.SESSION_NOT_FOUND)
                return None

            attempt, error = self._reserve(session_id, error_id, content, strategy)
            if attempt is None or error is None:
                return None

            return await self._run_attempt(
                session_id, session.config, attempt, error, content, cancel_token, timeout
            )

    async def _run_attempt(
        self,
        session_id: str,
        config: CorrectionConfig,
        attempt: CorrectionAttempt,
        error: DetectedError,
        content: str,
        cancel_token: CancellationToken | None,
        timeout: float | None,
    ) -> CorrectionAttempt:
        strategy = attempt.strategy
        labels = {"strategy": strategy.value}

        self._emit(CorrectionStarted(session_id, attempt.id, error.id, strategy))
        attempt = attempt.start()
        self._store_attempt(session_id, attempt)
        self._metrics.attempts_started.inc(labels=labels)

        log.info(
            LogEventNames.CORRECTION_STARTED,
            attempt_id=attempt.id,
            attempt_number=attempt.attempt_number,
            error_type=error.type.value,
            strategy=strategy.value,
            content=content_preview(content),
        )

        deadline = timeout if timeout is not None else self._runtime.attempt_timeout
        with Timer(self._metrics.attempt_duration, labels=labels):
            try:
                corrected = await self._invoke_corrector(
                    error, content, strategy, cancel_token, deadline
                )
                validation: ValidationResult | None = None
                if config.validate_after_correction:
                    validation = await self._validation.validate(corrected, error.type)
            except asyncio.CancelledError:
                self._fail(session_id, attempt, "Correction task was cancelled", labels)
                raise
            except Exception as e:
                reason = str(e) or type(e).__name__
                return self._fail(session_id, attempt, reason, labels, exc=e)

        if validation is None or validation.passed:
            attempt = attempt.succeed(corrected, validation)
            self._store_attempt(session_id, attempt)
            self._metrics.attempts_succeeded.inc(labels=labels)
            log.info(
                LogEventNames.CORRECTION_SUCCEEDED,
                attempt_id=attempt.id,
                duration_ms=attempt.duration_ms,
            )
            self._emit(CorrectionSucceeded(session_id, attempt.id, error.id))
            return attempt

        reason = validation.message or "Validation failed"
        kept = None if config.rollback_on_failure else corrected
        return self._fail(session_id, attempt, reason, labels, corrected=kept, validation=validation)

    def _fail(
        self,
        session_id: str,
        attempt: CorrectionAttempt,
        reason: str,
        labels: dict[str, str],
        *,
        corrected: str | None = None,
        validation: ValidationResult | None = None,
        exc: Exception | None = None,
    ) -> CorrectionAttempt:
        attempt = attempt.fail(reason, corrected=corrected, validation=validation)
        self._store_attempt(session_id, attempt)
        self._metrics.attempts_failed.inc(labels=labels)
        log.warning(
            LogEventNames.CORRECTION_FAILED,
            attempt_id=attempt.id,
            reason=reason,
            exception_type=type(exc).__name__ if exc else None,
        )
        self._emit(CorrectionFailed(session_id, attempt.id, attempt.error_id, reason))
        return attempt

    def skip_error(self, session_id: str, error_id: str, reason: str | None = None) -> CorrectionAttempt | None:
        """Record a SKIPPED attempt for an error without calling the corrector.

        The skip counts toward the attempt limits and leaves the error
        uncorrected.

        Returns:
            The skipped attempt, or None under the same rejections as
            ``correct_error``
        """
        with bound_contextvars(session_id=session_id, error_id=error_id):
            attempt, _ = self._reserve(session_id, error_id, "", None, skip=True)
            if attempt is None:
                return None
            attempt = attempt.skip(reason)
            self._store_attempt(session_id, attempt)
            log.info(LogEventNames.ERROR_SKIPPED, attempt_id=attempt.id, reason=reason)
            return attempt

    # =========================================================================
    # Whole-session pass
    # =========================================================================

    async def correct_all_errors(
        self,
        session_id: str,
        content: str,
        *,
        finalize: bool = True,
    ) -> CorrectionResult:
        """Correct every uncorrected error in a session, most severe first.

        Successful corrections feed the next error's input. The pass stops
        early once the session-wide attempt budget is spent.

        Args:
            session_id: Session to correct
            content: Current full content
            finalize: End the session when the pass is done

        Returns:
            Result of the pass; a failed result without validation for unknown
            or already-ended sessions
        """
        start_time = time.monotonic()
        session = self._store.get(session_id)
        if session is None:
            log.warning(LogEventNames.SESSION_NOT_FOUND, session_id=session_id)
            return CorrectionResult(
                session_id=session_id,
                task_id="",
                success=False,
                original_content=content,
                final_content=content,
                errors_detected=0,
                errors_corrected=0,
                total_attempts=0,
                validation_result=None,
                remaining_errors=(),
                duration_ms=0,
            )

        if session.is_terminal:
            log.info(LogEventNames.CORRECTION_REJECTED, reason="session_terminal", session_id=session_id)
            remaining = session.uncorrected_errors
            return CorrectionResult(
                session_id=session_id,
                task_id=session.task_id,
                success=False,
                original_content=content,
                final_content=content,
                errors_detected=session.error_count,
                errors_corrected=session.error_count - len(remaining),
                total_attempts=session.total_attempts,
                validation_result=None,
                remaining_errors=remaining,
                duration_ms=0,
            )

        config = session.config
        current = content
        ordered = sorted(session.uncorrected_errors, key=lambda e: e.severity.priority, reverse=True)

        with bound_contextvars(session_id=session_id, task_id=session.task_id):
            log.info(LogEventNames.PASS_STARTED, errors=len(ordered))

            for error in ordered:
                snapshot = self._store.get(session_id)
                if snapshot is None or snapshot.max_attempts_reached:
                    break

                strategy = None
                previous = len(snapshot.attempts_for(error.id))
                if config.enable_iterative_refinement and previous:
                    strategy = self._selector.suggest(error, previous)

                attempt = await self.correct_error(session_id, error.id, current, strategy)
                if attempt is not None and attempt.is_successful and attempt.corrected_content is not None:
                    current = attempt.corrected_content

            validation = await self._validation.validate_final(current, config.run_tests_on_correction)
            log.info(
                LogEventNames.VALIDATION_COMPLETE,
                passed=validation.passed,
                pass_rate=validation.pass_rate,
            )
            self._emit(ValidationCompleted(session_id, validation.passed, validation.pass_rate))

            final = self._store.get(session_id) or session
            success = final.all_corrected and validation.passed
            if finalize:
                final = self.end_session(session_id, success) or final

            remaining = final.uncorrected_errors
            log.info(
                LogEventNames.PASS_COMPLETE,
                success=success,
                remaining=len(remaining),
                attempts=final.total_attempts,
            )

        return CorrectionResult(
            session_id=session_id,
            task_id=final.task_id,
            success=success,
            original_content=content,
            final_content=current,
            errors_detected=final.error_count,
            errors_corrected=final.error_count - len(remaining),
            total_attempts=final.total_attempts,
            validation_result=validation,
            remaining_errors=remaining,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    # =========================================================================
    # Iterative rounds
    # =========================================================================

    async def iterative_correction(
        self,
        task_id: str,
        content: str,
        max_iterations: int = 3,
        config: CorrectionConfig | None = None,
    ) -> CorrectionResult:
        """Detect and correct in rounds until the content is clean.

        Each round detects on the current content, records the findings in a
        fresh session and runs one correction pass. There is no fixed-point
        detection: a corrector that keeps reintroducing a defect uses up
        every round, and each reintroduced defect is a new error that counts
        against the session's attempt budget.

        Args:
            task_id: Caller's task identifier
            content: Content to correct
            max_iterations: Maximum number of rounds
            config: Session configuration

        Returns:
            Result whose remaining_errors are the defects still detected in
            the final content

        Raises:
            ValueError: If max_iterations is less than 1
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        start_time = time.monotonic()
        session = self.create_session(task_id, config)
        session_id = session.id
        current = content
        iterations = 0
        validation: ValidationResult | None = None

        with bound_contextvars(session_id=session_id, task_id=task_id):
            findings = self._detector.detect(current)

            for iteration in range(1, max_iterations + 1):
                if not findings:
                    break

                iterations = iteration
                log.info(LogEventNames.ITERATION_STARTED, iteration=iteration, errors=len(findings))
                self.record_errors(session_id, findings)

                result = await self.correct_all_errors(session_id, current, finalize=False)
                if result.final_content == current:
                    log.debug(LogEventNames.ITERATION_NO_CHANGE, iteration=iteration)
                current = result.final_content
                validation = result.validation_result

                findings = self._detector.detect(current)
                if not findings:
                    log.info(LogEventNames.ITERATION_CONVERGED, iteration=iteration)
            else:
                if findings:
                    log.info(
                        LogEventNames.ITERATIONS_EXHAUSTED,
                        iterations=max_iterations,
                        remaining=len(findings),
                    )

            if validation is None:
                validation = await self._validation.validate_final(
                    current, session.config.run_tests_on_correction
                )
                self._emit(ValidationCompleted(session_id, validation.passed, validation.pass_rate))

            success = not findings and validation.passed
            final = self.end_session(session_id, success) or self._store.get(session_id) or session

        return CorrectionResult(
            session_id=session_id,
            task_id=task_id,
            success=success,
            original_content=content,
            final_content=current,
            errors_detected=final.error_count,
            errors_corrected=final.error_count - len(final.uncorrected_errors),
            total_attempts=final.total_attempts,
            validation_result=validation,
            remaining_errors=tuple(findings),
            duration_ms=int((time.monotonic() - start_time) * 1000),
            iterations=iterations,
        )
