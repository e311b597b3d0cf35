"""Tests for the engine's public surface."""

from unittest.mock import MagicMock

import pytest

from self_correction.config.schema import CorrectionConfig, EngineConfig
from self_correction.core import SelfCorrectionEngine, create_engine
from self_correction.models.attempt import CorrectionStatus
from self_correction.models.errors import DetectedError, ErrorSeverity, ErrorType
from self_correction.models.events import CorrectionEvent, CorrectionStarted, ErrorDetected
from self_correction.models.session import SessionStatus
from self_correction.models.strategy import CorrectionStrategy

# Unbalanced braces (HIGH) plus SQL built by concatenation (CRITICAL)
DEFECTIVE = 'fun lookup(id: String) {\n    val q = "SELECT * FROM users WHERE id = " + id\n'


class TestEngineSetup:
    """Test construction and defaults."""

    def test_defaults(self) -> None:
        """Test an engine builds with no arguments."""
        engine = SelfCorrectionEngine()

        assert engine.config == EngineConfig()
        assert "syntax" in engine.detector.detector_names
        assert engine.metrics.sessions_created.get() == 0

    def test_create_engine(self, engine_config: EngineConfig) -> None:
        """Test the factory wires the given config."""
        engine = create_engine(engine_config)

        assert isinstance(engine, SelfCorrectionEngine)
        assert engine.config is engine_config

    def test_engines_are_independent(self) -> None:
        """Test two engines share no sessions or metrics."""
        first, second = SelfCorrectionEngine(), SelfCorrectionEngine()
        first.create_session("task-1")

        assert len(first.get_active_sessions()) == 1
        assert second.get_active_sessions() == []
        assert second.metrics.sessions_created.get() == 0

    def test_session_uses_engine_limits(self) -> None:
        """Test sessions inherit the engine's correction config."""
        config = EngineConfig(correction=CorrectionConfig(max_attempts=9))
        session = SelfCorrectionEngine(config).create_session("task-1")

        assert session.config.max_attempts == 9


class TestSessions:
    """Test session management through the engine."""

    def test_get_and_end(self) -> None:
        """Test a session moves from active to completed."""
        engine = SelfCorrectionEngine()
        session = engine.create_session("task-1")

        assert engine.get_session(session.id) is session
        ended = engine.end_session(session.id)

        assert ended is not None and ended.status == SessionStatus.COMPLETED
        assert engine.get_active_sessions() == []

    def test_end_twice_emits_once(self) -> None:
        """Test ending a session twice publishes a single completion."""
        engine = SelfCorrectionEngine()
        listener = MagicMock()
        engine.add_listener(listener)
        session = engine.create_session("task-1")

        engine.end_session(session.id, success=False)
        engine.end_session(session.id, success=True)

        listener.assert_called_once()
        snapshot = engine.get_session(session.id)
        assert snapshot is not None and snapshot.status == SessionStatus.FAILED

    def test_cancel(self) -> None:
        """Test cancelling an active session."""
        engine = SelfCorrectionEngine()
        session = engine.create_session("task-1")

        cancelled = engine.cancel_session(session.id)

        assert cancelled is not None and cancelled.status == SessionStatus.CANCELLED

    def test_clear_sessions(self) -> None:
        """Test clearing forgets every session and resets the gauge."""
        engine = SelfCorrectionEngine()
        session = engine.create_session("task-1")

        engine.clear_sessions()

        assert engine.get_session(session.id) is None
        assert engine.metrics.active_sessions.get() == 0


class TestDetectErrors:
    """Test detection through the engine."""

    def test_detect_without_session(self, clean_content: str) -> None:
        """Test clean content yields nothing and touches no session."""
        assert SelfCorrectionEngine().detect_errors(clean_content) == []

    def test_detect_into_session(self) -> None:
        """Test findings are recorded and announced when a session is given."""
        engine = SelfCorrectionEngine()
        events: list[CorrectionEvent] = []
        engine.add_listener(events.append)
        session = engine.create_session("task-1")

        errors = engine.detect_errors(DEFECTIVE, session.id)

        assert {e.severity for e in errors} == {ErrorSeverity.HIGH, ErrorSeverity.CRITICAL}
        snapshot = engine.get_session(session.id)
        assert snapshot is not None and snapshot.error_count == 2
        assert [type(e) for e in events] == [ErrorDetected, ErrorDetected]

    def test_register_detector(self) -> None:
        """Test custom detectors run alongside the built-in ones."""

        class BannedWords:
            name = "banned_words"

            def detect(self, content: str) -> list[DetectedError]:
                if "lorem" in content:
                    return [DetectedError.hallucination("Placeholder text left in output")]
                return []

        engine = SelfCorrectionEngine()
        engine.register_detector(BannedWords())

        errors = engine.detect_errors("fun main() {\n    println(\"lorem ipsum dolor sit amet\")\n}\n")

        assert [e.description for e in errors] == ["Placeholder text left in output"]


class TestCorrection:
    """End-to-end correction flows."""

    @pytest.mark.asyncio
    async def test_fix_everything(self, engine_config: EngineConfig, fixing_corrector, clean_content: str) -> None:
        """Test the most severe error is fixed first and the session completes."""
        corrector = MagicMock(side_effect=fixing_corrector(clean_content))
        engine = SelfCorrectionEngine(engine_config, corrector=corrector)
        started: list[str] = []
        engine.add_listener(lambda e: started.append(e.error_id) if isinstance(e, CorrectionStarted) else None)
        session = engine.create_session("task-1")
        errors = engine.detect_errors(DEFECTIVE, session.id)
        critical = next(e for e in errors if e.severity == ErrorSeverity.CRITICAL)

        result = await engine.correct_all_errors(session.id, DEFECTIVE)

        assert started[0] == critical.id
        assert result.success
        assert result.errors_corrected == result.errors_detected == 2
        assert result.final_content == clean_content
        snapshot = engine.get_session(session.id)
        assert snapshot is not None and snapshot.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_corrector_always_fails(self, engine_config: EngineConfig, failing_corrector) -> None:
        """Test a failing corrector never completes the session."""
        engine = SelfCorrectionEngine(engine_config, corrector=failing_corrector)
        session = engine.create_session("task-1")
        errors = engine.detect_errors(DEFECTIVE, session.id)

        attempts = [await engine.correct_error(session.id, e.id, DEFECTIVE) for e in errors]
        result = await engine.correct_all_errors(session.id, DEFECTIVE)

        for attempt in attempts:
            assert attempt is not None
            assert attempt.status == CorrectionStatus.FAILED
            assert attempt.validation_result is not None
            assert attempt.validation_result.message
        assert not result.success
        snapshot = engine.get_session(session.id)
        assert snapshot is not None and snapshot.status == SessionStatus.FAILED

    @pytest.mark.asyncio
    async def test_iterative_without_corrector(self, engine_config: EngineConfig, unbalanced_content: str) -> None:
        """Test the default corrector never converges and every round is used."""
        engine = SelfCorrectionEngine(engine_config)

        result = await engine.iterative_correction("task-1", unbalanced_content, max_iterations=3)

        assert result.iterations == 3
        assert result.remaining_errors
        assert not result.success
        assert result.final_content == unbalanced_content

    @pytest.mark.asyncio
    async def test_iterative_clean_content(self, clean_content: str) -> None:
        """Test clean content needs no rounds."""
        result = await SelfCorrectionEngine().iterative_correction("task-1", clean_content)

        assert result.iterations == 0
        assert result.success

    @pytest.mark.asyncio
    async def test_iterative_rejects_zero_rounds(self) -> None:
        """Test at least one round is required."""
        with pytest.raises(ValueError):
            await SelfCorrectionEngine().iterative_correction("task-1", "x", max_iterations=0)

    @pytest.mark.asyncio
    async def test_validator_rejection_fails_attempt(
        self, engine_config: EngineConfig, rejecting_validator, high_error: DetectedError
    ) -> None:
        """Test the injected validator gates each correction."""
        engine = SelfCorrectionEngine(engine_config, corrector=lambda e, c, s: "fixed", validator=rejecting_validator)
        session = engine.create_session("task-1")
        engine.detect_errors("fun f() {\n    val x = 1\n    val y = 2\n    val z = 3\n", session.id)
        snapshot = engine.get_session(session.id)
        assert snapshot is not None
        error = snapshot.errors[0]

        attempt = await engine.correct_error(session.id, error.id, "content")

        assert attempt is not None
        assert attempt.status == CorrectionStatus.FAILED
        assert attempt.corrected_content is None

    def test_skip_error(self) -> None:
        """Test skipping records an attempt and leaves the error open."""
        engine = SelfCorrectionEngine()
        session = engine.create_session("task-1")
        errors = engine.detect_errors(DEFECTIVE, session.id)

        attempt = engine.skip_error(session.id, errors[0].id, "accepted risk")

        assert attempt is not None and attempt.status == CorrectionStatus.SKIPPED
        snapshot = engine.get_session(session.id)
        assert snapshot is not None and len(snapshot.uncorrected_errors) == 2


class TestValidationAndStrategy:
    """Test validation and strategy queries."""

    @pytest.mark.asyncio
    async def test_validate_correction(self, rejecting_validator) -> None:
        """Test validation goes through the injected validator."""
        engine = SelfCorrectionEngine(validator=rejecting_validator)

        result = await engine.validate_correction("code", ErrorType.SYNTAX_ERROR)

        assert not result.passed

    def test_validate_content(self, clean_content: str, unbalanced_content: str) -> None:
        """Test the detector-driven check."""
        engine = SelfCorrectionEngine()

        assert engine.validate_content(clean_content).passed
        assert not engine.validate_content(unbalanced_content).passed

    def test_strategies(self, high_error: DetectedError) -> None:
        """Test escalation and the catalog are exposed."""
        engine = SelfCorrectionEngine()

        assert engine.suggest_strategy(high_error, 2) == CorrectionStrategy.FULL_REGENERATION
        assert engine.get_strategies_for_error(ErrorType.MISSING_IMPORT)[0] == CorrectionStrategy.ADD_MISSING


class TestStats:
    """Test aggregate statistics."""

    def test_empty(self) -> None:
        """Test a fresh engine reports zeros."""
        stats = SelfCorrectionEngine().get_stats()

        assert stats.total_sessions == 0
        assert stats.average_attempts_per_error == 0.0
        assert stats.success_rate == 0.0

    @pytest.mark.asyncio
    async def test_after_correction(self, engine_config: EngineConfig, fixing_corrector, clean_content: str) -> None:
        """Test counters reflect a finished pass."""
        engine = SelfCorrectionEngine(engine_config, corrector=fixing_corrector(clean_content))
        session = engine.create_session("task-1")
        engine.detect_errors(DEFECTIVE, session.id)
        await engine.correct_all_errors(session.id, DEFECTIVE)

        stats = engine.get_stats()

        assert stats.total_sessions == 1
        assert stats.active_sessions == 0
        assert stats.total_errors == 2
        assert stats.total_attempts == 2
        assert stats.successful_corrections == 2
        assert stats.average_attempts_per_error == 1.0
        assert stats.errors_by_severity == {ErrorSeverity.CRITICAL: 1, ErrorSeverity.HIGH: 1}
        assert stats.to_dict()["errors_by_type"] == {"syntax_error": 1, "security_issue": 1}


class TestSubscriptions:
    """Test event subscriptions through the engine."""

    def test_subscribe_scope(self) -> None:
        """Test subscriptions stop delivering after the block."""
        engine = SelfCorrectionEngine()
        listener = MagicMock()

        with engine.subscribe(listener):
            engine.end_session(engine.create_session("a").id)
        engine.end_session(engine.create_session("b").id)

        listener.assert_called_once()

    def test_remove_listener(self) -> None:
        """Test removed listeners stop receiving events."""
        engine = SelfCorrectionEngine()
        listener = MagicMock()
        engine.add_listener(listener)
        engine.remove_listener(listener)

        engine.end_session(engine.create_session("a").id)

        listener.assert_not_called()
