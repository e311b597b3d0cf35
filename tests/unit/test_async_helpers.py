"""Tests for async utility functions."""

from __future__ import annotations

import asyncio
import time

import pytest

from self_correction.utils.async_helpers import (
    CancellationToken,
    CorrectionCancelledError,
    CorrectionEngineError,
    InvalidTransitionError,
    RateLimiter,
    SessionConflictError,
    SessionNotFoundError,
    TimeoutError,
    TransientCorrectionError,
    call_with_retry,
    maybe_await,
    run_cancellable,
    with_timeout,
)


class TestCustomExceptions:
    """Test custom exception classes."""

    @pytest.mark.parametrize(
        "exc_type",
        [
            SessionNotFoundError,
            SessionConflictError,
            InvalidTransitionError,
            TransientCorrectionError,
            CorrectionCancelledError,
            TimeoutError,
        ],
    )
    def test_inherits_from_base(self, exc_type: type[Exception]) -> None:
        """Test every engine error inherits from CorrectionEngineError."""
        error = exc_type("boom")
        assert isinstance(error, CorrectionEngineError)
        assert str(error) == "boom"


class TestCallWithRetry:
    """Test retry helper functionality."""

    async def test_succeeds_first_try(self) -> None:
        """Test that successful calls don't trigger retry."""
        call_count = 0

        async def successful_call() -> str:
            nonlocal call_count
            call_count += 1
            return "success"

        result = await call_with_retry(successful_call, max_attempts=3, min_wait=0, max_wait=0)
        assert result == "success"
        assert call_count == 1

    async def test_retries_transient_failures(self) -> None:
        """Test retry on TransientCorrectionError."""
        call_count = 0

        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TransientCorrectionError("overloaded")
            return "success"

        result = await call_with_retry(flaky_call, max_attempts=3, min_wait=0, max_wait=0)
        assert result == "success"
        assert call_count == 3

    async def test_gives_up_after_max_attempts(self) -> None:
        """Test that the last transient error is re-raised."""
        call_count = 0

        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise TransientCorrectionError("still overloaded")

        with pytest.raises(TransientCorrectionError, match="still overloaded"):
            await call_with_retry(always_fails, max_attempts=2, min_wait=0, max_wait=0)
        assert call_count == 2

    async def test_does_not_retry_other_exceptions(self) -> None:
        """Test that non-transient errors propagate immediately."""
        call_count = 0

        async def broken() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("bad output")

        with pytest.raises(ValueError):
            await call_with_retry(broken, max_attempts=3, min_wait=0, max_wait=0)
        assert call_count == 1


class TestMaybeAwait:
    """Test mixed sync/async value handling."""

    async def test_plain_value(self) -> None:
        """Test that plain values pass through."""
        assert await maybe_await("fixed") == "fixed"

    async def test_awaitable_value(self) -> None:
        """Test that coroutines are awaited."""

        async def produce() -> str:
            return "fixed"

        assert await maybe_await(produce()) == "fixed"


class TestRateLimiter:
    """Test token bucket rate limiter."""

    async def test_allows_within_rate(self) -> None:
        """Test that requests within capacity don't wait."""
        limiter = RateLimiter(rate=10, capacity=5)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        assert time.monotonic() - start < 0.1

    async def test_throttles_when_exceeded(self) -> None:
        """Test that an empty bucket makes callers wait."""
        limiter = RateLimiter(rate=20, capacity=1)

        await limiter.acquire()
        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start >= 0.03

    async def test_try_acquire(self) -> None:
        """Test try_acquire succeeds then fails once the bucket is empty."""
        limiter = RateLimiter(rate=1, capacity=1)
        assert await limiter.try_acquire() is True
        assert await limiter.try_acquire() is False

    async def test_acquire_exceeds_capacity(self) -> None:
        """Test that asking for more than capacity raises."""
        limiter = RateLimiter(rate=1, capacity=2)
        with pytest.raises(ValueError, match="capacity"):
            await limiter.acquire(3)

    def test_invalid_rate(self) -> None:
        """Test that non-positive rates are rejected."""
        with pytest.raises(ValueError, match="positive"):
            RateLimiter(rate=0)


class TestTimeoutUtilities:
    """Test timeout helpers."""

    async def test_with_timeout_succeeds(self) -> None:
        """Test that fast operations complete."""

        async def fast() -> str:
            await asyncio.sleep(0.01)
            return "done"

        assert await with_timeout(fast(), timeout=1.0) == "done"

    async def test_with_timeout_custom_message(self) -> None:
        """Test that slow operations raise the engine TimeoutError."""

        async def slow() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TimeoutError, match="validator too slow"):
            await with_timeout(slow(), timeout=0.01, error_message="validator too slow")


class TestCancellationToken:
    """Test cancellation token functionality."""

    def test_initial_state(self) -> None:
        """Test a new token is not cancelled."""
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel(self) -> None:
        """Test cancelling sets the flag and raise_if_cancelled raises."""
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(CorrectionCancelledError):
            token.raise_if_cancelled()


class TestRunCancellable:
    """Test awaiting work under a token and deadline."""

    async def test_returns_result(self) -> None:
        """Test that completed work returns its result."""

        async def work() -> str:
            return "fixed"

        assert await run_cancellable(work(), CancellationToken(), timeout=1.0) == "fixed"

    async def test_already_cancelled_token(self) -> None:
        """Test that a cancelled token aborts before the work starts."""
        started = False

        async def work() -> str:
            nonlocal started
            started = True
            return "fixed"

        token = CancellationToken()
        token.cancel()
        with pytest.raises(CorrectionCancelledError):
            await run_cancellable(work(), token)
        assert started is False

    async def test_cancel_while_running(self) -> None:
        """Test that cancelling mid-flight aborts the work."""
        token = CancellationToken()

        async def work() -> str:
            await asyncio.sleep(10)
            return "never"

        async def cancel_soon() -> None:
            await asyncio.sleep(0.01)
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(CorrectionCancelledError):
            await run_cancellable(work(), token)
        await canceller

    async def test_deadline_with_token(self) -> None:
        """Test that the deadline applies when a token is given."""

        async def work() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TimeoutError):
            await run_cancellable(work(), CancellationToken(), timeout=0.01)

    async def test_deadline_without_token(self) -> None:
        """Test that the deadline applies without a token."""

        async def work() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TimeoutError):
            await run_cancellable(work(), None, timeout=0.01)

    @pytest.mark.parametrize("with_token", [True, False])
    async def test_caller_cancellation_stops_work(self, with_token: bool) -> None:
        """Test that cancelling the awaiting task also cancels the work."""
        started = asyncio.Event()
        outcome: list[str] = []

        async def work() -> str:
            started.set()
            try:
                await asyncio.sleep(0.2)
            except asyncio.CancelledError:
                outcome.append("cancelled")
                raise
            outcome.append("completed")
            return "late"

        token = CancellationToken() if with_token else None
        caller = asyncio.create_task(run_cancellable(work(), token))
        await started.wait()
        caller.cancel()

        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.3)

        assert outcome == ["cancelled"]
