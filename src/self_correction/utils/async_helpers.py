"""Async utility functions for resilient corrector and validator calls.

This module provides:
- Custom exceptions for the correction engine
- Retry helper with exponential backoff
- Rate limiting with token bucket algorithm
- Timeout and cancellation helpers for awaited procedures

See DESIGN.md for the error handling strategy.
"""

from __future__ import annotations

import asyncio
import builtins
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class CorrectionEngineError(Exception):
    """Base exception for all correction engine errors."""


class SessionNotFoundError(CorrectionEngineError):
    """Referenced correction session does not exist."""


class SessionConflictError(CorrectionEngineError):
    """Concurrent updates kept invalidating a session write."""


class InvalidTransitionError(CorrectionEngineError):
    """Attempted an attempt status transition the state machine forbids."""


class TransientCorrectionError(CorrectionEngineError):
    """Corrector failed in a way that is safe to retry."""


class CorrectionCancelledError(CorrectionEngineError):
    """Correction was cancelled through its cancellation token."""


class TimeoutError(CorrectionEngineError):
    """Operation timed out."""


# =============================================================================
# Retry Decorator
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 1,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = (TransientCorrectionError,),
) -> T:
    """Await ``func()`` and retry it on transient failures.

    Args:
        func: Zero-argument coroutine factory, called once per try.
        max_attempts: Total tries including the first one.
        min_wait: Minimum wait time between retries (seconds).
        max_wait: Maximum wait time between retries (seconds).
        retry_on: Tuple of exception types to retry on.

    Returns:
        The result of the first successful try.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            return await func()
    raise AssertionError("unreachable")  # pragma: no cover


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Return ``value``, awaiting it first when it is awaitable.

    Injected procedures may be plain functions or coroutine functions.
    """
    if inspect.isawaitable(value):
        return await value
    return value


# =============================================================================
# Rate Limiter
# =============================================================================


class RateLimiter:
    """Token bucket rate limiter for async operations.

    Tokens are added to the bucket at a fixed rate, and each operation
    consumes one token. If no tokens are available, the operation waits
    until a token becomes available.

    Example:
        limiter = RateLimiter(rate=2, capacity=4)

        async with limiter:
            await corrector(error, content, strategy)
    """

    def __init__(self, rate: float, capacity: float | None = None) -> None:
        """Initialize the rate limiter.

        Args:
            rate: Number of operations allowed per second.
            capacity: Maximum number of tokens in the bucket (burst capacity).
                     Defaults to rate (no bursting beyond 1 second).
        """
        if rate <= 0:
            raise ValueError("Rate must be positive")
        self._rate = rate
        self._capacity = capacity if capacity is not None else rate
        self._tokens = self._capacity
        self._last_update = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        """Return the configured rate limit (operations per second)."""
        return self._rate

    @property
    def capacity(self) -> float:
        """Return the bucket capacity (maximum burst size)."""
        return self._capacity

    @property
    def available_tokens(self) -> float:
        """Return the current number of available tokens."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_update
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_update = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens from the bucket, waiting if necessary.

        Args:
            tokens: Number of tokens to acquire.

        Raises:
            ValueError: If tokens exceeds capacity.
        """
        if tokens > self._capacity:
            msg = f"Cannot acquire {tokens} tokens; capacity is {self._capacity}"
            raise ValueError(msg)

        async with self._lock:
            self._refill()

            if self._tokens >= tokens:
                self._tokens -= tokens
                return

            deficit = tokens - self._tokens
            wait_time = deficit / self._rate

            log.debug("rate_limiter_waiting", wait_time=wait_time, deficit=deficit)
            await asyncio.sleep(wait_time)

            self._refill()
            self._tokens -= tokens

    async def try_acquire(self, tokens: float = 1.0) -> bool:
        """Try to acquire tokens without waiting.

        Returns:
            True if tokens were acquired, False otherwise.
        """
        async with self._lock:
            self._refill()

            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        pass


# =============================================================================
# Timeout Utilities
# =============================================================================


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
) -> T:
    """Execute an awaitable with a timeout.

    Args:
        coro: The coroutine to execute.
        timeout: Timeout in seconds.
        error_message: Custom error message for timeout.

    Returns:
        The result of the coroutine.

    Raises:
        TimeoutError: If the operation times out.
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except builtins.TimeoutError as e:
        msg = error_message or f"Operation timed out after {timeout}s"
        log.warning("operation_timeout", timeout=timeout)
        raise TimeoutError(msg) from e


# =============================================================================
# Cancellation Utilities
# =============================================================================


class CancellationToken:
    """Token for cooperative cancellation of async operations.

    Example:
        token = CancellationToken()
        attempt_task = asyncio.create_task(
            engine.correct_error(session_id, error_id, content, cancel_token=token)
        )

        # Cancel from elsewhere; the attempt is recorded as FAILED
        token.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation."""
        self._cancelled = True
        self._event.set()

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise CorrectionCancelledError if cancelled."""
        if self._cancelled:
            raise CorrectionCancelledError("Operation was cancelled")


async def run_cancellable(
    coro: Awaitable[T],
    token: CancellationToken | None = None,
    timeout: float | None = None,
) -> T:
    """Await ``coro`` bounded by an optional cancellation token and deadline.

    Args:
        coro: The awaitable to run.
        token: Cancellation token; cancelling it aborts the awaitable.
        timeout: Deadline in seconds, or None for no deadline.

    Returns:
        The awaitable's result.

    Raises:
        CorrectionCancelledError: If the token was cancelled first.
        TimeoutError: If the deadline expired first.
    """
    if token is not None and token.is_cancelled:
        if inspect.iscoroutine(coro):
            coro.close()
        raise CorrectionCancelledError("Operation was cancelled")

    work: asyncio.Future[T] = asyncio.ensure_future(coro)
    if token is None:
        if timeout is None:
            return await work
        return await with_timeout(work, timeout)

    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {work, waiter},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if work in done:
            return work.result()

        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        if waiter in done:
            raise CorrectionCancelledError("Operation was cancelled")

        log.warning("operation_timeout", timeout=timeout)
        raise TimeoutError(f"Operation timed out after {timeout}s")
    finally:
        waiter.cancel()
        # The caller may itself be cancelled mid-wait; never leave work running
        if not work.done():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
