"""Concurrency-safe registry of correction sessions.

Sessions are immutable snapshots. Every write reads the current snapshot,
computes a new one with a pure function, and swaps it in only if nobody
else wrote in between (compare-and-swap on ``CorrectionSession.version``).
A lost race re-reads and recomputes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from threading import Lock

import structlog

from self_correction.config.schema import CorrectionConfig
from self_correction.models.session import CorrectionSession, SessionStatus
from self_correction.utils.async_helpers import SessionConflictError, SessionNotFoundError
from self_correction.utils.logging import LogEventNames

log = structlog.get_logger()

SessionMutation = Callable[[CorrectionSession], CorrectionSession]


class SessionStore:
    """In-memory session registry with optimistic concurrency.

    The lock only guards the dictionary swap; ``mutate`` functions run
    outside it, so a slow mutation never blocks other sessions.

    Example:
        store = SessionStore()
        session = store.create("task-1")
        store.update(session.id, lambda s: s.add_error(error))
    """

    DEFAULT_MAX_RETRIES = 32

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        """Initialize an empty store.

        Args:
            max_retries: How many lost races ``update`` tolerates
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._sessions: dict[str, CorrectionSession] = {}
        self._lock = Lock()
        self._max_retries = max_retries

    def create(self, task_id: str, config: CorrectionConfig | None = None) -> CorrectionSession:
        """Create and register a new ACTIVE session."""
        session = CorrectionSession(task_id=task_id, config=config or CorrectionConfig())
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> CorrectionSession | None:
        """Return the current snapshot of a session."""
        with self._lock:
            return self._sessions.get(session_id)

    def list_all(self) -> list[CorrectionSession]:
        """Return snapshots of every session."""
        with self._lock:
            return list(self._sessions.values())

    def list_active(self) -> list[CorrectionSession]:
        """Return snapshots of sessions that are still ACTIVE."""
        return [s for s in self.list_all() if s.status == SessionStatus.ACTIVE]

    def update(self, session_id: str, mutate: SessionMutation) -> CorrectionSession:
        """Atomically apply ``mutate`` to a session.

        Args:
            session_id: Session to update
            mutate: Pure function from the current snapshot to the next one;
                returning the same object means "no change"

        Returns:
            The snapshot now stored (unchanged when ``mutate`` declined)

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionConflictError: If every retry lost a race
        """
        for attempt in range(1, self._max_retries + 1):
            current = self.get(session_id)
            if current is None:
                raise SessionNotFoundError(f"Session {session_id} not found")

            proposed = mutate(current)
            if proposed is current:
                return current

            stored = replace(proposed, version=current.version + 1)
            with self._lock:
                latest = self._sessions.get(session_id)
                if latest is not None and latest.version == current.version:
                    self._sessions[session_id] = stored
                    return stored

            log.debug(
                LogEventNames.SESSION_UPDATE_CONFLICT,
                session_id=session_id,
                attempt=attempt,
                expected_version=current.version,
            )

        raise SessionConflictError(
            f"Session {session_id} update lost {self._max_retries} consecutive races"
        )

    def clear(self) -> None:
        """Remove all sessions."""
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
