"""Synchronous event bus for correction lifecycle events."""

from __future__ import annotations

from collections.abc import Callable
from threading import Lock

import structlog

from self_correction.models.events import CorrectionEvent
from self_correction.utils.logging import LogEventNames
from self_correction.utils.metrics import MetricsRegistry

log = structlog.get_logger()

EventListener = Callable[[CorrectionEvent], None]


class Subscription:
    """Handle returned by ``EventBus.subscribe``.

    Calling ``unsubscribe`` more than once is harmless. Usable as a
    context manager to scope a listener to a block.
    """

    def __init__(self, bus: EventBus, listener: EventListener) -> None:
        self._bus = bus
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivering events to the listener."""
        if self._active:
            self._bus.remove_listener(self._listener)
            self._active = False

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *args: object) -> None:
        self.unsubscribe()


class EventBus:
    """Delivers events to listeners in registration order.

    Listeners run synchronously on the emitting task. A listener that
    raises is logged and skipped; later listeners still receive the event
    and the engine operation carries on.
    """

    def __init__(self, metrics: MetricsRegistry | None = None) -> None:
        self._listeners: list[EventListener] = []
        self._lock = Lock()
        self._metrics = metrics

    def add_listener(self, listener: EventListener) -> None:
        """Register a listener."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Unregister a listener; unknown listeners are ignored."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def subscribe(self, listener: EventListener) -> Subscription:
        """Register a listener and return a handle that unregisters it."""
        self.add_listener(listener)
        return Subscription(self, listener)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def emit(self, event: CorrectionEvent) -> None:
        """Deliver ``event`` to a snapshot of the current listeners."""
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                log.exception(
                    LogEventNames.LISTENER_FAILED,
                    event_kind=event.kind,
                    session_id=event.session_id,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                )
                if self._metrics is not None:
                    self._metrics.listener_errors.inc()
