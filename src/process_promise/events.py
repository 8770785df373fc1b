"""Minimal thread-safe event emitter used by process handles and streams."""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Registry of named-event listeners.

    Listeners run synchronously on the thread that calls emit(), in
    registration order. A listener that raises is logged and does not stop
    the remaining listeners or the emitting thread.
    """

    def __init__(self) -> None:
        self._listeners_lock = threading.RLock()
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` to ``event``. Returns the listener."""
        with self._listeners_lock:
            self._listeners.setdefault(event, []).append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` for a single delivery of ``event``."""

        @functools.wraps(listener)
        def _once(*args: Any) -> Any:
            self.remove_listener(event, _once)
            return listener(*args)

        return self.on(event, _once)

    def remove_listener(self, event: str, listener: Listener) -> None:
        """Unsubscribe ``listener`` (or a once-wrapper around it). No-op if absent."""
        with self._listeners_lock:
            listeners = self._listeners.get(event)
            if not listeners:
                return
            for idx, candidate in enumerate(listeners):
                # bound methods are recreated on each access, so compare by equality
                if candidate == listener or getattr(candidate, "__wrapped__", None) == listener:
                    del listeners[idx]
                    break
            if not listeners:
                del self._listeners[event]

    def remove_all_listeners(self, event: str | None = None) -> None:
        with self._listeners_lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Deliver ``event`` to its listeners. Returns True if any were registered."""
        with self._listeners_lock:
            listeners = list(self._listeners.get(event, ()))
        if not listeners:
            if event == "error":
                logger.warning("Unhandled 'error' event on %s: %s", type(self).__name__, args[0] if args else None)
            return False
        for listener in listeners:
            try:
                listener(*args)
            except Exception:  # noqa: BLE001
                logger.exception("Listener for %r event on %s failed", event, type(self).__name__)
        return True
