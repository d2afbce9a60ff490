"""Shared plumbing for owned-state stores: change listeners and load guards."""

from typing import Callable, List
import logging
import threading

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ObservableStore:
    """Owned state with an optional change-notification hook.

    Listeners are called with no arguments after every committed mutation.
    A listener that raises is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self._generation = 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.warning(f"⚠️ Store listener {listener!r} failed: {e}")

    # ───────────────────────────────────────────────────────────────────────
    # Load liveness guard
    # ───────────────────────────────────────────────────────────────────────

    def invalidate(self) -> int:
        """Supersede any in-flight load. Returns the new generation."""
        with self._lock:
            self._generation += 1
            return self._generation

    def _begin_load(self) -> int:
        return self.invalidate()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation
