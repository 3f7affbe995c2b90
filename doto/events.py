"""
Change notification shared by the note store and the tag registry.

A store publishes one event per state-changing operation; subscribers
(usually the persistence saver) react to it. Subscriber failures are logged
and swallowed so they can never unwind into the operation that triggered
them.
"""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[object], None]


class ChangeEmitter:
    """Minimal publish/subscribe for "collection changed" events."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.warning("Change listener %r failed: %s", listener, e)
