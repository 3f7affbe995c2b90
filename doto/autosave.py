"""
Save policies driven by change events.

WriteThrough saves on every trigger. DebouncedSave waits until triggers
stop for ``delay_ms`` before saving once. Both are best-effort: a failing
save is logged and dropped, in-memory state is unaffected.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _run(save_callback: Callable[[], None]) -> bool:
    try:
        save_callback()
    except Exception as e:
        logger.warning("Save failed (changes kept in memory): %s", e)
        return False
    return True


class WriteThrough:
    """Save immediately on every trigger."""

    def __init__(self, save_callback: Callable[[], None]):
        self._save_callback = save_callback

    def trigger(self, *_args) -> None:
        _run(self._save_callback)

    def cancel(self) -> None:
        pass

    def save_now(self) -> bool:
        return _run(self._save_callback)


class DebouncedSave:
    """Debounced auto-save using threading.Timer."""

    def __init__(self, save_callback: Callable[[], None], delay_ms: int):
        self._save_callback = save_callback
        self._delay_ms = delay_ms
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self, *_args) -> None:
        """Schedule a save after the debounce delay. Resets if called again."""
        with self._lock:
            self._cancel_locked()
            self._timer = threading.Timer(self._delay_ms / 1000.0, self._do_save)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        """Cancel any pending save."""
        with self._lock:
            self._cancel_locked()

    def save_now(self) -> bool:
        """Save immediately, canceling any pending debounce."""
        self.cancel()
        return _run(self._save_callback)

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _do_save(self) -> None:
        with self._lock:
            self._timer = None
        _run(self._save_callback)


def make_saver(save_callback: Callable[[], None], debounce_ms: int = 0):
    """WriteThrough for ``debounce_ms <= 0``, otherwise DebouncedSave."""
    if debounce_ms <= 0:
        return WriteThrough(save_callback)
    return DebouncedSave(save_callback, debounce_ms)
