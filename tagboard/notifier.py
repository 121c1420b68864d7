"""
Debounced refresh notifier.

Writes from the board and edits picked up by the watcher both ask for a
re-render. Bursts are coalesced: the wrapped callback fires once, ``delay``
after the last request (trailing edge). Requests may come from any thread
(watchdog delivers on its own observer thread).
"""
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DebouncedNotifier:
    """Fire-and-forget ``notifier()``; the callback runs at most once per burst."""

    def __init__(self, callback: Callable[[], None], delay_ms: int = 500):
        self.callback = callback
        self.delay_ms = delay_ms
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._generation = 0
        self.requests = 0      # requests seen since creation
        self.fired = 0         # callbacks actually delivered

    def __call__(self) -> None:
        self.trigger()

    def trigger(self) -> None:
        with self._lock:
            self.requests += 1
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
            if self.delay_ms <= 0:
                self._timer = None
                fire_now = True
            else:
                self._timer = threading.Timer(self.delay_ms / 1000, self._fire, args=(self._generation,))
                self._timer.daemon = True
                self._timer.start()
                fire_now = False
        if fire_now:
            self._deliver()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def flush(self) -> bool:
        """Deliver a pending notification immediately. Returns True if one was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            self._generation += 1
        self._deliver()
        return True

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A newer request superseded this timer
            if generation != self._generation:
                return
            self._timer = None
        self._deliver()

    def _deliver(self) -> None:
        self.fired += 1
        try:
            self.callback()
        except Exception as e:
            # The notifier is fire-and-forget; a broken listener must not
            # take down the write path that triggered it
            logger.error(f"Refresh callback failed: {e}")
