# =============================================================================
# stock_core/offline/debounce.py
# Trailing-edge debounce on a cancellable timer
# =============================================================================

from __future__ import annotations
import threading
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Runs ``action`` once ``delay`` seconds have passed without another
    ``trigger()``. Every trigger restarts the countdown, so a burst of
    triggers collapses into a single call.

    Usage:
        debouncer = Debouncer(10.0, push_snapshot)
        debouncer.trigger()   # edit 1
        debouncer.trigger()   # edit 2 -> countdown restarts
        # ~10 s later: push_snapshot() runs once
    """

    def __init__(self, delay: float, action: Callable[[], None], name: str = "Debounce"):
        self.delay = delay
        self._action = action
        self._name = name
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.name = self._name
            self._timer.start()

    def cancel(self) -> bool:
        """Drop a pending call. Returns True if one was pending."""
        with self._lock:
            self._generation += 1
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        return True

    def flush(self) -> bool:
        """Run a pending call now instead of waiting. Returns True if it ran."""
        if not self.cancel():
            return False
        self._run()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            # superseded by a later trigger() or cancel()
            if generation != self._generation:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._action()
        except Exception as e:
            logger.error(f"{self._name} action failed: {e}", exc_info=True)
