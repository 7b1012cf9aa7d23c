"""Debounce gate shared by every watched file.

A single gate instance rate-limits rebuild triggers for the whole session:
two different files saved within the same window still collapse into one
accepted trigger.
"""

import time
from typing import Callable, Optional

DEFAULT_WINDOW_MS = 20


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class DebounceGate:
    """Accepts a trigger only if the window has elapsed since the last accepted one."""

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS, clock: Optional[Callable[[], float]] = None):
        self.window_ms = window_ms
        self._clock = clock or _monotonic_ms
        self._last_accepted: Optional[float] = None

    @property
    def last_accepted(self) -> Optional[float]:
        return self._last_accepted

    def should_accept(self, now_ms: Optional[float] = None) -> bool:
        """Decide whether a trigger at ``now_ms`` (default: the clock) is acted on."""
        now = self._clock() if now_ms is None else now_ms
        if self._last_accepted is not None and now - self._last_accepted < self.window_ms:
            return False
        self._last_accepted = now
        return True
