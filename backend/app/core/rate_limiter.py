"""In-memory, per-client request limiter.

Fixed one-minute windows keyed by client address. Single process only; a
multi-instance deployment needs a shared backend in front of the service.
"""
from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Dict, Tuple

import structlog

logger = structlog.get_logger(__name__)

WINDOW_SECONDS = 60


class RateLimiter:
    def __init__(self, limit: int, window_seconds: int = WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = Lock()
        self._windows: Dict[str, Tuple[int, int]] = {}

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def hit(self, key: str) -> bool:
        """Count one request for ``key``; False once the window's limit is passed."""
        if not self.enabled:
            return True

        window = int(self._clock() // self.window_seconds)
        with self._lock:
            start, count = self._windows.get(key, (window, 0))
            if start != window:
                start, count = window, 0
            count += 1
            self._windows[key] = (start, count)
            if len(self._windows) > 10_000:
                self._prune(window)

        if count > self.limit:
            if count == self.limit + 1:
                logger.warning("rate_limit_reached", client=key, limit=self.limit, window_seconds=self.window_seconds)
            return False
        return True

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, window: int) -> None:
        stale = [k for k, (start, _) in self._windows.items() if start != window]
        for k in stale:
            del self._windows[k]
