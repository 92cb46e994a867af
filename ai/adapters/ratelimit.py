"""Per-backend fixed-window request counter.

Each backend gets a window that opens on its first request.  Inside a window
at most ``limit`` calls are admitted; the count resets once ``window_sec`` has
elapsed since the window opened.  Bursts of up to ``2 * limit`` are therefore
possible across a window boundary.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping

from core.logging import logger

from .schemas import Backend, ProviderStatus

__all__ = ["FixedWindowRateLimiter"]


@dataclass
class _Window:
    count: int
    window_start: float


class FixedWindowRateLimiter:
    def __init__(
        self,
        limits: Mapping[Backend, int],
        window_sec: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limits: Dict[Backend, int] = dict(limits)
        self._window_sec = window_sec
        self._clock = clock
        self._windows: Dict[Backend, _Window] = {}
        self._lock = threading.Lock()

    def limit_for(self, backend: Backend) -> int:
        return self._limits[backend]

    def try_consume(self, backend: Backend) -> bool:
        """Admit one call for *backend* if its budget allows; never blocks."""
        limit = self._limits[backend]
        with self._lock:
            now = self._clock()
            window = self._windows.get(backend)
            if window is None:
                window = self._windows[backend] = _Window(count=0, window_start=now)
            elif now - window.window_start >= self._window_sec:
                window.count = 0
                window.window_start = now

            if window.count >= limit:
                logger.warning(
                    f"Rate limit reached for {backend.value}: {window.count}/{limit} in current window"
                )
                return False

            window.count += 1
            return True

    def status(self, order: Iterable[Backend]) -> List[ProviderStatus]:
        """Read-only snapshot of every backend in *order*."""
        with self._lock:
            now = self._clock()
            result = []
            for backend in order:
                limit = self._limits[backend]
                window = self._windows.get(backend)
                if window is None or now - window.window_start >= self._window_sec:
                    used = 0
                else:
                    used = window.count
                result.append(
                    ProviderStatus(
                        backend=backend,
                        available_now=used < limit,
                        requests_used_in_window=used,
                        limit=limit,
                    )
                )
            return result
