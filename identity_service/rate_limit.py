"""
Per-key sliding-window throttle for POST /login and POST /register (keys look like "login:<ip>").
State lives in process memory; each worker limits on its own.
"""
import math
import threading
import time
from collections import deque
from collections.abc import Callable

from identity_service.errors import RateLimited

WINDOW_SECONDS = 60


class SlidingWindowLimiter:
    def __init__(self, window_seconds: int = WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._window = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        with self._lock:
            return len(self._hits)

    def _sweep(self, cutoff: float) -> None:
        # Drop keys whose newest hit has left the window; caller holds the lock
        for key in [k for k, hits in self._hits.items() if hits[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = cutoff + self._window

    def hit(self, key: str, limit: int) -> int | None:
        """
        Count one request against `key`. Returns None when allowed, otherwise the
        number of seconds until the oldest hit leaves the window (>= 1).
        A limit of 0 or less disables throttling.
        """
        if limit <= 0:
            return None
        now = self._clock()
        cutoff = now - self._window
        with self._lock:
            if now - self._last_sweep >= self._window:
                self._sweep(cutoff)
            hits = self._hits.get(key)
            if hits is not None:
                while hits and hits[0] <= cutoff:
                    hits.popleft()
                if len(hits) >= limit:
                    return max(1, math.ceil(self._window - (now - hits[0])))
            else:
                hits = self._hits[key] = deque()
            hits.append(now)
            return None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = SlidingWindowLimiter()


def enforce(key: str, limit: int) -> None:
    retry_after = limiter.hit(key, limit)
    if retry_after is not None:
        raise RateLimited(retry_after)


def reset() -> None:
    limiter.reset()
