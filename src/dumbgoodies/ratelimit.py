from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol


class RateLimiter(Protocol):
    def hit(self, key: str) -> bool:
        """Count one request for key; False once the key is over its limit."""
        ...


class FixedWindowRateLimiter:
    """
    In-memory per-key counter over fixed windows.

    Single-instance only: counts reset on restart and are not shared across
    processes. A shared-store limiter can replace it behind RateLimiter.
    """

    def __init__(self, limit: int = 10, window_s: int = 60, clock: Callable[[], float] = time.time) -> None:
        self.limit = limit
        self.window_s = window_s
        self._clock = clock
        self._counts: dict[tuple[str, int], int] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        window = int(self._clock() // self.window_s)
        with self._lock:
            self._prune(window)
            count = self._counts.get((key, window), 0) + 1
            self._counts[(key, window)] = count
        return count <= self.limit

    def _prune(self, window: int) -> None:
        stale = [k for k in self._counts if k[1] < window]
        for k in stale:
            del self._counts[k]


def client_key(headers, peer: str | None) -> str:
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    return forwarded or (headers.get("x-real-ip") or "").strip() or peer or "anon"
