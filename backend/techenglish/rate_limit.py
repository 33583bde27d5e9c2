"""Fixed-window request limiter owned by the application instance."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """Counts requests per client key in fixed windows.

    State lives on the instance (one per app, see ``app.state.rate_limiter``)
    and expired windows are evicted at most once per window length.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = Lock()
        self._last_eviction = clock()

    def hit(self, key: str) -> Tuple[bool, int]:
        """Record one request for ``key``; returns ``(allowed, remaining)``."""
        now = self._clock()
        with self._lock:
            if now - self._last_eviction >= self.window_seconds:
                self._evict_locked(now)
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                window = _Window(started_at=now)
                self._windows[key] = window
            if window.count >= self.limit:
                return False, 0
            window.count += 1
            return True, self.limit - window.count

    def evict_expired(self, now: Optional[float] = None) -> int:
        with self._lock:
            return self._evict_locked(self._clock() if now is None else now)

    def _evict_locked(self, now: float) -> int:
        expired = [key for key, window in self._windows.items() if now - window.started_at >= self.window_seconds]
        for key in expired:
            del self._windows[key]
        self._last_eviction = now
        if expired:
            logger.debug("Evicted %d expired rate-limit window(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency; a no-op when the app has no limiter installed."""
    limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    key = client_key(request)
    allowed, _ = limiter.hit(key)
    if not allowed:
        logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")


__all__ = ["RateLimiter", "client_key", "enforce_rate_limit"]
