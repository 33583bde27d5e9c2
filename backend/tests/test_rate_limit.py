from __future__ import annotations

import pytest
from starlette.requests import Request

from techenglish.rate_limit import RateLimiter, client_key


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("203.0.113.9", 5123)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_limit_applies_within_window() -> None:
    clock = _Clock()
    limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)
    assert limiter.hit("a") == (True, 1)
    assert limiter.hit("a") == (True, 0)
    assert limiter.hit("a") == (False, 0)
    assert limiter.hit("b") == (True, 1)


def test_window_resets_after_expiry() -> None:
    clock = _Clock()
    limiter = RateLimiter(limit=1, window_seconds=10, clock=clock)
    limiter.hit("a")
    assert limiter.hit("a")[0] is False
    clock.now += 10
    assert limiter.hit("a") == (True, 0)


def test_expired_windows_are_evicted() -> None:
    clock = _Clock()
    limiter = RateLimiter(limit=5, window_seconds=10, clock=clock)
    for key in ("a", "b", "c"):
        limiter.hit(key)
    assert len(limiter) == 3

    clock.now += 11
    limiter.hit("d")
    assert len(limiter) == 1
    assert limiter.evict_expired(now=clock.now + 20) == 1
    assert len(limiter) == 0


@pytest.mark.parametrize("kwargs", [{"limit": 0, "window_seconds": 1}, {"limit": 1, "window_seconds": 0}])
def test_invalid_configuration(kwargs) -> None:
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)


def test_client_key_prefers_forwarded_headers() -> None:
    assert client_key(_request({"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})) == "198.51.100.7"
    assert client_key(_request({"X-Real-IP": " 198.51.100.8 "})) == "198.51.100.8"
    assert client_key(_request()) == "203.0.113.9"
    assert client_key(_request(client=None)) == "unknown"
