"""In-memory fixed-window rate limiting keyed by client IP."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Mapping

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of one rate-limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window counter.

    Each key gets max_requests per window_ms. The window starts with the
    key's first request and is replaced once it has expired.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        name: str = "api",
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.name = name
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    async def check(self, key: str) -> RateLimitResult:
        """Count a request for key and report whether it is allowed."""
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                window = _Window(count=0, reset_at=now + self.window_ms / 1000)
                self._windows[key] = window

            window.count += 1
            allowed = window.count <= self.max_requests
            if not allowed:
                logger.warning("rate_limit.exceeded", limiter=self.name, key=key)
            return RateLimitResult(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - window.count),
                reset_at=window.reset_at,
            )

    async def cleanup(self) -> int:
        """Drop expired windows.

        Returns:
            Number of windows removed
        """
        async with self._lock:
            now = self._clock()
            expired = [k for k, w in self._windows.items() if w.reset_at <= now]
            for key in expired:
                del self._windows[key]
            return len(expired)

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


def client_ip(headers: Mapping[str, str], peer: str | None = None) -> str:
    """Client IP from proxy headers, falling back to the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for name in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(name)
        if value:
            return value.strip()
    return peer or "unknown"
