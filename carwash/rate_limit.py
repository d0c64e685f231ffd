"""
In-process fixed-window rate limiting.

Each limiter keeps `{key: _Window}` for the lifetime of the process. A
background task started by the app lifespan calls `sweep_all()` on a fixed
interval so idle clients do not accumulate.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import Request, Response
from loguru import logger

from carwash import settings
from carwash.deps import client_host
from carwash.errors import TooManyRequests


@dataclass
class _Window:
    count: int
    reset_at: float  # monotonic seconds


class RateLimiter:
    def __init__(
        self,
        name: str,
        window_seconds: int,
        max_requests: int,
        message: str = "Too many requests, please try again later.",
    ) -> None:
        self.name = name
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.message = message
        self._store: dict[str, _Window] = {}

    def key_for(self, request: Request) -> str:
        ip = client_host(request)
        user = getattr(request.state, "user", None)
        return f"{ip}:{user.id}" if user is not None else ip

    def hit(self, key: str, now: float | None = None) -> tuple[bool, _Window]:
        """Count one request for `key`; return (allowed, window)."""
        now = time.monotonic() if now is None else now
        window = self._store.get(key)
        if window is None or window.reset_at <= now:
            window = _Window(count=0, reset_at=now + self.window_seconds)
            self._store[key] = window
        window.count += 1
        return window.count <= self.max_requests, window

    def sweep(self, now: float | None = None) -> int:
        now = time.monotonic() if now is None else now
        expired = [k for k, w in self._store.items() if w.reset_at <= now]
        for k in expired:
            del self._store[k]
        return len(expired)

    def reset(self) -> None:
        self._store.clear()

    async def __call__(self, request: Request, response: Response) -> None:
        now = time.monotonic()
        allowed, window = self.hit(self.key_for(request), now)
        if not allowed:
            retry_after = max(math.ceil(window.reset_at - now), 1)
            logger.warning(
                "Rate limit '{}' exceeded for {} {}",
                self.name,
                client_host(request),
                request.url.path,
            )
            raise TooManyRequests(self.message, retry_after=retry_after)

        reset_wall = datetime.fromtimestamp(
            time.time() + (window.reset_at - now), tz=UTC
        )
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(
            max(0, self.max_requests - window.count)
        )
        response.headers["X-RateLimit-Reset"] = reset_wall.isoformat()


general_limiter = RateLimiter(
    "general",
    *settings.GENERAL_RATE_LIMIT,
    message="Too many requests from this IP, please try again later.",
)
auth_limiter = RateLimiter(
    "auth",
    *settings.AUTH_RATE_LIMIT,
    message="Too many authentication attempts, please try again later.",
)
booking_limiter = RateLimiter(
    "booking",
    *settings.BOOKING_RATE_LIMIT,
    message="Too many booking attempts, please try again later.",
)
admin_limiter = RateLimiter(
    "admin",
    *settings.ADMIN_RATE_LIMIT,
    message="Too many admin requests, please try again later.",
)

ALL_LIMITERS = (general_limiter, auth_limiter, booking_limiter, admin_limiter)


def sweep_all() -> int:
    return sum(limiter.sweep() for limiter in ALL_LIMITERS)


async def run_sweeper(interval: float = settings.RATE_LIMIT_SWEEP_SECONDS) -> None:
    """Sweep expired windows until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = sweep_all()
        if removed:
            logger.debug("Rate limiter sweep removed {} expired windows", removed)
