"""Rate limiting middleware with a fixed window per client address.

Provides:
- Fixed window counting keyed by client IP (X-Forwarded-For, X-Real-IP, peer)
- Injectable clock for deterministic tests
- X-RateLimit-* headers on every response, Retry-After on 429
- Health and metrics endpoint exemption
- Periodic cleanup of expired windows
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import time

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from api.middleware.request_context import get_client_ip, get_request_id
from core.constants import ERROR_TOO_MANY_REQUESTS, RATE_LIMIT_CLEANUP_INTERVAL, RATE_LIMIT_EXEMPT_PATHS
from models.error_models import ErrorCode, ErrorDetail, ErrorResponse
from utils.logger import logger
from utils.metrics import rate_limited_requests_total


@dataclass
class RateLimitWindow:
    """Request count for one client within the current window."""

    count: int
    reset_at: float


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float
    limit: int

    def retry_after(self, now: float) -> int:
        """Whole seconds until the window resets."""
        return max(0, math.ceil(self.reset_at - now))

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


class FixedWindowRateLimiter:
    """In-memory fixed window rate limiter.

    A window opens on a client's first request and lasts ``window_seconds``.
    Every request in the window counts, including rejected ones, so a client
    that keeps hammering stays limited until the window lapses.

    Args:
        window_seconds: Window length in seconds
        max_requests: Requests allowed per window
        clock: Returns the current time in epoch seconds
        cleanup_interval: How often to drop expired windows (seconds)
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.time,
        cleanup_interval: float = RATE_LIMIT_CLEANUP_INTERVAL,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task[None] | None = None
        self._cleanup_interval = cleanup_interval
        self._shutting_down = False

    def now(self) -> float:
        return self._clock()

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None:
            self._shutting_down = False
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Rate limiter cleanup task started")

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        self._shutting_down = True
        if self._cleanup_task:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None
            logger.info("Rate limiter cleanup task stopped")

    async def check_and_increment(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed."""
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now > window.reset_at:
                window = RateLimitWindow(count=1, reset_at=now + self.window_seconds)
                self._windows[key] = window
            else:
                window.count += 1

            return RateLimitDecision(
                allowed=window.count <= self.max_requests,
                remaining=max(0, self.max_requests - window.count),
                reset_at=window.reset_at,
                limit=self.max_requests,
            )

    async def reset(self) -> None:
        """Forget every window."""
        async with self._lock:
            self._windows.clear()

    async def _cleanup_loop(self) -> None:
        """Periodically clean up expired windows."""
        while not self._shutting_down:
            await asyncio.sleep(self._cleanup_interval)
            await self.cleanup_expired()

    async def cleanup_expired(self) -> int:
        """Remove windows whose reset time has passed. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if now > window.reset_at]
            for key in expired:
                del self._windows[key]

        if expired:
            logger.debug(f"Rate limiter cleanup: removed {len(expired)} expired windows")
        return len(expired)


def client_key(request: Request) -> str:
    """Rate limit key for a request: the originating client address."""
    return get_client_ip(request) or "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for rate limiting requests."""

    def __init__(self, app: Callable[..., Any], rate_limiter: FixedWindowRateLimiter) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request through rate limiter."""
        path = request.url.path

        if path in RATE_LIMIT_EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        key = client_key(request)
        decision = await self._rate_limiter.check_and_increment(key)

        if not decision.allowed:
            retry_after = decision.retry_after(self._rate_limiter.now())
            rate_limited_requests_total.inc()
            logger.warning(f"Rate limit exceeded for {key} (path: {path})")
            error = ErrorResponse(
                code=ErrorCode.RATE_LIMIT,
                message=ERROR_TOO_MANY_REQUESTS,
                request_id=get_request_id(),
                path=path,
                details=[ErrorDetail(field="retry_after", message=f"Retry after {retry_after} seconds")],
            )
            response = JSONResponse(status_code=429, content=error.to_dict())
            response.headers.update(decision.headers())
            response.headers["Retry-After"] = str(retry_after)
            return response

        result = await call_next(request)
        result.headers.update(decision.headers())
        return result
