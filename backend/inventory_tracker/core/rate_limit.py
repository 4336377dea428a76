"""Fixed-window request rate limiting, kept in process memory.

Counters are per client address and reset together at each window
boundary. Each worker process keeps its own counters.
"""

import logging
import math
import time
from collections.abc import Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from inventory_tracker.core.errors import RateLimitError

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._window: int | None = None
        self._counts: dict[str, int] = {}

    def hit(self, key: str) -> tuple[bool, int, int]:
        """Count one request for ``key``.

        Returns (allowed, remaining, seconds until the window resets).
        """
        now = self._clock()
        window = int(now // self.window_seconds)
        if window != self._window:
            self._window = window
            self._counts.clear()

        count = self._counts.get(key, 0) + 1
        self._counts[key] = count

        reset = math.ceil((window + 1) * self.window_seconds - now)
        remaining = max(0, self.max_requests - count)
        return count <= self.max_requests, remaining, reset


def rate_limit_middleware(limiter: FixedWindowRateLimiter):
    """Build an HTTP middleware that answers 429 once a client exceeds the limit."""

    async def middleware(request: Request, call_next):
        client_ip = get_client_ip(request)
        allowed, remaining, reset = limiter.hit(client_ip)
        headers = {
            "X-RateLimit-Limit": str(limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset),
        }

        if not allowed:
            logger.warning("Rate limit exceeded for %s", client_ip)
            error = RateLimitError()
            return JSONResponse(
                status_code=error.status_code,
                content={"error": error.message, "code": error.code},
                headers={**headers, "Retry-After": str(reset)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    return middleware
