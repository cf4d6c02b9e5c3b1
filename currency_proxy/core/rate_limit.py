from __future__ import annotations

"""Request admission limiting.

Sliding window per client address: each client may issue at most
``max_requests`` requests within any ``window_seconds`` span. Applied as HTTP
middleware so rejected requests never reach a router.
"""
import logging
import math
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple

from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger("app.rate_limit")

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


class SlidingWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _prune(self, hits: Deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        """Drop clients with no hits left in the window (at most once per window)."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for client_id in list(self._hits):
            hits = self._hits[client_id]
            self._prune(hits, now)
            if not hits:
                del self._hits[client_id]

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)

    def hit(self, client_id: str) -> Tuple[bool, float]:
        """Record a request; return (admitted, seconds until the next slot frees)."""
        now = self._clock()
        self._sweep(now)
        hits = self._hits.setdefault(client_id, deque())
        self._prune(hits, now)
        if len(hits) >= self.max_requests:
            return False, self.window_seconds - (now - hits[0])
        hits.append(now)
        return True, 0.0

    def remaining(self, client_id: str) -> int:
        hits = self._hits.get(client_id)
        if not hits:
            return self.max_requests
        self._prune(hits, self._clock())
        if not hits:
            del self._hits[client_id]
            return self.max_requests
        return max(self.max_requests - len(hits), 0)


def make_rate_limit_middleware(limiter: SlidingWindowRateLimiter):
    async def rate_limit_middleware(request, call_next):  # type: ignore
        client_id = request.client.host if request.client else "unknown"
        admitted, retry_after = limiter.hit(client_id)
        if not admitted:
            logger.warning(
                "rate limit exceeded for %s on %s", client_id, request.url.path
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": RATE_LIMIT_MESSAGE},
                headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
            )
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(limiter.remaining(client_id))
        return response

    return rate_limit_middleware
