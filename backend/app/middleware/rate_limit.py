"""
RxScribe Backend: Rate Limiting Middleware
===========================================

What:  Per-IP sliding window limit on /api requests.
How:   SlidingWindowRateLimiter keeps a deque of request timestamps per
       client; timestamps older than the window are dropped on every hit.
       When a client already has `limit` requests inside the window the
       request is answered with 429 and a Retry-After header.

The limiter is in-memory and per-process. Each AI call spends provider
quota, so this is the only guard against a single client draining it.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.exceptions import RateLimitExceededError
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Counts hits per key over the last `window` seconds.

    hit() returns None when the request is allowed (and records it), or the
    number of seconds until the oldest hit leaves the window.
    """

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        now = time.time() if now is None else now
        hits = self._hits[key]
        window_start = now - self.window

        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.limit:
            return max(1, int(hits[0] + self.window - now) + 1)

        hits.append(now)
        return None

    def prune(self, now: Optional[float] = None) -> int:
        """Forget keys with no hits inside the window; returns how many were dropped."""
        now = time.time() if now is None else now
        window_start = now - self.window
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._hits)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies SlidingWindowRateLimiter to every path under /api."""

    PROTECTED_PREFIX = "/api/"
    PRUNE_EVERY = 1000

    def __init__(self, app, limit: Optional[int] = None, window: Optional[int] = None):
        super().__init__(app)
        self.limiter = SlidingWindowRateLimiter(
            limit=limit or settings.rate_limit_requests,
            window=window or settings.rate_limit_window,
        )
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(self.PROTECTED_PREFIX):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        retry_after = self.limiter.hit(client_ip)

        self._seen += 1
        if self._seen % self.PRUNE_EVERY == 0:
            dropped = self.limiter.prune()
            if dropped:
                logger.debug("Pruned %d inactive rate limit entries", dropped)

        if retry_after is None:
            return await call_next(request)

        logger.warning("Rate limit exceeded for IP %s on %s", client_ip, request.url.path)
        exc = RateLimitExceededError(retry_after=retry_after)
        return JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": exc.message,
                "details": exc.context,
                "request_id": request_id_var.get(""),
            },
            headers={"Retry-After": str(retry_after)},
        )
