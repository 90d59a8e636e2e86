"""
Invoicerr Backend — Rate Limiting Middleware
==============================================

What:  Sliding window rate limiter keyed by client IP.
Why:   Protects sign-in from password guessing and the API from runaway
       scripts.
How:   Every request is counted against its client IP. Credentials sent
       with the request are ignored: they are not validated at this layer,
       so a made-up token must not buy a fresh budget. Timestamps older
       than the window are dropped on every request.

Algorithm: Sliding Window Counter
    1. Each key gets a list of request timestamps
    2. On each request, remove timestamps older than the window
    3. If remaining count >= limit, reject with 429 and Retry-After
    4. Otherwise, record the current timestamp and allow through

Not counted:
    /health and the API docs, and SSE streams (`.../sse`), which hold one
    long-lived connection instead of polling.

State is per process. Multi-worker deployments get one budget per worker.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.exceptions import RateLimitExceededError
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

CLEANUP_EVERY = 1000


def rate_limit_key(request: Request) -> str:
    """`ip:<addr>` for every caller, authenticated or not."""
    # Behind a proxy this is the proxy address; configure forwarded headers in uvicorn
    client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
    return f"ip:{client_ip}"


def is_exempt(path: str) -> bool:
    return path in EXCLUDED_PATHS or path.endswith("/sse")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings):
        rate_limit_requests: Max requests per window
        rate_limit_window: Window duration in seconds
    """

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if is_exempt(request.url.path):
            return await call_next(request)

        key = rate_limit_key(request)
        now = time.time()
        window_start = now - settings.rate_limit_window

        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= settings.rate_limit_requests:
            retry_after = int(timestamps[0] + settings.rate_limit_window - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                key,
                len(timestamps),
                settings.rate_limit_window,
            )
            # Raised exceptions would bypass the app's handlers at this layer
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

        timestamps.append(now)

        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive_keys(window_start)

        return await call_next(request)

    def _cleanup_inactive_keys(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
