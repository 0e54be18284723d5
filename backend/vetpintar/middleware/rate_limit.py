"""
VetPintar Backend — Rate Limiting Middleware
==============================================

What:  Per-IP sliding window rate limiter.
How:   Tracks request timestamps per IP in memory. Credential endpoints
       (login, register, google-login) get their own, stricter bucket.
Who:   Applied to every request via Starlette middleware.
When:  First in the middleware chain (rejects abuse before any processing).

Algorithm: Sliding Window Counter
    1. Each (bucket, IP) pair gets a list of request timestamps
    2. On each request, remove timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, add current timestamp and allow through

Buckets:
    auth    → AUTH_PATHS, auth_rate_limit_requests per auth_rate_limit_window
    global  → everything else, rate_limit_requests per rate_limit_window

Scaling Note:
    State is per process. Several uvicorn workers each enforce their own
    limit; a shared store (e.g. Redis INCR with TTL) would be needed to
    enforce one limit across workers.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from vetpintar.config import settings

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Response on rate limit:
        HTTP 429 Too Many Requests
        Retry-After header: Seconds until oldest request expires from window
    """

    # Health checks and API docs are never limited
    EXCLUDED_PATHS = {"/api/health", "/docs", "/openapi.json", "/redoc"}
    AUTH_PATHS = {"/api/auth/login", "/api/auth/register", "/api/auth/google-login"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        # (bucket, ip) → request timestamps inside the window
        self._requests: Dict[Tuple[str, str], List[float]] = defaultdict(list)

    def _limits(self, path: str) -> Tuple[str, int, int]:
        """Returns (bucket, max requests, window seconds) for a path."""
        if path in self.AUTH_PATHS:
            return "auth", settings.auth_rate_limit_requests, settings.auth_rate_limit_window
        return "global", settings.rate_limit_requests, settings.rate_limit_window

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        # Behind a reverse proxy this is the proxy's address unless uvicorn
        # runs with --proxy-headers
        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )
        bucket, limit, window = self._limits(path)
        key = (bucket, client_ip)

        now = time.time()
        window_start = now - window

        # ── Sliding Window: Clean old entries ─────────────────────────────
        self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

        # ── Check rate limit ──────────────────────────────────────────────
        if len(self._requests[key]) >= limit:
            oldest = self._requests[key][0]
            retry_after = int(oldest + window - now) + 1

            logger.warning(
                "Rate limit exceeded for IP %s on %s bucket: %d requests in %ds window",
                client_ip, bucket, len(self._requests[key]), window,
            )

            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please wait {retry_after} seconds before retrying.",
                    "details": {"retry_after": retry_after},
                },
                headers={"Retry-After": str(retry_after)},
            )

        # ── Record this request ───────────────────────────────────────────
        self._requests[key].append(now)

        # ── Periodic cleanup of inactive IPs ──────────────────────────────
        if sum(len(v) for v in self._requests.values()) % 1000 == 0:
            self._cleanup_inactive(now)

        return await call_next(request)

    def _cleanup_inactive(self, now: float) -> None:
        """Drops (bucket, IP) entries with no request inside their window."""
        inactive = []
        for key, timestamps in self._requests.items():
            window = settings.auth_rate_limit_window if key[0] == "auth" else settings.rate_limit_window
            if not timestamps or max(timestamps) < now - window:
                inactive.append(key)
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
