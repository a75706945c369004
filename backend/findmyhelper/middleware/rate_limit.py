"""
FindMyHelper Backend — Authentication Rate Limiting
=====================================================

What:  Per-IP sliding window limit on the credential endpoints.
How:   Keeps a list of request timestamps per client IP. Timestamps older
       than the window are dropped on each request; when the remaining
       count reaches the limit the request is answered with 429 and a
       Retry-After header.
Who:   POST /api/login, /api/register and /api/auth/firebase only. Every
       other route passes straight through.

State is in process memory, so each worker process keeps its own counts.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, FrozenSet, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from findmyhelper.config import settings
from findmyhelper.exceptions import RateLimitExceededError
from findmyhelper.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

LIMITED_PATHS: FrozenSet[str] = frozenset({"/api/login", "/api/register", "/api/auth/firebase"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests: allowed requests per IP per window (AUTH_RATE_LIMIT_REQUESTS).
        window_seconds: window length (AUTH_RATE_LIMIT_WINDOW).
    """

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        paths: FrozenSet[str] = LIMITED_PATHS,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.auth_rate_limit_requests
        self.window_seconds = window_seconds or settings.auth_rate_limit_window
        self.paths = paths
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "POST" or request.url.path not in self.paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window_seconds

        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        if len(recent) >= self.max_requests:
            retry_after = int(recent[0] + self.window_seconds - now) + 1
            logger.warning(
                "Auth rate limit exceeded for IP %s on %s: %d requests in %ds",
                client_ip,
                request.url.path,
                len(recent),
                self.window_seconds,
            )
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get() or None,
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        recent.append(now)
        self._cleanup_inactive_ips(window_start)
        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive:
            del self._requests[ip]
