"""
FindMyHelper Backend — Access Log Middleware
==============================================

What:  One log line per HTTP request on the `findmyhelper.access` logger.
How:   Times the request, then logs method, path, status, duration,
       request id, client IP and the session user id (if a route resolved
       one). Level follows the status class: 5xx ERROR, 4xx WARNING,
       everything else INFO.

Never logged: request bodies (passwords, personal details), cookies,
Authorization headers. /health is skipped entirely.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from findmyhelper.middleware.request_id import request_id_var

logger = logging.getLogger("findmyhelper.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        user_id = getattr(request.state, "user_id", None)

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s user=%s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            user_id if user_id is not None else "-",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )
        return response
