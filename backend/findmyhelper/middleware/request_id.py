"""
FindMyHelper Backend — Request ID Middleware
==============================================

What:  Assigns a short correlation id to each request and echoes it back.
How:   Uses the client's X-Request-ID header when present, otherwise the
       first 8 characters of a UUID4. The id is stored in a ContextVar for
       log lines and error handlers, and on request.state for routes.
Who:   Every request. Error bodies carry it as `request_id`.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
