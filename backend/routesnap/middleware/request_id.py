"""
RouteSnap Backend — Request ID Middleware
===========================================

What:  Assigns a short correlation ID to every request and echoes it back.
Why:   A courier reporting "my scan failed" can quote the X-Request-ID shown
       in the app; every log line for that scan carries the same ID.
How:   Reuse the client's X-Request-ID header or generate one, store it in a
       ContextVar for loggers and handlers, add it to the response headers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Accepts a client-provided X-Request-ID, otherwise generates an 8-char one."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
