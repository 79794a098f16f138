"""
RouteSnap Backend — Request Logging Middleware
================================================

What:  One access log line per HTTP request, with status and duration.
Why:   Scan latency is dominated by OCR and geocoding; the duration field is
       how slow providers show up in the logs.
How:   Measures from middleware entry to response, picks the log level from
       the status code, tags the line with the request ID.

What we log vs what we DON'T log (privacy):
    Log:       method, path, status, duration, client IP, request ID
    Don't log: request bodies. Route sheets hold customer addresses.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from routesnap.middleware.request_id import request_id_var

logger = logging.getLogger("routesnap.access")

# Probed every few seconds by the load balancer
QUIET_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration for each request.

    Typical durations:
        - GET /health: 1-5ms
        - POST /api/stops/parse: 1-10ms
        - POST /api/stops/scan: 2000-10000ms (OCR + geocoding)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code

        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
