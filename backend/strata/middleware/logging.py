"""
Strata Backend: Request Logging Middleware
==========================================

What:  One access log line per HTTP request with status and duration.
How:   Measures the time around call_next() and picks the log level from the
       status class. GET /health is skipped; probes run every few seconds.

Log line:
    2025-01-15T12:00:00 [INFO] strata.access [a1b2c3d4]: POST /users 201 4.2ms from 127.0.0.1

What we log vs what we don't:
    Logged: method, path, status, duration, client ip, request id
    Not logged: request bodies (may contain PII or file content), headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from strata.middleware.request_id import request_id_var

logger = logging.getLogger("strata.access")

SKIP_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIP_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms from %s",
            request.method,
            path,
            status,
            duration_ms,
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
