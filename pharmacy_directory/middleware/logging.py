"""
Pharmacy Directory Backend — Request Logging Middleware
========================================================

What:  One access-log line per HTTP request.
How:   Logs method, path, status, duration, request id, and client IP once
       the response is ready. Level follows the status class.
When:  Runs inside RequestIDMiddleware, so the request ID is available.

What we log vs what we DON'T log:
    ✅ Log: method, path, query keys, status, duration, IP, request ID
    ❌ Don't log: request bodies (contact details) or query values
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pharmacy_directory.middleware.request_id import request_id_var

logger = logging.getLogger("pharmacy_directory.access")

# Probes run every few seconds and would drown the log
QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Level by status:
        5xx → ERROR, 4xx → WARNING, everything else → INFO
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        query_keys = sorted(request.query_params.keys())

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "query_keys": query_keys,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
