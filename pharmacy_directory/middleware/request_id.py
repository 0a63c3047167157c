"""
Pharmacy Directory Backend — Request ID Middleware
===================================================

What:  Tags every request with an ID and returns it in the X-Request-ID header.
Why:   Error responses carry the same ID, so a failed call can be matched to
       its server-side log lines.
How:   Reuses a well-formed client-supplied X-Request-ID, otherwise generates
       a short UUID prefix; stores it in a ContextVar and on request.state.
"""

import logging
import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client IDs are echoed into headers and logs; keep them short and printable
_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request ID for tracing.

    Behavior:
        1. Accept the client's X-Request-ID if it matches _CLIENT_ID_PATTERN
        2. Otherwise generate an 8-character ID
        3. Store in ContextVar (loggers, exception handlers) and request.state
        4. Add to response headers
        5. Unhandled exceptions from downstream become the generic 500
           envelope here, so they carry the ID too
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("X-Request-ID", "")
        rid = supplied if _CLIENT_ID_PATTERN.match(supplied) else new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        except Exception as exc:
            # Nothing inside handled it; answer here while the ID is still set
            logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
            response = JSONResponse(
                status_code=500,
                content={
                    "error": "server_error",
                    "message": "Server Error",
                    "details": None,
                    "request_id": rid,
                },
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
