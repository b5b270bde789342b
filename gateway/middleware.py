"""Middleware that assigns request identifiers and guards body size.

``RequestIdMiddleware`` ensures every HTTP request carries an identifier
(UUID). The identifier is read from the incoming ``X-Request-ID`` header
when the client provides one, or generated server-side otherwise. It is
stored on ``request.state`` and in a context variable so code running
downstream (services, log filters) can read it without passing it around.

Behavior contract:
- If the incoming request contains ``X-Request-ID``, that value is reused.
- Otherwise a new UUIDv4 is generated.
- The response carries the same id in the ``X-Request-ID`` header.

``ApiSizeLimitMiddleware`` rejects requests whose declared body is larger
than the configured limit with 413.
"""

import contextvars
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Set and return a per-request identifier."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(HEADER) or str(uuid.uuid4())
        request.state.request_id = rid
        token = REQUEST_ID_CTX.set(rid)
        try:
            response = await call_next(request)
        finally:
            REQUEST_ID_CTX.reset(token)
        response.headers[HEADER] = rid
        return response


class ApiSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies whose ``Content-Length`` exceeds ``max_bytes``."""

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        clen = request.headers.get("content-length")
        if clen and clen.isdigit() and int(clen) > self.max_bytes:
            return JSONResponse({"detail": "PAYLOAD_TOO_LARGE"}, status_code=413)
        return await call_next(request)
