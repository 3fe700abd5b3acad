"""
Request ID middleware.

Every request gets an id (the client's X-Request-ID header when present,
otherwise a fresh UUID). It is stored on ``request.state``, published through
a context variable so log records can pick it up, and echoed back in the
response headers so a customer-reported failure can be matched to the logs.
"""

import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.request_context import current_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        token = current_request_id.set(request_id)

        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            current_request_id.reset(token)


def get_request_id(request: Request) -> str:
    """Request id of ``request``, or "no-request-id" outside the middleware."""
    return getattr(request.state, "request_id", "no-request-id")
