"""
Request ID middleware.

Every request gets an id (client supplied ``X-Request-ID`` or a fresh UUID).
The id is kept in a context variable so concurrent requests never see each
other's id, and ``RequestIDFilter`` stamps it on every log record.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str] = ContextVar("request_id", default="no-request-id")


class RequestIDFilter(logging.Filter):
    """Adds ``record.request_id`` from the current request context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        request.state.request_id = request_id
        token = _request_id.set(request_id)

        try:
            response: Response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_id.reset(token)


def get_request_id(request: Request) -> str:
    """Request id stored by the middleware, or "no-request-id"."""
    return getattr(request.state, "request_id", "no-request-id")
