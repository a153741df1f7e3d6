"""
Correlation ID tracking for HTTP requests and WebSocket connections.

HTTP requests take the ID from the X-Correlation-ID header or get a new
one. WebSocket connections derive theirs from the connection id (see
presence_relay.api.ws.websocket).
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from presence_relay.constants import CORRELATION_ID_LENGTH

# Context variable for storing correlation ID per request/connection task
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to HTTP requests.

    This middleware:
    - Extracts correlation ID from X-Correlation-ID header or generates one
    - Limits all correlation IDs to 8 characters for consistency
    - Stores correlation ID in the context variable for logging
    - Adds correlation ID to response headers for client tracking

    WebSocket scopes are passed through untouched by BaseHTTPMiddleware.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or new_correlation_id()
        cid = cid[:CORRELATION_ID_LENGTH]

        request.state.request_id = cid
        correlation_id.set(cid)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid

        return response


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:CORRELATION_ID_LENGTH]


def set_correlation_id(cid: str) -> None:
    """Bind a correlation ID to the current task context."""
    correlation_id.set(cid[:CORRELATION_ID_LENGTH])


def get_correlation_id() -> str:
    """
    Get the correlation ID for the current request context.

    Returns:
        The correlation ID string, or empty string if not set.
    """
    return correlation_id.get()
