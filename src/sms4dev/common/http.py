"""Request context utilities."""

from __future__ import annotations

import contextvars
import uuid

import structlog

from starlette.requests import Request
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp


_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "sms4dev_request_id",
    default=None,
)


def set_request_id(value: str | None) -> None:
    """Set request id in context."""
    _request_id_var.set(value)
    if value is not None:
        structlog.contextvars.bind_contextvars(request_id=value)


def get_request_id() -> str | None:
    """Get current request id."""
    return _request_id_var.get()


def bind_access_key_id(value: str | None) -> None:
    """Bind the authenticated access key id to the log context."""
    if value is not None:
        structlog.contextvars.bind_contextvars(access_key_id=value)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to each request/response and context."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self._header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers.setdefault(self._header_name, request_id)
            return response
        finally:
            structlog.contextvars.clear_contextvars()
