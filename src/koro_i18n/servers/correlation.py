"""Correlation ID middleware for request tracing.

Reuses an incoming ``X-Correlation-ID`` header or generates a UUID4 hex value,
sets it in ``request.state.correlation_id`` for handlers and propagates it to
the response headers.
"""

from __future__ import annotations

import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_HEADER_NAME = "X-Correlation-ID"
_logger = logging.getLogger("koro-i18n.correlation")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that attaches a per-request correlation ID."""

    def __init__(self, app, header_name: str = _HEADER_NAME) -> None:  # type: ignore[override]  # noqa: ANN001
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]  # noqa: ANN001
        correlation_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        _logger.debug(
            "%s %s", request.method, request.url.path, extra={"correlation_id": correlation_id}
        )
        response = await call_next(request)
        response.headers[self.header_name] = correlation_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add conservative browser security headers to every response."""

    def __init__(self, app, *, hsts: bool = False) -> None:  # type: ignore[override]  # noqa: ANN001
        super().__init__(app)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]  # noqa: ANN001
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if self.hsts:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response
