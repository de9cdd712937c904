"""Double-submit CSRF protection for cookie-authenticated requests.

``GET /auth/csrf-token`` hands the browser a random token twice: as the
``csrf_token`` cookie (HttpOnly, SameSite=Strict) and in the JSON body.
State-changing requests (POST, PUT, PATCH, DELETE) must echo the body copy
in the ``X-CSRF-Token`` header, or as ``csrfToken`` in a JSON body, and it
must equal the cookie.

Only requests that carry the ``auth_token`` cookie are checked: a forged
cross-site request can only ride on the browser's cookies, never on an
``Authorization`` header.  The OAuth entry points have their own ``state``
check and are exempt.
"""

from __future__ import annotations

import logging
import secrets
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from koro_i18n.servers.middleware import AUTH_COOKIE

logger = logging.getLogger("koro-i18n.server.csrf")

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

_UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

DEFAULT_EXEMPT_PATHS: tuple[str, ...] = ("/auth/callback", "/auth/github", "/auth/login")


def new_csrf_token() -> str:
    return secrets.token_hex(32)


async def _submitted_token(request: Request) -> str | None:
    token = request.headers.get(CSRF_HEADER)
    if token:
        return token
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.json()
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(body, dict) and isinstance(body.get("csrfToken"), str):
        return body["csrfToken"]
    return None


class CsrfMiddleware(BaseHTTPMiddleware):
    """Reject unsafe cookie-authenticated requests without a matching token."""

    def __init__(self, app, *, exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS) -> None:  # type: ignore[override]  # noqa: ANN001
        super().__init__(app)
        self.exempt_paths = tuple(p.rstrip("/") for p in exempt_paths)

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]  # noqa: ANN001
        if request.method not in _UNSAFE_METHODS:
            return await call_next(request)
        if request.url.path.rstrip("/") in self.exempt_paths:
            return await call_next(request)
        if not request.cookies.get(AUTH_COOKIE):
            return await call_next(request)

        expected = request.cookies.get(CSRF_COOKIE)
        submitted = await _submitted_token(request)
        if not expected or not submitted or not secrets.compare_digest(
            expected.encode(), submitted.encode()
        ):
            logger.warning(
                "CSRF check failed for %s %s (cookie=%s, token=%s)",
                request.method,
                request.url.path,
                bool(expected),
                bool(submitted),
            )
            return JSONResponse(
                {
                    "error": "csrf_failed",
                    "message": (
                        "Invalid or missing CSRF token. Please refresh the page and try again."
                    ),
                },
                status_code=403,
            )
        return await call_next(request)


def csrf_token_response(*, secure: bool, max_age: int) -> JSONResponse:
    """Issue a fresh token as cookie and body."""
    token = new_csrf_token()
    response = JSONResponse({"csrfToken": token})
    response.set_cookie(
        CSRF_COOKIE,
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )
    return response

