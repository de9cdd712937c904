"""Browser-facing OAuth endpoints.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters (query, cookies).
2. Delegate business logic to ``AuthService``.
3. Map :class:`~koro_i18n.auth.errors.AuthError` onto a JSON response with
   the error's status code.

Routes (relative to ``base_path``, default ``/auth``)::

    GET  /login      302 to GitHub, or JSON {authorize_url} (alias: /github)
    GET  /callback   exchange code, set auth_token cookie, JSON body
    GET  /me         current user (requires AuthMiddleware)
    GET  /csrf-token double-submit CSRF token (cookie and JSON body)
    POST /logout     delete session if any, always clear cookie

SECURITY NOTE
-------------
State values, authorization codes and credentials are never logged.  The
correlation id from ``request.state.correlation_id`` is included in INFO logs.
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from koro_i18n.auth.errors import AuthError, CsrfRejected
from koro_i18n.auth.service import AuthService
from koro_i18n.servers.csrf import csrf_token_response
from koro_i18n.servers.middleware import AUTH_COOKIE, extract_credential
from koro_i18n.utils.environment import AppConfig

_LOG = logging.getLogger("koro-i18n.auth.routes")

STATE_COOKIE = "oauth_state"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "-")


def _wants_json(request: Request) -> bool:
    """``format=json`` wins; otherwise JSON only when HTML is not accepted."""
    fmt = request.query_params.get("format")
    if fmt:
        return fmt.lower() == "json"
    accept = request.headers.get("accept", "").lower()
    return "application/json" in accept and "text/html" not in accept


def _error_response(exc: AuthError) -> JSONResponse:
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def build_auth_routes(
    service: AuthService, config: AppConfig, *, base_path: str = "/auth"
) -> list[Route]:
    """Return the OAuth routes bound to *service* under *base_path*."""

    # ----- GET /auth/login ------------------------------------------------ #
    async def _login(request: Request) -> Response:
        redirect_url = request.query_params.get("redirect_url") or None
        target = service.begin_login(redirect_url=redirect_url)
        _LOG.info("OAuth login started correlation_id=%s", _correlation_id(request))

        response: Response
        if _wants_json(request):
            response = JSONResponse({"authorize_url": target.url})
        else:
            response = RedirectResponse(target.url, status_code=302)
        response.set_cookie(
            STATE_COOKIE,
            target.state,
            max_age=config.state_ttl_seconds,
            path="/",
            httponly=True,
            secure=config.cookie_secure,
            samesite="lax",
        )
        return response

    # ----- GET /auth/callback --------------------------------------------- #
    async def _callback(request: Request) -> Response:
        # Provider-side errors (e.g. access_denied) arrive without a code
        oauth_error = request.query_params.get("error")
        if oauth_error:
            description = request.query_params.get("error_description", "")
            _LOG.info(
                "OAuth provider error=%s correlation_id=%s",
                oauth_error,
                _correlation_id(request),
            )
            return JSONResponse(
                {
                    "error": "oauth_error",
                    "message": f"{oauth_error}: {description}" if description else oauth_error,
                },
                status_code=400,
            )

        code = request.query_params.get("code")
        state = request.query_params.get("state")
        if not state:
            return _error_response(CsrfRejected("state parameter missing"))
        if not code:
            return JSONResponse(
                {"error": "invalid_request", "message": "code parameter missing"},
                status_code=400,
            )

        cookie_state = request.cookies.get(STATE_COOKIE)
        if cookie_state is not None and cookie_state != state:
            _LOG.warning(
                "OAuth state cookie mismatch correlation_id=%s", _correlation_id(request)
            )
            return _error_response(CsrfRejected("State parameter mismatch."))

        try:
            result = await service.complete_login(code=code, state=state)
        except AuthError as exc:
            _LOG.warning(
                "OAuth callback failed error=%s correlation_id=%s",
                exc.code,
                _correlation_id(request),
            )
            response = _error_response(exc)
            response.delete_cookie(STATE_COOKIE, path="/")
            return response

        _LOG.info(
            "OAuth success user=%s correlation_id=%s",
            result.identity.username,
            _correlation_id(request),
        )
        response = JSONResponse(
            {
                "success": True,
                "user": result.identity.public_view(),
                "token": result.credential,
                "expiresAt": int(result.claims.expires_at),
                "redirectUrl": result.redirect_url,
            }
        )
        response.set_cookie(
            AUTH_COOKIE,
            result.credential,
            max_age=config.session_ttl_seconds,
            path="/",
            httponly=True,
            secure=config.cookie_secure,
            samesite="lax",
        )
        response.delete_cookie(STATE_COOKIE, path="/")
        return response

    # ----- GET /auth/me --------------------------------------------------- #
    async def _me(request: Request) -> Response:
        user = getattr(request.state, "user", None)
        if user is None:
            return JSONResponse(
                {"error": "authentication_required", "message": "Not logged in."},
                status_code=401,
            )
        return JSONResponse({"user": user.public_view()})

    # ----- GET /auth/csrf-token ------------------------------------------ #
    async def _csrf_token(request: Request) -> Response:
        _LOG.info("CSRF token issued correlation_id=%s", _correlation_id(request))
        return csrf_token_response(
            secure=config.cookie_secure, max_age=config.session_ttl_seconds
        )

    # ----- POST /auth/logout ---------------------------------------------- #
    # Public path: already logged out (or garbage) credentials still get a
    # 200 and a cleared cookie.
    async def _logout(request: Request) -> Response:
        credential, _ = extract_credential(request)
        try:
            user_id = await service.logout_credential(credential)
        except AuthError as exc:
            return _error_response(exc)
        if user_id is not None:
            _LOG.info(
                "Logged out user=%s correlation_id=%s",
                user_id[:8],
                _correlation_id(request),
            )
        response = JSONResponse({"success": True, "message": "Logged out successfully"})
        response.delete_cookie(AUTH_COOKIE, path="/")
        return response

    return [
        Route(f"{base_path}/login", _login, methods=["GET"]),
        Route(f"{base_path}/github", _login, methods=["GET"]),
        Route(f"{base_path}/callback", _callback, methods=["GET"]),
        Route(f"{base_path}/me", _me, methods=["GET"]),
        Route(f"{base_path}/csrf-token", _csrf_token, methods=["GET"]),
        Route(f"{base_path}/logout", _logout, methods=["POST"]),
    ]
