"""Per-request authentication gate.

:class:`AuthMiddleware` extracts the credential from the ``auth_token``
cookie or an ``Authorization: Bearer`` header, asks
:meth:`AuthService.validate` about it and, on success, stores a
:class:`~koro_i18n.servers.context.RequestUser` in ``request.state.user``.

It only reads session state; it never creates, extends or deletes sessions.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from koro_i18n.auth.errors import AuthError, InvalidCredential
from koro_i18n.auth.service import AuthService
from koro_i18n.servers.context import RequestUser

logger = logging.getLogger("koro-i18n.server.middleware")

AUTH_COOKIE = "auth_token"

DEFAULT_PUBLIC_PATHS: tuple[str, ...] = (
    "/healthz",
    "/auth/login",
    "/auth/github",
    "/auth/callback",
    "/auth/csrf-token",
    "/auth/logout",
)


def extract_credential(request: Request) -> tuple[str | None, str | None]:
    """Return ``(credential, error)`` from cookie or Authorization header."""
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token, None

    header = request.headers.get("authorization")
    if header is None:
        return None, None
    if header.startswith("Bearer "):
        token = header[7:].strip()
        if not token:
            return None, "Unauthorized: Empty Bearer token"
        return token, None
    if header.strip():
        scheme = header.split(" ", 1)[0]
        logger.warning("Unsupported Authorization type: %s", scheme)
        return None, "Unauthorized: Only 'Bearer <token>' is supported."
    return None, "Unauthorized: Empty Authorization header"


class AuthMiddleware:
    """ASGI middleware validating credentials before domain handlers run.

    With ``required=True`` (default) a request to a non-public path without a
    valid credential is answered with 401 and never reaches the app.  With
    ``required=False`` the identity is attached when present and valid, and
    the request proceeds either way.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_service: AuthService,
        required: bool = True,
        public_paths: Iterable[str] = DEFAULT_PUBLIC_PATHS,
    ) -> None:
        self.app = app
        self.auth_service = auth_service
        self.required = required
        self.public_paths = tuple(p.rstrip("/") for p in public_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope_copy: Scope = dict(scope)
        scope_copy["state"] = dict(scope.get("state") or {})
        scope_copy["state"]["user"] = None

        if self._is_public(scope_copy.get("path", "")):
            await self.app(scope_copy, receive, send)
            return

        request = Request(scope_copy)
        credential, error = extract_credential(request)
        from_cookie = bool(request.cookies.get(AUTH_COOKIE))

        if credential is not None:
            try:
                identity = await self.auth_service.validate(credential)
            except AuthError as exc:
                logger.info(
                    "Rejected credential for %s: %s", scope_copy.get("path", "-"), exc.code
                )
                if self.required:
                    await self._reject(
                        send, exc.status_code, exc.to_payload(), clear_cookie=from_cookie
                    )
                    return
            else:
                scope_copy["state"]["user"] = RequestUser(
                    user_id=identity.id,
                    username=identity.username,
                    provider_id=identity.provider_id,
                    email=identity.email,
                    avatar_url=identity.avatar_url,
                )
                await self.app(scope_copy, receive, send)
                return

        if self.required:
            err = InvalidCredential(error or "No authentication token provided.")
            payload = err.to_payload()
            if credential is None and error is None:
                payload["error"] = "authentication_required"
            await self._reject(send, 401, payload, clear_cookie=False)
            return

        await self.app(scope_copy, receive, send)

    def _is_public(self, path: str) -> bool:
        path = path.rstrip("/") or "/"
        return path in self.public_paths

    async def _reject(
        self, send: Send, status_code: int, payload: dict[str, str], *, clear_cookie: bool
    ) -> None:
        body = json.dumps(payload).encode("utf-8")
        headers = [
            (b"content-type", b"application/json"),
            (b"content-length", str(len(body)).encode("ascii")),
        ]
        if clear_cookie:
            headers.append(
                (
                    b"set-cookie",
                    f"{AUTH_COOKIE}=; Path=/; HttpOnly; Max-Age=0; SameSite=Lax".encode("latin-1"),
                )
            )
        start: Message = {"type": "http.response.start", "status": status_code, "headers": headers}
        await send(start)
        await send({"type": "http.response.body", "body": body})
