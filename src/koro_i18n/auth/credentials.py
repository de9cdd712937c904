"""Signed session credentials (HS256 JSON Web Tokens).

The credential embeds the local user id (``sub``), the GitHub login and id,
and ``iat`` / ``exp``.  Expiry is checked against the injected clock rather
than PyJWT's wall-clock check so the same :class:`Clock` drives every TTL in
the subsystem.
"""

from __future__ import annotations

from typing import Final

import jwt

from koro_i18n.auth.clock import Clock, default_clock
from koro_i18n.auth.errors import InvalidCredential
from koro_i18n.auth.models import Claims, Identity

ALGORITHM: Final[str] = "HS256"
DEFAULT_CREDENTIAL_TTL: Final[int] = 24 * 60 * 60


class CredentialSigner:
    """Issue and decode credentials with a shared secret."""

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_CREDENTIAL_TTL,
        clock: Clock = default_clock,
    ) -> None:
        if not secret:
            raise ValueError("credential signing secret must not be empty")
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, identity: Identity) -> tuple[str, Claims]:
        """Return ``(token, claims)`` for *identity*."""
        issued_at = int(self._clock())
        claims = Claims(
            user_id=identity.id,
            username=identity.username,
            provider_id=identity.provider_id,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl_seconds,
        )
        payload = {
            "sub": claims.user_id,
            "username": claims.username,
            "github_id": claims.provider_id,
            "iat": issued_at,
            "exp": int(claims.expires_at),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM), claims

    def decode(self, token: str) -> Claims:
        """Verify signature and expiry of *token* and return its claims.

        Raises
        ------
        InvalidCredential
            Malformed token, bad signature, missing claims or expired.
        """
        if not token:
            raise InvalidCredential("No authentication token provided.")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidCredential() from exc

        try:
            claims = Claims(
                user_id=str(payload["sub"]),
                username=str(payload["username"]),
                provider_id=int(payload["github_id"]),
                issued_at=float(payload["iat"]),
                expires_at=float(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidCredential("Authentication token payload malformed.") from exc

        if self._clock() >= claims.expires_at:
            raise InvalidCredential("Authentication token has expired.")
        return claims
