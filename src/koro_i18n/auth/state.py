"""Single-use ``state`` tokens for the OAuth 2.0 login handshake.

The *state* parameter binds the callback to the login request that started
it, which is what protects the callback against CSRF.  Tokens are random,
URL-safe strings generated with :pymod:`secrets` and kept in a process-wide
table keyed ``state:<value>``.

Lifecycle
---------
* :meth:`StateTokenManager.issue` records ``issued_at`` / ``expires_at``.
* :meth:`StateTokenManager.verify` removes the token whatever the outcome
  (success or expiry), so a value can never be verified twice.
* :meth:`StateTokenManager.cleanup` reaps tokens that were never used.

Logging
-------
Only a masked prefix of a state value is ever logged.
"""

from __future__ import annotations

import logging
import secrets
import threading
from typing import Final

from koro_i18n.auth.clock import Clock, default_clock
from koro_i18n.auth.errors import StateTokenExpired, StateTokenNotFound
from koro_i18n.auth.models import StateToken
from koro_i18n.utils.logging import mask_sensitive

_LOG = logging.getLogger("koro-i18n.auth.state")

_TOKEN_BYTES: Final[int] = 32
DEFAULT_STATE_TTL: Final[int] = 600  # 10 minutes


def _key(value: str) -> str:
    return f"state:{value}"


class StateTokenManager:
    """Issue and verify single-use, time-bounded state tokens."""

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_STATE_TTL,
        clock: Clock = default_clock,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("state TTL must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._tokens: dict[str, StateToken] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._tokens)

    def issue(self, *, redirect_url: str | None = None) -> StateToken:
        """Create, persist and return a fresh state token."""
        now = self._clock()
        token = StateToken(
            value=secrets.token_urlsafe(_TOKEN_BYTES),
            issued_at=now,
            expires_at=now + self.ttl_seconds,
            redirect_url=redirect_url,
        )
        with self._lock:
            self._tokens[_key(token.value)] = token
        _LOG.debug("Issued state=%s (ttl %ss)", mask_sensitive(token.value, 6), self.ttl_seconds)
        return token

    def verify(self, value: str) -> StateToken:
        """Consume *value*.

        Raises
        ------
        StateTokenNotFound
            The value is empty, unknown or already consumed.
        StateTokenExpired
            The token existed but its TTL elapsed; it is removed as well.
        """
        if not value:
            raise StateTokenNotFound("state missing")
        with self._lock:
            token = self._tokens.pop(_key(value), None)
        if token is None:
            _LOG.info("Rejected unknown state=%s", mask_sensitive(value, 6))
            raise StateTokenNotFound("state not found or already used")
        if token.is_expired(now=self._clock()):
            _LOG.info("Rejected expired state=%s", mask_sensitive(value, 6))
            raise StateTokenExpired("state expired")
        return token

    def cleanup(self) -> int:
        """Drop every expired token and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, t in self._tokens.items() if t.is_expired(now=now)]
            for k in expired:
                del self._tokens[k]
        if expired:
            _LOG.debug("Reaped %d expired state tokens", len(expired))
        return len(expired)
