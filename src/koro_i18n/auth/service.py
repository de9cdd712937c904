"""AuthService – orchestrates the GitHub login flow and session checks.

Handlers in :mod:`koro_i18n.servers.auth` and the request gate in
:mod:`koro_i18n.servers.middleware` call the façade methods below.

Login sequence (:meth:`AuthService.complete_login`), strictly in order:

1. consume the state token – failure stops before any provider call;
2. exchange the code and fetch the GitHub profile;
3. upsert the local identity;
4. sign a credential;
5. write the session (overwriting any previous session of that user).

Every step is terminal on failure and nothing is retried.  The state token
is consumed in step 1 whatever happens afterwards, so a failed login must
be restarted with :meth:`AuthService.begin_login`.

Component errors are translated into the :class:`~koro_i18n.auth.errors.AuthError`
taxonomy here; callers never see provider or storage exceptions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from koro_i18n.auth.clock import Clock, default_clock
from koro_i18n.auth.credentials import CredentialSigner
from koro_i18n.auth.directory import InMemoryUserDirectory, UserDirectory
from koro_i18n.auth.errors import (
    CsrfRejected,
    DirectoryFailure,
    InvalidCredential,
    ProviderError,
    ProviderFailure,
    SessionExpired,
    SessionStoreError,
    SessionUnavailable,
    StateTokenError,
)
from koro_i18n.auth.log_utils import get_auth_logger
from koro_i18n.auth.models import Claims, Identity, LoginResult, RedirectTarget, Session
from koro_i18n.auth.provider import GITHUB_AUTHORIZE_URL, GitHubOAuthClient
from koro_i18n.auth.state import StateTokenManager
from koro_i18n.auth.store import SessionStore, build_session_store
from koro_i18n.utils.logging import mask_sensitive

if TYPE_CHECKING:
    # runtime import would be circular: environment imports auth.provider
    from koro_i18n.utils.environment import AppConfig

_LOG = logging.getLogger("koro-i18n.auth.service")


class AuthService:
    """Application service for login, credential validation and logout."""

    def __init__(
        self,
        *,
        state_manager: StateTokenManager,
        provider: GitHubOAuthClient,
        directory: UserDirectory,
        sessions: SessionStore,
        signer: CredentialSigner,
        authorize_url: str = GITHUB_AUTHORIZE_URL,
        scope: str = "user:email",
        session_required: bool = True,
        clock: Clock = default_clock,
    ) -> None:
        self.state_manager = state_manager
        self.provider = provider
        self.directory = directory
        self.sessions = sessions
        self.signer = signer
        self.authorize_url = authorize_url
        self.scope = scope
        self.session_required = session_required
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        directory: UserDirectory | None = None,
        sessions: SessionStore | None = None,
        provider: GitHubOAuthClient | None = None,
        clock: Clock = default_clock,
    ) -> "AuthService":
        """Wire the default components described by *config*."""
        return cls(
            state_manager=StateTokenManager(ttl_seconds=config.state_ttl_seconds, clock=clock),
            provider=provider
            or GitHubOAuthClient(
                client_id=config.github_client_id,
                client_secret=config.github_client_secret,
                redirect_uri=config.github_redirect_uri,
                token_url=config.github_token_url,
                api_url=config.github_api_url,
                timeout=config.provider_timeout_seconds,
            ),
            directory=directory or InMemoryUserDirectory(clock=clock),
            sessions=sessions
            or build_session_store(
                config.session_backend,  # type: ignore[arg-type]
                redis_url=config.redis_url,
                clock=clock,
            ),
            signer=CredentialSigner(
                config.jwt_secret, ttl_seconds=config.session_ttl_seconds, clock=clock
            ),
            authorize_url=config.github_authorize_url,
            scope=config.github_scope,
            session_required=config.session_required,
            clock=clock,
        )

    # ------------------------------------------------------------------ #
    # Login                                                              #
    # ------------------------------------------------------------------ #
    def begin_login(self, *, redirect_url: str | None = None) -> RedirectTarget:
        """Issue a state token and return the GitHub authorize URL."""
        token = self.state_manager.issue(redirect_url=redirect_url)
        query = urlencode(
            {
                "client_id": self.provider.client_id,
                "redirect_uri": self.provider.redirect_uri,
                "scope": self.scope,
                "state": token.value,
                "allow_signup": "true",
            }
        )
        _LOG.debug("Built authorize URL state=%s", mask_sensitive(token.value, 6))
        return RedirectTarget(
            url=f"{self.authorize_url}?{query}",
            state=token.value,
            expires_at=token.expires_at,
        )

    async def complete_login(self, *, code: str, state: str) -> LoginResult:
        """Finish the handshake started by :meth:`begin_login`.

        Raises
        ------
        CsrfRejected
            State missing, unknown, already used or expired.
        ProviderFailure
            Code exchange or profile fetch failed.
        DirectoryFailure
            The identity could not be stored.
        SessionUnavailable
            The session backend refused the write.
        """
        try:
            state_token = self.state_manager.verify(state)
        except StateTokenError as exc:
            raise CsrfRejected() from exc

        try:
            provider_token = await self.provider.exchange_code(code)
            profile = await self.provider.fetch_profile(provider_token)
        except ProviderError as exc:
            _LOG.warning("GitHub login failed: %s", exc)
            raise ProviderFailure() from exc

        try:
            identity = await self.directory.upsert(profile)
        except Exception as exc:  # broad: any backend failure aborts the attempt
            _LOG.error("User upsert failed for github_id=%s: %s", profile.provider_id, exc)
            raise DirectoryFailure() from exc

        credential, claims = self.signer.issue(identity)
        session = Session(
            user_id=identity.id,
            username=identity.username,
            provider_id=identity.provider_id,
            created_at=claims.issued_at,
            expires_at=claims.expires_at,
        )
        try:
            # Replaces any earlier session of this user
            await self.sessions.create(session)
        except SessionStoreError as exc:
            _LOG.error("Session write failed: %s", exc)
            raise SessionUnavailable() from exc

        get_auth_logger(user_id=identity.id, provider="github").info(
            "Login completed for %s (session expires in %ss)",
            identity.username,
            self.signer.ttl_seconds,
        )
        return LoginResult(
            identity=identity,
            credential=credential,
            claims=claims,
            redirect_url=state_token.redirect_url,
        )

    # ------------------------------------------------------------------ #
    # Per-request validation                                             #
    # ------------------------------------------------------------------ #
    async def validate(self, credential: str) -> Identity:
        """Return the identity behind *credential* or raise.

        The signature and expiry must check out and, when a session record
        is found, it must be live.  With ``session_required`` (the default)
        a missing session is also a failure, which is what makes
        :meth:`logout` revoke outstanding credentials.

        The session store, not the local directory, is the authority: a
        user this process has never seen (login served by another
        instance, or a restart) is rebuilt from the credential claims.
        Refreshing ``last_active_at`` is best-effort.
        """
        claims = self.signer.decode(credential)

        try:
            session = await self.sessions.get(claims.user_id)
        except SessionStoreError as exc:
            raise SessionUnavailable() from exc

        if session is None and self.session_required:
            raise SessionExpired()
        if session is not None and session.is_expired(now=self._clock()):
            raise SessionExpired()

        try:
            identity = await self.directory.get(claims.user_id)
        except Exception as exc:  # broad: any backend failure
            _LOG.error("User lookup failed for user=%s: %s", claims.user_id[:8], exc)
            raise DirectoryFailure() from exc
        if identity is None:
            return self._identity_from_claims(claims, session)

        try:
            touched = await self.directory.touch(identity.id)
        except Exception as exc:  # broad: activity stamp must not fail the request
            _LOG.warning("Could not update last activity for user=%s: %s", identity.id[:8], exc)
            return identity
        return touched or identity

    def _identity_from_claims(self, claims: Claims, session: Session | None) -> Identity:
        _LOG.debug("User %s not in local directory; using credential claims", claims.user_id[:8])
        return Identity(
            id=claims.user_id,
            provider_id=claims.provider_id,
            username=claims.username,
            email="",
            created_at=session.created_at if session is not None else claims.issued_at,
            last_active_at=self._clock(),
        )

    async def logout_credential(self, credential: str | None) -> str | None:
        """Log out whoever *credential* belongs to; return their id.

        Invalid, expired or missing credentials are ignored, so the call is
        idempotent from the client's point of view.
        """
        if not credential:
            return None
        try:
            claims = self.signer.decode(credential)
        except InvalidCredential:
            return None
        await self.logout(claims.user_id)
        return claims.user_id

    async def logout(self, user_id: str) -> None:
        """Delete the user's session; absent sessions are not an error."""
        try:
            await self.sessions.delete(user_id)
        except SessionStoreError as exc:
            raise SessionUnavailable() from exc
        get_auth_logger(user_id=user_id).info("Session deleted")

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #
    async def cleanup(self) -> tuple[int, int]:
        """Reap expired state tokens and sessions; returns both counts."""
        states = self.state_manager.cleanup()
        sessions = await self.sessions.cleanup()
        return states, sessions

    async def aclose(self) -> None:
        await self.provider.aclose()
        await self.sessions.close()
