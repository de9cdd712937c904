"""GitHub OAuth client: code exchange and profile lookup.

Both calls suspend on network I/O and are bounded by a per-request timeout.
No retries are attempted; every failure is mapped onto
:class:`~koro_i18n.auth.errors.ProviderRejected` (the provider answered
"no") or :class:`~koro_i18n.auth.errors.ProviderUnavailable` (it could not
be reached, timed out or answered 5xx) and propagates to the caller.

Access tokens are never logged.
"""

from __future__ import annotations

import logging
from typing import Any, Final

import httpx

from koro_i18n.auth.errors import ProviderRejected, ProviderUnavailable
from koro_i18n.auth.models import ProviderProfile, ProviderToken

_LOG = logging.getLogger("koro-i18n.auth.provider")

GITHUB_AUTHORIZE_URL: Final[str] = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL: Final[str] = "https://github.com/login/oauth/access_token"
GITHUB_API_URL: Final[str] = "https://api.github.com"
DEFAULT_TIMEOUT: Final[float] = 10.0


class GitHubOAuthClient:
    """Exchange authorization codes and fetch the authenticated profile."""

    provider_name = "github"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        token_url: str = GITHUB_TOKEN_URL,
        api_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_url = token_url
        self.api_url = api_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def exchange_code(self, code: str) -> ProviderToken:
        """Trade an authorization *code* for an access token."""
        payload = {
            "client_id": self.client_id,
            "client_secret": self._client_secret,  # noqa: S105
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        resp = await self._send(
            "POST",
            self.token_url,
            data=payload,
            headers={"Accept": "application/json"},
        )
        if not resp.is_success:
            raise ProviderRejected(
                f"Token endpoint returned {resp.status_code}",
                status_code=resp.status_code,
            )

        data = self._json(resp)
        # GitHub reports a bad/expired code as 200 with an error body
        if not isinstance(data, dict) or data.get("error"):
            reason = data.get("error") if isinstance(data, dict) else "unexpected body"
            raise ProviderRejected(f"Token exchange refused: {reason}")

        access_token = data.get("access_token")
        if not access_token:
            raise ProviderRejected("Token response missing access_token")

        _LOG.debug("Exchanged authorization code for access token")
        return ProviderToken(
            access_token=access_token,
            token_type=data.get("token_type", "bearer"),
            scope=data.get("scope", ""),
        )

    async def fetch_profile(self, token: ProviderToken) -> ProviderProfile:
        """Return the profile of the account that owns *token*."""
        user = await self._get_json("/user", token)
        if not isinstance(user, dict) or "id" not in user or "login" not in user:
            raise ProviderRejected("Profile response missing id/login")

        email = user.get("email")
        if not email:
            email = await self._primary_email(token)

        try:
            provider_id = int(user["id"])
        except (TypeError, ValueError):
            raise ProviderRejected("Profile id is not numeric") from None

        return ProviderProfile(
            provider_id=provider_id,
            username=str(user["login"]),
            email=email or "",
            avatar_url=user.get("avatar_url"),
            name=user.get("name") or None,
        )

    # ---------------- internal helpers --------------------------------- #
    async def _primary_email(self, token: ProviderToken) -> str | None:
        emails = await self._get_json("/user/emails", token)
        if not isinstance(emails, list):
            return None
        for entry in emails:
            if isinstance(entry, dict) and entry.get("primary"):
                return entry.get("email")
        return None

    async def _get_json(self, path: str, token: ProviderToken) -> Any:
        resp = await self._send(
            "GET",
            f"{self.api_url}{path}",
            headers={
                "Authorization": f"Bearer {token.access_token}",
                "Accept": "application/vnd.github+json",
            },
        )
        if resp.status_code in (401, 403):
            raise ProviderRejected(
                f"GitHub API {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        if resp.status_code >= 500:
            raise ProviderUnavailable(f"GitHub API {path} returned {resp.status_code}")
        if not resp.is_success:
            raise ProviderRejected(
                f"GitHub API {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        return self._json(resp)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, timeout=self._timeout, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable(f"{method} {url} timed out") from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailable(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            raise ProviderRejected("Provider returned a malformed body") from None
