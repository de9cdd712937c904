"""Fixtures for the HTTP layer: a real AuthService over a fake GitHub."""

from __future__ import annotations

import httpx
import pytest

from koro_i18n.auth.credentials import CredentialSigner
from koro_i18n.auth.directory import InMemoryUserDirectory
from koro_i18n.auth.models import ProviderProfile, ProviderToken
from koro_i18n.auth.service import AuthService
from koro_i18n.auth.state import StateTokenManager
from koro_i18n.auth.store import MemorySessionStore
from koro_i18n.servers.main import create_app
from koro_i18n.utils.environment import AppConfig


class StubGitHub:
    client_id = "cid"
    redirect_uri = "http://testserver/auth/callback"

    def __init__(self) -> None:
        self.error: Exception | None = None

    async def exchange_code(self, code: str) -> ProviderToken:
        if self.error:
            raise self.error
        return ProviderToken(access_token=f"gho_{code}")

    async def fetch_profile(self, token: ProviderToken) -> ProviderProfile:
        return ProviderProfile(
            provider_id=583231,
            username="octocat",
            email="octocat@github.com",
            avatar_url="https://avatars.example/583231",
        )

    async def aclose(self) -> None:
        return None


@pytest.fixture()
def app_config() -> AppConfig:
    return AppConfig(
        github_client_id="cid",
        github_client_secret="csecret",
        github_redirect_uri="http://testserver/auth/callback",
        jwt_secret="server-test-secret",
    )


@pytest.fixture()
def github() -> StubGitHub:
    return StubGitHub()


@pytest.fixture()
def auth_service(clock, github: StubGitHub) -> AuthService:
    return AuthService(
        state_manager=StateTokenManager(clock=clock),
        provider=github,  # type: ignore[arg-type]
        directory=InMemoryUserDirectory(clock=clock),
        sessions=MemorySessionStore(clock=clock),
        signer=CredentialSigner("server-test-secret", clock=clock),
        clock=clock,
    )


@pytest.fixture()
def asgi_app(app_config: AppConfig, auth_service: AuthService):
    return create_app(app_config, auth_service=auth_service)


@pytest.fixture()
async def client(asgi_app):
    """Async HTTP client bound to the Starlette app."""
    transport = httpx.ASGITransport(app=asgi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
