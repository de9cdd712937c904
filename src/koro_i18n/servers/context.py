from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from koro_i18n.auth.service import AuthService
    from koro_i18n.utils.environment import AppConfig


@dataclass(frozen=True)
class AppContext:
    """
    Objects built once at startup and shared by every request: the parsed
    configuration and the auth service that owns the state-token table and
    the session store.
    """

    config: AppConfig
    auth_service: AuthService


@dataclass(frozen=True)
class RequestUser:
    """Identity attached to ``request.state.user`` by the auth middleware."""

    user_id: str
    username: str
    provider_id: int = 0
    email: str = ""
    avatar_url: str | None = None

    def public_view(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "username": self.username,
            "email": self.email,
            "avatarUrl": self.avatar_url,
            "githubId": self.provider_id,
        }
