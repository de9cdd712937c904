"""Typed, immutable records used by the login and session subsystem."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class StateToken:
    """Single-use CSRF token binding a login's start to its callback."""

    value: str
    issued_at: float
    expires_at: float
    # Optional post-login destination supplied when the login was started
    redirect_url: str | None = None

    def is_expired(self, *, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True, slots=True)
class RedirectTarget:
    """Where to send the browser to start a login."""

    url: str
    state: str
    expires_at: float


@dataclass(frozen=True, slots=True)
class ProviderToken:
    """Access token returned by the provider's token endpoint."""

    access_token: str
    token_type: str = "bearer"
    scope: str = ""


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """The authenticated account as reported by GitHub."""

    provider_id: int
    username: str
    email: str
    avatar_url: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class Identity:
    """Local user record, keyed by ``id`` and unique on ``provider_id``."""

    id: str
    provider_id: int
    username: str
    email: str
    created_at: float
    last_active_at: float
    avatar_url: str | None = None

    def public_view(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "avatarUrl": self.avatar_url,
            "githubId": self.provider_id,
        }


@dataclass(frozen=True, slots=True)
class Claims:
    """Decoded contents of a signed credential."""

    user_id: str
    username: str
    provider_id: int
    issued_at: float
    expires_at: float


@dataclass(frozen=True, slots=True)
class Session:
    """Server-side session record, one per user."""

    user_id: str
    username: str
    provider_id: int
    created_at: float
    expires_at: float

    def is_expired(self, *, now: float) -> bool:
        return now >= self.expires_at

    def remaining_ttl(self, *, now: float) -> int:
        """Whole seconds left before expiry (``0`` once expired)."""
        return max(0, math.ceil(self.expires_at - now))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            user_id=str(data["user_id"]),
            username=str(data["username"]),
            provider_id=int(data["provider_id"]),
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
        )


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Outcome of a successful ``complete_login``."""

    identity: Identity
    credential: str
    claims: Claims
    redirect_url: str | None = None
