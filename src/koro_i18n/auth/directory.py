"""Local user records keyed by GitHub identity.

:class:`UserDirectory` is the narrow contract the login flow needs; the
project and translation services own their own persistence.
:class:`InMemoryUserDirectory` is the process-local implementation used by
the default application and the tests.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from typing import Protocol, runtime_checkable

from koro_i18n.auth.clock import Clock, default_clock
from koro_i18n.auth.models import Identity, ProviderProfile

_LOG = logging.getLogger("koro-i18n.auth.directory")


@runtime_checkable
class UserDirectory(Protocol):
    """Minimal persistence contract for user identities."""

    async def upsert(self, profile: ProviderProfile) -> Identity: ...
    async def get(self, user_id: str) -> Identity | None: ...
    async def get_by_provider_id(self, provider_id: int) -> Identity | None: ...
    async def touch(self, user_id: str) -> Identity | None: ...


class InMemoryUserDirectory:
    """Dictionary-backed :class:`UserDirectory`."""

    def __init__(self, *, clock: Clock = default_clock) -> None:
        self._clock = clock
        self._users: dict[str, Identity] = {}
        self._by_provider: dict[int, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._users)

    async def upsert(self, profile: ProviderProfile) -> Identity:
        """Create the identity for *profile* or refresh its mutable fields."""
        now = self._clock()
        with self._lock:
            user_id = self._by_provider.get(profile.provider_id)
            existing = self._users.get(user_id) if user_id else None
            if existing is None:
                identity = Identity(
                    id=uuid.uuid4().hex,
                    provider_id=profile.provider_id,
                    username=profile.username,
                    email=profile.email,
                    avatar_url=profile.avatar_url,
                    created_at=now,
                    last_active_at=now,
                )
                self._by_provider[profile.provider_id] = identity.id
                created = True
            else:
                identity = dataclasses.replace(
                    existing,
                    username=profile.username,
                    email=profile.email,
                    avatar_url=profile.avatar_url,
                    last_active_at=now,
                )
                created = False
            self._users[identity.id] = identity

        _LOG.debug(
            "%s user id=%s github_id=%s",
            "Created" if created else "Updated",
            identity.id[:8],
            identity.provider_id,
        )
        return identity

    async def get(self, user_id: str) -> Identity | None:
        return self._users.get(user_id)

    async def get_by_provider_id(self, provider_id: int) -> Identity | None:
        user_id = self._by_provider.get(provider_id)
        return self._users.get(user_id) if user_id else None

    async def touch(self, user_id: str) -> Identity | None:
        """Stamp *user_id* as active now; unknown ids return ``None``."""
        with self._lock:
            identity = self._users.get(user_id)
            if identity is None:
                return None
            identity = dataclasses.replace(identity, last_active_at=self._clock())
            self._users[user_id] = identity
            return identity
