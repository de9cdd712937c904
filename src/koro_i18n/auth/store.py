"""Session storage: one record per user, with expiry.

This module defines the narrow :class:`SessionStore` contract and its two
backends:

* :class:`MemorySessionStore` – process-local table.  Expiry is enforced
  lazily on :meth:`~MemorySessionStore.get` and proactively by
  :meth:`~MemorySessionStore.cleanup`.  Nothing is shared across processes.
* :class:`RedisSessionStore` – network key-value store with native per-key
  TTL.  ``create`` sets the TTL to the session's remaining lifetime.  A
  replicated deployment is only eventually consistent: a ``get`` right after
  a ``create`` issued through another region may miss.

Records are keyed ``session:<user_id>``.  A second ``create`` for the same
user **overwrites** the first, so each user has at most one live session.

The backend is chosen from configuration by :func:`build_session_store`.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Final, Literal, Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from koro_i18n.auth.clock import Clock, default_clock
from koro_i18n.auth.errors import ConfigurationError, SessionStoreError
from koro_i18n.auth.models import Session

_LOG = logging.getLogger("koro-i18n.auth.store")

SessionBackend = Literal["memory", "redis"]

_KEY_PREFIX: Final[str] = "session:"


def session_key(user_id: str, prefix: str = _KEY_PREFIX) -> str:
    return f"{prefix}{user_id}"


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class SessionStore(Protocol):
    """Persistence contract for sessions keyed by user id."""

    backend: SessionBackend

    async def create(self, session: Session) -> None: ...

    async def get(self, user_id: str) -> Session | None: ...

    async def delete(self, user_id: str) -> None: ...

    async def cleanup(self) -> int: ...

    async def close(self) -> None: ...


# --------------------------------------------------------------------------- #
# In-process implementation                                                   #
# --------------------------------------------------------------------------- #


class MemorySessionStore:
    """Dictionary-backed :class:`SessionStore` for a single process."""

    backend: SessionBackend = "memory"

    def __init__(self, *, clock: Clock = default_clock) -> None:
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        # Guards the table when handlers run in a worker thread pool
        self._lock = threading.Lock()

    async def create(self, session: Session) -> None:
        with self._lock:
            self._sessions[session_key(session.user_id)] = session

    async def get(self, user_id: str) -> Session | None:
        key = session_key(user_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None
            if session.is_expired(now=self._clock()):
                del self._sessions[key]
                _LOG.debug("Dropped expired session user=%s", user_id[:8])
                return None
            return session

    async def delete(self, user_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_key(user_id), None)

    async def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, s in self._sessions.items() if s.is_expired(now=now)]
            for k in expired:
                del self._sessions[k]
        if expired:
            _LOG.info("Cleaned up %d expired sessions", len(expired))
        return len(expired)

    async def close(self) -> None:
        self.clear()

    # ---------------- maintenance helpers -------------------------------- #
    def active_count(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for s in self._sessions.values() if not s.is_expired(now=now))

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


# --------------------------------------------------------------------------- #
# Redis implementation                                                        #
# --------------------------------------------------------------------------- #


class RedisSessionStore:
    """:class:`SessionStore` on top of Redis with native key expiry."""

    backend: SessionBackend = "redis"

    def __init__(
        self,
        client: aioredis.Redis,
        *,
        clock: Clock = default_clock,
        key_prefix: str = _KEY_PREFIX,
    ) -> None:
        self._redis = client
        self._clock = clock
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisSessionStore":
        client = aioredis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    async def create(self, session: Session) -> None:
        key = session_key(session.user_id, self._prefix)
        ttl = session.remaining_ttl(now=self._clock())
        try:
            if ttl <= 0:
                # Never write a record that is already dead
                await self._redis.delete(key)
                return
            await self._redis.set(key, json.dumps(session.to_dict()), ex=ttl)
        except RedisError as exc:
            raise SessionStoreError(f"could not write session: {exc}") from exc

    async def get(self, user_id: str) -> Session | None:
        key = session_key(user_id, self._prefix)
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            raise SessionStoreError(f"could not read session: {exc}") from exc
        if raw is None:
            return None

        try:
            session = Session.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            _LOG.warning("Discarding corrupted session record user=%s", user_id[:8])
            await self.delete(user_id)
            return None

        # Redis expiry has one-second granularity; re-check against the clock
        if session.is_expired(now=self._clock()):
            await self.delete(user_id)
            return None
        return session

    async def delete(self, user_id: str) -> None:
        try:
            await self._redis.delete(session_key(user_id, self._prefix))
        except RedisError as exc:
            raise SessionStoreError(f"could not delete session: {exc}") from exc

    async def cleanup(self) -> int:
        # Redis reaps expired keys itself
        return 0

    async def close(self) -> None:
        await self._redis.aclose()


# --------------------------------------------------------------------------- #
# Factory                                                                     #
# --------------------------------------------------------------------------- #


def build_session_store(
    backend: SessionBackend,
    *,
    redis_url: str | None = None,
    clock: Clock = default_clock,
) -> MemorySessionStore | RedisSessionStore:
    """Return the store selected by configuration."""
    if backend == "memory":
        return MemorySessionStore(clock=clock)
    if backend == "redis":
        if not redis_url:
            raise ConfigurationError(
                "REDIS_URL is required for the redis session backend", missing=("REDIS_URL",)
            )
        return RedisSessionStore.from_url(redis_url, clock=clock)
    raise ConfigurationError(f"unknown session backend {backend!r}")
