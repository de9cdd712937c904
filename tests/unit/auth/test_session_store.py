"""
Unit tests for the session store backends.

Coverage:
* MemorySessionStore: create/get/delete, lazy expiry, overwrite, cleanup
* RedisSessionStore against an in-test fake client: TTL on write, expiry,
  corrupted records, error wrapping
* build_session_store backend selection
"""

from __future__ import annotations

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from koro_i18n.auth.errors import ConfigurationError, SessionStoreError
from koro_i18n.auth.models import Session
from koro_i18n.auth.store import (
    MemorySessionStore,
    RedisSessionStore,
    build_session_store,
    session_key,
)

pytestmark = pytest.mark.anyio


def _session(clock, user_id: str = "u1", ttl: float = 3600, username: str = "octocat") -> Session:
    return Session(
        user_id=user_id,
        username=username,
        provider_id=583231,
        created_at=clock.now,
        expires_at=clock.now + ttl,
    )


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` with expiry driven by *clock*."""

    def __init__(self, clock) -> None:
        self.clock = clock
        self.data: dict[str, tuple[str, float | None]] = {}
        self.set_calls: list[tuple[str, int | None]] = []
        self.fail_with: Exception | None = None
        self.closed = False

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.set_calls.append((key, ex))
        self.data[key] = (value, self.clock.now + ex if ex else None)
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        entry = self.data.get(key)
        if entry is None:
            return None
        value, expires = entry
        if expires is not None and self.clock.now >= expires:
            del self.data[key]
            return None
        return value

    async def delete(self, *keys: str) -> int:
        self._check()
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    async def aclose(self) -> None:
        self.closed = True


# --------------------------------------------------------------------------- #
# Memory backend                                                              #
# --------------------------------------------------------------------------- #
async def test_memory_create_get_delete(clock) -> None:
    store = MemorySessionStore(clock=clock)
    session = _session(clock)

    await store.create(session)
    assert await store.get("u1") == session

    await store.delete("u1")
    assert await store.get("u1") is None
    # idempotent
    await store.delete("u1")


async def test_memory_get_missing_returns_none(clock) -> None:
    store = MemorySessionStore(clock=clock)
    assert await store.get("nobody") is None


async def test_memory_lazy_expiry_deletes_record(clock) -> None:
    store = MemorySessionStore(clock=clock)
    await store.create(_session(clock, ttl=60))

    clock.advance(60)
    assert await store.get("u1") is None
    assert store.active_count() == 0
    assert session_key("u1") not in store._sessions  # type: ignore[attr-defined]


async def test_memory_second_create_overwrites(clock) -> None:
    store = MemorySessionStore(clock=clock)
    await store.create(_session(clock))
    clock.advance(10)
    second = _session(clock)
    await store.create(second)

    assert await store.get("u1") == second
    assert store.active_count() == 1


async def test_memory_cleanup_sweeps_expired(clock) -> None:
    store = MemorySessionStore(clock=clock)
    await store.create(_session(clock, user_id="short", ttl=10))
    await store.create(_session(clock, user_id="long", ttl=1000))
    clock.advance(11)

    assert await store.cleanup() == 1
    assert await store.get("long") is not None
    assert store.active_count() == 1

    store.clear()
    assert store.active_count() == 0


# --------------------------------------------------------------------------- #
# Redis backend                                                               #
# --------------------------------------------------------------------------- #
async def test_redis_create_sets_remaining_ttl(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    session = _session(clock, ttl=3600)

    await store.create(session)

    assert fake.set_calls == [("session:u1", 3600)]
    stored = json.loads(fake.data["session:u1"][0])
    assert stored["username"] == "octocat"
    assert await store.get("u1") == session


async def test_redis_native_expiry(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    await store.create(_session(clock, ttl=30))

    clock.advance(30)
    assert await store.get("u1") is None


async def test_redis_stale_record_is_deleted_on_read(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    expired = _session(clock, ttl=-5)
    # Simulate a record whose key TTL outlived the session (clock skew)
    fake.data["session:u1"] = (json.dumps(expired.to_dict()), None)

    assert await store.get("u1") is None
    assert "session:u1" not in fake.data


async def test_redis_does_not_write_dead_sessions(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    await store.create(_session(clock, ttl=0))

    assert fake.set_calls == []
    assert await store.get("u1") is None


async def test_redis_corrupted_record_is_discarded(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    fake.data["session:u1"] = ("{not json", None)

    assert await store.get("u1") is None
    assert "session:u1" not in fake.data


async def test_redis_overwrite_and_idempotent_delete(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    await store.create(_session(clock, username="first"))
    await store.create(_session(clock, username="second"))

    got = await store.get("u1")
    assert got is not None and got.username == "second"
    assert len(fake.data) == 1

    await store.delete("u1")
    await store.delete("u1")
    assert await store.cleanup() == 0


async def test_redis_errors_are_wrapped(clock) -> None:
    fake = FakeRedis(clock)
    fake.fail_with = RedisConnectionError("down")
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]

    with pytest.raises(SessionStoreError):
        await store.create(_session(clock))
    with pytest.raises(SessionStoreError):
        await store.get("u1")
    with pytest.raises(SessionStoreError):
        await store.delete("u1")


async def test_redis_close(clock) -> None:
    fake = FakeRedis(clock)
    store = RedisSessionStore(fake, clock=clock)  # type: ignore[arg-type]
    await store.close()
    assert fake.closed


# --------------------------------------------------------------------------- #
# Factory                                                                     #
# --------------------------------------------------------------------------- #
def test_build_memory_backend(clock) -> None:
    assert isinstance(build_session_store("memory", clock=clock), MemorySessionStore)


def test_build_redis_backend_requires_url() -> None:
    with pytest.raises(ConfigurationError):
        build_session_store("redis")


def test_build_redis_backend_from_url() -> None:
    store = build_session_store("redis", redis_url="redis://localhost:6379/0")
    assert isinstance(store, RedisSessionStore)
    assert store.backend == "redis"


def test_build_unknown_backend() -> None:
    with pytest.raises(ConfigurationError):
        build_session_store("memcached")  # type: ignore[arg-type]


class _RecordingLock:
    def __init__(self) -> None:
        self.entered = 0

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, *exc) -> None:
        return None


async def test_memory_active_count_holds_the_lock(clock) -> None:
    store = MemorySessionStore(clock=clock)
    await store.create(_session(clock, user_id="live", ttl=100))
    await store.create(_session(clock, user_id="dead", ttl=1))
    clock.advance(5)
    lock = _RecordingLock()
    store._lock = lock  # type: ignore[assignment]

    assert store.active_count() == 1
    assert lock.entered == 1
