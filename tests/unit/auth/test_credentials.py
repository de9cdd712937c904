"""Unit tests for CredentialSigner (JWT issue / decode)."""

from __future__ import annotations

import jwt
import pytest

from koro_i18n.auth.credentials import CredentialSigner
from koro_i18n.auth.errors import InvalidCredential
from koro_i18n.auth.models import Identity

SECRET = "test-signing-secret"


def _identity(now: float) -> Identity:
    return Identity(
        id="a1b2c3d4e5",
        provider_id=583231,
        username="octocat",
        email="octocat@example.com",
        created_at=now,
        last_active_at=now,
    )


def test_round_trip_preserves_user(clock) -> None:
    signer = CredentialSigner(SECRET, ttl_seconds=3600, clock=clock)
    token, issued = signer.issue(_identity(clock.now))

    claims = signer.decode(token)
    assert claims.user_id == "a1b2c3d4e5"
    assert claims.username == "octocat"
    assert claims.provider_id == 583231
    assert claims == issued
    assert claims.expires_at == int(clock.now) + 3600


def test_expired_credential_rejected(clock) -> None:
    signer = CredentialSigner(SECRET, ttl_seconds=60, clock=clock)
    token, _ = signer.issue(_identity(clock.now))

    clock.advance(59)
    signer.decode(token)
    clock.advance(1)
    with pytest.raises(InvalidCredential):
        signer.decode(token)


def test_wrong_secret_rejected(clock) -> None:
    token, _ = CredentialSigner(SECRET, clock=clock).issue(_identity(clock.now))
    with pytest.raises(InvalidCredential):
        CredentialSigner("another-secret", clock=clock).decode(token)


def test_tampered_token_rejected(clock) -> None:
    signer = CredentialSigner(SECRET, clock=clock)
    token, _ = signer.issue(_identity(clock.now))
    header, payload, sig = token.split(".")
    tampered = ".".join([header, payload, ("A" if sig[0] != "A" else "B") + sig[1:]])
    with pytest.raises(InvalidCredential):
        signer.decode(tampered)


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_garbage_rejected(clock, token: str) -> None:
    with pytest.raises(InvalidCredential):
        CredentialSigner(SECRET, clock=clock).decode(token)


def test_missing_claims_rejected(clock) -> None:
    token = jwt.encode({"sub": "u1", "iat": int(clock.now)}, SECRET, algorithm="HS256")
    with pytest.raises(InvalidCredential):
        CredentialSigner(SECRET, clock=clock).decode(token)


def test_empty_secret_refused() -> None:
    with pytest.raises(ValueError):
        CredentialSigner("")
