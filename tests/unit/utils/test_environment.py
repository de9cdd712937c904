"""Tests for load_config environment parsing."""

from __future__ import annotations

import pytest

from koro_i18n.auth.errors import ConfigurationError
from koro_i18n.utils.environment import load_config

BASE_ENV = {
    "GITHUB_CLIENT_ID": "cid",
    "GITHUB_CLIENT_SECRET": "csecret",
    "GITHUB_REDIRECT_URI": "https://app.example.com/auth/callback",
    "JWT_SECRET": "jwt-secret",
}


def test_defaults() -> None:
    config = load_config(BASE_ENV)

    assert config.github_client_id == "cid"
    assert config.github_scope == "user:email"
    assert config.session_backend == "memory"
    assert config.session_ttl_seconds == 86400
    assert config.state_ttl_seconds == 600
    assert config.session_cleanup_interval_seconds == 300
    assert config.provider_timeout_seconds == 10.0
    assert config.session_required is True
    assert config.cookie_secure is False
    assert config.cors_origins == ()


def test_repr_hides_secrets() -> None:
    text = repr(load_config(BASE_ENV))
    assert "csecret" not in text
    assert "jwt-secret" not in text


def test_missing_required_reported_together() -> None:
    env = {k: v for k, v in BASE_ENV.items() if k not in ("JWT_SECRET", "GITHUB_CLIENT_ID")}
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(env)
    assert set(excinfo.value.missing) == {"JWT_SECRET", "GITHUB_CLIENT_ID"}


def test_blank_values_count_as_missing() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config({**BASE_ENV, "GITHUB_CLIENT_SECRET": "   "})
    assert excinfo.value.missing == ("GITHUB_CLIENT_SECRET",)


def test_redis_backend_requires_url() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config({**BASE_ENV, "SESSION_BACKEND": "redis"})
    assert "REDIS_URL" in excinfo.value.missing

    config = load_config(
        {**BASE_ENV, "SESSION_BACKEND": "Redis", "REDIS_URL": "redis://cache:6379/0"}
    )
    assert config.session_backend == "redis"
    assert config.redis_url == "redis://cache:6379/0"


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ConfigurationError, match="SESSION_BACKEND"):
        load_config({**BASE_ENV, "SESSION_BACKEND": "memcached"})


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_invalid_integers_rejected(value: str) -> None:
    with pytest.raises(ConfigurationError, match="SESSION_TTL_SECONDS"):
        load_config({**BASE_ENV, "SESSION_TTL_SECONDS": value})


def test_optional_overrides() -> None:
    config = load_config(
        {
            **BASE_ENV,
            "CORS_ORIGINS": "https://a.example, https://b.example,,",
            "STATE_TTL_SECONDS": "120",
            "SESSION_REQUIRED": "false",
            "COOKIE_SECURE": "yes",
            "GITHUB_OAUTH_SCOPE": "read:user user:email",
        }
    )
    assert config.cors_origins == ("https://a.example", "https://b.example")
    assert config.state_ttl_seconds == 120
    assert config.session_required is False
    assert config.cookie_secure is True
    assert config.github_scope == "read:user user:email"


def test_fractional_provider_timeout() -> None:
    config = load_config({**BASE_ENV, "PROVIDER_TIMEOUT_SECONDS": "2.5"})
    assert config.provider_timeout_seconds == 2.5


@pytest.mark.parametrize("value", ["fast", "0", "-1.5", "nan", "inf"])
def test_invalid_provider_timeout_rejected(value: str) -> None:
    with pytest.raises(ConfigurationError, match="PROVIDER_TIMEOUT_SECONDS"):
        load_config({**BASE_ENV, "PROVIDER_TIMEOUT_SECONDS": value})
