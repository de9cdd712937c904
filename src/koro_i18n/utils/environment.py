"""Startup configuration parsed from environment variables.

:func:`load_config` is called once when the application is built.  It
collects every missing or malformed value and raises a single
:class:`~koro_i18n.auth.errors.ConfigurationError`, so a misconfigured
deployment fails at boot instead of on the first login.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Final, Mapping, Tuple

from koro_i18n.auth.errors import ConfigurationError
from koro_i18n.auth.provider import (
    DEFAULT_TIMEOUT,
    GITHUB_API_URL,
    GITHUB_AUTHORIZE_URL,
    GITHUB_TOKEN_URL,
)

logger = logging.getLogger("koro-i18n.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")

_REQUIRED: Final[Tuple[str, ...]] = (
    "GITHUB_CLIENT_ID",
    "GITHUB_CLIENT_SECRET",
    "GITHUB_REDIRECT_URI",
    "JWT_SECRET",
)


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class AppConfig:
    """Immutable settings shared by the auth service and the HTTP layer."""

    github_client_id: str
    github_client_secret: str
    github_redirect_uri: str
    jwt_secret: str
    github_scope: str = "user:email"
    github_authorize_url: str = GITHUB_AUTHORIZE_URL
    github_token_url: str = GITHUB_TOKEN_URL
    github_api_url: str = GITHUB_API_URL
    cors_origins: tuple[str, ...] = ()
    session_backend: str = "memory"
    redis_url: str | None = None
    session_ttl_seconds: int = 24 * 60 * 60
    state_ttl_seconds: int = 600
    provider_timeout_seconds: float = DEFAULT_TIMEOUT
    session_cleanup_interval_seconds: int = 300
    session_required: bool = True
    cookie_secure: bool = False

    def __repr__(self) -> str:  # keep secrets out of tracebacks and logs
        return (
            f"AppConfig(github_client_id={self.github_client_id!r}, "
            f"redirect_uri={self.github_redirect_uri!r}, "
            f"session_backend={self.session_backend!r})"
        )


def _int(env: Mapping[str, str], key: str, default: int, errors: list[str]) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        errors.append(f"{key} must be an integer")
        return default
    if value <= 0:
        errors.append(f"{key} must be positive")
        return default
    return value


def _float(env: Mapping[str, str], key: str, default: float, errors: list[str]) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        errors.append(f"{key} must be a number")
        return default
    if not math.isfinite(value) or value <= 0:
        errors.append(f"{key} must be a positive number")
        return default
    return value


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build :class:`AppConfig` from *environ* (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ

    missing = tuple(k for k in _REQUIRED if not (env.get(k) or "").strip())
    errors: list[str] = []

    backend = (env.get("SESSION_BACKEND") or "memory").strip().lower()
    if backend not in ("memory", "redis"):
        errors.append(f"SESSION_BACKEND must be 'memory' or 'redis', got {backend!r}")
    redis_url = (env.get("REDIS_URL") or "").strip() or None
    if backend == "redis" and not redis_url:
        missing = missing + ("REDIS_URL",)

    session_ttl = _int(env, "SESSION_TTL_SECONDS", 24 * 60 * 60, errors)
    state_ttl = _int(env, "STATE_TTL_SECONDS", 600, errors)
    timeout = _float(env, "PROVIDER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT, errors)
    cleanup_interval = _int(env, "SESSION_CLEANUP_INTERVAL_SECONDS", 300, errors)

    if missing or errors:
        parts = []
        if missing:
            parts.append("missing required settings: " + ", ".join(missing))
        parts.extend(errors)
        raise ConfigurationError("; ".join(parts), missing=missing)

    origins = tuple(
        o.strip() for o in (env.get("CORS_ORIGINS") or "").split(",") if o.strip()
    )
    session_required_raw = env.get("SESSION_REQUIRED")

    config = AppConfig(
        github_client_id=env["GITHUB_CLIENT_ID"].strip(),
        github_client_secret=env["GITHUB_CLIENT_SECRET"].strip(),
        github_redirect_uri=env["GITHUB_REDIRECT_URI"].strip(),
        jwt_secret=env["JWT_SECRET"],
        github_scope=(env.get("GITHUB_OAUTH_SCOPE") or "user:email").strip(),
        github_authorize_url=(env.get("GITHUB_AUTHORIZE_URL") or GITHUB_AUTHORIZE_URL).strip(),
        github_token_url=(env.get("GITHUB_TOKEN_URL") or GITHUB_TOKEN_URL).strip(),
        github_api_url=(env.get("GITHUB_API_URL") or GITHUB_API_URL).strip(),
        cors_origins=origins,
        session_backend=backend,
        redis_url=redis_url,
        session_ttl_seconds=session_ttl,
        state_ttl_seconds=state_ttl,
        provider_timeout_seconds=timeout,
        session_cleanup_interval_seconds=cleanup_interval,
        session_required=True if session_required_raw is None else _truthy(session_required_raw),
        cookie_secure=_truthy(env.get("COOKIE_SECURE")),
    )
    logger.info(
        "Loaded configuration: session backend=%s, CORS origins=%d",
        config.session_backend,
        len(config.cors_origins),
    )
    return config
