"""Structured logging helpers for the auth components.

Only a fixed whitelist of *non-sensitive* attributes is attached to log
records:

- ``user_id``        – local user id (first 8 chars kept)
- ``provider``       – OAuth provider name (``github``)
- ``correlation_id`` – request correlation id set by the HTTP layer

Usage
-----
>>> from koro_i18n.auth.log_utils import get_auth_logger
>>> log = get_auth_logger(user_id="4f1c0e7a9b2d", provider="github")
>>> log.info("Session created")
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("user_id", "provider", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "user_id":
                extra_clean[k] = str(extra[k])[:8]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if kwargs.get("extra") is None:
            kwargs["extra"] = {}
        # call-site extras win
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "koro-i18n.auth",
    user_id: str | None = None,
    provider: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "user_id": user_id,
            "provider": provider,
            "correlation_id": correlation_id,
        },
    )
