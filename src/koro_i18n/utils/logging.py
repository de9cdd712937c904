"""Logging helpers shared by the auth core and the HTTP layer."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* with everything but the first ``keep_chars`` masked.

    >>> mask_sensitive("abcdef123456", 4)
    'abcd********'
    """
    if not value:
        return ""
    if len(value) <= keep_chars:
        return "*" * len(value)
    return value[:keep_chars] + "*" * (len(value) - keep_chars)


def setup_logging(level: int | str = logging.INFO, stream=None) -> logging.Logger:
    """Configure the ``koro-i18n`` logger hierarchy and return its root."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("koro-i18n")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    for handler in root.handlers:
        handler.setLevel(level)
    return root
