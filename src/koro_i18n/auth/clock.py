"""Clock abstraction for the login and session subsystem.

Every expiry decision (state tokens, credentials, sessions) goes through an
injected :class:`Clock` instead of calling ``time.time()`` directly, so TTL
behaviour can be exercised with a frozen or manually advanced clock.

Example
-------
>>> from koro_i18n.auth.clock import default_clock
>>> isinstance(default_clock(), float)
True
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Wall-clock time via ``time.time()``."""
    return time.time()
