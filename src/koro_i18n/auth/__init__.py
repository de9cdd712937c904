"""Login and session core.

HTTP-agnostic building blocks for the GitHub OAuth login flow and the
sessions it creates.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
state
    Single-use CSRF ``state`` tokens.
provider
    GitHub code exchange and profile lookup.
directory
    Local user records keyed by GitHub id.
store
    Session storage (in-process and Redis backends).
credentials
    Signed session credentials (JWT).
service
    ``AuthService`` orchestrating the above.
errors
    Exception types used by the auth logic.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .credentials import CredentialSigner  # noqa: F401
from .directory import InMemoryUserDirectory, UserDirectory  # noqa: F401
from .errors import (  # noqa: F401
    AuthError,
    CsrfRejected,
    DirectoryFailure,
    InvalidCredential,
    ProviderFailure,
    SessionExpired,
    SessionUnavailable,
)
from .log_utils import get_auth_logger  # noqa: F401
from .models import Identity, Session, StateToken  # noqa: F401
from .provider import GitHubOAuthClient  # noqa: F401
from .service import AuthService  # noqa: F401
from .state import StateTokenManager  # noqa: F401
from .store import MemorySessionStore, RedisSessionStore, SessionStore  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # components
    "StateTokenManager",
    "GitHubOAuthClient",
    "UserDirectory",
    "InMemoryUserDirectory",
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "CredentialSigner",
    "AuthService",
    # models
    "Identity",
    "Session",
    "StateToken",
    # errors
    "AuthError",
    "CsrfRejected",
    "DirectoryFailure",
    "InvalidCredential",
    "ProviderFailure",
    "SessionExpired",
    "SessionUnavailable",
    # logging helpers
    "get_auth_logger",
]
