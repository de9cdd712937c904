"""Exception types raised by the login and session subsystem.

Two layers live here:

* component errors raised by the building blocks (state tokens, the GitHub
  client, session stores);
* :class:`AuthError` and its subclasses, the taxonomy :class:`AuthService`
  surfaces to the HTTP layer.  Each carries a stable ``code`` and the HTTP
  status it maps onto, and renders a payload **without secrets**.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing or malformed."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing: tuple[str, ...] = missing


# --------------------------------------------------------------------------- #
# Component errors                                                            #
# --------------------------------------------------------------------------- #
class StateTokenError(Exception):
    """Base class for state token verification failures."""


class StateTokenNotFound(StateTokenError):
    """The state value was never issued or has already been consumed."""


class StateTokenExpired(StateTokenError):
    """The state value was issued but its TTL has elapsed."""


class ProviderError(Exception):
    """Base class for OAuth provider failures."""


class ProviderRejected(ProviderError):
    """The provider answered but refused the request (4xx, error body, bad JSON)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailable(ProviderError):
    """The provider could not be reached, timed out or answered 5xx."""


class SessionStoreError(RuntimeError):
    """The session backend failed to complete an operation."""


# --------------------------------------------------------------------------- #
# Service-level taxonomy                                                      #
# --------------------------------------------------------------------------- #
class AuthError(Exception):
    """Base class of every failure :class:`AuthService` reports."""

    code: str = "auth_error"
    status_code: int = 400
    default_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.code, "message": str(self)}


class CsrfRejected(AuthError):
    code = "csrf_rejected"
    status_code = 400
    default_message = "Login state is missing, already used or expired. Please restart login."


class ProviderFailure(AuthError):
    code = "provider_failure"
    status_code = 502
    default_message = "Login failed, please try again."


class DirectoryFailure(AuthError):
    code = "directory_failure"
    status_code = 500
    default_message = "Could not store the user record."


class SessionUnavailable(AuthError):
    code = "session_unavailable"
    status_code = 503
    default_message = "Session storage is temporarily unavailable."


class InvalidCredential(AuthError):
    code = "invalid_credential"
    status_code = 401
    default_message = "Authentication token is invalid or expired."


class SessionExpired(AuthError):
    code = "session_expired"
    status_code = 401
    default_message = "Your session has expired. Please log in again."
