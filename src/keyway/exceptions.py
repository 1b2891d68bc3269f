"""Exception hierarchy for keyway.

All exceptions inherit from :class:`KeywayError`, which carries a
``kind`` attribute naming its error category.  Failures that come back
from a remote API derive from :class:`ApiError`, so callers can catch the
whole taxonomy with a single ``except`` clause and branch on the concrete
type (or ``kind``) when they need to.

Subclass hierarchy::

    KeywayError              (kind "generic")
    +-- ConfigError          (kind "config")
    +-- ApiError             (kind "api")
        +-- TransportError   (kind "transport")
        +-- AuthError        (kind "auth")
        +-- BackendError     (kind "backend")
        +-- DecodeError      (kind "decode")
"""

from __future__ import annotations

import enum
from typing import Optional


class KeywayError(Exception):
    """Base exception for all keyway errors.

    Args:
        message: Human-readable error description.
    """

    kind: str = "generic"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(KeywayError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    kind = "config"


class ApiError(KeywayError):
    """Base class for every failure surfaced by an API call."""

    kind = "api"


class TransportError(ApiError):
    """Raised on network-level failures (timeout, DNS resolution, TLS, connection refused).

    These are always fatal to the current call and are never retried by the
    client core.

    Args:
        message: Human-readable error description.
        cause: The underlying exception raised by the HTTP library.
    """

    kind = "transport"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class AuthFailure(str, enum.Enum):
    """Why authentication failed.

    Only ``EXPIRED`` is recovered by the client core (once per call).
    ``UNAVAILABLE`` means the auth endpoint could not be reached or was
    failing, so retrying the whole call later may succeed.  Everything
    else is fatal.
    """

    EXPIRED = "expired"
    REJECTED = "rejected"
    BAD_CREDENTIALS = "bad_credentials"
    UNAVAILABLE = "unavailable"
    NOT_RENEWABLE = "not_renewable"


class AuthError(ApiError):
    """Raised when authentication or authorisation fails.

    Args:
        message: Human-readable error description.
        reason: The :class:`AuthFailure` category.
        status: HTTP status that triggered the failure, when there was one.
    """

    kind = "auth"

    def __init__(
        self,
        message: str,
        reason: AuthFailure = AuthFailure.REJECTED,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.status = status

    @property
    def retryable(self) -> bool:
        """``True`` when the token expired and one re-authentication may fix it."""
        return self.reason is AuthFailure.EXPIRED

    @property
    def transient(self) -> bool:
        """``True`` when the auth endpoint itself was unavailable."""
        return self.reason is AuthFailure.UNAVAILABLE


class BackendError(ApiError):
    """Raised when the backend rejects a request with a structured error.

    Args:
        status: The HTTP status code.
        code: Backend-specific error code, or ``"unknown"`` when the error
            body could not be decoded.
        message: Backend-supplied message (or a snippet of the raw body).
    """

    kind = "backend"

    def __init__(self, status: int, code: str, message: str):
        text = f"HTTP {status} [{code}]"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)
        self.status = status
        self.code = code
        self.detail = message


class DecodeError(ApiError):
    """Raised when a successful response does not match the expected shape.

    Args:
        message: Human-readable error description.
        cause: The parsing exception, if any.
    """

    kind = "decode"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
