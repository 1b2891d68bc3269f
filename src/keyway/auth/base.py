"""Abstract base class for authenticators.

This module defines the two foundational types of the auth subsystem:

- :class:`AuthResult` -- a plain container for the HTTP headers, query
  parameters, and cookies that carry a credential on a request.
- :class:`Authenticator` -- the abstract base class every session scheme
  extends.

The set of authenticators is closed, one per session model:

* :class:`~keyway.auth.lease.LeaseAuthenticator` -- renewable leases (Vault).
* :class:`~keyway.auth.static_key.StaticKeyAuthenticator` -- static API
  keys (Sensu).
* :class:`~keyway.auth.bearer.BearerLoginAuthenticator` -- username and
  password exchanged for an expiring bearer token (GitLab).

Authenticators never touch the credential store; the client core hands
them a transport, takes the :class:`~keyway.models.Credential` they
return, and commits it.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Optional

from keyway.auth.credential_store import utcnow
from keyway.exceptions import AuthError, AuthFailure, TransportError
from keyway.models import Credential, Endpoint, LoginCredentials, Operation
from keyway.transport import Transport


class AuthResult:
    """Container for authentication artifacts to inject into HTTP requests.

    Args:
        headers: HTTP headers to add (e.g. ``{"Authorization": "Bearer ..."}``).
        params: Query-string parameters to add.
        cookies: Cookies to add (serialised into a ``Cookie`` header by the
            request builder).

    Example::

        result = AuthResult(headers={"X-Vault-Token": "s.abc"})
        assert result.headers["X-Vault-Token"] == "s.abc"
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
    ):
        self.headers = headers or {}
        self.params = params or {}
        self.cookies = cookies or {}


class Authenticator(ABC):
    """Abstract base class for backend session schemes.

    Subclasses provide:

    1. :attr:`auth_type` -- a unique identifier (``"lease"``,
       ``"static_key"``, ``"bearer_login"``).
    2. :meth:`authenticate` -- the login exchange producing a fresh
       :class:`~keyway.models.Credential`.
    3. :meth:`apply` -- where the credential goes on a request.

    Lease-style backends also override :meth:`supports_renewal` and
    :meth:`renew`.

    Args:
        endpoint: The backend the authenticator logs in to.
        clock: Returns the current time; used to compute expiry instants.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.endpoint = endpoint
        self._clock = clock

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """Return the unique identifier of this session scheme."""
        ...

    @abstractmethod
    async def authenticate(
        self, credentials: LoginCredentials, transport: Transport
    ) -> Credential:
        """Exchange *credentials* for a fresh credential.

        Args:
            credentials: The configured secret material.
            transport: Transport used for any login exchange.

        Returns:
            A new :class:`~keyway.models.Credential`.

        Raises:
            AuthError: ``BAD_CREDENTIALS`` when the backend rejected the
                secret, ``UNAVAILABLE`` when the auth endpoint could not be
                reached or failed.
        """
        ...

    def supports_renewal(self) -> bool:
        """Return ``True`` if :meth:`renew` can extend a credential in place."""
        return False

    async def renew(self, credential: Credential, transport: Transport) -> Credential:
        """Extend *credential* without a new login.

        Raises:
            AuthError: With reason ``NOT_RENEWABLE`` when the caller should
                fall back to :meth:`authenticate`.
        """
        raise AuthError(
            f"{self.auth_type} credentials cannot be renewed",
            reason=AuthFailure.NOT_RENEWABLE,
        )

    @abstractmethod
    def apply(self, credential: Optional[Credential]) -> AuthResult:
        """Return the headers/params/cookies that carry *credential*."""
        ...

    async def _exchange(
        self,
        transport: Transport,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        rejected: AuthFailure = AuthFailure.BAD_CREDENTIALS,
    ) -> dict[str, Any]:
        """Send an auth request and return its JSON object body.

        Transport failures, 429 and 5xx answers become ``UNAVAILABLE``;
        any other non-2xx answer becomes *rejected*.
        """
        from keyway.client.request import build_request

        request = build_request(
            self.endpoint,
            Operation(method=method, path=path, body=body),
            AuthResult(headers=headers),
        )
        try:
            response = await transport.send(request)
        except TransportError as exc:
            raise AuthError(
                f"Could not reach auth endpoint: {exc}",
                reason=AuthFailure.UNAVAILABLE,
            ) from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise AuthError(
                f"Auth endpoint returned HTTP {status}",
                reason=AuthFailure.UNAVAILABLE,
                status=status,
            )
        if not response.is_success:
            raise AuthError(
                f"Auth request rejected with HTTP {status}",
                reason=rejected,
                status=status,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError(
                "Auth endpoint returned a body that is not JSON",
                reason=AuthFailure.REJECTED,
                status=status,
            ) from exc
        if not isinstance(payload, dict):
            raise AuthError(
                "Auth endpoint returned an unexpected payload",
                reason=AuthFailure.REJECTED,
                status=status,
            )
        return payload


def parse_lifetime(value: Any, field: str) -> float:
    """Return *value* as a number of seconds.

    Raises:
        AuthError: ``REJECTED`` when the auth endpoint sent something that
            is not a finite number.
    """
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise AuthError(
            f"Auth endpoint returned a non-numeric {field}: {value!r}",
            reason=AuthFailure.REJECTED,
        ) from exc
    if not math.isfinite(seconds):
        raise AuthError(
            f"Auth endpoint returned an invalid {field}: {value!r}",
            reason=AuthFailure.REJECTED,
        )
    return seconds
