"""Lease-based authenticator (Vault-style renewable tokens).

Logging in returns a token together with a lease duration; the token is
valid until ``now + lease_duration``.  While the lease is renewable it can
be extended in place with ``renew-self``, which keeps the token and pushes
the deadline out.  Once the backend reports the lease as non-renewable,
refuses the renewal, or grants no further time (the token hit its max
TTL), :meth:`LeaseAuthenticator.renew` raises ``NOT_RENEWABLE`` and the
client core logs in again instead.

Supported credential shapes:

* ``username`` + ``password`` (+ ``passcode`` for two-factor) -- login
  through ``/v1/auth/<login_method>/login/<username>``.
* ``api_key`` -- a pre-issued token; its remaining TTL is looked up with
  ``/v1/auth/token/lookup-self``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from urllib.parse import quote

from keyway.auth.base import AuthResult, Authenticator, parse_lifetime
from keyway.auth.credential_store import utcnow
from keyway.exceptions import AuthError, AuthFailure
from keyway.models import Credential, Endpoint, LoginCredentials
from keyway.transport import Transport

TOKEN_HEADER = "X-Vault-Token"


class LeaseAuthenticator(Authenticator):
    """Authenticate against a backend that issues renewable leases.

    Args:
        endpoint: The backend to log in to.
        login_method: Auth method mount used for user/pass logins
            (``ldap``, ``userpass``, ...).
        clock: Returns the current time.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        login_method: str = "ldap",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(endpoint, clock)
        self.login_method = login_method

    @property
    def auth_type(self) -> str:
        return "lease"

    async def authenticate(
        self, credentials: LoginCredentials, transport: Transport
    ) -> Credential:
        """Log in and return a credential whose expiry is ``now + lease_duration``.

        Raises:
            AuthError: ``BAD_CREDENTIALS`` if no usable credentials were
                configured or the login was refused.
        """
        if credentials.api_key:
            return await self._lookup_token(credentials.api_key, transport)

        if not credentials.has_user_pass:
            raise AuthError(
                "Invalid credentials provided for login",
                reason=AuthFailure.BAD_CREDENTIALS,
            )

        body: dict[str, Any] = {"password": credentials.password}
        if credentials.passcode:
            body["passcode"] = credentials.passcode
        user = quote(credentials.username, safe='')
        payload = await self._exchange(
            transport,
            "POST",
            f"/v1/auth/{self.login_method}/login/{user}",
            body=body,
        )
        return self._credential_from_auth(payload)

    def supports_renewal(self) -> bool:
        return True

    async def renew(self, credential: Credential, transport: Transport) -> Credential:
        """Extend the lease of *credential*, keeping its token.

        Raises:
            AuthError: ``NOT_RENEWABLE`` when the lease cannot be extended;
                ``UNAVAILABLE`` when the backend could not be reached.
        """
        if not credential.renewable:
            raise AuthError("Lease is not renewable", reason=AuthFailure.NOT_RENEWABLE)

        payload = await self._exchange(
            transport,
            "POST",
            "/v1/auth/token/renew-self",
            body={},
            headers={TOKEN_HEADER: credential.token},
            rejected=AuthFailure.NOT_RENEWABLE,
        )
        renewed = self._credential_from_auth(payload, token=credential.token)
        if renewed.expires_at is None:
            raise AuthError(
                "Lease renewal granted no further time",
                reason=AuthFailure.NOT_RENEWABLE,
            )
        return renewed

    def apply(self, credential: Optional[Credential]) -> AuthResult:
        if credential is None or not credential.token:
            return AuthResult()
        return AuthResult(headers={TOKEN_HEADER: credential.token})

    async def _lookup_token(self, token: str, transport: Transport) -> Credential:
        payload = await self._exchange(
            transport,
            "GET",
            "/v1/auth/token/lookup-self",
            headers={TOKEN_HEADER: token},
        )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise AuthError("Could not look up token", reason=AuthFailure.REJECTED)

        now = self._clock()
        ttl = parse_lifetime(data.get("ttl") or 0, "ttl")
        return Credential(
            token=token,
            issued_at=now,
            expires_at=now + timedelta(seconds=ttl) if ttl > 0 else None,
            lease_id=data.get("accessor"),
            renewable=bool(data.get("renewable")),
            metadata={"policies": data.get("policies") or []},
        )

    def _credential_from_auth(
        self, payload: dict[str, Any], token: Optional[str] = None
    ) -> Credential:
        auth = payload.get("auth")
        if not isinstance(auth, dict) or not (token or auth.get("client_token")):
            raise AuthError("Could not retrieve auth token", reason=AuthFailure.REJECTED)

        now = self._clock()
        duration = parse_lifetime(auth.get("lease_duration") or 0, "lease_duration")
        return Credential(
            token=token or auth["client_token"],
            issued_at=now,
            expires_at=now + timedelta(seconds=duration) if duration > 0 else None,
            lease_id=auth.get("accessor"),
            renewable=bool(auth.get("renewable")),
            metadata={"policies": auth.get("policies") or []},
        )
