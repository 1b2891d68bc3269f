"""Bearer-token login authenticator (GitLab-style OAuth password grant).

A username and password are exchanged once at ``<origin>/oauth/token``
for an ``access_token`` with a fixed lifetime (``expires_in``, one hour
when the server omits it).  There is no renewal: when the token expires
the client core simply logs in again.

A pre-issued personal access token can be supplied as ``api_key``; it is
used as a non-expiring bearer token without any exchange.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional
from urllib.parse import urlsplit

from keyway.auth.base import AuthResult, Authenticator, parse_lifetime
from keyway.auth.credential_store import utcnow
from keyway.exceptions import AuthError, AuthFailure
from keyway.models import Credential, Endpoint, LoginCredentials
from keyway.transport import Transport

DEFAULT_TOKEN_LIFETIME = 3600.0


class BearerLoginAuthenticator(Authenticator):
    """Authenticate with an OAuth ``password`` grant and send ``Authorization: Bearer``.

    Args:
        endpoint: The backend to log in to.  The token endpoint lives at the
            origin of its base URL.
        token_path: Path of the token endpoint on that origin.
        clock: Returns the current time.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        token_path: str = "/oauth/token",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(endpoint, clock)
        self.token_path = token_path

    @property
    def auth_type(self) -> str:
        return "bearer_login"

    @property
    def token_url(self) -> str:
        parts = urlsplit(self.endpoint.base_url)
        return f"{parts.scheme}://{parts.netloc}{self.token_path}"

    async def authenticate(
        self, credentials: LoginCredentials, transport: Transport
    ) -> Credential:
        """Return a bearer credential, logging in unless an api key is configured.

        Raises:
            AuthError: ``BAD_CREDENTIALS`` when no usable credentials are
                configured, the grant is refused, or no token comes back.
        """
        if credentials.api_key:
            return Credential(token=credentials.api_key, issued_at=self._clock())

        if not credentials.has_user_pass:
            raise AuthError(
                "Invalid credentials provided for login",
                reason=AuthFailure.BAD_CREDENTIALS,
            )

        payload = await self._exchange(
            transport,
            "POST",
            self.token_url,
            body={
                "grant_type": "password",
                "username": credentials.username,
                "password": credentials.password,
            },
        )
        token = payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise AuthError(
                "Could not log in with given username and password",
                reason=AuthFailure.BAD_CREDENTIALS,
            )

        # Default to 1 hour if no expiry provided
        lifetime = parse_lifetime(
            payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME, "expires_in"
        )
        now = self._clock()
        return Credential(
            token=token,
            issued_at=now,
            expires_at=now + timedelta(seconds=lifetime),
            metadata={"token_type": payload.get("token_type", "bearer")},
        )

    def apply(self, credential: Optional[Credential]) -> AuthResult:
        if credential is None or not credential.token:
            return AuthResult()
        return AuthResult(headers={"Authorization": f"Bearer {credential.token}"})
