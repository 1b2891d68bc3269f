"""Static API key authenticator.

No login exchange happens: the configured key *is* the credential and it
never expires, so the client core authenticates once and never renews.
With no key configured the client talks to the backend anonymously.
"""

from __future__ import annotations

from typing import Optional

from keyway.auth.base import AuthResult, Authenticator
from keyway.exceptions import AuthError, AuthFailure
from keyway.models import Credential, LoginCredentials
from keyway.transport import Transport


class StaticKeyAuthenticator(Authenticator):
    """Send a fixed key in a header (default ``Authorization: Key <key>``).

    Set ``scheme`` to ``None`` to send the bare key, e.g. in a custom
    ``X-API-Key`` header.
    """

    header: str = "Authorization"
    scheme: Optional[str] = "Key"

    @property
    def auth_type(self) -> str:
        return "static_key"

    async def authenticate(
        self, credentials: LoginCredentials, transport: Transport
    ) -> Credential:
        if credentials.api_key:
            return Credential(token=credentials.api_key, issued_at=self._clock())
        if credentials.is_empty:
            return Credential(token="", issued_at=self._clock(), metadata={"anonymous": True})
        raise AuthError(
            "Static key authentication requires an api key",
            reason=AuthFailure.BAD_CREDENTIALS,
        )

    def apply(self, credential: Optional[Credential]) -> AuthResult:
        if credential is None or not credential.token:
            return AuthResult()
        value = f"{self.scheme} {credential.token}" if self.scheme else credential.token
        return AuthResult(headers={self.header: value})
