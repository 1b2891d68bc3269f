"""Vault: lease-based secrets manager client.

Errors come back as ``{"errors": ["message", ...]}``.  An expired token
is reported with a 403 whose messages mention expiry; a plain
``"permission denied"`` is a fatal authorisation failure.

:class:`VaultClient` covers the key/value secret operations of a KV
version 1 mount.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from keyway.auth.credential_store import utcnow
from keyway.auth.lease import LeaseAuthenticator
from keyway.backends.base import Backend
from keyway.client.async_client import AsyncClient
from keyway.exceptions import BackendError
from keyway.models import (
    BackendKind,
    Endpoint,
    LoginCredentials,
    RequestConfig,
    ResponseShape,
)
from keyway.transport import Transport


def _error_messages(payload: Any) -> Optional[list[str]]:
    if not isinstance(payload, dict) or not isinstance(payload.get("errors"), list):
        return None
    return [str(e) for e in payload["errors"]]


class VaultBackend(Backend):
    """Vault error envelope and token-expiry signature."""

    @property
    def kind(self) -> BackendKind:
        return BackendKind.VAULT

    def decode_error(self, status: int, payload: Any) -> Optional[tuple[str, str]]:
        messages = _error_messages(payload)
        if messages is None:
            return None
        return "vault_error", "; ".join(messages)

    def is_token_expired(self, status: int, payload: Any) -> bool:
        messages = _error_messages(payload) or []
        return status in (401, 403) and any("expired" in m.lower() for m in messages)


class VaultClient(AsyncClient):
    """Client for a Vault KV (version 1) secrets mount.

    Args:
        base_url: Vault address, e.g. ``https://vault.example.com:8200``.
        credentials: Username/password (optionally with a two-factor
            passcode), or a pre-issued token as ``api_key``.
        login_method: Auth method used for username/password logins.
        mount: Secrets engine mount path.
        transport: Optional transport override.
        request_config: Timeout, TLS and expiry-skew settings.
        clock: Returns the current time.

    Example::

        async with VaultClient(url, LoginCredentials(username="u", password="p")) as vault:
            await vault.write_secret("app/db", {"password": "hunter2"})
            data = await vault.read_secret("app/db")
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[LoginCredentials] = None,
        login_method: str = "ldap",
        mount: str = "secret",
        transport: Optional[Transport] = None,
        request_config: Optional[RequestConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        endpoint = Endpoint(base_url=base_url, backend=BackendKind.VAULT)
        super().__init__(
            endpoint,
            VaultBackend(),
            LeaseAuthenticator(endpoint, login_method=login_method, clock=clock),
            credentials=credentials,
            transport=transport,
            request_config=request_config,
            clock=clock,
        )
        self.mount = mount.strip("/")

    def _secret_path(self, path: str) -> str:
        return f"/v1/{self.mount}/{path.strip('/')}"

    async def read_secret(self, path: str) -> dict[str, Any]:
        """Return the key/value data stored at *path*."""
        payload = await self.get(self._secret_path(path), expect=ResponseShape.OBJECT)
        return payload.get("data") or {}

    async def write_secret(self, path: str, data: dict[str, Any]) -> None:
        """Store *data* at *path*, replacing what was there."""
        await self.post(self._secret_path(path), body=data, expect=ResponseShape.EMPTY)

    async def list_secrets(self, path: str = "") -> list[str]:
        """Return the keys under *path*; an empty folder yields ``[]``."""
        try:
            payload = await self.get(
                self._secret_path(path), params={"list": "true"}, expect=ResponseShape.OBJECT
            )
        except BackendError as exc:
            if exc.status == 404:
                return []
            raise
        data = payload.get("data") or {}
        return list(data.get("keys") or [])

    async def delete_secret(self, path: str) -> None:
        """Delete the secret at *path*."""
        await self.delete(self._secret_path(path))
