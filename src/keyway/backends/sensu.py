"""Sensu: monitoring/alerting service client using static API keys.

Errors come back as ``{"code": <int>, "message": "..."}``.  API keys never
expire, so a 401 is always fatal.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import quote

from keyway.auth.credential_store import utcnow
from keyway.auth.static_key import StaticKeyAuthenticator
from keyway.backends.base import Backend
from keyway.client.async_client import AsyncClient
from keyway.models import (
    BackendKind,
    Endpoint,
    LoginCredentials,
    RequestConfig,
    ResponseShape,
)
from keyway.transport import Transport


class SensuBackend(Backend):
    """Sensu error envelope."""

    @property
    def kind(self) -> BackendKind:
        return BackendKind.SENSU

    def decode_error(self, status: int, payload: Any) -> Optional[tuple[str, str]]:
        if not isinstance(payload, dict) or "message" not in payload:
            return None
        code = payload.get("code")
        return (str(code) if code is not None else "sensu_error"), str(payload["message"])


class SensuClient(AsyncClient):
    """Client for the Sensu core API of one namespace.

    Args:
        base_url: Sensu API address, e.g. ``https://sensu.example.com:8080``.
        credentials: ``api_key`` for key auth; leave empty for an
            unauthenticated API.
        namespace: Namespace whose checks and events are used.
        transport: Optional transport override.
        request_config: Timeout and TLS settings.
        clock: Returns the current time.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[LoginCredentials] = None,
        namespace: str = "default",
        transport: Optional[Transport] = None,
        request_config: Optional[RequestConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        endpoint = Endpoint(base_url=base_url, backend=BackendKind.SENSU)
        super().__init__(
            endpoint,
            SensuBackend(),
            StaticKeyAuthenticator(endpoint, clock=clock),
            credentials=credentials,
            transport=transport,
            request_config=request_config,
            clock=clock,
        )
        self.namespace = namespace

    def _path(self, resource: str) -> str:
        return f"/api/core/v2/namespaces/{self.namespace}/{resource}"

    def _check_path(self, name: str) -> str:
        return self._path(f"checks/{quote(name, safe='')}")

    async def list_checks(self) -> list[dict[str, Any]]:
        return await self.get(self._path("checks"), expect=ResponseShape.LIST)

    async def get_check(self, name: str) -> dict[str, Any]:
        return await self.get(self._check_path(name), expect=ResponseShape.OBJECT)

    async def create_check(self, definition: dict[str, Any]) -> None:
        """Create a check from a full check definition (``metadata``, ``command``, ...)."""
        await self.post(self._path("checks"), body=definition, expect=ResponseShape.EMPTY)

    async def delete_check(self, name: str) -> None:
        await self.delete(self._check_path(name))

    async def list_events(self) -> list[dict[str, Any]]:
        return await self.get(self._path("events"), expect=ResponseShape.LIST)
