"""GitLab: source-hosting platform client using bearer-token logins.

GitLab reports errors either as ``{"message": ...}`` (where the message
may be a string or a dict of per-field validation errors) or, for OAuth
failures, as ``{"error": "...", "error_description": "..."}``.  An
expired token is a 401 with ``error: invalid_token`` and a description
mentioning expiry.

List endpoints are paginated through the ``Link`` header.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import quote

from keyway.auth.bearer import BearerLoginAuthenticator
from keyway.auth.credential_store import utcnow
from keyway.backends.base import Backend
from keyway.client.async_client import AsyncClient
from keyway.client.pagination import next_page_url
from keyway.models import (
    BackendKind,
    Endpoint,
    LoginCredentials,
    Operation,
    RequestConfig,
    ResponseShape,
)
from keyway.transport import Transport, TransportResponse

DEFAULT_PER_PAGE = 100


class GitlabBackend(Backend):
    """GitLab error envelopes, token-expiry signature and ``Link`` pagination."""

    @property
    def kind(self) -> BackendKind:
        return BackendKind.GITLAB

    def decode_error(self, status: int, payload: Any) -> Optional[tuple[str, str]]:
        if not isinstance(payload, dict):
            return None
        if "error" in payload:
            return str(payload["error"]), str(payload.get("error_description") or "")
        message = payload.get("message")
        if message is None:
            return None
        if isinstance(message, str):
            return "error", message
        return "validation", json.dumps(message, sort_keys=True)

    def is_token_expired(self, status: int, payload: Any) -> bool:
        if status != 401 or not isinstance(payload, dict):
            return False
        description = str(payload.get("error_description") or "")
        return payload.get("error") == "invalid_token" and "expired" in description.lower()

    def next_page_url(self, response: TransportResponse) -> Optional[str]:
        return next_page_url(response)


class GitlabClient(AsyncClient):
    """Client for the GitLab v4 REST API.

    Args:
        base_url: API root, e.g. ``https://gitlab.example.com/api/v4``.  The
            OAuth token endpoint is derived from its origin.
        credentials: Username/password for a password-grant login, or a
            personal access token as ``api_key``.
        transport: Optional transport override.
        request_config: Timeout, TLS and expiry-skew settings.
        clock: Returns the current time.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[LoginCredentials] = None,
        transport: Optional[Transport] = None,
        request_config: Optional[RequestConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        endpoint = Endpoint(base_url=base_url, backend=BackendKind.GITLAB)
        super().__init__(
            endpoint,
            GitlabBackend(),
            BearerLoginAuthenticator(endpoint, clock=clock),
            credentials=credentials,
            transport=transport,
            request_config=request_config,
            clock=clock,
        )

    @staticmethod
    def _project_path(project: int | str) -> str:
        return f"/projects/{quote(str(project), safe='')}"

    async def list_projects(self, **filters: Any) -> list[dict[str, Any]]:
        """Return every project visible to the user, following all pages.

        Keyword arguments are passed as query filters (``owned=True``,
        ``search="api"``, ...).
        """
        params = {"per_page": DEFAULT_PER_PAGE, **filters}
        return await self.collect(
            Operation(method="GET", path="/projects", params=params, expect=ResponseShape.LIST)
        )

    async def get_project(self, project: int | str) -> dict[str, Any]:
        """Fetch a project by numeric id or ``namespace/name`` path."""
        return await self.get(self._project_path(project), expect=ResponseShape.OBJECT)

    async def create_project(self, name: str, **attributes: Any) -> dict[str, Any]:
        return await self.post(
            "/projects", body={"name": name, **attributes}, expect=ResponseShape.OBJECT
        )

    async def delete_project(self, project: int | str) -> None:
        await self.delete(self._project_path(project), expect=ResponseShape.ANY)
