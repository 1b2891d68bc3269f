"""Transport adapter -- the only module that touches the network.

:class:`Transport` is the boundary the rest of the pipeline talks to: it
sends a fully-formed :class:`TransportRequest` and returns a
:class:`TransportResponse`, or raises
:class:`~keyway.exceptions.TransportError`.  TLS negotiation and
connection reuse belong entirely to the implementation.

:class:`HttpxTransport` is the default implementation, backed by
:class:`httpx.AsyncClient`.  Tests inject an :class:`httpx.MockTransport`
through its ``transport`` argument.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from keyway.exceptions import TransportError


@dataclass(frozen=True)
class TransportRequest:
    """A request ready to go on the wire.

    Attributes:
        method: Upper-case HTTP method.
        url: Absolute URL.
        headers: Request headers.
        params: Query-string parameters.
        content: Encoded request body, if any.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    content: Optional[bytes] = None


@dataclass(frozen=True)
class TransportResponse:
    """Status, headers and raw body of a completed exchange."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid UTF-8 JSON.
        """
        return json.loads(self.content)


class Transport(ABC):
    """Sends requests and yields responses."""

    @abstractmethod
    async def send(self, request: TransportRequest) -> TransportResponse:
        """Send *request* and return the response.

        Raises:
            TransportError: On connection, TLS or timeout failures.
        """
        ...

    async def aclose(self) -> None:
        """Release any pooled connections."""


class HttpxTransport(Transport):
    """:class:`Transport` backed by :class:`httpx.AsyncClient`.

    Args:
        timeout: Request timeout in seconds.
        verify_ssl: Verify TLS certificates.
        transport: Optional low-level httpx transport (e.g.
            :class:`httpx.MockTransport`) used instead of the network.

    Example::

        transport = HttpxTransport(timeout=10)
        response = await transport.send(TransportRequest("GET", "https://vault/v1/sys/health"))
    """

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

    async def send(self, request: TransportRequest) -> TransportResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params or None,
                content=request.content,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {request.url} timed out: {exc}", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {request.url} failed: {exc}", cause=exc) from exc

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            content=response.content,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
