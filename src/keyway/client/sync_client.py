"""Blocking facade over :class:`~keyway.client.async_client.AsyncClient`.

For scripts that do not run an event loop, :class:`SyncClient` owns a
private loop and drives the async pipeline to completion for each call.
All pipeline behaviour (credential renewal, the single auth retry, error
classification) is inherited unchanged from the wrapped client.

Do not use a :class:`SyncClient` from inside a running event loop; await
the wrapped :class:`~keyway.client.async_client.AsyncClient` instead.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional, TypeVar

from keyway.client.async_client import AsyncClient
from keyway.models import Operation, ResponseShape

T = TypeVar("T")


class SyncClient:
    """Blocking API client wrapping an :class:`AsyncClient`.

    Args:
        client: The asynchronous client to drive.

    Example::

        with SyncClient(VaultClient(url, credentials)) as client:
            data = client.get("/v1/secret/app")
    """

    def __init__(self, client: AsyncClient) -> None:
        self._client = client
        self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.new_event_loop()

    @property
    def client(self) -> AsyncClient:
        """The wrapped asynchronous client."""
        return self._client

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport and the private event loop."""
        if self._loop is None:
            return
        try:
            self._loop.run_until_complete(self._client.aclose())
        finally:
            self._loop.close()
            self._loop = None

    def run(self, awaitable: Awaitable[T]) -> T:
        """Run *awaitable* on the private loop and return its result.

        Raises:
            RuntimeError: If the client has been closed.
        """
        if self._loop is None:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError("SyncClient is closed")
        return self._loop.run_until_complete(awaitable)

    def request(self, operation: Operation) -> Any:
        """Blocking :meth:`AsyncClient.request`."""
        return self.run(self._client.request(operation))

    def get(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        expect: ResponseShape = ResponseShape.ANY,
    ) -> Any:
        return self.run(self._client.get(path, params=params, expect=expect))

    def post(self, path: str, body: Any = None, expect: ResponseShape = ResponseShape.ANY) -> Any:
        return self.run(self._client.post(path, body=body, expect=expect))

    def put(self, path: str, body: Any = None, expect: ResponseShape = ResponseShape.ANY) -> Any:
        return self.run(self._client.put(path, body=body, expect=expect))

    def delete(self, path: str, expect: ResponseShape = ResponseShape.EMPTY) -> Any:
        return self.run(self._client.delete(path, expect=expect))

    def list(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self.run(self._client.list(path, params=params))

    def collect(self, operation: Operation) -> list[Any]:
        """Blocking :meth:`AsyncClient.collect`."""
        return self.run(self._client.collect(operation))
