"""Asynchronous client core -- the authenticated request pipeline.

:class:`AsyncClient` orchestrates one call end to end:

1. **Init** -- read the :class:`~keyway.auth.credential_store.CredentialStore`.
   If the credential is absent or expired, renew it (single-flight: only
   one login/renewal exchange runs at a time, other callers wait for it).
2. **Authenticated** -- build the request with
   :func:`~keyway.client.request.build_request` and send it through the
   :class:`~keyway.transport.Transport`.
3. **Sent** -- classify the response with
   :class:`~keyway.client.response.ResponseClassifier`.
4. **AuthRetry** -- if the backend says the token expired, invalidate it and
   go back to step 1.  This happens at most once per call.

Transport failures end the call immediately; this core never retries them.

See Also:
    :class:`~keyway.client.sync_client.SyncClient` for the blocking facade.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Optional

from keyway.auth.base import Authenticator
from keyway.auth.credential_store import (
    Busy,
    CredentialStore,
    CredentialView,
    RenewalTicket,
    utcnow,
)
from keyway.client.request import build_request
from keyway.client.response import ResponseClassifier
from keyway.exceptions import AuthError, AuthFailure
from keyway.models import (
    Credential,
    Endpoint,
    LoginCredentials,
    Operation,
    RequestConfig,
    ResponseShape,
)
from keyway.output import get_output
from keyway.transport import HttpxTransport, Transport, TransportResponse

if TYPE_CHECKING:
    from keyway.backends.base import Backend


def _consume_result(task: asyncio.Task) -> None:
    """Mark a renewal task's outcome as retrieved; its waiters get it via the store."""
    if not task.cancelled():
        task.exception()


class AsyncClient:
    """Asynchronous authenticated API client.

    Must be used as an async context manager (or closed with
    :meth:`aclose`) so the transport's connections are released.

    Args:
        endpoint: Base URL and backend tag.
        backend: Error conventions of the backend.
        authenticator: Session scheme used to obtain credentials.
        credentials: Secret material handed to the authenticator.
        transport: Transport to send requests through.  Defaults to an
            :class:`~keyway.transport.HttpxTransport` built from
            *request_config*.
        request_config: Timeout, TLS verification and expiry skew.
        clock: Returns the current time; injectable for tests.

    Example::

        async with AsyncClient(endpoint, backend, authenticator, creds) as client:
            secret = await client.get("/v1/secret/app")
    """

    def __init__(
        self,
        endpoint: Endpoint,
        backend: Backend,
        authenticator: Authenticator,
        credentials: Optional[LoginCredentials] = None,
        transport: Optional[Transport] = None,
        request_config: Optional[RequestConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        config = request_config or RequestConfig()
        self._endpoint = endpoint
        self._backend = backend
        self._authenticator = authenticator
        self._credentials = credentials or LoginCredentials()
        self._transport = transport or HttpxTransport(
            timeout=config.timeout, verify_ssl=config.verify_ssl
        )
        self._store = CredentialStore(
            skew=timedelta(seconds=config.expiry_skew), clock=clock
        )
        self._classifier = ResponseClassifier(backend)

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def store(self) -> CredentialStore:
        """The credential store owned by this client."""
        return self._store

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying transport."""
        await self._transport.aclose()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(self, operation: Operation) -> Any:
        """Run *operation* through the pipeline and return the decoded body.

        Raises:
            TransportError: On network / TLS / timeout errors.
            AuthError: When credentials are rejected, or still expired after
                one re-authentication.
            BackendError: When the backend rejects the request.
            DecodeError: When the response does not match ``operation.expect``.
        """
        value, _ = await self._call(operation)
        return value

    async def get(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        expect: ResponseShape = ResponseShape.ANY,
    ) -> Any:
        """Send a GET request."""
        return await self.request(
            Operation(method="GET", path=path, params=params or {}, expect=expect)
        )

    async def post(
        self,
        path: str,
        body: Any = None,
        expect: ResponseShape = ResponseShape.ANY,
    ) -> Any:
        """Send a POST request with a JSON body."""
        return await self.request(
            Operation(method="POST", path=path, body=body, expect=expect)
        )

    async def put(
        self,
        path: str,
        body: Any = None,
        expect: ResponseShape = ResponseShape.ANY,
    ) -> Any:
        """Send a PUT request with a JSON body."""
        return await self.request(
            Operation(method="PUT", path=path, body=body, expect=expect)
        )

    async def delete(
        self,
        path: str,
        expect: ResponseShape = ResponseShape.EMPTY,
    ) -> Any:
        """Send a DELETE request."""
        return await self.request(Operation(method="DELETE", path=path, expect=expect))

    async def list(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a GET request whose body must be a JSON array (first page only)."""
        return await self.request(
            Operation(method="GET", path=path, params=params or {}, expect=ResponseShape.LIST)
        )

    async def paginate(self, operation: Operation) -> AsyncIterator[Any]:
        """Yield the decoded body of every page of *operation*.

        Pages are followed through the backend's pagination links; each page
        goes through the full pipeline, so credential renewal can happen
        between pages.
        """
        current = operation
        while True:
            value, response = await self._call(current)
            yield value
            next_url = self._backend.next_page_url(response)
            if next_url is None:
                return
            current = current.model_copy(update={"path": next_url, "params": {}})

    async def collect(self, operation: Operation) -> list[Any]:
        """Fetch every page of *operation* and concatenate list pages into one list."""
        items: list[Any] = []
        async for page in self.paginate(operation):
            if isinstance(page, list):
                items.extend(page)
            elif page is not None:
                items.append(page)
        return items

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _call(self, operation: Operation) -> tuple[Any, TransportResponse]:
        output = get_output()
        retried = False
        while True:
            view = await self._ensure_credential()
            request = build_request(
                self._endpoint, operation, self._authenticator.apply(view.credential)
            )
            output.debug(f"{request.method} {request.url}")
            response = await self._transport.send(request)
            try:
                return self._classifier.classify(response, operation.expect), response
            except AuthError as exc:
                if not exc.retryable or retried:
                    raise
                retried = True
                output.debug(
                    f"Credential generation {view.generation} rejected as expired; "
                    "re-authenticating"
                )
                self._store.invalidate(view.generation)

    async def _ensure_credential(self) -> CredentialView:
        """Return a fresh credential view, renewing through the store if needed."""
        while True:
            view = self._store.current()
            if view.valid:
                return view

            claim = self._store.begin_renewal()
            if isinstance(claim, Busy):
                await claim.wait()
                continue

            # The renewal runs in its own task so that cancelling this call
            # leaves it running for the other waiters.
            renewal = asyncio.ensure_future(self._renew(claim))
            renewal.add_done_callback(_consume_result)
            await asyncio.shield(renewal)

    async def _renew(self, ticket: RenewalTicket) -> None:
        try:
            credential = await self._obtain(ticket)
        except BaseException as exc:
            self._store.abort(ticket, exc)
            raise
        if self._store.commit(ticket, credential):
            get_output().debug(
                f"{self._authenticator.auth_type} credential installed "
                f"(generation {ticket.generation + 1})"
            )

    async def _obtain(self, ticket: RenewalTicket) -> Credential:
        previous = ticket.credential
        if (
            previous is not None
            and not ticket.forced
            and self._authenticator.supports_renewal()
        ):
            try:
                get_output().debug("Renewing lease")
                return await self._authenticator.renew(previous, self._transport)
            except AuthError as exc:
                if exc.reason is not AuthFailure.NOT_RENEWABLE:
                    raise
                get_output().debug(f"{exc}; logging in again")

        get_output().debug(f"Logging in to {self._endpoint.base_url}")
        return await self._authenticator.authenticate(self._credentials, self._transport)
