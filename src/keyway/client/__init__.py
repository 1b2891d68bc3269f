"""HTTP client core for keyway.

Provides the authenticated request pipeline and its building blocks:

Classes:
    :class:`AsyncClient` -- the non-blocking client core.
    :class:`SyncClient` -- blocking facade driving an :class:`AsyncClient`
    on a private event loop.
    :class:`ResponseClassifier` -- maps responses to values or typed errors.

Functions:
    :func:`build_request` -- turns an operation into a transport request.
    :func:`parse_link_header` -- reads ``Link`` pagination headers.

Example::

    from keyway.client import SyncClient
    from keyway.backends import VaultClient

    with SyncClient(VaultClient(url, credentials)) as client:
        data = client.get("/v1/secret/app")
"""

from keyway.client.async_client import AsyncClient
from keyway.client.pagination import next_page_url, parse_link_header
from keyway.client.request import build_request, join_url
from keyway.client.response import ResponseClassifier
from keyway.client.sync_client import SyncClient

__all__ = [
    "AsyncClient",
    "ResponseClassifier",
    "SyncClient",
    "build_request",
    "join_url",
    "next_page_url",
    "parse_link_header",
]
