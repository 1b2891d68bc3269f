"""Request builder -- turns an :class:`~keyway.models.Operation` into a wire request.

:func:`build_request` is pure: given the endpoint, the operation and the
:class:`~keyway.auth.base.AuthResult` for the current credential, it
returns a :class:`~keyway.transport.TransportRequest` with the full URL,
JSON-encoded body, content headers and auth material merged in.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from keyway.models import Endpoint, Operation
from keyway.transport import TransportRequest

if TYPE_CHECKING:
    from keyway.auth.base import AuthResult

JSON_CONTENT_TYPE = "application/json"


def join_url(base_url: str, path: str) -> str:
    """Join *path* onto *base_url*.

    Absolute URLs (e.g. pagination links) are returned unchanged.  A single
    slash separates the base and the relative path regardless of how
    either is written.

    Raises:
        ValueError: If *path* is empty or contains whitespace.
    """
    if not isinstance(path, str) or not path.strip() or any(c.isspace() for c in path):
        raise ValueError(f"Malformed request path: {path!r}")
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def build_request(
    endpoint: Endpoint,
    operation: Operation,
    auth: AuthResult,
) -> TransportRequest:
    """Build the transport request for one call.

    Args:
        endpoint: Backend base URL.
        operation: Method, path, body and query params of the call.
        auth: Credential placement from the active authenticator.

    Returns:
        A ready-to-send :class:`~keyway.transport.TransportRequest`.

    Raises:
        ValueError: On a malformed path (a programming error).
    """
    url = join_url(endpoint.base_url, operation.path)

    headers: dict[str, str] = {"Accept": JSON_CONTENT_TYPE}
    content = None
    if operation.body is not None:
        content = json.dumps(operation.body).encode("utf-8")
        headers["Content-Type"] = JSON_CONTENT_TYPE
    headers.update(auth.headers)

    if auth.cookies:
        cookie_str = "; ".join(f"{k}={v}" for k, v in auth.cookies.items())
        existing = headers.get("Cookie")
        if existing:
            cookie_str = f"{existing}; {cookie_str}"
        headers["Cookie"] = cookie_str

    params = {**operation.params, **auth.params}

    return TransportRequest(
        method=operation.method.upper(),
        url=url,
        headers=headers,
        params=params,
        content=content,
    )
