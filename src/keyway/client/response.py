"""Response classifier -- maps a :class:`~keyway.transport.TransportResponse` to a value or an error.

The mapping is deterministic for a given ``(status, body)``:

* 2xx whose body decodes to the expected :class:`~keyway.models.ResponseShape`
  -> the decoded value.
* 2xx with an unparseable or mis-shaped body -> :class:`~keyway.exceptions.DecodeError`.
* 401 / 403 -> :class:`~keyway.exceptions.AuthError`, with reason
  ``EXPIRED`` when the body matches the backend's token-expired signature
  and ``REJECTED`` otherwise.
* Any other status -> :class:`~keyway.exceptions.BackendError` built from the
  backend's error envelope, or with code ``"unknown"`` and a snippet of
  the raw body when the envelope cannot be decoded.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Optional

from keyway.exceptions import AuthError, AuthFailure, BackendError, DecodeError
from keyway.models import ResponseShape
from keyway.transport import TransportResponse

if TYPE_CHECKING:
    from keyway.backends.base import Backend

SNIPPET_LENGTH = 200

_SHAPE_TYPES: dict[ResponseShape, type] = {
    ResponseShape.OBJECT: dict,
    ResponseShape.LIST: list,
}


def body_snippet(content: bytes) -> str:
    """Return the first :data:`SNIPPET_LENGTH` characters of a body, decoded leniently."""
    return content[:SNIPPET_LENGTH].decode("utf-8", errors="replace").strip()


def _decode_json(content: bytes) -> Optional[Any]:
    """Decode *content* as JSON, returning ``None`` when it is empty or invalid."""
    if not content.strip():
        return None
    try:
        return json.loads(content)
    except ValueError:
        return None


class ResponseClassifier:
    """Classifies responses using one backend's error conventions.

    Args:
        backend: Supplies the error-envelope decoder and token-expired
            signature.
    """

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    def classify(
        self,
        response: TransportResponse,
        expect: ResponseShape = ResponseShape.ANY,
    ) -> Any:
        """Return the decoded success value of *response*.

        Raises:
            AuthError: On 401 / 403.
            BackendError: On any other non-2xx status.
            DecodeError: When a 2xx body does not match *expect*.
        """
        if response.is_success:
            return self._decode_success(response, expect)

        status = response.status_code
        payload = _decode_json(response.content)

        if status in (401, 403):
            message = self._error_message(status, payload) or body_snippet(response.content)
            if self._backend.is_token_expired(status, payload):
                raise AuthError(
                    f"HTTP {status}: credential expired ({message})",
                    reason=AuthFailure.EXPIRED,
                    status=status,
                )
            text = f"HTTP {status}: {message}" if message else f"HTTP {status}"
            raise AuthError(text, reason=AuthFailure.REJECTED, status=status)

        decoded = self._backend.decode_error(status, payload) if payload is not None else None
        if decoded is None:
            raise BackendError(status, "unknown", body_snippet(response.content))
        code, message = decoded
        raise BackendError(status, code, message)

    def _decode_success(self, response: TransportResponse, expect: ResponseShape) -> Any:
        if expect is ResponseShape.EMPTY or not response.content.strip():
            if expect in (ResponseShape.OBJECT, ResponseShape.LIST):
                raise DecodeError(
                    f"Expected a JSON {expect.value} but HTTP {response.status_code} had no body"
                )
            return None

        try:
            value = response.json()
        except ValueError as exc:
            raise DecodeError(
                f"Failed to parse JSON: {body_snippet(response.content)}", cause=exc
            ) from exc

        expected_type = _SHAPE_TYPES.get(expect)
        if expected_type is not None and not isinstance(value, expected_type):
            raise DecodeError(
                f"Expected a JSON {expect.value}, got {type(value).__name__}"
            )
        return value

    def _error_message(self, status: int, payload: Any) -> str:
        if payload is None:
            return ""
        decoded = self._backend.decode_error(status, payload)
        return decoded[1] if decoded else ""
