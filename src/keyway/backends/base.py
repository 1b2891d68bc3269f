"""Backend conventions -- the per-backend behaviour table.

A :class:`Backend` tells the response classifier and the client core how
one service encodes things the pipeline has to understand:

* :meth:`Backend.decode_error` -- the documented error envelope, returning
  ``(code, message)`` or ``None`` when the body does not match it.
* :meth:`Backend.is_token_expired` -- the "token expired" signature that
  makes a 401/403 retryable once.
* :meth:`Backend.next_page_url` -- where the next page of a list lives.

There is exactly one :class:`Backend` per :class:`~keyway.models.BackendKind`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from keyway.models import BackendKind
from keyway.transport import TransportResponse


class Backend(ABC):
    """Abstract base class for backend conventions."""

    @property
    @abstractmethod
    def kind(self) -> BackendKind:
        """Return the backend identity tag."""
        ...

    @abstractmethod
    def decode_error(self, status: int, payload: Any) -> Optional[tuple[str, str]]:
        """Extract ``(code, message)`` from a decoded error body.

        Args:
            status: HTTP status of the response.
            payload: The JSON-decoded body.

        Returns:
            The code and message, or ``None`` if *payload* is not in the
            backend's error envelope.
        """
        ...

    def is_token_expired(self, status: int, payload: Any) -> bool:
        """Return ``True`` if a 401/403 body says the token expired.

        The default never matches, so every 401/403 is fatal.
        """
        return False

    def next_page_url(self, response: TransportResponse) -> Optional[str]:
        """Return the URL of the next page, or ``None``.  Unpaginated by default."""
        return None
