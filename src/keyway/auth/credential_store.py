"""In-memory credential store with single-flight renewal.

One :class:`CredentialStore` belongs to exactly one client.  It holds the
current :class:`~keyway.models.Credential` and a monotonic *generation*
counter that is incremented on every successful renewal (``0`` means the
client has never authenticated).

The store is the only mutable state shared by concurrent calls on a
client, and it is only ever written through the renewal protocol:

1. :meth:`CredentialStore.begin_renewal` hands out a :class:`RenewalTicket`
   to the first caller, or a :class:`Busy` marker while a renewal is
   already in flight.
2. The ticket holder performs the login/renewal exchange and finishes with
   :meth:`CredentialStore.commit` (or :meth:`CredentialStore.abort` on
   failure).  ``commit`` is compare-and-commit: it only applies when the
   generation captured by the ticket is still current.
3. :class:`Busy` holders :meth:`~Busy.wait` for the renewal to finish and
   then re-read :meth:`CredentialStore.current`.

Each step is a short critical section; no lock is held across an ``await``.

See Also:
    :class:`keyway.client.async_client.AsyncClient` -- drives the protocol.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from keyway.models import Credential, CredentialState


def utcnow() -> datetime:
    """Default clock: the current UTC time."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CredentialView:
    """Read-only snapshot of a store.

    Attributes:
        state: Fresh, expired or absent at the time of the snapshot.
        credential: The credential, if any (possibly expired).
        generation: Store generation the snapshot was taken at.
    """

    state: CredentialState
    credential: Optional[Credential]
    generation: int

    @property
    def valid(self) -> bool:
        return self.state is CredentialState.FRESH


@dataclass(frozen=True)
class RenewalTicket:
    """Exclusive right to renew the credential of one generation.

    Attributes:
        generation: Generation seen when the ticket was issued.
        credential: The credential being replaced, if any.
        forced: ``True`` when the credential was invalidated because the
            backend reported it expired.
    """

    generation: int
    credential: Optional[Credential]
    forced: bool = False
    done: Optional[asyncio.Future] = field(default=None, compare=False, repr=False)


class Busy:
    """Returned by :meth:`CredentialStore.begin_renewal` while another renewal runs."""

    def __init__(self, done: asyncio.Future) -> None:
        self._done = done

    async def wait(self) -> None:
        """Suspend until the in-flight renewal finishes.

        Cancelling the waiter does not affect the renewal itself.

        Raises:
            Exception: Whatever the renewal failed with.
        """
        error = await asyncio.shield(self._done)
        if error is not None:
            raise error


class CredentialStore:
    """Holds the current credential of one client.

    Args:
        skew: A credential counts as expired this long before its deadline
            (capped at half its lifetime, see
            :meth:`~keyway.models.Credential.is_fresh`).
        clock: Returns the current time; injectable for tests.

    Example::

        store = CredentialStore()
        ticket = store.begin_renewal()
        store.commit(ticket, Credential(token="s.abc"))
        assert store.generation() == 1
    """

    def __init__(
        self,
        skew: timedelta = timedelta(seconds=30),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._skew = skew
        self._clock = clock
        self._lock = threading.Lock()
        self._credential: Optional[Credential] = None
        self._generation = 0
        self._invalidated = False
        self._inflight: Optional[asyncio.Future] = None

    def generation(self) -> int:
        """Return the number of successful renewals so far."""
        with self._lock:
            return self._generation

    def current(self) -> CredentialView:
        """Return a snapshot of the current credential and its validity."""
        with self._lock:
            credential = self._credential
            generation = self._generation
            invalidated = self._invalidated

        if credential is None:
            state = CredentialState.ABSENT
        elif invalidated or not credential.is_fresh(self._clock(), self._skew):
            state = CredentialState.EXPIRED
        else:
            state = CredentialState.FRESH
        return CredentialView(state=state, credential=credential, generation=generation)

    def begin_renewal(self) -> Union[RenewalTicket, Busy]:
        """Claim the single renewal slot.

        Must be called from a running event loop.

        Returns:
            A :class:`RenewalTicket` if no renewal is in flight, otherwise
            :class:`Busy`.
        """
        with self._lock:
            if self._inflight is not None:
                return Busy(self._inflight)
            done = asyncio.get_running_loop().create_future()
            self._inflight = done
            return RenewalTicket(
                generation=self._generation,
                credential=self._credential,
                forced=self._invalidated,
                done=done,
            )

    def commit(self, ticket: RenewalTicket, credential: Credential) -> bool:
        """Install *credential* if the ticket's generation is still current.

        Args:
            ticket: The ticket from :meth:`begin_renewal`.
            credential: The freshly obtained credential.

        Returns:
            ``True`` if the credential was applied, ``False`` if another
            renewal already advanced the generation (the caller should
            re-read :meth:`current`).
        """
        with self._lock:
            applied = ticket.generation == self._generation
            if applied:
                self._credential = credential
                self._generation += 1
                self._invalidated = False
            self._release(ticket, None)
        return applied

    def abort(self, ticket: RenewalTicket, error: BaseException) -> None:
        """Give up a renewal and pass *error* on to every waiter."""
        with self._lock:
            self._release(ticket, error)

    def invalidate(self, generation: int) -> None:
        """Force the credential of *generation* to count as expired.

        Used when the backend says a token expired before our own clock
        did.  A no-op if the credential has already been replaced.
        """
        with self._lock:
            if generation == self._generation and self._credential is not None:
                self._invalidated = True

    def _release(self, ticket: RenewalTicket, error: Optional[BaseException]) -> None:
        done = ticket.done
        if done is None or done is not self._inflight:
            return
        self._inflight = None
        if not done.done():
            done.set_result(error)
