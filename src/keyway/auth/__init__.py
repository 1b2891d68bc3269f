"""Authentication for keyway clients.

This package provides the session side of the request pipeline:

- :class:`Authenticator` -- abstract base class for session schemes, with
  three implementations: :class:`LeaseAuthenticator` (renewable leases),
  :class:`StaticKeyAuthenticator` (static API keys) and
  :class:`BearerLoginAuthenticator` (password grant for a bearer token).
- :class:`AuthResult` -- the headers/params/cookies that carry a credential.
- :class:`CredentialStore` -- per-client credential holder with
  single-flight, compare-and-commit renewal.

Typical usage::

    from keyway.auth import LeaseAuthenticator

    authenticator = LeaseAuthenticator(endpoint, login_method="userpass")
    credential = await authenticator.authenticate(credentials, transport)
"""

from keyway.auth.base import AuthResult, Authenticator
from keyway.auth.bearer import BearerLoginAuthenticator
from keyway.auth.credential_store import (
    Busy,
    CredentialStore,
    CredentialView,
    RenewalTicket,
)
from keyway.auth.lease import LeaseAuthenticator
from keyway.auth.static_key import StaticKeyAuthenticator

__all__ = [
    "AuthResult",
    "Authenticator",
    "BearerLoginAuthenticator",
    "Busy",
    "CredentialStore",
    "CredentialView",
    "LeaseAuthenticator",
    "RenewalTicket",
    "StaticKeyAuthenticator",
]
