"""keyway -- an authenticated request pipeline for secrets, monitoring and source-hosting APIs.

This package lets one process talk to several backends (a lease-based
secrets manager, a monitoring service using static API keys, and a
source-hosting platform using bearer tokens) through a single client
core.  The core keeps each client's credential fresh, renews it at most
once at a time no matter how many calls are in flight, re-authenticates
once when the backend says a token expired, and turns every response
into either a decoded value or a typed error.

Typical usage::

    from keyway.backends import VaultClient
    from keyway.models import LoginCredentials

    async with VaultClient(url, LoginCredentials(username="u", password="p")) as vault:
        data = await vault.read_secret("app/db")

Modules:
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration, profiles and credential sources.
    exceptions: Error taxonomy rooted at :class:`~keyway.exceptions.KeywayError`.
    output: stderr diagnostics with Rich support.
    transport: The network boundary, backed by httpx.
    auth: Authenticators and the credential store.
    client: The client core, request builder and response classifier.
    backends: Vault, Sensu and GitLab clients.
"""

__version__ = "0.1.0"
