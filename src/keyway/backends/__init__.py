"""Backend clients built on the keyway request pipeline.

Each backend pairs a :class:`~keyway.backends.base.Backend` (error
envelope, token-expiry signature, pagination) with one authenticator:

=========  ==========================  ===============================
Backend    Client                      Authenticator
=========  ==========================  ===============================
vault      :class:`VaultClient`        lease (renewable tokens)
sensu      :class:`SensuClient`        static API key
gitlab     :class:`GitlabClient`       bearer token via password grant
=========  ==========================  ===============================

:func:`create_client` builds the right client from a saved
:class:`~keyway.models.ClientProfile`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from keyway.auth.credential_store import utcnow
from keyway.backends.base import Backend
from keyway.backends.gitlab import GitlabBackend, GitlabClient
from keyway.backends.sensu import SensuBackend, SensuClient
from keyway.backends.vault import VaultBackend, VaultClient
from keyway.client.async_client import AsyncClient
from keyway.config import build_login_credentials
from keyway.models import BackendKind, ClientProfile
from keyway.transport import Transport

CLIENTS: dict[BackendKind, Callable[..., AsyncClient]] = {
    BackendKind.VAULT: VaultClient,
    BackendKind.SENSU: SensuClient,
    BackendKind.GITLAB: GitlabClient,
}


def create_client(
    profile: ClientProfile,
    transport: Optional[Transport] = None,
    clock: Callable[[], datetime] = utcnow,
) -> AsyncClient:
    """Build the client for *profile*, resolving its credential sources.

    Args:
        profile: The backend profile.
        transport: Optional transport override (tests, custom TLS).
        clock: Returns the current time.

    Raises:
        ConfigError: If a credential source cannot be resolved.
    """
    options: dict[str, Any] = {
        "credentials": build_login_credentials(profile.auth),
        "transport": transport,
        "request_config": profile.request,
        "clock": clock,
    }
    if profile.backend is BackendKind.VAULT:
        options["login_method"] = profile.auth.login_method
    return CLIENTS[profile.backend](profile.base_url, **options)


__all__ = [
    "CLIENTS",
    "Backend",
    "GitlabBackend",
    "GitlabClient",
    "SensuBackend",
    "SensuClient",
    "VaultBackend",
    "VaultClient",
    "create_client",
]
