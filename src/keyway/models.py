"""Canonical Pydantic models shared across all keyway modules.

The models fall into two groups:

**Pipeline models** -- created and consumed while a call is in flight:
    :class:`BackendKind`, :class:`Endpoint`, :class:`LoginCredentials`,
    :class:`Credential`, :class:`CredentialState`, :class:`ResponseShape`
    and :class:`Operation`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`AuthConfig`, :class:`RequestConfig` and :class:`ClientProfile`.

All models use Pydantic v2.  Pipeline models that must not change after
construction are frozen.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Pipeline models ---


class BackendKind(str, enum.Enum):
    """The closed set of backends the pipeline knows how to talk to."""

    VAULT = "vault"
    SENSU = "sensu"
    GITLAB = "gitlab"


class Endpoint(BaseModel):
    """Base URL plus backend identity tag.  Immutable once a client is built."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(description="Root URL that relative operation paths are joined to")
    backend: BackendKind


class LoginCredentials(BaseModel):
    """Secret material an authenticator exchanges for a :class:`Credential`.

    Exactly one of the following shapes is expected:

    * nothing set -- no authentication;
    * ``api_key`` -- a pre-issued key or token;
    * ``username`` + ``password`` -- a login exchange;
    * ``username`` + ``password`` + ``passcode`` -- login with two-factor.

    Example::

        LoginCredentials(username="deploy", password="s3cret")
    """

    model_config = ConfigDict(frozen=True)

    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    passcode: Optional[str] = Field(default=None, repr=False)
    api_key: Optional[str] = Field(default=None, repr=False)

    @property
    def is_empty(self) -> bool:
        return not (self.api_key or self.username or self.password)

    @property
    def has_user_pass(self) -> bool:
        return bool(self.username) and self.password is not None


class CredentialState(str, enum.Enum):
    """Lifecycle state of the credential held by a store."""

    FRESH = "fresh"
    EXPIRED = "expired"
    ABSENT = "absent"


class Credential(BaseModel):
    """Authentication material produced by an authenticator.

    Attributes:
        token: The opaque token or key sent with each request.
        issued_at: When the credential was obtained or last renewed.
        expires_at: UTC expiry instant.  ``None`` means the credential never
            expires.
        lease_id: Optional renewal handle for lease-based backends.
        renewable: Whether the backend said this credential may be renewed.
        metadata: Backend-specific context (policies, token type, ...).
    """

    model_config = ConfigDict(frozen=True)

    token: str = Field(repr=False)
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    lease_id: Optional[str] = None
    renewable: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    def is_fresh(self, now: datetime, skew: timedelta) -> bool:
        """Return ``True`` if the credential is usable at *now*.

        The credential counts as expired *skew* before its real deadline.
        The margin is capped at half the credential's lifetime so that short
        leases are still usable right after they are issued.
        """
        if self.expires_at is None:
            return True
        margin = skew
        if self.issued_at is not None:
            margin = min(skew, (self.expires_at - self.issued_at) / 2)
        return now < self.expires_at - margin


class ResponseShape(str, enum.Enum):
    """Shape a successful response body is expected to decode to."""

    OBJECT = "object"
    LIST = "list"
    ANY = "any"
    EMPTY = "empty"


class Operation(BaseModel):
    """One logical API call: method, relative path, optional body and params.

    Created per call and consumed immediately by the request builder.

    Example::

        Operation(method="GET", path="/v1/secret/app", expect=ResponseShape.OBJECT)
    """

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    body: Optional[Any] = None
    params: dict[str, Any] = Field(default_factory=dict)
    expect: ResponseShape = ResponseShape.ANY


# --- Configuration models ---


class AuthConfig(BaseModel):
    """Authentication section of a :class:`ClientProfile`.

    Every secret is given as a credential *source* (``env:VAR``,
    ``file:/path`` or ``prompt``) and resolved by
    :func:`keyway.config.resolve_credential` at client construction.
    """

    model_config = ConfigDict(extra="allow")

    username: Optional[str] = Field(default=None, description="Login name for user/pass backends")
    password_source: Optional[str] = Field(
        default=None, description="Credential source for the password"
    )
    passcode_source: Optional[str] = Field(
        default=None, description="Credential source for a two-factor passcode"
    )
    api_key_source: Optional[str] = Field(
        default=None, description="Credential source for a static key or pre-issued token"
    )
    login_method: str = Field(
        default="ldap", description="Vault auth method mount used for login"
    )


class RequestConfig(BaseModel):
    """HTTP settings applied to every call made by a client."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    expiry_skew: float = Field(
        default=30.0,
        description="Seconds before expiry at which a credential is treated as expired",
    )


class ClientProfile(BaseModel):
    """Per-backend profile stored as JSON under the ``profiles/`` config directory."""

    model_config = ConfigDict(extra="allow")

    name: str
    backend: BackendKind
    base_url: str
    auth: AuthConfig = Field(default_factory=AuthConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(base_url=self.base_url, backend=self.backend)
