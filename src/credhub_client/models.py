"""Canonical Pydantic models shared across all credhub_client modules.

The models fall into three groups:

**Configuration models** -- the client's configuration surface:
    :class:`ClientOptions` (effective, fully-resolved options) and
    :class:`ClientConfig` (the on-disk config file, holding credential
    *sources* rather than raw secrets).

**Wire models** -- JSON documents exchanged with the service:
    :class:`ServiceInfo`, :class:`CredentialNames`, :class:`Credential`,
    :class:`Credentials`, and :class:`CredentialRequest`. ``Credential`` and
    ``Credentials`` are generic over the type of the credential value so
    that a single decode primitive can produce ``Credential[Any]`` or
    ``Credential[dict[str, Any]]``.

**Token model** -- :class:`BearerToken`, the in-memory representation of
an OAuth2 access token together with its validity rules.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, ClassVar, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_URL = "https://credhub.service.cf.internal:8844"

ValueT = TypeVar("ValueT")


# --- Configuration ---


class ClientOptions(BaseModel):
    """Effective options used to build a :class:`~credhub_client.client.CredhubClient`.

    Supplying both ``client`` and ``secret`` selects the OAuth2
    client-credentials strategy; otherwise the client authenticates with
    the mTLS instance identity found at ``cert_file`` / ``key_file``.

    Example::

        ClientOptions(url="https://credhub.example.com:8844/", client="app", secret="s3cr3t")
    """

    url: str = Field(default=DEFAULT_URL, description="Base URL of the service")
    client: Optional[str] = Field(default=None, description="OAuth2 client id")
    secret: Optional[str] = Field(default=None, description="OAuth2 client secret")
    skip_tls_validation: bool = Field(
        default=False, description="Disable TLS verification (token strategy)"
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    cert_file: Optional[str] = Field(
        default=None, description="PEM file holding the mTLS client certificate"
    )
    key_file: Optional[str] = Field(
        default=None, description="PEM file holding the mTLS private key"
    )

    @field_validator("url", mode="before")
    @classmethod
    def _normalise_url(cls, value: Any) -> Any:
        if not value:
            return DEFAULT_URL
        if isinstance(value, str) and value.endswith("/"):
            return value[:-1]
        return value

    @property
    def uses_client_credentials(self) -> bool:
        """Whether both halves of the client id/secret pair are present."""
        return bool(self.client) and bool(self.secret)


class ClientConfig(BaseModel):
    """User configuration persisted at ``~/.config/credhub-client/config.json``.

    Every field is optional; unset fields fall through to defaults in
    :func:`~credhub_client.config.resolve_options`. Client id and secret are
    stored as *sources* (``env:VAR``, ``file:/path``, ``prompt``) and
    resolved at runtime by :func:`~credhub_client.config.resolve_credential`.
    """

    url: Optional[str] = None
    client_source: Optional[str] = None
    secret_source: Optional[str] = None
    skip_tls_validation: Optional[bool] = None
    timeout: Optional[float] = None


# --- Wire models ---


class AuthServerInfo(BaseModel):
    url: str


class AppInfo(BaseModel):
    name: str = ""


class ServiceInfo(BaseModel):
    """Document served by the unauthenticated ``GET {url}/info`` endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    auth_server: AuthServerInfo = Field(alias="auth-server")
    app: AppInfo = Field(default_factory=AppInfo)


class CredentialName(BaseModel):
    name: str
    version_created_at: Optional[datetime] = None


class CredentialNames(BaseModel):
    """Result of a path-prefix or name-prefix search."""

    credentials: list[CredentialName] = Field(default_factory=list)


class Credential(BaseModel, Generic[ValueT]):
    """A single version of a stored credential.

    Parameterise with the expected value shape, e.g.
    ``Credential[dict[str, Any]]`` for ``json`` credentials.
    """

    id: Optional[str] = None
    name: str
    type: str = ""
    version_created_at: Optional[datetime] = None
    value: ValueT
    metadata: Optional[dict[str, Any]] = None


class Credentials(BaseModel, Generic[ValueT]):
    """Wrapper returned by name lookups; ``data`` is empty when nothing matches."""

    data: list[Credential[ValueT]] = Field(default_factory=list)


class CredentialRequest(BaseModel):
    """Body of the create-or-update (``PUT``) request."""

    name: str
    type: str
    value: Any
    metadata: Optional[dict[str, Any]] = None


# --- Token ---


class BearerToken(BaseModel):
    """An OAuth2 access token with its expiry.

    ``expiry`` is ``None`` when the authorization server did not report a
    lifetime, in which case the token never expires locally. A token is
    treated as expired :attr:`EXPIRY_DELTA` before its reported expiry to
    absorb clock skew between this host and the authorization server.
    """

    EXPIRY_DELTA: ClassVar[timedelta] = timedelta(seconds=10)

    access_token: str
    token_type: str = "bearer"
    expiry: Optional[datetime] = None

    def valid(self, now: datetime) -> bool:
        """Return whether the token can be attached to a request issued at *now*."""
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        return now + self.EXPIRY_DELTA < self.expiry

    @property
    def scheme(self) -> str:
        """Authorization scheme derived from ``token_type``."""
        lowered = self.token_type.lower()
        if lowered in ("", "bearer"):
            return "Bearer"
        if lowered == "mac":
            return "MAC"
        if lowered == "basic":
            return "Basic"
        return self.token_type

    def authorization_header(self) -> str:
        return f"{self.scheme} {self.access_token}"
