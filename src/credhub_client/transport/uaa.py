"""OAuth2 client-credentials transport backed by a UAA authorization server.

This module provides :class:`TokenTransport`, which authenticates every
request with an ``Authorization`` header carrying a bearer token obtained
through the OAuth2 Client Credentials grant (:rfc:`6749` section 4.4).

The authorization server is not configured directly. It is discovered
once, at construction, from the service's unauthenticated ``/info``
document (see :func:`discover_service_info`). The transport then acquires
a JWT-formatted token right away, so construction fails fast on bad
client credentials, and re-acquires one whenever the held token is no
longer valid according to :meth:`~credhub_client.models.BearerToken.valid`.

Unlike :class:`~credhub_client.transport.mtls.CertificateTransport`, no
renewal margin is added on top of the token's own clock-skew allowance.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from credhub_client.exceptions import (
    AuthConfigError,
    AuthenticationError,
    CredhubError,
    DiscoveryError,
)
from credhub_client.models import BearerToken, ServiceInfo
from credhub_client.transport.base import AuthenticatedTransport
from credhub_client.transport.json_io import JSON_MEDIA_TYPE, read_json

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TOKEN_FORMAT = "jwt"
TOKEN_PATH = "/oauth/token"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def discover_service_info(client: httpx.Client, base_url: str) -> ServiceInfo:
    """Fetch and decode ``GET {base_url}/info`` without credentials.

    Args:
        client: Plain HTTP client used for the lookup.
        base_url: Service base URL without a trailing slash.

    Returns:
        The decoded :class:`~credhub_client.models.ServiceInfo`.

    Raises:
        DiscoveryError: If the endpoint is unreachable, answers with an
            error status, or returns a document without an auth server URL.
    """
    url = f"{base_url}/info"
    request = httpx.Request("GET", url, headers={"Accept": JSON_MEDIA_TYPE})
    try:
        response = client.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise DiscoveryError(f"Service info endpoint {url} is unreachable: {exc}") from exc

    try:
        info: ServiceInfo = read_json(response, ServiceInfo)
    except CredhubError as exc:
        raise DiscoveryError(f"Cannot read service info from {url}: {exc}") from exc

    logger.debug("Discovered authorization server %s", info.auth_server.url)
    return info


class TokenTransport(AuthenticatedTransport):
    """Authenticate with OAuth2 client-credentials bearer tokens.

    Args:
        base_url: Service base URL without a trailing slash; used to
            discover the authorization server.
        client_id: OAuth2 client id.
        client_secret: OAuth2 client secret.
        verify: ``False`` disables TLS verification for discovery, token
            acquisition, and requests; a string names a CA bundle.
        timeout: Timeout in seconds for every HTTP exchange, including
            token acquisition.
        clock: Returns the current time as an aware datetime.
        http_client: Pre-built client to use instead of creating one. The
            transport closes it on :meth:`close` either way.

    Raises:
        DiscoveryError: The info endpoint could not be used.
        AuthConfigError: The discovered URL or the client credentials are
            malformed.
        AuthenticationError: The initial token could not be acquired.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        *,
        verify: bool | str = True,
        timeout: float = 30.0,
        clock: Optional[Clock] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__()
        self._clock = clock or _utcnow
        self._client = http_client or httpx.Client(verify=verify, timeout=timeout)
        self._token: Optional[BearerToken] = None

        try:
            self.info = discover_service_info(self._client, base_url)
            self._token_url = self._token_endpoint(
                self.info.auth_server.url, client_id, client_secret
            )
            self._client_id = client_id
            self._client_secret = client_secret
            with self._lock:
                self._renew()
        except BaseException:
            self._client.close()
            raise

    @property
    def token(self) -> Optional[BearerToken]:
        """The currently held token."""
        return self._token

    def close(self) -> None:
        with self._lock:
            self._client.close()

    # ------------------------------------------------------------------ #
    # Strategy hooks
    # ------------------------------------------------------------------ #

    def _expired(self) -> bool:
        return self._token is None or not self._token.valid(self._clock())

    def _renew(self) -> None:
        self._token = self._fetch_token()
        logger.info(
            "Acquired %s token from %s (expires %s)",
            self._token.scheme,
            self._token_url,
            self._token.expiry.isoformat() if self._token.expiry else "never",
        )

    def _bind(self, request: httpx.Request) -> httpx.Client:
        assert self._token is not None, "renewal must install a token"
        request.headers["Authorization"] = self._token.authorization_header()
        return self._client

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _token_endpoint(auth_server_url: str, client_id: str, client_secret: str) -> str:
        """Validate the token source inputs and return the token endpoint URL."""
        if not client_id:
            raise AuthConfigError("OAuth2 client_credentials requires a client id")
        if not client_secret:
            raise AuthConfigError("OAuth2 client_credentials requires a client secret")
        try:
            url = httpx.URL(auth_server_url)
        except (httpx.InvalidURL, TypeError) as exc:
            raise AuthConfigError(
                f"Invalid authorization server URL '{auth_server_url}': {exc}"
            ) from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise AuthConfigError(
                f"Authorization server URL must be absolute http(s): '{auth_server_url}'"
            )
        return auth_server_url.rstrip("/") + TOKEN_PATH

    def _fetch_token(self) -> BearerToken:
        """POST to the token endpoint and build a :class:`BearerToken`.

        Raises:
            AuthenticationError: If the server is unreachable, rejects the
                request, or answers without ``access_token``.
        """
        data = {
            "grant_type": "client_credentials",
            "token_format": TOKEN_FORMAT,
            "response_type": "token",
        }
        requested_at = self._clock()
        try:
            response = self._client.post(
                self._token_url,
                data=data,
                auth=(self._client_id, self._client_secret),
                headers={"Accept": JSON_MEDIA_TYPE},
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"Token request failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Token request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(f"Token response is not valid JSON: {exc}") from exc

        if not isinstance(token_data, dict) or not token_data.get("access_token"):
            raise AuthenticationError("Token response missing 'access_token' field")

        expiry: Optional[datetime] = None
        expires_in = token_data.get("expires_in")
        if expires_in is not None:
            try:
                expiry = requested_at + timedelta(seconds=float(expires_in))
            except (TypeError, ValueError) as exc:
                raise AuthenticationError(
                    f"Token response has invalid 'expires_in': {expires_in!r}"
                ) from exc

        return BearerToken(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type") or "bearer",
            expiry=expiry,
        )
