"""Credential-store API façade.

:class:`CredhubClient` maps the service's REST endpoints onto Python
methods. It holds no authentication logic of its own: every request goes
through the :class:`~credhub_client.transport.base.AuthenticatedTransport`
it was built with and through the JSON helpers in
:mod:`credhub_client.transport.json_io`.

:func:`new_client` picks the transport: OAuth2 client credentials when a
client id and secret are configured, the platform's mTLS instance identity
otherwise.

Example::

    from credhub_client import ClientOptions, new_client

    with new_client(ClientOptions(client="app", secret="s3cr3t")) as credhub:
        password = credhub.get_by_name("/concourse/main/db-password")
        if password is not None:
            print(password.value)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional
from urllib.parse import quote

import httpx

from credhub_client.config import ENV_INSTANCE_CERT, ENV_INSTANCE_KEY
from credhub_client.exceptions import NotFoundError
from credhub_client.models import (
    ClientOptions,
    Credential,
    CredentialNames,
    CredentialRequest,
    Credentials,
)
from credhub_client.transport.base import AuthenticatedTransport
from credhub_client.transport.json_io import fetch_json, put_json_and_fetch, send_and_discard
from credhub_client.transport.mtls import CertificateTransport
from credhub_client.transport.uaa import TokenTransport

logger = logging.getLogger(__name__)

FIND_BY_PATH_ENDPOINT = "{url}/api/v1/data?path={path}"
FIND_BY_NAME_ENDPOINT = "{url}/api/v1/data?name-like={name}"
GET_BY_NAME_ENDPOINT = "{url}/api/v1/data?name={name}&current=true"
GET_BY_ID_ENDPOINT = "{url}/api/v1/data/{id}"
SET_BY_NAME_ENDPOINT = "{url}/api/v1/data"
DELETE_BY_NAME_ENDPOINT = "{url}/api/v1/data?name={name}"

JsonObject = dict[str, Any]


def _escape(value: str) -> str:
    return quote(value, safe="")


class CredhubClient:
    """Find, read, write, and delete credentials.

    Lookups by name or id return ``None`` when the credential does not
    exist, so callers can branch on presence; every other failure raises a
    :class:`~credhub_client.exceptions.CredhubError`.

    Args:
        url: Service base URL without a trailing slash.
        transport: Authenticated transport used for every request. The
            client closes it on :meth:`close`.
    """

    def __init__(self, url: str, transport: AuthenticatedTransport) -> None:
        self.url = url
        self.transport = transport

    def __enter__(self) -> CredhubClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def find_by_path(self, path_prefix: str) -> CredentialNames:
        """List credentials whose name starts with the path *path_prefix*."""
        url = FIND_BY_PATH_ENDPOINT.format(url=self.url, path=_escape(path_prefix))
        return fetch_json(self.transport, url, CredentialNames)

    def find_by_name(self, name_prefix: str) -> CredentialNames:
        """List credentials whose name contains *name_prefix*."""
        url = FIND_BY_NAME_ENDPOINT.format(url=self.url, name=_escape(name_prefix))
        return fetch_json(self.transport, url, CredentialNames)

    # ------------------------------------------------------------------ #
    # Lookup by name
    # ------------------------------------------------------------------ #

    def get_by_name(self, name: str) -> Optional[Credential[Any]]:
        """Return the current version of credential *name*, or ``None``."""
        return self._current_by_name(name, Credentials[Any])

    def get_json_credential_by_name(self, name: str) -> Optional[Credential[JsonObject]]:
        """Return the current version of ``json`` credential *name*, or ``None``."""
        return self._current_by_name(name, Credentials[JsonObject])

    def get_json_by_name(self, name: str) -> Optional[JsonObject]:
        """Return only the value of ``json`` credential *name*, or ``None``."""
        credential = self.get_json_credential_by_name(name)
        return None if credential is None else credential.value

    # ------------------------------------------------------------------ #
    # Lookup by id
    # ------------------------------------------------------------------ #

    def get_by_id(self, id: str) -> Optional[Credential[Any]]:
        """Return the credential version with *id*, or ``None``."""
        return self._version_by_id(id, Credential[Any])

    def get_json_credential_by_id(self, id: str) -> Optional[Credential[JsonObject]]:
        return self._version_by_id(id, Credential[JsonObject])

    def get_json_by_id(self, id: str) -> Optional[JsonObject]:
        credential = self.get_json_credential_by_id(id)
        return None if credential is None else credential.value

    # ------------------------------------------------------------------ #
    # Write
    # ------------------------------------------------------------------ #

    def set_by_name(self, credential_type: str, name: str, value: Any) -> Credential[Any]:
        """Create or overwrite credential *name* with a value of *credential_type*.

        Args:
            credential_type: Service credential type (``value``, ``json``,
                ``password``, ``user``, ``certificate``, ...).
            name: Full credential name.
            value: JSON-serialisable value.

        Returns:
            The newly written credential version.

        Raises:
            EncodeError: *value* cannot be serialised to JSON.
        """
        request = CredentialRequest(name=name, type=credential_type, value=value)
        url = SET_BY_NAME_ENDPOINT.format(url=self.url)
        return put_json_and_fetch(self.transport, url, request, Credential[Any])

    def set_json_by_name(self, name: str, value: JsonObject) -> Credential[JsonObject]:
        request = CredentialRequest(name=name, type="json", value=value)
        url = SET_BY_NAME_ENDPOINT.format(url=self.url)
        return put_json_and_fetch(self.transport, url, request, Credential[JsonObject])

    def delete_by_name(self, name: str) -> None:
        """Delete every version of credential *name*."""
        url = DELETE_BY_NAME_ENDPOINT.format(url=self.url, name=_escape(name))
        send_and_discard(self.transport, httpx.Request("DELETE", url))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _current_by_name(self, name: str, shape: Any) -> Optional[Credential[Any]]:
        url = GET_BY_NAME_ENDPOINT.format(url=self.url, name=_escape(name))
        try:
            credentials = fetch_json(self.transport, url, shape)
        except NotFoundError:
            logger.debug("Credential %s does not exist", name)
            return None
        if not credentials.data:
            logger.debug("Credential %s has no current version", name)
            return None
        return credentials.data[0]

    def _version_by_id(self, id: str, shape: Any) -> Optional[Credential[Any]]:
        url = GET_BY_ID_ENDPOINT.format(url=self.url, id=_escape(id))
        try:
            return fetch_json(self.transport, url, shape)
        except NotFoundError:
            logger.debug("Credential version %s does not exist", id)
            return None


def new_client(options: Optional[ClientOptions] = None) -> CredhubClient:
    """Build a :class:`CredhubClient` with the transport *options* call for.

    Args:
        options: Effective options. ``None`` means all defaults, which
            selects the mTLS strategy against the platform-internal URL.

    Returns:
        A ready client. With client credentials, the authorization server
        has already been discovered and a first token acquired.

    Raises:
        DiscoveryError: Token strategy only; the info endpoint failed.
        AuthConfigError: Token strategy only; malformed token source inputs.
        AuthenticationError: Token strategy only; the first token request failed.
    """
    if options is None:
        options = ClientOptions()

    transport: AuthenticatedTransport
    if options.uses_client_credentials:
        logger.debug("Using OAuth2 client credentials for %s", options.url)
        transport = TokenTransport(
            options.url,
            options.client or "",
            options.secret or "",
            verify=not options.skip_tls_validation,
            timeout=options.timeout,
        )
    else:
        logger.debug("Using mTLS instance identity for %s", options.url)
        transport = CertificateTransport(
            options.cert_file or os.environ.get(ENV_INSTANCE_CERT),
            options.key_file or os.environ.get(ENV_INSTANCE_KEY),
            timeout=options.timeout,
        )
    return CredhubClient(options.url, transport)
