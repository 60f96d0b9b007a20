"""Authenticated HTTP transports and the JSON helpers built on them.

- :class:`AuthenticatedTransport` -- abstract "send this request with fresh
  credentials" capability.
- :class:`CertificateTransport` -- mutual-TLS instance identity, reloaded
  from disk a minute before the certificate expires.
- :class:`TokenTransport` -- OAuth2 client-credentials bearer tokens from
  the authorization server advertised by the service's ``/info`` endpoint.
- :func:`fetch_json` / :func:`put_json_and_fetch` -- typed JSON round trips
  that always release the response.
"""

from credhub_client.transport.base import AuthenticatedTransport
from credhub_client.transport.json_io import fetch_json, put_json_and_fetch, send_and_discard
from credhub_client.transport.mtls import CertificateTransport
from credhub_client.transport.uaa import TokenTransport, discover_service_info

__all__ = [
    "AuthenticatedTransport",
    "CertificateTransport",
    "TokenTransport",
    "discover_service_info",
    "fetch_json",
    "put_json_and_fetch",
    "send_and_discard",
]
