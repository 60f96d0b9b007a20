"""credhub_client -- client library and CLI for a CredHub-style secret store.

The library exposes find/get/set/delete operations over the service's
REST/JSON API. Authentication is handled underneath by a pluggable
transport that attaches credentials to every request and renews them
before they expire: either the platform's mutual-TLS instance identity or
OAuth2 client-credentials tokens.

Typical usage::

    from credhub_client import new_client
    from credhub_client.config import resolve_options

    with new_client(resolve_options()) as credhub:
        for entry in credhub.find_by_path("/concourse/main").credentials:
            print(entry.name)

Modules:
    client: The :class:`CredhubClient` façade and :func:`new_client`.
    transport: Authenticated transports and JSON round-trip helpers.
    models: Pydantic models for options, wire documents, and tokens.
    config: Option resolution from flags, environment, and config file.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

from credhub_client.client import CredhubClient, new_client
from credhub_client.models import ClientOptions

__version__ = "0.1.0"

__all__ = ["ClientOptions", "CredhubClient", "new_client", "__version__"]
