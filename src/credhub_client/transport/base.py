"""Abstract base class for authenticated transports.

An :class:`AuthenticatedTransport` performs one HTTP request and returns
the raw :class:`httpx.Response`, attaching credentials to it and renewing
those credentials first when they are stale. Callers never see the
authentication step.

Two concrete strategies exist:

- :class:`~credhub_client.transport.mtls.CertificateTransport` --
  mutual-TLS client certificate reloaded from disk before it expires.
- :class:`~credhub_client.transport.uaa.TokenTransport` -- OAuth2
  client-credentials bearer token re-acquired when invalid.

Subclasses implement :meth:`~AuthenticatedTransport._expired`,
:meth:`~AuthenticatedTransport._renew` and
:meth:`~AuthenticatedTransport._bind`. The base class runs the three of
them as one check-then-renew-then-bind sequence under a per-instance lock,
so concurrent callers that all observe a stale credential trigger a single
renewal and all dispatch with its result. Dispatch itself runs outside the
lock on the shared connection pool.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

import httpx

from credhub_client.exceptions import TransportError

logger = logging.getLogger(__name__)


class AuthenticatedTransport(ABC):
    """Perform HTTP requests with transparently renewed credentials.

    Responses are returned unread (``stream=True``); the caller owns the
    response and must close it. The JSON helpers in
    :mod:`credhub_client.transport.json_io` do this on every exit path.

    Example::

        with TokenTransport(url, "client", "secret") as transport:
            response = transport.execute(httpx.Request("GET", f"{url}/api/v1/data?path=/"))
            try:
                print(response.read())
            finally:
                response.close()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.renewals = 0

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> AuthenticatedTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def execute(self, request: httpx.Request) -> httpx.Response:
        """Send *request* after making sure the credential is fresh.

        Args:
            request: A fully-built request. Its headers may be modified to
                carry credentials.

        Returns:
            The unread :class:`httpx.Response`.

        Raises:
            CredentialLoadError: The certificate could not be reloaded.
            AuthenticationError: A token could not be re-acquired.
            TransportError: The request could not be delivered.
        """
        with self._lock:
            if self._expired():
                logger.debug("%s credential is stale, renewing", type(self).__name__)
                self._renew()
                self.renewals += 1
            client = self._bind(request)

        try:
            return client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{request.method} {request.url} failed: {exc}"
            ) from exc

    @abstractmethod
    def close(self) -> None:
        """Release pooled connections held by this transport."""
        ...

    # ------------------------------------------------------------------ #
    # Strategy hooks (always called with the lock held)
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _expired(self) -> bool:
        """Return whether the current credential must be renewed before use."""
        ...

    @abstractmethod
    def _renew(self) -> None:
        """Replace the current credential.

        Must either install the new credential completely or raise and
        leave the previous state untouched.
        """
        ...

    @abstractmethod
    def _bind(self, request: httpx.Request) -> httpx.Client:
        """Attach the current credential to *request* and return the client to send it with."""
        ...
