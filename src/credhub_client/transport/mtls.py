"""Mutual-TLS transport backed by a rotating instance certificate.

This module provides :class:`CertificateTransport`, which authenticates
every request with a client certificate and private key read from two PEM
files. Platforms that rotate instance identity (the files behind
``CF_INSTANCE_CERT`` / ``CF_INSTANCE_KEY``) replace those files before the
old certificate expires, so the transport reloads them whenever the loaded
certificate is within :attr:`CertificateTransport.RENEWAL_MARGIN` of its
``notAfter`` timestamp.

Each reload builds a fresh :class:`ssl.SSLContext` and a fresh
:class:`httpx.Client` around it. The new client and the new expiry are
installed together, so no request ever sees a half-updated TLS
configuration. Only one replaced client is kept open, until the following
reload or :meth:`close`, so that requests already in flight on it can
finish.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
from cryptography import x509

from credhub_client.exceptions import CredentialLoadError
from credhub_client.transport.base import AuthenticatedTransport

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ClientFactory = Callable[[ssl.SSLContext], httpx.Client]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CertificateTransport(AuthenticatedTransport):
    """Authenticate with a mutual-TLS client certificate.

    Args:
        cert_file: Path of the PEM file holding the leaf certificate (and
            optionally its chain).
        key_file: Path of the PEM file holding the private key.
        verify: ``True`` to verify the server against the system trust
            store, a path to a CA bundle, or ``False`` to skip verification.
        timeout: Request timeout in seconds.
        clock: Returns the current time as an aware datetime.
        client_factory: Builds the HTTP client around a freshly loaded SSL
            context. Defaults to a plain :class:`httpx.Client`.

    Missing paths are not rejected here; the first request fails with
    :class:`~credhub_client.exceptions.CredentialLoadError` instead.
    """

    RENEWAL_MARGIN = timedelta(minutes=1)

    def __init__(
        self,
        cert_file: Optional[Union[str, Path]],
        key_file: Optional[Union[str, Path]],
        *,
        verify: Union[bool, str] = True,
        timeout: float = 30.0,
        clock: Optional[Clock] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        super().__init__()
        self._cert_file = cert_file
        self._key_file = key_file
        self._verify = verify
        self._timeout = timeout
        self._clock = clock or _utcnow
        self._client_factory = client_factory or self._default_client
        self._client: Optional[httpx.Client] = None
        self._not_after: Optional[datetime] = None
        self._retired: Optional[httpx.Client] = None

    @property
    def not_after(self) -> Optional[datetime]:
        """Expiry of the currently installed certificate, if any."""
        return self._not_after

    def close(self) -> None:
        with self._lock:
            clients = [c for c in (self._retired, self._client) if c is not None]
            self._client = None
            self._not_after = None
            self._retired = None
        for client in clients:
            client.close()

    # ------------------------------------------------------------------ #
    # Strategy hooks
    # ------------------------------------------------------------------ #

    def _expired(self) -> bool:
        if self._client is None or self._not_after is None:
            return True
        return self._clock() + self.RENEWAL_MARGIN >= self._not_after

    def _renew(self) -> None:
        context, not_after = self._load_key_pair()
        client = self._client_factory(context)

        stale = self._retired
        self._retired = self._client
        self._client, self._not_after = client, not_after
        if stale is not None:
            stale.close()

        remaining = not_after - self._clock()
        logger.info(
            "Loaded client certificate from %s (expires %s, %ds remaining)",
            self._cert_file,
            not_after.isoformat(),
            remaining.total_seconds(),
        )

    def _bind(self, request: httpx.Request) -> httpx.Client:
        assert self._client is not None, "renewal must install a client"
        return self._client

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _load_key_pair(self) -> tuple[ssl.SSLContext, datetime]:
        """Load the key pair into a new SSL context and read the leaf expiry.

        Each file is read exactly once. The expiry is parsed from the same
        bytes that go into the context, so a rotation that lands mid-load
        cannot pair one certificate with another's ``notAfter``.

        Raises:
            CredentialLoadError: If either path is unset, a file is missing
                or malformed, or the key does not match the certificate.
        """
        if not self._cert_file or not self._key_file:
            raise CredentialLoadError(
                "Client certificate and key paths are not configured "
                "(set CF_INSTANCE_CERT and CF_INSTANCE_KEY)"
            )

        try:
            cert_pem = Path(self._cert_file).read_bytes()
            key_pem = Path(self._key_file).read_bytes()
        except OSError as exc:
            raise CredentialLoadError(
                f"Cannot load key pair from {self._cert_file} and {self._key_file}: {exc}"
            ) from exc

        try:
            leaf = x509.load_pem_x509_certificate(cert_pem)
        except ValueError as exc:
            raise CredentialLoadError(
                f"Cannot parse certificate in {self._cert_file}: {exc}"
            ) from exc

        try:
            context = self._new_ssl_context()
            _load_pem_into(context, cert_pem.rstrip(b"\n") + b"\n" + key_pem)
        except (OSError, ssl.SSLError) as exc:
            raise CredentialLoadError(
                f"Cannot load key pair from {self._cert_file} and {self._key_file}: {exc}"
            ) from exc

        return context, leaf.not_valid_after_utc

    def _new_ssl_context(self) -> ssl.SSLContext:
        if self._verify is False:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            return context
        if isinstance(self._verify, str):
            return ssl.create_default_context(cafile=self._verify)
        return ssl.create_default_context()

    def _default_client(self, context: ssl.SSLContext) -> httpx.Client:
        return httpx.Client(verify=context, timeout=self._timeout)


def _load_pem_into(context: ssl.SSLContext, pem: bytes) -> None:
    """Load a combined certificate-chain and key PEM into *context*.

    :meth:`ssl.SSLContext.load_cert_chain` only accepts paths, so the bytes
    go through a private (``0o600``) temporary file that is removed
    afterwards.
    """
    handle = tempfile.NamedTemporaryFile(prefix=".credhub-", suffix=".pem", delete=False)
    try:
        with handle:
            handle.write(pem)
        context.load_cert_chain(certfile=handle.name)
    finally:
        os.unlink(handle.name)
