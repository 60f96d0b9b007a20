"""Shared test fixtures for credhub_client.

Provides a controllable clock, on-disk mTLS key pairs generated with
``cryptography``, a minimal concrete transport for exercising the JSON
helpers and the façade, and isolation of config/env state. Fixtures are
discovered by pytest automatically.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from credhub_client.output import reset_output
from credhub_client.transport.base import AuthenticatedTransport

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr; CliRunner
    swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """A wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# mTLS key pairs
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def write_key_pair(tmp_path: Path, rsa_key: rsa.RSAPrivateKey):
    """Return a function that writes a self-signed cert/key pair to disk.

    The function takes the certificate's ``not_after`` and returns
    ``(cert_path, key_path)``. Pass ``key=`` to sign with a different key
    than the one written to the key file (a mismatched pair).
    """

    def _write(
        not_after: datetime,
        *,
        key: Optional[rsa.RSAPrivateKey] = None,
        name: str = "instance",
    ) -> tuple[Path, Path]:
        cert_key = key or rsa_key
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "app-instance")])
        certificate = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(cert_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_after - timedelta(days=1))
            .not_valid_after(not_after)
            .sign(cert_key, hashes.SHA256())
        )
        cert_path = tmp_path / f"{name}.crt"
        key_path = tmp_path / f"{name}.key"
        cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(
            rsa_key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.TraditionalOpenSSL,
                serialization.NoEncryption(),
            )
        )
        return cert_path, key_path

    return _write


# ---------------------------------------------------------------------------
# Minimal transport
# ---------------------------------------------------------------------------


class StaticTransport(AuthenticatedTransport):
    """Transport with a fixed credential, backed by an httpx.MockTransport.

    ``stale`` marks the credential as needing renewal on the next request;
    ``renew_error`` is raised from the renewal when set.
    """

    def __init__(self, handler: Handler) -> None:
        super().__init__()
        self.client = httpx.Client(transport=httpx.MockTransport(handler))
        self.stale = False
        self.renew_error: Optional[Exception] = None

    def close(self) -> None:
        self.client.close()

    def _expired(self) -> bool:
        return self.stale

    def _renew(self) -> None:
        if self.renew_error is not None:
            raise self.renew_error
        self.stale = False

    def _bind(self, request: httpx.Request) -> httpx.Client:
        request.headers["Authorization"] = "Bearer static"
        return self.client


@pytest.fixture
def static_transport():
    """Return a factory building a :class:`StaticTransport` around a handler."""
    created: list[StaticTransport] = []

    def _make(handler: Handler) -> StaticTransport:
        transport = StaticTransport(handler)
        created.append(transport)
        return transport

    yield _make
    for transport in created:
        transport.close()


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG directories at ``tmp_path`` and clears every environment
    variable the client reads.
    """
    monkeypatch.setattr("credhub_client.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "CREDHUB_URL",
        "CREDHUB_CLIENT",
        "CREDHUB_SECRET",
        "CREDHUB_SKIP_TLS_VALIDATION",
        "CF_INSTANCE_CERT",
        "CF_INSTANCE_KEY",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
