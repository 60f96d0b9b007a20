"""Configuration resolution with XDG paths, a JSON config file, and env overrides.

This module is the boundary where the client reads its environment:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.credhub-client/`` on macOS and Windows. See :func:`get_config_dir`
  and :func:`get_data_dir`.
* **Config file** -- an optional :class:`~credhub_client.models.ClientConfig`
  JSON document, loaded by :func:`load_client_config`.
* **Precedence resolution** -- :func:`resolve_options` merges CLI flags,
  environment variables, the config file, and defaults into a
  :class:`~credhub_client.models.ClientOptions`.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or an interactive prompt.

The mTLS instance identity paths (``CF_INSTANCE_CERT`` / ``CF_INSTANCE_KEY``)
are read here and handed to the transport explicitly.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
from pathlib import Path
from typing import Optional

from credhub_client.exceptions import ConfigError
from credhub_client.models import ClientConfig, ClientOptions

_APP_NAME = "credhub-client"
_CONFIG_FILENAME = "config.json"

ENV_URL = "CREDHUB_URL"
ENV_CLIENT = "CREDHUB_CLIENT"
ENV_SECRET = "CREDHUB_SECRET"
ENV_SKIP_TLS_VALIDATION = "CREDHUB_SKIP_TLS_VALIDATION"
ENV_INSTANCE_CERT = "CF_INSTANCE_CERT"
ENV_INSTANCE_KEY = "CF_INSTANCE_KEY"

_TRUTHY = {"1", "true", "yes", "on"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/credhub-client/`` (default
    ``~/.config/credhub-client/``). On macOS/Windows: ``~/.credhub-client/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/credhub-client/`` (default
    ``~/.local/share/credhub-client/``). On macOS/Windows:
    ``~/.credhub-client/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Config file ---


def config_file_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_client_config() -> ClientConfig:
    """Load the config file from the XDG config directory.

    Returns:
        The deserialised :class:`~credhub_client.models.ClientConfig`. If the
        file does not exist, an empty instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_file_path()
    if not path.is_file():
        return ClientConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")


# --- Precedence resolution ---


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUTHY


def resolve_options(
    cli_url: Optional[str] = None,
    cli_client: Optional[str] = None,
    cli_secret: Optional[str] = None,
    cli_skip_tls_validation: Optional[bool] = None,
    cli_timeout: Optional[float] = None,
) -> ClientOptions:
    """Resolve the effective client options.

    Precedence (high to low):
        1. CLI flags (``cli_*`` arguments)
        2. Environment variables (``CREDHUB_URL``, ``CREDHUB_CLIENT``,
           ``CREDHUB_SECRET``, ``CREDHUB_SKIP_TLS_VALIDATION``)
        3. Config file (``~/.config/credhub-client/config.json``)
        4. Defaults

    The certificate and key paths always come from ``CF_INSTANCE_CERT`` and
    ``CF_INSTANCE_KEY``. Credential sources in the config file are only
    resolved when no higher-precedence value is present.

    Raises:
        ConfigError: If the config file is invalid or a configured credential
            source cannot be resolved.
    """
    file_cfg = load_client_config()

    url = cli_url or os.environ.get(ENV_URL) or file_cfg.url

    client = cli_client or os.environ.get(ENV_CLIENT)
    if not client and file_cfg.client_source:
        client = resolve_credential(file_cfg.client_source)

    secret = cli_secret or os.environ.get(ENV_SECRET)
    if not secret and file_cfg.secret_source:
        secret = resolve_credential(file_cfg.secret_source)

    skip_tls = cli_skip_tls_validation
    if skip_tls is None:
        skip_tls = _env_flag(ENV_SKIP_TLS_VALIDATION)
    if skip_tls is None:
        skip_tls = bool(file_cfg.skip_tls_validation)

    extra: dict[str, float] = {}
    timeout = cli_timeout if cli_timeout is not None else file_cfg.timeout
    if timeout is not None:
        extra["timeout"] = timeout

    return ClientOptions(
        url=url,
        client=client,
        secret=secret,
        skip_tls_validation=skip_tls,
        cert_file=os.environ.get(ENV_INSTANCE_CERT) or None,
        key_file=os.environ.get(ENV_INSTANCE_KEY) or None,
        **extra,
    )
