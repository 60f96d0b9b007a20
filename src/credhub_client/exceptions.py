"""Exception hierarchy for credhub_client.

All exceptions inherit from :class:`CredhubError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`credhub_client.exit_codes`. Library callers catch the specific
subclasses they care about; the CLI entry point in
:func:`credhub_client.app.main` catches ``CredhubError`` and exits with
the matching code.

Subclass hierarchy::

    CredhubError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- ConfigError              (exit 1)
    +-- AuthError                (exit 3)
    |   +-- AuthConfigError
    |   +-- AuthenticationError
    |   +-- CredentialLoadError
    +-- DiscoveryError           (exit 6)
    +-- TransportError           (exit 6)
    +-- SerializationError       (exit 7)
    |   +-- EncodeError
    |   +-- DecodeError
    +-- StatusError              (exit 5)
        +-- AccessDeniedError    (exit 3)
        +-- NotFoundError        (exit 4)
        +-- ServerError          (exit 5)
"""

from __future__ import annotations

from credhub_client.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_DATA_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class CredhubError(Exception):
    """Base exception for all credhub_client errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CredhubError):
    """Raised for invalid CLI arguments or contradictory options."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CredhubError):
    """Raised for configuration problems (invalid config file, unresolvable credential source)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(CredhubError):
    """Base class for failures to obtain credentials for outgoing requests."""

    exit_code = EXIT_AUTH_FAILURE


class AuthConfigError(AuthError):
    """Raised when the OAuth2 token source cannot be built from the supplied inputs."""


class AuthenticationError(AuthError):
    """Raised when the authorization server rejects a token request or cannot be reached."""


class CredentialLoadError(AuthError):
    """Raised when the mTLS key pair is missing, malformed, or does not match."""


class DiscoveryError(CredhubError):
    """Raised when the service info endpoint is unreachable or unparsable."""

    exit_code = EXIT_CONNECTION_ERROR


class TransportError(CredhubError):
    """Raised on network-level failures while dispatching a request."""

    exit_code = EXIT_CONNECTION_ERROR


class SerializationError(CredhubError):
    """Base class for JSON encode/decode failures."""

    exit_code = EXIT_DATA_ERROR


class EncodeError(SerializationError):
    """Raised when a request payload cannot be serialised to JSON."""


class DecodeError(SerializationError):
    """Raised when a response body is not valid JSON of the expected shape."""


class StatusError(CredhubError):
    """Raised when the service answers with an HTTP error status.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code returned by the service.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class AccessDeniedError(StatusError):
    """Raised when the service answers 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(StatusError):
    """Raised when the service answers 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(StatusError):
    """Raised when the service answers with a 5xx status."""

    exit_code = EXIT_SERVER_ERROR
