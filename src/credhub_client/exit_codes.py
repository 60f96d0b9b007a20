"""Numeric process exit codes for the ``credhub`` command line.

Each constant maps to an error category and is referenced by the
corresponding :class:`~credhub_client.exceptions.CredhubError` subclass.
Shell scripts can branch on the exit code without parsing stderr.

Example::

    $ credhub get --name /concourse/main/db-password
    $ echo $?
    4   # EXIT_NOT_FOUND -- no credential with that name
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Credentials could not be loaded, acquired, or were rejected."""

EXIT_NOT_FOUND = 4
"""The requested credential does not exist."""

EXIT_SERVER_ERROR = 5
"""The service answered with an error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_DATA_ERROR = 7
"""A request payload could not be encoded or a response could not be decoded."""
