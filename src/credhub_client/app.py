"""Typer application and CLI entry point for credhub_client.

The ``credhub`` command exposes the :class:`~credhub_client.client.CredhubClient`
operations (``find``, ``get``, ``set``, ``delete``) plus ``config show``.
Global options override the environment and the config file; see
:func:`~credhub_client.config.resolve_options` for the precedence chain.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~credhub_client.exceptions.CredhubError`
instances end the process with their ``exit_code``; anything else is
written to a crash log under the data directory.
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import traceback
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

import typer
from rich.logging import RichHandler

from credhub_client import __version__
from credhub_client.exceptions import CredhubError, InvalidUsageError, NotFoundError
from credhub_client.exit_codes import EXIT_GENERIC_FAILURE
from credhub_client.output import error, format_response, info, print_table, success

app = typer.Typer(
    name="credhub",
    help="Find, read, write, and delete credentials in a CredHub secret store.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

config_app = typer.Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"credhub {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="Service base URL (env: CREDHUB_URL)."
    ),
    client: Optional[str] = typer.Option(
        None, "--client", help="OAuth2 client id (env: CREDHUB_CLIENT)."
    ),
    secret: Optional[str] = typer.Option(
        None, "--secret", help="OAuth2 client secret (env: CREDHUB_SECRET)."
    ),
    skip_tls_validation: bool = typer.Option(
        False,
        "--skip-tls-validation",
        help="Do not verify the server certificate (client-credentials auth only).",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~credhub_client.output.OutputManager`,
    routes library logging to stderr, and stores the connection overrides
    in ``ctx.obj`` for the sub-commands.
    """
    from credhub_client.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    _configure_logging(verbose, output)

    ctx.ensure_object(dict)
    ctx.obj["url"] = url
    ctx.obj["client"] = client
    ctx.obj["secret"] = secret
    ctx.obj["skip_tls_validation"] = True if skip_tls_validation else None


def _configure_logging(verbose: bool, output: Any) -> None:
    """Send library log records to stderr through Rich."""
    handler = RichHandler(
        console=output.stderr_console,
        show_path=False,
        show_time=False,
        markup=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[handler],
        force=True,
    )


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Report a :class:`CredhubError` on stderr and exit with its code."""
    try:
        yield
    except CredhubError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc


def _resolved_options(ctx: typer.Context):
    from credhub_client.config import resolve_options

    obj = ctx.obj or {}
    return resolve_options(
        cli_url=obj.get("url"),
        cli_client=obj.get("client"),
        cli_secret=obj.get("secret"),
        cli_skip_tls_validation=obj.get("skip_tls_validation"),
    )


def _open_client(ctx: typer.Context):
    from credhub_client.client import new_client

    return new_client(_resolved_options(ctx))


def _exactly_one(**options: Optional[str]) -> None:
    given = [name for name, value in options.items() if value is not None]
    if len(given) != 1:
        flags = " or ".join(f"--{name}" for name in options)
        raise InvalidUsageError(f"Specify exactly one of {flags}")


def _parse_value(raw: str) -> Any:  # noqa: ANN401
    """Parse *raw* as JSON if possible, returning the string on failure."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


# ------------------------------------------------------------------ #
# Credential commands
# ------------------------------------------------------------------ #


@app.command("find")
def find_command(
    ctx: typer.Context,
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Path prefix to list."),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Name fragment to search for."
    ),
) -> None:
    """List credential names under a path or matching a name fragment.

    Example::

        credhub find --path /concourse/main
        credhub find --name db-password --json
    """
    with _reporting_errors():
        _exactly_one(path=path, name=name)
        with _open_client(ctx) as credhub:
            if path is not None:
                result = credhub.find_by_path(path)
            else:
                result = credhub.find_by_name(name or "")

    rows = [
        [
            entry.name,
            entry.version_created_at.isoformat() if entry.version_created_at else "",
        ]
        for entry in result.credentials
    ]
    print_table(["name", "version_created_at"], rows, title="Credentials")


@app.command("get")
def get_command(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Credential name."),
    credential_id: Optional[str] = typer.Option(
        None, "--id", "-i", help="Credential version id."
    ),
    value_only: bool = typer.Option(
        False, "--value-only", help="Print only the credential value."
    ),
) -> None:
    """Print the current version of a credential, or one version by id.

    Exits with code 4 when the credential does not exist.
    """
    with _reporting_errors():
        _exactly_one(name=name, id=credential_id)
        with _open_client(ctx) as credhub:
            if name is not None:
                credential = credhub.get_by_name(name)
            else:
                credential = credhub.get_by_id(credential_id or "")
        if credential is None:
            raise NotFoundError(f"Credential '{name or credential_id}' not found", 404)

    format_response(credential.value if value_only else credential)


@app.command("set")
def set_command(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Credential name."),
    credential_type: str = typer.Option(
        "value", "--type", "-t", help="Credential type (value, json, password, ...)."
    ),
    value: str = typer.Option(
        ..., "--value", help="Credential value; JSON objects and arrays are sent structured."
    ),
) -> None:
    """Create or overwrite a credential.

    Example::

        credhub set --name /app/api-key --value hunter2
        credhub set --name /app/db --type json --value '{"user": "app", "port": 5432}'
    """
    with _reporting_errors():
        parsed = _parse_value(value)
        if credential_type == "json" and not isinstance(parsed, dict):
            raise InvalidUsageError("Credentials of type 'json' require a JSON object value")
        if credential_type != "json" and not isinstance(parsed, (dict, list)):
            parsed = value

        with _open_client(ctx) as credhub:
            credential = credhub.set_by_name(credential_type, name, parsed)

    success(f"Set credential {credential.name}")
    format_response(credential)


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Credential name."),
) -> None:
    """Delete every version of a credential."""
    with _reporting_errors():
        with _open_client(ctx) as credhub:
            credhub.delete_by_name(name)

    success(f"Deleted credential {name}")


# ------------------------------------------------------------------ #
# Config commands
# ------------------------------------------------------------------ #


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective connection options with the secret masked.

    Example::

        credhub config show --json
    """
    from credhub_client.config import config_file_path

    with _reporting_errors():
        options = _resolved_options(ctx)

    data = options.model_dump(mode="json")
    if data.get("secret"):
        data["secret"] = "***"
    data["strategy"] = "client_credentials" if options.uses_client_credentials else "mtls"
    info(f"Config file: {config_file_path()}")
    format_response(data)


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from credhub_client.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``credhub`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        if isinstance(exc, CredhubError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
