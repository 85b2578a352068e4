"""Typer application and console entry point for kilo-provider.

A small developer CLI for exercising the provider outside a host:

* ``kilo-provider login`` -- run the device flow and print the token.
* ``kilo-provider models`` -- list the gateway catalog.

Credentials are never written to disk. ``login`` prints the token on stdout
so it can be captured::

    export KILO_API_KEY=$(kilo-provider login)
    kilo-provider models

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Any, Optional

import typer

from kilo_provider import __version__
from kilo_provider.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="kilo-provider",
    help="Log in to the Kilo gateway and browse its model catalog.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"kilo-provider {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output formatting and logging from the global flags."""
    from kilo_provider.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@app.command("login")
def login_command() -> None:
    """Authorize this machine in a browser and print the resulting token.

    Ctrl-C while waiting cancels the login immediately.
    """
    from kilo_provider.auth import AuthPrompt, DeviceAuthFlow, LoginCallbacks
    from kilo_provider.client import GatewayClient
    from kilo_provider.config import API_KEY_ENV_VAR
    from kilo_provider.exceptions import KiloError
    from kilo_provider.output import error, info, print_data, progress, success, suggest

    def _show_prompt(prompt: AuthPrompt) -> None:
        info("")
        info(f"Go to: {prompt.url}")
        info(prompt.instructions)
        info("")

    cancel = threading.Event()

    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        with GatewayClient() as client:
            credentials = DeviceAuthFlow(client).login(
                LoginCallbacks(on_auth=_show_prompt, on_progress=progress, signal=cancel)
            )
    except KiloError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    finally:
        signal.signal(signal.SIGINT, previous)

    print_data(credentials.access_token)
    success(f"Logged in. Token valid until {credentials.expires_at:%Y-%m-%d}.")
    suggest(f"Use it with: export {API_KEY_ENV_VAR}=<token>")


@app.command("models")
def models_command(
    free: bool = typer.Option(
        False, "--free", help="Only list models usable without logging in."
    ),
    token: Optional[str] = typer.Option(
        None, "--token", "-t", help="Gateway token (defaults to $KILO_API_KEY)."
    ),
) -> None:
    """List the models the gateway offers.

    Without a token only free models are listed.
    """
    from kilo_provider.catalog import fetch_and_filter
    from kilo_provider.client import GatewayClient
    from kilo_provider.config import load_config, resolve_api_key
    from kilo_provider.exceptions import KiloError
    from kilo_provider.output import debug, error, print_models, warning

    api_key = resolve_api_key(token)
    free_only = free or api_key is None
    if api_key is None and not free:
        warning("No token given; listing free models only.")

    try:
        config = load_config()
        debug(f"Fetching models from {config.models_endpoint}")
        with GatewayClient(config) as client:
            models = fetch_and_filter(client, token=api_key, free_only=free_only)
    except KiloError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_models(models)


def main() -> None:
    """CLI entry point invoked by the ``kilo-provider`` console script.

    Errors from commands are already reported and mapped to exit codes.
    Anything that escapes is a bug: it is printed and exits with
    :data:`~kilo_provider.exit_codes.EXIT_GENERIC_FAILURE`.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from kilo_provider.exceptions import KiloError
        from kilo_provider.output import error

        if isinstance(exc, KiloError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
