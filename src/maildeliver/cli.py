"""maildeliver command-line interface.

Every failure is reported as a temporary failure (exit status 75) so the
calling mail transport agent retries the delivery later.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from .config import ConfigError, load_config
from .delivery import DeliveryError, deliver_message
from .logging import configure_logging
from .maildir import MaildirError

EX_OK = 0
EX_TEMPFAIL = 75

app = typer.Typer(
    help="Deliver one message from standard input into a maildir.",
    add_completion=False,
    pretty_exceptions_enable=False,
)
LOGGER = logging.getLogger(__name__)


@app.command()
def deliver(
    ctx: typer.Context,
    maildir: Annotated[
        list[Path] | None,
        typer.Argument(
            help="Mailbox root (defaults to $HOME/Maildir).",
            show_default=False,
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Optional YAML settings file (env MAILDELIVER_CONFIG).",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "-v",
            "--verbose",
            help="Log delivery details to standard error.",
        ),
    ] = False,
) -> None:
    """Read a message from standard input, echo it, and file it into MAILDIR."""

    paths = maildir or []
    if len(paths) > 1:
        _usage_failure(ctx)

    try:
        settings = load_config(
            paths[0] if paths else None,
            config_path=config,
            verbose=verbose,
        )
        configure_logging(settings.logging)
    except ConfigError as exc:
        _fatal(exc)

    try:
        deliver_message(
            settings,
            sys.stdin.buffer,
            sys.stdout.buffer,
        )
    except (MaildirError, DeliveryError) as exc:
        LOGGER.error("Delivery failed: %s", exc)
        _fatal(exc)


def _fatal(exc: Exception) -> NoReturn:
    typer.secho(str(exc), fg=typer.colors.RED, err=True)
    raise typer.Exit(EX_TEMPFAIL) from exc


def _usage_failure(ctx: typer.Context) -> NoReturn:
    typer.echo(ctx.get_usage(), err=True)
    typer.echo("Expected at most one MAILDIR argument.", err=True)
    raise typer.Exit(EX_TEMPFAIL)


def main() -> NoReturn:
    """Console entry point; any non-zero exit becomes a temporary failure.

    Usage errors (exit status 2) and unexpected exceptions would otherwise
    tell the transport agent to bounce the message.
    """

    try:
        app(prog_name="maildeliver")
    except SystemExit as exc:
        sys.exit(EX_OK if exc.code in (None, EX_OK) else EX_TEMPFAIL)
    except Exception as exc:
        LOGGER.exception("Unexpected failure")
        sys.stderr.write(f"maildeliver: {exc}\n")
        sys.exit(EX_TEMPFAIL)
    sys.exit(EX_OK)


__all__ = ["EX_OK", "EX_TEMPFAIL", "app", "main"]
