"""restartwatch CLI.

Built with Typer. Global options (logging, version) are handled by the app
callback; command logic lives in ``cli/commands``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from restartwatch import __version__

from . import helpers as helpers
from .commands import kill, restart, run_config, wait_up
from .helpers import configure_global_logging, set_log_file, set_log_format, set_log_level
from .output import console

app = typer.Typer(
    name="restartwatch",
    help="Restart cluster daemons and verify they recover cleanly",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"restartwatch v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="RESTARTWATCH_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="RESTARTWATCH_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json or console",
            envvar="RESTARTWATCH_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """restartwatch - verified restarts of cluster daemons."""


app.command()(restart)
app.command(name="wait-up")(wait_up)
app.command()(kill)
app.command(name="run-config")(run_config)


__all__ = ["app", "configure_global_logging", "console", "main"]
