"""badge-retry CLI.

Offline diagnostics for the retry engine, built with Typer and Rich:

    cli/
    ├── __init__.py       # App assembly and global options
    ├── helpers.py        # Logging state, config loading, backend creation
    ├── output.py         # Rich formatting
    └── commands/
        ├── classify.py   # classify, delay
        ├── analyze.py    # analyze
        ├── history.py    # history
        └── config_cmd.py # config check/show
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from badgeretry import __version__

from . import helpers as helpers
from .commands import analyze, classify, config_app, delay, history
from .helpers import (
    configure_global_logging,
    set_log_file,
    set_log_format,
    set_log_level,
)
from .output import console

app = typer.Typer(
    name="badge-retry",
    help="Diagnostics for the badge-claim retry engine",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"badge-retry v{__version__}")
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
            envvar="BADGE_RETRY_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="BADGE_RETRY_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="BADGE_RETRY_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """badge-retry - inspect and tune badge-claim retry decisions."""
    configure_global_logging(console)


app.command()(classify)
app.command()(delay)
app.command()(analyze)
app.command()(history)
app.add_typer(config_app)


__all__ = ["app", "main", "console"]
