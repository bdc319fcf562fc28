"""Configuration commands for the badge-retry CLI.

Subcommands:
- `badge-retry config check FILE` validates a YAML config file
- `badge-retry config show [FILE]` displays the effective configuration
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from rich.markup import escape
from rich.table import Table

from badgeretry.core.config import BadgeRetryConfig

from ..helpers import load_config
from ..output import console, output_json

config_app = typer.Typer(
    name="config",
    help="Validate and display retry engine configuration.",
    invoke_without_command=True,
)


@config_app.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    """Validate and display retry engine configuration."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten a nested dict into dot-notation keys."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            result.update(_flatten(value, full_key))
        else:
            result[full_key] = value
    return result


@config_app.command()
def check(
    config_file: Path = typer.Argument(..., help="YAML config file to validate"),
) -> None:
    """Validate a configuration file.

    Exit codes:
      0: Valid
      1: Missing, unparseable or invalid
    """
    config = load_config(config_file, console)
    console.print(f"[green]✓[/green] {config_file} is valid")
    console.print(
        f"  global_max_retries={config.retry.global_max_retries}, "
        f"history backend={config.history.backend}"
    )


@config_app.command()
def show(
    config_file: Path | None = typer.Argument(None, help="YAML config file (default: built-in)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Display the effective configuration, marking values that differ from defaults."""
    config = load_config(config_file, console)
    effective = _flatten(config.model_dump(mode="json"))
    defaults = _flatten(BadgeRetryConfig().model_dump(mode="json"))

    if json_output:
        output_json(config.model_dump(mode="json"))
        return

    source = str(config_file) if config_file else "(defaults)"
    console.print(f"\nConfiguration from [dim]{source}[/dim]\n")

    table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Key", style="white", min_width=30)
    table.add_column("Value", style="green")
    table.add_column("Source", style="dim")
    for key, value in effective.items():
        origin = "default" if defaults.get(key) == value else "file"
        table.add_row(key, escape(str(value)), origin)
    console.print(table)
