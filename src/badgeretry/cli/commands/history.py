"""History command for the badge-retry CLI.

Inspects attempt histories persisted by a JSON or SQLite history backend.
Without a claim id it lists stored claims; with one it shows the attempts.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from pathlib import Path

import typer
from rich.table import Table

from badgeretry.core.config import HistoryConfig
from badgeretry.core.exceptions import HistoryBackendError
from badgeretry.execution.prediction import dominant_category
from badgeretry.state import create_history_backend

from ..helpers import ErrorMessages, run_async
from ..output import console, create_attempts_table, output_json


class BackendKind(str, Enum):
    JSON = "json"
    SQLITE = "sqlite"


def history(
    claim_id: str | None = typer.Argument(None, help="Claim to show; omit to list claims"),
    backend: BackendKind = typer.Option(
        BackendKind.JSON, "--backend", "-b", help="Backend that wrote the history"
    ),
    path: Path = typer.Option(
        ..., "--path", "-p", help="History directory (json) or database file (sqlite)"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show persisted claim attempt histories.

    Examples:
        badge-retry history --path ./.badge-retry/history
        badge-retry history b-42 --backend sqlite --path ./history.db
    """
    if not path.exists():
        console.print(f"[red]Error:[/red] history path not found: {path}")
        raise typer.Exit(1)
    store = create_history_backend(HistoryConfig(backend=backend.value, path=path))

    if claim_id is None:
        claims = run_async(store.list_claims())
        if json_output:
            output_json({"claims": claims})
            return
        if not claims:
            console.print("[dim]No stored histories.[/dim]")
            return

        table = Table(title="Stored claims", show_header=True, header_style="bold cyan")
        table.add_column("Claim")
        table.add_column("Attempts", justify="right")
        table.add_column("Dominant category", style="cyan")
        for stored_id in claims:
            attempts = run_async(store.load(stored_id)) or []
            dominant = dominant_category(attempts)
            table.add_row(
                stored_id,
                str(len(attempts)),
                dominant.value if dominant else "-",
            )
        console.print(table)
        return

    try:
        attempts = run_async(store.load(claim_id))
    except HistoryBackendError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if attempts is None:
        console.print(f"[red]{ErrorMessages.HISTORY_NOT_FOUND}:[/red] {claim_id}")
        raise typer.Exit(1)

    if json_output:
        output_json({"claim_id": claim_id, "attempts": [a.to_dict() for a in attempts]})
        return

    console.print(create_attempts_table(attempts, title=f"Attempts for {claim_id}"))
    counts = Counter(a.category.value for a in attempts)
    summary = ", ".join(f"{kind}={count}" for kind, count in counts.items())
    console.print(f"[dim]{len(attempts)} attempt(s): {summary}[/dim]")
