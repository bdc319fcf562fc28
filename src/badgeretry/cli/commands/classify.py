"""Classification and backoff commands.

- `badge-retry classify MESSAGE` shows how a failure message is categorised
  and which adaptive strategy follows from it.
- `badge-retry delay CATEGORY` shows the backoff delay for an attempt count.
"""

from __future__ import annotations

import random
from pathlib import Path

import typer

from badgeretry.core.claims import BadgeContext
from badgeretry.core.constants import MS_PER_SECOND
from badgeretry.core.errors import ErrorClassifier
from badgeretry.execution.backoff import BackoffScheduler
from badgeretry.execution.retry_policy import RetryPolicyEvaluator
from badgeretry.utils.time import format_duration

from ..helpers import load_config, parse_category
from ..output import (
    console,
    create_classification_table,
    create_simple_table,
    format_bool,
    output_json,
)


def classify(
    message: str = typer.Argument(..., help="Error message from a failed claim"),
    tier: str = typer.Option("common", "--tier", "-t", help="Badge tier for the strategy"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Classify a failure message and show the resulting strategy.

    Examples:
        badge-retry classify "insufficient funds for gas"
        badge-retry classify "execution reverted" --json
    """
    classified = ErrorClassifier().classify(message)
    badge = BadgeContext(badge_id="cli", tier=tier)
    strategy = RetryPolicyEvaluator().strategy_for(classified.category, badge)

    if json_output:
        output_json({**classified.to_dict(), "strategy": strategy.to_dict()})
        return

    console.print(create_classification_table(classified))
    console.print()
    console.print(f"Strategy: [bold]{strategy.action}[/bold]")
    for key, value in strategy.parameters.items():
        console.print(f"  {key}: {value}")
    if strategy.suggested_action:
        console.print(f"  [yellow]User action:[/yellow] {strategy.suggested_action}")
    if strategy.block_retry:
        console.print("  [red]Automatic retries are blocked for this failure[/red]")


def delay(
    category: str = typer.Argument(..., help="Error category, e.g. gas_error or gas"),
    attempts: int = typer.Option(
        0, "--attempts", "-n", min=0, help="Attempts already made"
    ),
    seed: int | None = typer.Option(None, "--seed", "-s", help="Seed for reproducible jitter"),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML config with retry policy overrides"
    ),
) -> None:
    """Show the backoff delay before the next attempt.

    Examples:
        badge-retry delay gas_error --attempts 2
        badge-retry delay network --attempts 1 --seed 42
    """
    parsed = parse_category(category, console)
    config = load_config(config_file, console)

    rng = random.Random(seed) if seed is not None else None
    scheduler = BackoffScheduler(config.retry, rng=rng)
    evaluator = RetryPolicyEvaluator(config.retry)

    delay_ms = scheduler.compute_delay(parsed, attempts)
    decision = evaluator.evaluate(parsed, attempts)

    table = create_simple_table()
    table.add_row("Category", f"[cyan]{parsed.value}[/cyan]")
    table.add_row("Attempts", str(attempts))
    table.add_row("Delay (ms)", str(delay_ms))
    table.add_row("Delay", format_duration(delay_ms / MS_PER_SECOND))
    table.add_row("Retry allowed", format_bool(decision.should_retry))
    table.add_row("Reason", decision.reason)
    console.print(table)
