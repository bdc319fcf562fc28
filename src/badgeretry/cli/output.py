"""Rich output formatting for the badge-retry CLI.

Centralizes colours, table builders and JSON output so every command
renders categories, risk levels and recommendations the same way.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from badgeretry.core.claims import RiskLevel, Trend
from badgeretry.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from badgeretry.core.errors import Priority

if TYPE_CHECKING:
    from collections.abc import Sequence

    from badgeretry.core.claims import RetryAttempt, RetryRecommendation, RetryStats
    from badgeretry.core.errors import ClassifiedError

console = Console()


class StatusColors:
    """Colour mappings for priorities, risk levels and trends."""

    PRIORITY: dict[Priority, str] = {
        Priority.LOW: "dim",
        Priority.MEDIUM: "yellow",
        Priority.HIGH: "red",
        Priority.CRITICAL: "bold red",
    }

    RISK: dict[RiskLevel, str] = {
        RiskLevel.LOW: "green",
        RiskLevel.MEDIUM: "yellow",
        RiskLevel.HIGH: "red",
    }

    TREND: dict[Trend, str] = {
        Trend.IMPROVING: "green",
        Trend.STABLE: "blue",
        Trend.DEGRADING: "red",
        Trend.INSUFFICIENT_DATA: "dim",
    }


def colored(value: str, color: str) -> str:
    return f"[{color}]{value}[/{color}]"


def format_bool(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


def truncate(text: str, limit: int = TRUNCATE_ERROR_MESSAGE_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def output_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as JSON without Rich markup, highlighting or wrapping."""
    out = console_instance or console
    out.print(json.dumps(data, indent=2), soft_wrap=True, highlight=False, markup=False)


def create_simple_table(show_header: bool = False) -> Table:
    """Two-column key/value table."""
    table = Table(show_header=show_header, box=None, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")
    return table


def create_classification_table(classified: ClassifiedError) -> Table:
    table = create_simple_table()
    table.add_row("Category", f"[cyan]{classified.kind}[/cyan]")
    table.add_row(
        "Priority",
        colored(classified.priority.value, StatusColors.PRIORITY[classified.priority]),
    )
    table.add_row("Retryable", format_bool(classified.retryable))
    table.add_row("Adaptable", format_bool(classified.adaptable))
    table.add_row("Confidence", f"{classified.confidence:.2f}")
    table.add_row("Matched keyword", classified.matched_keyword or "[dim](none)[/dim]")
    return table


def create_stats_table(stats: RetryStats) -> Table:
    table = create_simple_table()
    table.add_row("Claim", stats.claim_id)
    table.add_row("Attempts", str(stats.total_attempts))
    distribution = ", ".join(
        f"{category.value}={count}" for category, count in stats.error_distribution.items()
    )
    table.add_row("Distribution", distribution)
    table.add_row("Dominant", f"[cyan]{stats.dominant_category.value}[/cyan]")
    table.add_row("Trend", colored(stats.trend.value, StatusColors.TREND[stats.trend]))
    table.add_row("Next action", stats.recommended_next_action)
    return table


def create_attempts_table(attempts: Sequence[RetryAttempt], title: str | None = None) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Time (UTC)")
    table.add_column("Category", style="cyan")
    table.add_column("Strategy")
    table.add_column("Error", overflow="fold")
    for index, attempt in enumerate(attempts, start=1):
        table.add_row(
            str(index),
            attempt.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            attempt.category.value,
            attempt.strategy.action,
            escape(truncate(attempt.raw_error_message)),
        )
    return table


def create_recommendation_panel(recommendation: RetryRecommendation) -> Panel:
    """Panel summarising a retry recommendation and its alternatives."""
    risk = recommendation.risk_assessment
    position = recommendation.queue_position
    lines = [
        f"Retry:          {format_bool(recommendation.should_retry)}",
        f"Confidence:     {recommendation.confidence:.0%}",
        f"Risk:           {colored(risk.value, StatusColors.RISK[risk])}",
        f"Queue position: {position if position is not None else '-'}",
        f"Estimated wait: {recommendation.estimated_wait_time}",
    ]
    if recommendation.alternative_actions:
        lines.append("")
        lines.append("[bold]Alternative actions:[/bold]")
        for action in recommendation.alternative_actions:
            mode = "auto" if action.automated else "manual"
            color = StatusColors.PRIORITY[action.priority]
            lines.append(f"  - {action.action} ({colored(action.priority.value, color)}, {mode})")

    border = "red" if recommendation.needs_manual_action else "green"
    return Panel("\n".join(lines), title="Recommendation", border_style=border)
