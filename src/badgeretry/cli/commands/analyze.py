"""Analyze command for the badge-retry CLI.

Replays a claim's failure history from a JSON file through a fresh retry
service and prints the resulting stats, prediction, risk and
recommendation.

History file formats (all oldest first):
- a list of error message strings
- a list of objects with ``error`` (or ``message``) and optional ISO
  ``timestamp``
- a list of serialized RetryAttempt objects
- an object ``{"badge": {...}, "attempts": [...]}`` with any of the above
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import typer

from badgeretry.core.claims import (
    BadgeContext,
    EnvironmentContext,
    QueueState,
    RetryAttempt,
)
from badgeretry.execution.retry_service import BadgeRetryService
from badgeretry.utils.time import utc_now

from ..helpers import ErrorMessages, load_config
from ..output import (
    console,
    create_recommendation_panel,
    create_stats_table,
    output_json,
)

DEFAULT_CLAIM_ID = "cli-claim"


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps in history files as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _entry_to_attempt(
    entry: Any,
    badge: BadgeContext,
    service: BadgeRetryService,
) -> RetryAttempt:
    if isinstance(entry, str):
        message, timestamp = entry, utc_now()
    elif isinstance(entry, dict) and "category" in entry and "strategy" in entry:
        attempt = RetryAttempt.from_dict({**entry, "claim_id": badge.badge_id})
        return replace(attempt, timestamp=_as_utc(attempt.timestamp))
    elif isinstance(entry, dict):
        message = str(entry.get("error") or entry.get("message") or "")
        raw_timestamp = entry.get("timestamp")
        timestamp = _as_utc(datetime.fromisoformat(raw_timestamp)) if raw_timestamp else utc_now()
    else:
        raise ValueError(f"unsupported history entry: {entry!r}")

    category = service.classifier.classify_category(message)
    return RetryAttempt(
        claim_id=badge.badge_id,
        timestamp=timestamp,
        raw_error_message=message,
        category=category,
        strategy=service.evaluator.strategy_for(category, badge),
        badge_context=badge,
        environment_context=EnvironmentContext(),
    )


def load_history(
    path: Path,
    badge: BadgeContext,
    service: BadgeRetryService,
) -> tuple[BadgeContext, list[RetryAttempt]]:
    """Read a history file into attempts for ``badge``.

    A ``badge`` object in the file overrides the command-line badge.

    Raises:
        ValueError: If the file is not a supported history document.
    """
    with open(path) as f:
        data = json.load(f)

    if isinstance(data, dict):
        if "badge" in data:
            badge = BadgeContext.from_dict({"badge_id": badge.badge_id, **data["badge"]})
        entries = data.get("attempts", [])
    else:
        entries = data
    if not isinstance(entries, list):
        raise ValueError("history must be a list of attempts")

    attempts = [_entry_to_attempt(entry, badge, service) for entry in entries]
    attempts.sort(key=lambda a: a.timestamp)
    return badge, attempts


def analyze(
    history_file: Path = typer.Argument(
        ...,
        help="JSON file with the claim's failure history",
        exists=True,
        readable=True,
    ),
    claim_id: str = typer.Option(DEFAULT_CLAIM_ID, "--claim-id", help="Claim identifier"),
    tier: str = typer.Option("common", "--tier", "-t", help="Badge tier"),
    retry_count: int | None = typer.Option(
        None, "--retry-count", min=0, help="Retry count reported by the backend queue"
    ),
    queue_size: int | None = typer.Option(
        None, "--queue-size", min=0, help="Claims currently in the backend retry queue"
    ),
    avg_processing: float | None = typer.Option(
        None, "--avg-processing", min=0, help="Average queue processing time in seconds"
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML config with policy overrides"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Analyze a failure history and recommend the next step.

    Queue options are optional; without them queue position and wait time
    are reported as unknown.

    Examples:
        badge-retry analyze failures.json --tier legendary
        badge-retry analyze failures.json --queue-size 25 --avg-processing 40 --json
    """
    config = load_config(config_file, console)
    service = BadgeRetryService(config)
    badge = BadgeContext(badge_id=claim_id, tier=tier, retry_count=retry_count)

    try:
        badge, attempts = load_history(history_file, badge, service)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        console.print(f"[red]{ErrorMessages.INVALID_HISTORY}:[/red] {e}")
        raise typer.Exit(1) from None

    service.restore_attempts(badge.badge_id, attempts)

    queue_state: QueueState | None = None
    if queue_size is not None or avg_processing is not None:
        queue_state = QueueState(
            total_in_queue=queue_size or 0,
            avg_processing_time_seconds=avg_processing or 0.0,
        )

    stats = service.get_retry_stats(badge.badge_id)
    probability = service.predict_success(badge)
    risk = service.assess_risk(attempts)
    recommendation = service.generate_retry_recommendation(badge, queue_state=queue_state)

    if json_output:
        output_json({
            "claim_id": badge.badge_id,
            "tier": badge.tier,
            "stats": stats.to_dict() if stats else None,
            "predicted_success": round(probability, 4),
            "risk": risk.value,
            "recommendation": recommendation.to_dict(),
        })
        return

    if stats is None:
        console.print("[dim]No failed attempts in history; nothing to analyze beyond defaults.[/dim]")
    else:
        console.print(create_stats_table(stats))
    console.print()
    console.print(f"Predicted success: [bold]{probability:.0%}[/bold]")
    console.print(create_recommendation_panel(recommendation))
