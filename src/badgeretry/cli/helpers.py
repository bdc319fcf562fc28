"""Shared utilities for badge-retry CLI commands.

Holds the global logging options set by the app callback, config loading
with user-facing errors, and category parsing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console

from badgeretry.core.config import BadgeRetryConfig
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.exceptions import ConfigurationError
from badgeretry.core.logging import configure_logging, get_logger

_logger = get_logger("cli")

T = TypeVar("T")


class ErrorMessages:
    """Constants for CLI error messages."""

    CONFIG_LOAD_ERROR = "Error loading config"
    UNKNOWN_CATEGORY = "Unknown error category"
    HISTORY_NOT_FOUND = "No stored history for claim"
    INVALID_HISTORY = "Invalid history file"


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging options collected from the global callbacks."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    explicit: bool = False
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    """Set the log level (DEBUG, INFO, WARNING, ERROR)."""
    _log_config.level = level.upper()  # type: ignore[assignment]
    _log_config.explicit = True


def set_log_file(path: Path | None) -> None:
    """Set the log file path.

    A log file without an explicit format writes both console and file output.
    """
    _log_config.file = path
    _log_config.explicit = True
    if path and _log_config.format == "console":
        _log_config.format = "both"


def set_log_format(fmt: str) -> None:
    """Set the log format (json, console, both)."""
    _log_config.format = fmt  # type: ignore[assignment]
    _log_config.explicit = True


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global CLI options, once per session.

    Raises:
        typer.Exit: If the logging options are inconsistent.
    """
    if _log_config.configured:
        return

    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
        _log_config.configured = True
    except (ValueError, AttributeError) as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Reset the CLI logging options to defaults (used by tests)."""
    global _log_config
    _log_config = CliLoggingConfig()


# =============================================================================
# Config and argument helpers
# =============================================================================


def load_config(config_file: Path | None, console: Console) -> BadgeRetryConfig:
    """Load a config file, or the defaults when none is given.

    Raises:
        typer.Exit: With code 1 if the file is missing or invalid.
    """
    if config_file is None:
        return BadgeRetryConfig()
    try:
        config = BadgeRetryConfig.from_yaml(config_file)
    except (ConfigurationError, ValidationError) as e:
        console.print(f"[red]{ErrorMessages.CONFIG_LOAD_ERROR}:[/red] {e}")
        raise typer.Exit(1) from None

    apply_file_logging(config)
    _logger.debug("cli.config_loaded", path=str(config_file))
    return config


def apply_file_logging(config: BadgeRetryConfig) -> None:
    """Reconfigure logging from a config file's ``logging`` section.

    Global CLI logging options take precedence; a file without a
    ``logging`` section leaves the CLI configuration untouched.
    """
    if "logging" not in config.model_fields_set or _log_config.explicit:
        return
    log = config.logging
    configure_logging(
        level=log.level,
        format=log.format,
        file_path=log.file_path,
        max_file_size_mb=log.max_file_size_mb,
        backup_count=log.backup_count,
        include_timestamps=log.include_timestamps,
        include_context=log.include_context,
    )
    _logger.debug("cli.logging_configured", source="config", level=log.level)


def parse_category(value: str, console: Console) -> ErrorCategory:
    """Parse a category given as its kind ("gas_error") or name ("gas")."""
    normalized = value.strip().lower()
    for category in ErrorCategory:
        if normalized in (category.value, category.name.lower()):
            return category
    valid = ", ".join(c.value for c in ErrorCategory)
    console.print(f"[red]{ErrorMessages.UNKNOWN_CATEGORY}:[/red] {value!r} (expected one of: {valid})")
    raise typer.Exit(1)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous command."""
    return asyncio.run(coro)
