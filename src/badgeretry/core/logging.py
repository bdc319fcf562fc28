"""Structured logging infrastructure for the badge retry engine.

Provides structured logging using structlog with claim-specific context
such as claim_id, badge tier and run_id. Supports console and JSON output,
with optional rotating (gzip-compressed) log files.

Example usage:
    from badgeretry.core.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("retry_service")
    logger.info("attempt_tracked", claim_id="badge-42", category="gas_error")

    # Correlate everything logged while a claim is being retried
    from badgeretry.core.logging import ClaimContext, with_context

    with with_context(ClaimContext(claim_id="badge-42", tier="epic")):
        logger.info("runner.attempt_started")  # includes claim_id, tier, run_id
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names that must never reach a log sink. Matching is substring-based,
# so "minter_private_key" is caught by "private_key".
SENSITIVE_PATTERNS = frozenset({
    "private_key",
    "privatekey",
    "mnemonic",
    "seed_phrase",
    "secret",
    "password",
    "api_key",
    "apikey",
    "access_token",
    "auth_token",
    "bearer",
    "authorization",
    "signature",
})

_REDACTED = "[REDACTED]"


@dataclass(frozen=True)
class ClaimContext:
    """Immutable context correlating log entries for one claim's retries.

    Attributes:
        claim_id: Badge/claim identifier being retried.
        run_id: Unique id for one retry run of the claim.
        tier: Badge tier, when known.
        component: Component performing the work.
    """

    claim_id: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tier: str | None = None
    component: str = "unknown"

    def with_component(self, component: str) -> ClaimContext:
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        """Context fields for a log entry (None values omitted)."""
        result: dict[str, Any] = {
            "claim_id": self.claim_id,
            "run_id": self.run_id,
            "component": self.component,
        }
        if self.tier is not None:
            result["tier"] = self.tier
        return result


_current_context: ContextVar[ClaimContext | None] = ContextVar(
    "badgeretry_context", default=None
)


def get_current_context() -> ClaimContext | None:
    """Get the active ClaimContext, if any."""
    return _current_context.get()


@contextmanager
def with_context(ctx: ClaimContext) -> Iterator[ClaimContext]:
    """Set ClaimContext for the duration of a block.

    Uses a ContextVar, so concurrent asyncio tasks for different claims
    each see their own context.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _is_sensitive(key: str) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return the value, or a redaction marker if the key looks sensitive."""
    if _is_sensitive(key):
        return _REDACTED
    if isinstance(value, dict):
        return {k: _sanitize_value(str(k), v) for k, v in value.items()}
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, including nested dicts."""
    return {key: _sanitize_value(key, value) for key, value in event_dict.items()}


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the active ClaimContext.

    Explicitly bound fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


def _gzip_namer(name: str) -> str:
    return f"{name}.gz"


def _gzip_rotator(source: str, dest: str) -> None:
    """Compress a rotated log file, falling back to a plain rename."""
    try:
        with open(source, "rb") as f_in, gzip.open(dest, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.remove(source)
    except OSError:
        os.replace(source, dest.removesuffix(".gz"))


class RetryLogger:
    """Logger wrapper around structlog bound to a component name.

    The underlying structlog logger is fetched on every call, so loggers
    created at import time still honour a later configure_logging().
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> RetryLogger:
        """Return a new logger with additional bound context."""
        return RetryLogger(self._component, **{
            k: v for k, v in {**self._context, **context}.items() if k != "component"
        })

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log with traceback; call from inside an exception handler."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
    compress_logs: bool = True,
) -> None:
    """Configure structured logging.

    Call once at application startup.

    Args:
        level: Minimum log level to capture.
        format: "json" for structured, "console" for human-readable,
            "both" for console to stderr and rotating file output.
        file_path: Log file path. Required when format="both".
        max_file_size_mb: Size before the log file is rotated.
        backup_count: Number of rotated files to keep.
        include_timestamps: Add ISO8601 UTC timestamps.
        include_context: Merge the active ClaimContext into entries.
        compress_logs: Gzip rotated files.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stderr))

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            if compress_logs:
                file_handler.namer = _gzip_namer
                file_handler.rotator = _gzip_rotator
            handlers.append(file_handler)
        else:
            handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False so module-level loggers pick up
    # configuration applied after import.
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> RetryLogger:
    """Get a logger bound to a component name."""
    return RetryLogger(component, **initial_context)


__all__ = [
    "ClaimContext",
    "RetryLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]
