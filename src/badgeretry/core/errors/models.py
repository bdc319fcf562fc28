"""Data models for error classification.

This module provides:
- ClassifiedError: A raw failure message paired with its category
"""

from __future__ import annotations

from dataclasses import dataclass

from .codes import ErrorCategory, Priority


@dataclass(frozen=True)
class ClassifiedError:
    """A failure message with its classification.

    The category carries the static retry properties; ``matched_keyword``
    records which table entry produced the match (None for the fallback).
    """

    category: ErrorCategory
    message: str
    matched_keyword: str | None = None

    @property
    def kind(self) -> str:
        return self.category.kind

    @property
    def priority(self) -> Priority:
        return self.category.priority

    @property
    def retryable(self) -> bool:
        return self.category.retryable

    @property
    def adaptable(self) -> bool:
        return self.category.adaptable

    @property
    def confidence(self) -> float:
        """Reliability of this diagnosis (0.0-1.0)."""
        return self.category.confidence

    @property
    def is_terminal(self) -> bool:
        """True if no amount of retrying can fix this failure."""
        return not self.retryable

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for logging/serialization."""
        return {
            "type": self.kind,
            "priority": self.priority.value,
            "retryable": self.retryable,
            "adaptable": self.adaptable,
            "confidence": self.confidence,
            "matched_keyword": self.matched_keyword,
        }
