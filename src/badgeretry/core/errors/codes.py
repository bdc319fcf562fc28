"""Error categories and priority levels for badge-claim failures.

Contains the closed classification used throughout the retry engine.

This module provides:
- Priority: How urgently a failure category needs attention
- CategoryTraits: Static properties attached to each category
- ErrorCategory: The eight failure buckets every message is forced into

Category Taxonomy
=================

Every failed mint/verify attempt lands in exactly one category. The
``unknown_error`` bucket is the universal fallback.

    | Category             | Priority | Retryable | Adaptable | Confidence |
    |----------------------|----------|-----------|-----------|------------|
    | gas_error            | high     | Yes       | Yes       | 0.95       |
    | network_error        | medium   | Yes       | No        | 0.85       |
    | timeout_error        | medium   | Yes       | No        | 0.80       |
    | nullifier_reuse      | critical | **No**    | Yes       | 0.98       |
    | nonce_error          | high     | Yes       | Yes       | 0.90       |
    | balance_error        | high     | Yes       | No        | 0.85       |
    | transaction_reverted | high     | Yes       | Yes       | 0.75       |
    | unknown_error        | low      | Yes       | No        | 0.30       |

``nullifier_reuse`` means the proof backing the claim was already consumed
on-chain. Resubmitting it can never succeed, so it is never retryable.

"Adaptable" categories are ones where the next attempt can be changed
(more gas, fresh nonce, new proof) rather than simply repeated.

Confidence is how reliable the keyword match is as a diagnosis, not the
probability that a retry succeeds.

Example::

    category = ErrorCategory.GAS
    if category.retryable and category.priority is Priority.HIGH:
        ...
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class Priority(str, Enum):
    """Attention priority for a failure category."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CategoryTraits(NamedTuple):
    """Static properties of an error category.

    Attributes:
        priority: How urgently this failure needs attention.
        retryable: Whether an automatic retry can ever succeed.
        adaptable: Whether the next attempt can be adjusted to avoid the failure.
        confidence: Reliability of the keyword-based diagnosis (0.0-1.0).
    """

    priority: Priority
    retryable: bool
    adaptable: bool
    confidence: float


class ErrorCategory(str, Enum):
    """Categories of badge-claim failures with different retry behaviors."""

    GAS = "gas_error"
    """Retriable - gas estimation or gas price problems, usually fixed by more gas."""

    NETWORK = "network_error"
    """Retriable - RPC or connectivity issues."""

    TIMEOUT = "timeout_error"
    """Retriable - the request or confirmation wait timed out."""

    NULLIFIER_REUSE = "nullifier_reuse"
    """Terminal - the claim's proof nullifier was already consumed."""

    NONCE = "nonce_error"
    """Retriable - stale or conflicting transaction nonce."""

    BALANCE = "balance_error"
    """Retriable only after user action - wallet lacks funds."""

    TRANSACTION_REVERTED = "transaction_reverted"
    """Retriable - contract reverted, may depend on contract state."""

    UNKNOWN = "unknown_error"
    """Retriable conservatively - nothing recognisable in the message."""

    @property
    def kind(self) -> str:
        """Stable string identifier (e.g. ``gas_error``)."""
        return self.value

    @property
    def traits(self) -> CategoryTraits:
        """Static properties for this category."""
        return _CATEGORY_TRAITS[self]

    @property
    def priority(self) -> Priority:
        return self.traits.priority

    @property
    def retryable(self) -> bool:
        return self.traits.retryable

    @property
    def adaptable(self) -> bool:
        return self.traits.adaptable

    @property
    def confidence(self) -> float:
        return self.traits.confidence


_CATEGORY_TRAITS: dict[ErrorCategory, CategoryTraits] = {
    ErrorCategory.GAS: CategoryTraits(Priority.HIGH, True, True, 0.95),
    ErrorCategory.NETWORK: CategoryTraits(Priority.MEDIUM, True, False, 0.85),
    ErrorCategory.TIMEOUT: CategoryTraits(Priority.MEDIUM, True, False, 0.80),
    ErrorCategory.NULLIFIER_REUSE: CategoryTraits(Priority.CRITICAL, False, True, 0.98),
    ErrorCategory.NONCE: CategoryTraits(Priority.HIGH, True, True, 0.90),
    ErrorCategory.BALANCE: CategoryTraits(Priority.HIGH, True, False, 0.85),
    ErrorCategory.TRANSACTION_REVERTED: CategoryTraits(Priority.HIGH, True, True, 0.75),
    ErrorCategory.UNKNOWN: CategoryTraits(Priority.LOW, True, False, 0.30),
}
