"""Claim-level data models for retry bookkeeping.

These are the records the retry service keeps per claim and the values it
returns to callers. They are plain dataclasses with ``to_dict`` helpers for
logging and persistence.

Models:
- BadgeContext / EnvironmentContext: typed descriptions of the claim and client
- AdaptiveStrategy: how the next attempt should be adjusted (derived, not stored)
- RetryAttempt: one failed attempt, appended to the claim's history
- ClaimFailurePattern: latest analysis snapshot for a claim
- RetryStats: summary view computed from a claim's attempts
- QueueState / AlternativeAction / RetryRecommendation: recommendation inputs and output
- ServiceStats: aggregate view across all tracked claims
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from badgeretry.core.constants import UNKNOWN_WAIT
from badgeretry.core.errors import ErrorCategory, Priority


class BadgeTier(str, Enum):
    """Badge rarity tiers, highest first."""

    LEGENDARY = "legendary"
    EPIC = "epic"
    RARE = "rare"
    COMMON = "common"


class Trend(str, Enum):
    """Direction of failure severity across a claim's attempts."""

    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"
    INSUFFICIENT_DATA = "insufficient_data"


class RiskLevel(str, Enum):
    """Risk of continuing automatic retries for a claim."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class BadgeContext:
    """The badge being claimed.

    Attributes:
        badge_id: Claim identity; key for all per-claim state.
        tier: Badge tier (legendary/epic/rare/common). Unknown tiers are allowed.
        xp_earned: XP the claim mints.
        token_id: On-chain token id, if assigned.
        requires_proof: Whether the mint needs a ZK proof (and so a nullifier).
        season: Game season of the claim.
        retry_count: Retries already performed as reported by the backend
            queue. When None, the length of the local history is used.
    """

    badge_id: str
    tier: str = BadgeTier.COMMON.value
    xp_earned: int = 0
    token_id: int | None = None
    requires_proof: bool = False
    season: int = 1
    retry_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "badge_id": self.badge_id,
            "tier": self.tier,
            "xp_earned": self.xp_earned,
            "token_id": self.token_id,
            "requires_proof": self.requires_proof,
            "season": self.season,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BadgeContext:
        return cls(
            badge_id=str(data["badge_id"]),
            tier=data.get("tier", BadgeTier.COMMON.value),
            xp_earned=data.get("xp_earned", 0),
            token_id=data.get("token_id"),
            requires_proof=data.get("requires_proof", False),
            season=data.get("season", 1),
            retry_count=data.get("retry_count"),
        )


@dataclass(frozen=True)
class EnvironmentContext:
    """Client environment at the time of an attempt."""

    device_info: str = "unknown"
    connection_type: str = "unknown"
    wallet_type: str = "unknown"

    def to_dict(self) -> dict[str, str]:
        return {
            "device_info": self.device_info,
            "connection_type": self.connection_type,
            "wallet_type": self.wallet_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvironmentContext:
        return cls(
            device_info=data.get("device_info", "unknown"),
            connection_type=data.get("connection_type", "unknown"),
            wallet_type=data.get("wallet_type", "unknown"),
        )


@dataclass(frozen=True)
class AdaptiveStrategy:
    """How the next attempt should be adjusted for a failure category.

    Attributes:
        action: Machine-readable action name (e.g. ``increase_gas_limit``).
        requires_user_action: The user must act before a retry can work.
        suggested_action: Human-readable hint for the user, if any.
        block_retry: Automatic retries must stop.
        parameters: Category-specific tuning values (gas_multiplier, ...).
    """

    action: str
    requires_user_action: bool = False
    suggested_action: str | None = None
    block_retry: bool = False
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "requires_user_action": self.requires_user_action,
            "suggested_action": self.suggested_action,
            "block_retry": self.block_retry,
            "parameters": dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdaptiveStrategy:
        return cls(
            action=data["action"],
            requires_user_action=data.get("requires_user_action", False),
            suggested_action=data.get("suggested_action"),
            block_retry=data.get("block_retry", False),
            parameters=dict(data.get("parameters") or {}),
        )


@dataclass(frozen=True)
class RetryAttempt:
    """One failed attempt for a claim.

    Attributes:
        claim_id: Claim the attempt belongs to.
        timestamp: When the failure was recorded (UTC).
        raw_error_message: Error text exactly as received.
        category: Classification of the error text.
        strategy: Adaptive strategy chosen for the next attempt.
        badge_context: Badge snapshot at the time of the attempt.
        environment_context: Client environment at the time of the attempt.
    """

    claim_id: str
    timestamp: datetime
    raw_error_message: str
    category: ErrorCategory
    strategy: AdaptiveStrategy
    badge_context: BadgeContext
    environment_context: EnvironmentContext = field(default_factory=EnvironmentContext)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/persistence."""
        return {
            "claim_id": self.claim_id,
            "timestamp": self.timestamp.isoformat(),
            "raw_error_message": self.raw_error_message,
            "category": self.category.value,
            "strategy": self.strategy.to_dict(),
            "badge_context": self.badge_context.to_dict(),
            "environment_context": self.environment_context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryAttempt:
        """Rebuild an attempt from ``to_dict`` output."""
        return cls(
            claim_id=str(data["claim_id"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            raw_error_message=data.get("raw_error_message", ""),
            category=ErrorCategory(data["category"]),
            strategy=AdaptiveStrategy.from_dict(data["strategy"]),
            badge_context=BadgeContext.from_dict(data["badge_context"]),
            environment_context=EnvironmentContext.from_dict(
                data.get("environment_context") or {}
            ),
        )


@dataclass(frozen=True)
class ClaimFailurePattern:
    """Latest failure analysis for a claim; overwritten on each analysis."""

    claim_id: str
    category: ErrorCategory
    confidence: float
    suggested_delay_ms: int
    retry_recommended: bool
    strategy: AdaptiveStrategy
    analyzed_at: datetime
    error_hash: str
    badge_context: BadgeContext

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim_id": self.claim_id,
            "error_type": self.category.value,
            "priority": self.category.priority.value,
            "retryable": self.category.retryable,
            "adaptable": self.category.adaptable,
            "confidence": self.confidence,
            "suggested_delay_ms": self.suggested_delay_ms,
            "retry_recommended": self.retry_recommended,
            "strategy": self.strategy.to_dict(),
            "analyzed_at": self.analyzed_at.isoformat(),
            "error_hash": self.error_hash,
            "badge_context": self.badge_context.to_dict(),
        }


@dataclass(frozen=True)
class RetryStats:
    """Summary of a claim's attempt history (derived, never stored)."""

    claim_id: str
    total_attempts: int
    error_distribution: dict[ErrorCategory, int]
    dominant_category: ErrorCategory
    time_span_ms: int
    last_attempt_at: datetime
    recommended_next_action: str
    trend: Trend

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim_id": self.claim_id,
            "total_attempts": self.total_attempts,
            "error_distribution": {k.value: v for k, v in self.error_distribution.items()},
            "dominant_error_type": self.dominant_category.value,
            "time_span_ms": self.time_span_ms,
            "last_attempt_at": self.last_attempt_at.isoformat(),
            "recommended_next_action": self.recommended_next_action,
            "improvement_trend": self.trend.value,
        }


@dataclass(frozen=True)
class QueueState:
    """Snapshot of the backend retry queue.

    Zero values mean "not reported" and fall back to configured defaults.
    """

    total_in_queue: int = 0
    avg_processing_time_seconds: float = 0.0


@dataclass(frozen=True)
class AlternativeAction:
    """An action offered instead of, or alongside, an automatic retry."""

    action: str
    priority: Priority
    automated: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "priority": self.priority.value,
            "automated": self.automated,
        }


@dataclass(frozen=True)
class RetryRecommendation:
    """Composed retry decision for a claim.

    Attributes:
        should_retry: Whether an automatic retry should be offered.
        confidence: Predicted probability that the next retry succeeds.
        estimated_wait_seconds: Expected queue wait, None when unknown.
        estimated_wait_time: Human-readable wait ("45s", "3m", "1h 5m", "unknown").
        queue_position: Estimated queue position, None when unknown.
        alternative_actions: Suggested manual or automated alternatives.
        risk_assessment: Risk of continuing automatic retries.
    """

    should_retry: bool
    confidence: float
    estimated_wait_seconds: float | None
    estimated_wait_time: str
    queue_position: int | None
    alternative_actions: list[AlternativeAction]
    risk_assessment: RiskLevel

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be 0.0-1.0, got {self.confidence}")

    @property
    def needs_manual_action(self) -> bool:
        """True when the claim should be surfaced to the user."""
        return not self.should_retry or self.risk_assessment is RiskLevel.HIGH

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_retry": self.should_retry,
            "confidence": round(self.confidence, 3),
            "estimated_wait_time": self.estimated_wait_time or UNKNOWN_WAIT,
            "estimated_wait_seconds": self.estimated_wait_seconds,
            "queue_position": self.queue_position,
            "alternative_actions": [a.to_dict() for a in self.alternative_actions],
            "risk_assessment": self.risk_assessment.value,
        }


@dataclass(frozen=True)
class ServiceStats:
    """Aggregate statistics for a retry service instance.

    ``prediction_accuracy`` and ``retry_effectiveness`` are None until
    enough outcomes have been observed to compute them.
    """

    total_claims_tracked: int
    total_retry_attempts: int
    error_type_distribution: dict[ErrorCategory, int]
    average_attempts_per_claim: float
    most_common_error_type: ErrorCategory | None
    prediction_accuracy: float | None
    retry_effectiveness: float | None
    resolved_predictions: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_claims_tracked": self.total_claims_tracked,
            "total_retry_attempts": self.total_retry_attempts,
            "error_type_distribution": {
                k.value: v for k, v in self.error_type_distribution.items()
            },
            "average_attempts_per_claim": round(self.average_attempts_per_claim, 3),
            "most_common_error_type": (
                self.most_common_error_type.value if self.most_common_error_type else None
            ),
            "prediction_accuracy": self.prediction_accuracy,
            "retry_effectiveness": self.retry_effectiveness,
            "resolved_predictions": self.resolved_predictions,
        }
