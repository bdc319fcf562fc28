"""Scoring policy for outcome prediction, risk and recommendations.

The trend, success-probability and risk heuristics are hand-tuned linear
scores. Every weight and threshold lives here so the heuristics can be
retuned without touching the classifier or the backoff scheduler.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from badgeretry.core.claims import BadgeTier
from badgeretry.core.constants import ONE_HOUR_MS
from badgeretry.core.errors import ErrorCategory

DEFAULT_SUCCESS_RATES: dict[ErrorCategory, float] = {
    ErrorCategory.GAS: 0.85,
    ErrorCategory.NETWORK: 0.70,
    ErrorCategory.TIMEOUT: 0.75,
    ErrorCategory.NONCE: 0.90,
    ErrorCategory.BALANCE: 0.60,
    ErrorCategory.TRANSACTION_REVERTED: 0.65,
    ErrorCategory.UNKNOWN: 0.50,
}

DEFAULT_SEVERITY_SCORES: dict[ErrorCategory, float] = {
    ErrorCategory.NULLIFIER_REUSE: 10,
    ErrorCategory.BALANCE: 8,
    ErrorCategory.GAS: 6,
    ErrorCategory.TRANSACTION_REVERTED: 6,
    ErrorCategory.NONCE: 4,
    ErrorCategory.NETWORK: 3,
    ErrorCategory.TIMEOUT: 3,
    ErrorCategory.UNKNOWN: 5,
}

DEFAULT_TIER_MULTIPLIERS: dict[str, float] = {
    BadgeTier.LEGENDARY.value: 1.1,
    BadgeTier.EPIC.value: 1.05,
    BadgeTier.RARE.value: 1.0,
    BadgeTier.COMMON.value: 0.95,
}

DEFAULT_TIER_QUEUE_PRIORITY: dict[str, int] = {
    BadgeTier.LEGENDARY.value: 1,
    BadgeTier.EPIC.value: 2,
    BadgeTier.RARE.value: 3,
    BadgeTier.COMMON.value: 4,
}


def _overlay(value: Any, defaults: dict[Any, Any]) -> Any:
    if value is None:
        return dict(defaults)
    if isinstance(value, dict):
        return {**defaults, **value}
    return value


class ScoringPolicy(BaseModel):
    """Weights for trend detection, success prediction and risk scoring."""

    # Success prediction
    default_success_rate: float = Field(
        default=0.75, ge=0, le=1, description="Prediction when a claim has no history"
    )
    base_success_rates: dict[ErrorCategory, float] = Field(
        default_factory=lambda: dict(DEFAULT_SUCCESS_RATES),
        description="Baseline retry success probability per latest category",
    )
    fallback_success_rate: float = Field(default=0.50, ge=0, le=1)
    attempt_penalty_per_attempt: float = Field(default=0.10, ge=0)
    attempt_penalty_cap: float = Field(default=0.40, ge=0)
    improving_bonus: float = Field(default=0.15, ge=0)
    degrading_penalty: float = Field(default=0.20, ge=0)
    tier_multipliers: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_TIER_MULTIPLIERS),
        description="Multiplier per badge tier; unknown tiers use 1.0",
    )
    probability_floor: float = Field(default=0.05, ge=0, le=1)
    probability_ceiling: float = Field(default=0.95, ge=0, le=1)

    # Trend
    severity_scores: dict[ErrorCategory, float] = Field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_SCORES),
    )
    default_severity: float = Field(default=5, ge=0)
    trend_window: int = Field(
        default=3, ge=1, description="Number of most recent attempts compared against the rest"
    )
    improving_ratio: float = Field(
        default=0.8, gt=0, description="Recent severity below earlier × ratio is improving"
    )
    degrading_ratio: float = Field(
        default=1.2, gt=0, description="Recent severity above earlier × ratio is degrading"
    )

    # Risk
    risk_attempt_threshold: int = Field(default=3, ge=1)
    risk_elevated_attempt_threshold: int = Field(default=4, ge=1)
    risk_attempt_weight: int = Field(default=2, ge=0)
    risk_degrading_weight: int = Field(default=3, ge=0)
    risk_user_action_categories: set[ErrorCategory] = Field(
        default_factory=lambda: {ErrorCategory.BALANCE, ErrorCategory.NULLIFIER_REUSE},
        description="Dominant categories that need the user rather than a retry",
    )
    risk_user_action_weight: int = Field(default=2, ge=0)
    risk_time_span_ms: int = Field(default=ONE_HOUR_MS, gt=0)
    risk_time_span_weight: int = Field(default=1, ge=0)
    risk_high_threshold: int = Field(default=6, ge=1)
    risk_medium_threshold: int = Field(default=3, ge=1)

    @field_validator("base_success_rates", mode="before")
    @classmethod
    def _fill_success_rates(cls, value: Any) -> Any:
        return _overlay(value, DEFAULT_SUCCESS_RATES)

    @field_validator("severity_scores", mode="before")
    @classmethod
    def _fill_severity(cls, value: Any) -> Any:
        return _overlay(value, DEFAULT_SEVERITY_SCORES)

    @field_validator("tier_multipliers", mode="before")
    @classmethod
    def _fill_tiers(cls, value: Any) -> Any:
        return _overlay(value, DEFAULT_TIER_MULTIPLIERS)

    @model_validator(mode="after")
    def _validate_ranges(self) -> ScoringPolicy:
        if self.probability_floor > self.probability_ceiling:
            raise ValueError(
                f"probability_floor ({self.probability_floor}) must not exceed "
                f"probability_ceiling ({self.probability_ceiling})"
            )
        if self.improving_ratio > self.degrading_ratio:
            raise ValueError("improving_ratio must not exceed degrading_ratio")
        if self.risk_medium_threshold > self.risk_high_threshold:
            raise ValueError("risk_medium_threshold must not exceed risk_high_threshold")
        return self


class RecommendationConfig(BaseModel):
    """Configuration for composing retry recommendations."""

    retry_confidence_threshold: float = Field(
        default=0.30,
        ge=0,
        le=1,
        description="Predicted success must exceed this to recommend a retry",
    )
    tier_queue_priority: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_TIER_QUEUE_PRIORITY),
    )
    default_queue_priority: int = Field(default=4, ge=1)
    retry_queue_penalty: int = Field(
        default=2, ge=0, description="Queue positions added per previous retry"
    )
    default_queue_size: int = Field(
        default=10, ge=1, description="Queue size assumed when the backend reports none"
    )
    default_avg_processing_seconds: float = Field(default=30.0, gt=0)
    gas_alternative_action: str = Field(default="Increase gas limit by 20%")
    default_user_action: str = Field(default="Check wallet and try again")

    @field_validator("tier_queue_priority", mode="before")
    @classmethod
    def _fill_queue_priority(cls, value: Any) -> Any:
        return _overlay(value, DEFAULT_TIER_QUEUE_PRIORITY)
