"""Retry policy and backoff configuration.

Defines the attempt limits and delay tables used by the retry policy
evaluator and the backoff scheduler.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from badgeretry.core.constants import ONE_HOUR_MS
from badgeretry.core.errors import ErrorCategory

DEFAULT_BASE_DELAYS_MS: dict[ErrorCategory, int] = {
    ErrorCategory.GAS: 45_000,  # gas issues resolve quickly
    ErrorCategory.NETWORK: 120_000,
    ErrorCategory.TIMEOUT: 90_000,
    ErrorCategory.NONCE: 60_000,
    ErrorCategory.BALANCE: 300_000,  # waits on the user funding the wallet
    ErrorCategory.TRANSACTION_REVERTED: 180_000,
    ErrorCategory.UNKNOWN: 300_000,
}

DEFAULT_RETRY_LIMITS: dict[ErrorCategory, int] = {
    ErrorCategory.GAS: 3,
    ErrorCategory.NETWORK: 5,
    ErrorCategory.TIMEOUT: 4,
    ErrorCategory.NONCE: 3,
    ErrorCategory.BALANCE: 2,
    ErrorCategory.TRANSACTION_REVERTED: 4,
    ErrorCategory.UNKNOWN: 3,
}


def _merge_defaults(value: Any, defaults: dict[ErrorCategory, int]) -> Any:
    """Overlay a partial per-category table on the defaults."""
    if value is None:
        return dict(defaults)
    if isinstance(value, dict):
        merged: dict[Any, Any] = dict(defaults)
        merged.update(value)
        return merged
    return value


class RetryPolicyConfig(BaseModel):
    """Configuration for retry limits and backoff timing.

    Per-category tables may be given partially; missing categories keep
    their defaults.

    Example:
        retry:
          global_max_retries: 5
          base_delays_ms:
            gas_error: 30000
          retry_limits:
            network_error: 4
    """

    global_max_retries: int = Field(
        default=5, ge=0, description="Absolute cap on attempts for any category"
    )
    base_delays_ms: dict[ErrorCategory, int] = Field(
        default_factory=lambda: dict(DEFAULT_BASE_DELAYS_MS),
        description="Base backoff delay per category (milliseconds)",
    )
    fallback_base_delay_ms: int = Field(
        default=30_000, gt=0, description="Base delay for categories missing from the table"
    )
    max_delay_ms: int = Field(
        default=ONE_HOUR_MS, gt=0, description="Maximum backoff delay (1 hour)"
    )
    exponential_base: float = Field(
        default=1.5, gt=1, description="Backoff growth factor per attempt"
    )
    jitter_factor: float = Field(
        default=0.1, ge=0, lt=1, description="Upper bound of the uniform jitter fraction"
    )
    retry_limits: dict[ErrorCategory, int] = Field(
        default_factory=lambda: dict(DEFAULT_RETRY_LIMITS),
        description="Per-category attempt limits",
    )
    default_retry_limit: int = Field(
        default=3, ge=0, description="Attempt limit for categories missing from the table"
    )
    non_retryable: set[ErrorCategory] = Field(
        default_factory=lambda: {ErrorCategory.NULLIFIER_REUSE},
        description="Categories that are never retried",
    )

    @field_validator("base_delays_ms", mode="before")
    @classmethod
    def _fill_base_delays(cls, value: Any) -> Any:
        return _merge_defaults(value, DEFAULT_BASE_DELAYS_MS)

    @field_validator("retry_limits", mode="before")
    @classmethod
    def _fill_retry_limits(cls, value: Any) -> Any:
        return _merge_defaults(value, DEFAULT_RETRY_LIMITS)

    @model_validator(mode="after")
    def _validate_policy(self) -> RetryPolicyConfig:
        if ErrorCategory.NULLIFIER_REUSE not in self.non_retryable:
            raise ValueError(
                "nullifier_reuse must stay non-retryable: a consumed proof can never be reused"
            )
        for category, delay in self.base_delays_ms.items():
            if delay <= 0:
                raise ValueError(f"base_delays_ms[{category.value}] must be positive, got {delay}")
        for category, limit in self.retry_limits.items():
            if limit < 0:
                raise ValueError(f"retry_limits[{category.value}] must be >= 0, got {limit}")
        return self
