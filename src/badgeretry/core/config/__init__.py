"""Configuration models for the badge retry engine.

Pydantic models for loading and validating YAML configuration. All models
are re-exported here.
"""

from badgeretry.core.config.retry import (
    DEFAULT_BASE_DELAYS_MS,
    DEFAULT_RETRY_LIMITS,
    RetryPolicyConfig,
)
from badgeretry.core.config.scoring import (
    DEFAULT_SEVERITY_SCORES,
    DEFAULT_SUCCESS_RATES,
    DEFAULT_TIER_MULTIPLIERS,
    DEFAULT_TIER_QUEUE_PRIORITY,
    RecommendationConfig,
    ScoringPolicy,
)
from badgeretry.core.config.service import (
    BadgeRetryConfig,
    HistoryConfig,
    LogConfig,
)

__all__ = [
    "DEFAULT_BASE_DELAYS_MS",
    "DEFAULT_RETRY_LIMITS",
    "DEFAULT_SEVERITY_SCORES",
    "DEFAULT_SUCCESS_RATES",
    "DEFAULT_TIER_MULTIPLIERS",
    "DEFAULT_TIER_QUEUE_PRIORITY",
    "BadgeRetryConfig",
    "HistoryConfig",
    "LogConfig",
    "RecommendationConfig",
    "RetryPolicyConfig",
    "ScoringPolicy",
]
