"""Core domain models and configuration."""

from badgeretry.core.claims import (
    AdaptiveStrategy,
    BadgeContext,
    BadgeTier,
    EnvironmentContext,
    QueueState,
    RetryAttempt,
    RetryRecommendation,
    RiskLevel,
    Trend,
)
from badgeretry.core.config import BadgeRetryConfig, RetryPolicyConfig, ScoringPolicy
from badgeretry.core.errors import ClassifiedError, ErrorCategory, ErrorClassifier, Priority

__all__ = [
    "AdaptiveStrategy",
    "BadgeContext",
    "BadgeRetryConfig",
    "BadgeTier",
    "ClassifiedError",
    "EnvironmentContext",
    "ErrorCategory",
    "ErrorClassifier",
    "Priority",
    "QueueState",
    "RetryAttempt",
    "RetryPolicyConfig",
    "RetryRecommendation",
    "RiskLevel",
    "ScoringPolicy",
    "Trend",
]
