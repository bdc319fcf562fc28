"""Retry decision and execution layer."""

from badgeretry.execution.backoff import BackoffScheduler
from badgeretry.execution.prediction import OutcomePredictor, dominant_category, time_span_ms
from badgeretry.execution.recommendation import RecommendationEngine, attempt_count_for
from badgeretry.execution.retry_policy import PolicyDecision, RetryPolicyEvaluator
from badgeretry.execution.retry_service import BadgeRetryService, PredictionOutcome, hash_error
from badgeretry.execution.runner import ClaimOutcome, ClaimRetryRunner, ClaimStatus

__all__ = [
    "BackoffScheduler",
    "BadgeRetryService",
    "ClaimOutcome",
    "ClaimRetryRunner",
    "ClaimStatus",
    "OutcomePredictor",
    "PolicyDecision",
    "PredictionOutcome",
    "RecommendationEngine",
    "RetryPolicyEvaluator",
    "attempt_count_for",
    "dominant_category",
    "hash_error",
    "time_span_ms",
]
