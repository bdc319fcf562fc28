"""Outcome prediction and risk assessment for claim retries.

Heuristic scoring over a claim's attempt history:

- Trend compares the mean severity of the most recent attempts against the
  mean of everything before them.
- Success probability starts from the latest category's baseline and is
  adjusted for attempt count, trend and badge tier, then clamped.
- Risk is an additive score of warning signs mapped to low/medium/high.

Every weight comes from ScoringPolicy; nothing here is hard-coded.

Example usage:
    predictor = OutcomePredictor()
    trend = predictor.calculate_trend(history)
    probability = predictor.predict_success(badge, history)
    risk = predictor.assess_risk(history)
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime

from badgeretry.core.claims import BadgeContext, RetryAttempt, RiskLevel, Trend
from badgeretry.core.config import ScoringPolicy
from badgeretry.core.constants import MS_PER_SECOND
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.logging import get_logger
from badgeretry.utils.time import utc_now

_logger = get_logger("prediction")


def most_frequent(categories: Iterable[ErrorCategory]) -> ErrorCategory | None:
    """Most frequent category in an ordered stream of categories.

    Ties go to the category that first appeared later in the stream.
    Returns None for an empty stream.
    """
    counts = Counter(categories)
    best: ErrorCategory | None = None
    for category, count in counts.items():
        if best is None or count >= counts[best]:
            best = category
    return best


def dominant_category(history: Sequence[RetryAttempt]) -> ErrorCategory | None:
    """Most frequent category in a history; ties follow most_frequent."""
    return most_frequent(attempt.category for attempt in history)


def time_span_ms(history: Sequence[RetryAttempt], now: datetime | None = None) -> int:
    """Milliseconds from the first attempt to ``now``; 0 for an empty history."""
    if not history:
        return 0
    now = now or utc_now()
    elapsed = (now - history[0].timestamp).total_seconds()
    return max(0, int(elapsed * MS_PER_SECOND))


class OutcomePredictor:
    """Trend detection, success prediction and risk scoring.

    Args:
        policy: Scoring weights and thresholds. Uses defaults if not provided.
    """

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self.policy = policy or ScoringPolicy()

    def severity_of(self, category: ErrorCategory) -> float:
        return self.policy.severity_scores.get(category, self.policy.default_severity)

    def calculate_trend(self, history: Sequence[RetryAttempt]) -> Trend:
        """Classify how failure severity is moving across the history.

        Fewer than two attempts gives ``insufficient_data``. When every attempt
        falls inside the recent window, the earlier mean equals the recent
        mean and the trend is stable.
        """
        if len(history) < 2:
            return Trend.INSUFFICIENT_DATA

        window = self.policy.trend_window
        recent = [self.severity_of(a.category) for a in history[-window:]]
        earlier = [self.severity_of(a.category) for a in history[:-window]]

        recent_mean = sum(recent) / len(recent)
        earlier_mean = sum(earlier) / len(earlier) if earlier else recent_mean

        if recent_mean < earlier_mean * self.policy.improving_ratio:
            return Trend.IMPROVING
        if recent_mean > earlier_mean * self.policy.degrading_ratio:
            return Trend.DEGRADING
        return Trend.STABLE

    def predict_success(
        self,
        badge: BadgeContext,
        history: Sequence[RetryAttempt],
    ) -> float:
        """Probability that the next attempt succeeds.

        Args:
            badge: Claim being retried; its tier selects the multiplier.
            history: Prior failed attempts, oldest first.

        Returns:
            Probability within [probability_floor, probability_ceiling]. An
            empty history returns ``default_success_rate`` unadjusted.
        """
        policy = self.policy
        if not history:
            return policy.default_success_rate

        latest = history[-1].category
        probability = policy.base_success_rates.get(latest, policy.fallback_success_rate)

        probability -= min(
            len(history) * policy.attempt_penalty_per_attempt,
            policy.attempt_penalty_cap,
        )

        trend = self.calculate_trend(history)
        if trend is Trend.IMPROVING:
            probability += policy.improving_bonus
        elif trend is Trend.DEGRADING:
            probability -= policy.degrading_penalty

        probability *= policy.tier_multipliers.get(badge.tier, 1.0)
        clamped = max(policy.probability_floor, min(policy.probability_ceiling, probability))

        _logger.debug(
            "prediction.success_predicted",
            claim_id=badge.badge_id,
            latest_category=latest.value,
            attempts=len(history),
            trend=trend.value,
            probability=round(clamped, 4),
        )
        return clamped

    def risk_score(self, history: Sequence[RetryAttempt], now: datetime | None = None) -> int:
        """Additive warning-sign score behind ``assess_risk``."""
        policy = self.policy
        if not history:
            return 0

        score = 0
        if len(history) >= policy.risk_attempt_threshold:
            score += policy.risk_attempt_weight
        if len(history) >= policy.risk_elevated_attempt_threshold:
            score += policy.risk_attempt_weight

        if self.calculate_trend(history) is Trend.DEGRADING:
            score += policy.risk_degrading_weight

        if dominant_category(history) in policy.risk_user_action_categories:
            score += policy.risk_user_action_weight

        if time_span_ms(history, now) > policy.risk_time_span_ms:
            score += policy.risk_time_span_weight

        return score

    def assess_risk(self, history: Sequence[RetryAttempt], now: datetime | None = None) -> RiskLevel:
        """Risk of continuing automatic retries for a claim.

        Args:
            history: Prior failed attempts, oldest first.
            now: Reference time for the elapsed span. Defaults to the current UTC time.
        """
        score = self.risk_score(history, now)
        if score >= self.policy.risk_high_threshold:
            return RiskLevel.HIGH
        if score >= self.policy.risk_medium_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW
