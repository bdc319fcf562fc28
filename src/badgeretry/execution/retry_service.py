"""Badge retry service: per-claim bookkeeping and the public retry API.

The service owns all per-claim state, keyed by claim id:

- the attempt history (appended on every failure, cleared on success or
  abandonment)
- the latest failure pattern snapshot
- the pending success prediction made by the last recommendation

It also keeps aggregate outcome counters so ``get_service_stats`` can
report how accurate the predictions were and how often retrying recovered
a claim. There is no process-wide instance; create one per orchestrator.

Example usage:
    service = BadgeRetryService()
    pattern = service.analyze_failure(str(exc), badge)
    service.track_retry_attempt(badge, str(exc))
    recommendation = service.generate_retry_recommendation(badge)
    if recommendation.should_retry:
        await asyncio.sleep(pattern.suggested_delay_ms / 1000)
"""

from __future__ import annotations

import hashlib
import random
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from badgeretry.core.claims import (
    AdaptiveStrategy,
    BadgeContext,
    ClaimFailurePattern,
    EnvironmentContext,
    QueueState,
    RetryAttempt,
    RetryRecommendation,
    RetryStats,
    RiskLevel,
    ServiceStats,
)
from badgeretry.core.config import BadgeRetryConfig
from badgeretry.core.constants import ERROR_HASH_LENGTH
from badgeretry.core.errors import ClassifiedError, ErrorCategory, ErrorClassifier
from badgeretry.core.logging import get_logger
from badgeretry.execution.backoff import BackoffScheduler
from badgeretry.execution.prediction import (
    OutcomePredictor,
    dominant_category,
    most_frequent,
    time_span_ms,
)
from badgeretry.execution.recommendation import RecommendationEngine
from badgeretry.execution.retry_policy import RetryPolicyEvaluator
from badgeretry.utils.time import utc_now

_logger = get_logger("retry_service")

PREDICTION_SUCCESS_THRESHOLD = 0.5
"""A prediction at or above this counts as "will succeed" when scoring accuracy."""


def hash_error(message: str) -> str:
    """Stable short digest of a lower-cased error message."""
    digest = hashlib.sha256(message.lower().encode("utf-8")).hexdigest()
    return digest[:ERROR_HASH_LENGTH]


@dataclass(frozen=True)
class PredictionOutcome:
    """A recommendation's predicted probability paired with what happened."""

    claim_id: str
    predicted: float
    succeeded: bool
    resolved_at: datetime

    @property
    def correct(self) -> bool:
        return (self.predicted >= PREDICTION_SUCCESS_THRESHOLD) == self.succeeded


class BadgeRetryService:
    """Retry bookkeeping and decisions for badge claims.

    Args:
        config: Service configuration. Uses defaults if not provided.
        classifier: Error classifier. Defaults to the standard keyword table.
        rng: Random source for backoff jitter.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        config: BadgeRetryConfig | None = None,
        classifier: ErrorClassifier | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or BadgeRetryConfig()
        self.classifier = classifier or ErrorClassifier()
        self.scheduler = BackoffScheduler(self.config.retry, rng=rng)
        self.evaluator = RetryPolicyEvaluator(self.config.retry)
        self.predictor = OutcomePredictor(self.config.scoring)
        self.recommender = RecommendationEngine(
            predictor=self.predictor,
            evaluator=self.evaluator,
            config=self.config.recommendation,
        )
        self._clock = clock or utc_now

        self._attempts: dict[str, list[RetryAttempt]] = {}
        self._patterns: dict[str, ClaimFailurePattern] = {}
        self._pending_predictions: dict[str, float] = {}
        self._resolved_predictions = 0
        self._correct_predictions = 0
        self._recovered_claims = 0
        self._abandoned_claims = 0

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def classify(self, error_message: str | None) -> ClassifiedError:
        return self.classifier.classify(error_message)

    def should_retry(self, category: ErrorCategory, attempt_count: int) -> bool:
        return self.evaluator.should_retry(category, attempt_count)

    def compute_delay(self, category: ErrorCategory, attempt_count: int) -> int:
        return self.scheduler.compute_delay(category, attempt_count)

    # ------------------------------------------------------------------
    # Failure analysis and tracking
    # ------------------------------------------------------------------

    def analyze_failure(
        self,
        error_message: str | None,
        badge: BadgeContext,
        previous_attempts: Sequence[RetryAttempt] | None = None,
    ) -> ClaimFailurePattern:
        """Classify a failure and store the claim's latest failure pattern.

        Args:
            error_message: Raw error text from the failed attempt.
            badge: Claim that failed.
            previous_attempts: Attempts made before this failure. Defaults to
                the claim's tracked history.

        Returns:
            The new pattern, which replaces any earlier one for the claim.
        """
        if previous_attempts is None:
            previous_attempts = self._attempts.get(badge.badge_id, [])
        attempt_count = len(previous_attempts)

        classified = self.classifier.classify(error_message)
        pattern = ClaimFailurePattern(
            claim_id=badge.badge_id,
            category=classified.category,
            confidence=classified.confidence,
            suggested_delay_ms=self.scheduler.compute_delay(classified.category, attempt_count),
            retry_recommended=self.evaluator.should_retry(classified.category, attempt_count),
            strategy=self.evaluator.strategy_for(classified.category, badge),
            analyzed_at=self._clock(),
            error_hash=hash_error(classified.message),
            badge_context=badge,
        )
        self._patterns[badge.badge_id] = pattern

        _logger.info(
            "retry_service.failure_analyzed",
            claim_id=badge.badge_id,
            category=pattern.category.value,
            attempt_count=attempt_count,
            retry_recommended=pattern.retry_recommended,
            suggested_delay_ms=pattern.suggested_delay_ms,
            error_hash=pattern.error_hash,
        )
        return pattern

    def track_retry_attempt(
        self,
        badge: BadgeContext,
        error_message: str | None,
        strategy: AdaptiveStrategy | None = None,
        environment: EnvironmentContext | None = None,
    ) -> RetryAttempt:
        """Append a failed attempt to the claim's history.

        Any prediction pending for the claim resolves as a failure.
        """
        raw = error_message or ""
        category = self.classifier.classify_category(raw)
        attempt = RetryAttempt(
            claim_id=badge.badge_id,
            timestamp=self._clock(),
            raw_error_message=raw,
            category=category,
            strategy=strategy or self.evaluator.strategy_for(category, badge),
            badge_context=badge,
            environment_context=environment or EnvironmentContext(),
        )
        history = self._attempts.setdefault(badge.badge_id, [])
        history.append(attempt)
        self._resolve_prediction(badge.badge_id, succeeded=False)

        _logger.info(
            "retry_service.attempt_tracked",
            claim_id=badge.badge_id,
            category=category.value,
            attempt_number=len(history),
        )
        return attempt

    def restore_attempts(self, claim_id: str, attempts: Sequence[RetryAttempt]) -> None:
        """Replace a claim's tracked history, e.g. with one loaded from a backend."""
        if attempts:
            self._attempts[claim_id] = list(attempts)
        else:
            self._attempts.pop(claim_id, None)
        _logger.debug("retry_service.history_restored", claim_id=claim_id, attempts=len(attempts))

    def get_retry_attempts(self, claim_id: str) -> list[RetryAttempt]:
        """Copy of the claim's attempt history, oldest first."""
        return list(self._attempts.get(claim_id, []))

    def get_failure_pattern(self, claim_id: str) -> ClaimFailurePattern | None:
        return self._patterns.get(claim_id)

    def tracked_claims(self) -> list[str]:
        return list(self._attempts)

    def get_retry_stats(self, claim_id: str) -> RetryStats | None:
        """Summary of a claim's attempts, or None when nothing is tracked."""
        history = self._attempts.get(claim_id)
        if not history:
            return None

        dominant = dominant_category(history)
        assert dominant is not None
        return RetryStats(
            claim_id=claim_id,
            total_attempts=len(history),
            error_distribution=dict(Counter(a.category for a in history)),
            dominant_category=dominant,
            time_span_ms=time_span_ms(history, self._clock()),
            last_attempt_at=history[-1].timestamp,
            recommended_next_action=history[-1].strategy.action,
            trend=self.predictor.calculate_trend(history),
        )

    # ------------------------------------------------------------------
    # Prediction and recommendation
    # ------------------------------------------------------------------

    def _history_for(
        self,
        badge: BadgeContext,
        history: Sequence[RetryAttempt] | None,
    ) -> Sequence[RetryAttempt]:
        if history is not None:
            return history
        return self._attempts.get(badge.badge_id, [])

    def predict_success(
        self,
        badge: BadgeContext,
        history: Sequence[RetryAttempt] | None = None,
    ) -> float:
        """Probability the next attempt succeeds; history defaults to the tracked one."""
        return self.predictor.predict_success(badge, self._history_for(badge, history))

    def assess_risk(
        self,
        history: Sequence[RetryAttempt],
        now: datetime | None = None,
    ) -> RiskLevel:
        return self.predictor.assess_risk(history, now or self._clock())

    def generate_retry_recommendation(
        self,
        badge: BadgeContext,
        history: Sequence[RetryAttempt] | None = None,
        queue_state: QueueState | None = None,
    ) -> RetryRecommendation:
        """Compose a recommendation and remember its confidence.

        The confidence is kept as the claim's pending prediction and is
        scored when the claim next fails, succeeds or is abandoned. A newer
        recommendation replaces an unresolved one.
        """
        recommendation = self.recommender.generate(
            badge,
            self._history_for(badge, history),
            queue_state,
            now=self._clock(),
        )
        self._pending_predictions[badge.badge_id] = recommendation.confidence
        return recommendation

    def _resolve_prediction(self, claim_id: str, *, succeeded: bool) -> None:
        predicted = self._pending_predictions.pop(claim_id, None)
        if predicted is None:
            return
        outcome = PredictionOutcome(
            claim_id=claim_id,
            predicted=predicted,
            succeeded=succeeded,
            resolved_at=self._clock(),
        )
        self._resolved_predictions += 1
        if outcome.correct:
            self._correct_predictions += 1
        _logger.debug(
            "retry_service.prediction_resolved",
            claim_id=claim_id,
            predicted=round(predicted, 3),
            succeeded=succeeded,
            correct=outcome.correct,
        )

    # ------------------------------------------------------------------
    # Claim resolution
    # ------------------------------------------------------------------

    def record_success(self, claim_id: str) -> None:
        """Mark a claim as minted and drop its retry state.

        A claim that had failed at least once counts as recovered by retrying.
        """
        had_failures = bool(self._attempts.get(claim_id))
        self._resolve_prediction(claim_id, succeeded=True)
        if had_failures:
            self._recovered_claims += 1
        self.clear_retry_data(claim_id)
        _logger.info("retry_service.claim_succeeded", claim_id=claim_id, recovered=had_failures)

    def abandon_claim(self, claim_id: str, reason: str) -> None:
        """Stop retrying a claim and drop its retry state."""
        had_failures = bool(self._attempts.get(claim_id))
        self._resolve_prediction(claim_id, succeeded=False)
        if had_failures:
            self._abandoned_claims += 1
        self.clear_retry_data(claim_id)
        _logger.warning("retry_service.claim_abandoned", claim_id=claim_id, reason=reason)

    def clear_retry_data(self, claim_id: str) -> bool:
        """Remove the claim's attempts, pattern and pending prediction.

        Returns:
            True if any state existed for the claim.
        """
        removed = self._attempts.pop(claim_id, None) is not None
        removed = (self._patterns.pop(claim_id, None) is not None) or removed
        removed = (self._pending_predictions.pop(claim_id, None) is not None) or removed
        if removed:
            _logger.debug("retry_service.data_cleared", claim_id=claim_id)
        return removed

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def get_service_stats(self) -> ServiceStats:
        """Aggregate statistics across tracked claims and resolved outcomes."""
        attempts = sorted(
            (a for history in self._attempts.values() for a in history),
            key=lambda a: a.timestamp,
        )
        distribution = Counter(a.category for a in attempts)
        total_attempts = len(attempts)
        claims = len(self._attempts)

        accuracy: float | None = None
        if self._resolved_predictions:
            accuracy = self._correct_predictions / self._resolved_predictions

        effectiveness: float | None = None
        finished = self._recovered_claims + self._abandoned_claims
        if finished:
            effectiveness = self._recovered_claims / finished

        return ServiceStats(
            total_claims_tracked=claims,
            total_retry_attempts=total_attempts,
            error_type_distribution=dict(distribution),
            average_attempts_per_claim=total_attempts / claims if claims else 0.0,
            most_common_error_type=most_frequent(a.category for a in attempts),
            prediction_accuracy=accuracy,
            retry_effectiveness=effectiveness,
            resolved_predictions=self._resolved_predictions,
        )
