"""Retry recommendation composition.

Combines the success prediction, the global retry cap, a queue-position
estimate and category-driven alternative actions into one
RetryRecommendation for a claim.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from badgeretry.core.claims import (
    AlternativeAction,
    BadgeContext,
    QueueState,
    RetryAttempt,
    RetryRecommendation,
)
from badgeretry.core.config import RecommendationConfig, RetryPolicyConfig
from badgeretry.core.constants import UNKNOWN_WAIT
from badgeretry.core.errors import ErrorCategory, Priority
from badgeretry.core.logging import get_logger
from badgeretry.execution.prediction import OutcomePredictor, dominant_category
from badgeretry.execution.retry_policy import RetryPolicyEvaluator
from badgeretry.utils.time import format_duration

_logger = get_logger("recommendation")


def attempt_count_for(badge: BadgeContext, history: Sequence[RetryAttempt]) -> int:
    """Attempts already made: the backend's retry_count when reported, else local history."""
    if badge.retry_count is not None:
        return badge.retry_count
    return len(history)


class RecommendationEngine:
    """Builds RetryRecommendations from a claim and its history.

    Args:
        predictor: Source of success probability and risk.
        evaluator: Source of adaptive strategies and the global retry cap.
        config: Queue and alternative-action settings.
    """

    def __init__(
        self,
        predictor: OutcomePredictor | None = None,
        evaluator: RetryPolicyEvaluator | None = None,
        config: RecommendationConfig | None = None,
    ) -> None:
        self.predictor = predictor or OutcomePredictor()
        self.evaluator = evaluator or RetryPolicyEvaluator()
        self.config = config or RecommendationConfig()

    @property
    def retry_config(self) -> RetryPolicyConfig:
        return self.evaluator.config

    def estimate_queue_position(
        self,
        badge: BadgeContext,
        retry_count: int,
        queue_state: QueueState | None,
    ) -> int | None:
        """Estimated position in the backend retry queue.

        Higher tiers start nearer the front; every previous retry pushes the
        claim back. The result never exceeds the reported queue size.
        """
        if queue_state is None:
            return None
        priority = self.config.tier_queue_priority.get(
            badge.tier, self.config.default_queue_priority
        )
        position = priority + self.config.retry_queue_penalty * retry_count
        capacity = queue_state.total_in_queue or self.config.default_queue_size
        return min(position, capacity)

    def estimate_wait_seconds(
        self,
        position: int | None,
        queue_state: QueueState | None,
    ) -> float | None:
        if position is None or queue_state is None:
            return None
        per_item = (
            queue_state.avg_processing_time_seconds
            or self.config.default_avg_processing_seconds
        )
        return position * per_item

    def alternative_actions(
        self,
        badge: BadgeContext,
        history: Sequence[RetryAttempt],
    ) -> list[AlternativeAction]:
        """Actions suggested from the history's dominant category."""
        dominant = dominant_category(history)
        if dominant is None:
            return []

        actions: list[AlternativeAction] = []
        strategy = self.evaluator.strategy_for(dominant, badge)
        if strategy.requires_user_action:
            actions.append(
                AlternativeAction(
                    action=strategy.suggested_action or self.config.default_user_action,
                    priority=Priority.HIGH,
                    automated=False,
                )
            )
        if dominant is ErrorCategory.GAS:
            actions.append(
                AlternativeAction(
                    action=self.config.gas_alternative_action,
                    priority=Priority.MEDIUM,
                    automated=True,
                )
            )
        return actions

    def generate(
        self,
        badge: BadgeContext,
        history: Sequence[RetryAttempt],
        queue_state: QueueState | None = None,
        now: datetime | None = None,
    ) -> RetryRecommendation:
        """Compose a recommendation for the claim's next step.

        Args:
            badge: Claim being retried.
            history: Prior failed attempts, oldest first.
            queue_state: Backend queue snapshot; None leaves position and
                wait unknown.
            now: Reference time for the risk time span.
        """
        confidence = self.predictor.predict_success(badge, history)
        attempts = attempt_count_for(badge, history)
        should_retry = (
            confidence > self.config.retry_confidence_threshold
            and attempts < self.retry_config.global_max_retries
        )

        position = self.estimate_queue_position(badge, attempts, queue_state)
        wait_seconds = self.estimate_wait_seconds(position, queue_state)
        wait_text = format_duration(wait_seconds) if wait_seconds is not None else UNKNOWN_WAIT

        recommendation = RetryRecommendation(
            should_retry=should_retry,
            confidence=confidence,
            estimated_wait_seconds=wait_seconds,
            estimated_wait_time=wait_text,
            queue_position=position,
            alternative_actions=self.alternative_actions(badge, history),
            risk_assessment=self.predictor.assess_risk(history, now),
        )

        _logger.info(
            "recommendation.generated",
            claim_id=badge.badge_id,
            should_retry=should_retry,
            confidence=round(confidence, 3),
            attempts=attempts,
            queue_position=position,
            risk=recommendation.risk_assessment.value,
        )
        return recommendation
