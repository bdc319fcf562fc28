"""Tests for badgeretry.execution.recommendation."""

import pytest

from badgeretry.core.claims import BadgeContext, QueueState, RiskLevel
from badgeretry.core.config import RecommendationConfig
from badgeretry.core.errors import ErrorCategory, Priority
from badgeretry.execution.recommendation import RecommendationEngine, attempt_count_for


class TestAttemptCount:
    def test_uses_history_length_by_default(self, badge, make_history) -> None:
        history = make_history(ErrorCategory.GAS, ErrorCategory.GAS)
        assert attempt_count_for(badge, history) == 2

    def test_backend_retry_count_wins(self, make_history) -> None:
        badge = BadgeContext(badge_id="b", retry_count=4)
        assert attempt_count_for(badge, make_history(ErrorCategory.GAS)) == 4

    def test_zero_retry_count_is_respected(self, make_history) -> None:
        badge = BadgeContext(badge_id="b", retry_count=0)
        assert attempt_count_for(badge, make_history(ErrorCategory.GAS)) == 0


class TestQueueEstimates:
    """Queue position and wait time."""

    def test_no_queue_state_means_unknown(self, badge) -> None:
        engine = RecommendationEngine()
        assert engine.estimate_queue_position(badge, 0, None) is None
        assert engine.estimate_wait_seconds(None, None) is None

    @pytest.mark.parametrize(
        ("tier", "retries", "expected"),
        [
            ("legendary", 0, 1),
            ("epic", 0, 2),
            ("rare", 1, 5),
            ("common", 3, 10),
            ("mythic", 0, 4),
        ],
    )
    def test_position_by_tier_and_retries(self, tier: str, retries: int, expected: int) -> None:
        badge = BadgeContext(badge_id="b", tier=tier)
        position = RecommendationEngine().estimate_queue_position(
            badge, retries, QueueState(total_in_queue=50)
        )
        assert position == expected

    def test_position_capped_by_queue_size(self, badge) -> None:
        position = RecommendationEngine().estimate_queue_position(
            badge, 10, QueueState(total_in_queue=20)
        )
        assert position == 20

    def test_unreported_queue_size_uses_default(self, badge) -> None:
        position = RecommendationEngine().estimate_queue_position(badge, 10, QueueState())
        assert position == 10

    def test_wait_uses_average_processing_time(self) -> None:
        engine = RecommendationEngine()
        assert engine.estimate_wait_seconds(4, QueueState(avg_processing_time_seconds=15)) == 60

    def test_wait_falls_back_to_default_processing_time(self) -> None:
        engine = RecommendationEngine()
        assert engine.estimate_wait_seconds(4, QueueState()) == 120

    def test_custom_queue_config(self, badge) -> None:
        config = RecommendationConfig(retry_queue_penalty=0, default_queue_priority=7)
        engine = RecommendationEngine(config=config)
        other = BadgeContext(badge_id="b", tier="mythic")
        assert engine.estimate_queue_position(other, 5, QueueState(total_in_queue=50)) == 7
        assert engine.estimate_queue_position(badge, 5, QueueState(total_in_queue=50)) == 4


class TestAlternativeActions:
    """Actions derived from the dominant category."""

    def test_empty_history_has_none(self, badge) -> None:
        assert RecommendationEngine().alternative_actions(badge, []) == []

    def test_gas_offers_automated_gas_bump(self, badge, make_history) -> None:
        actions = RecommendationEngine().alternative_actions(
            badge, make_history(ErrorCategory.GAS, ErrorCategory.GAS)
        )
        assert len(actions) == 1
        assert actions[0].action == "Increase gas limit by 20%"
        assert actions[0].priority is Priority.MEDIUM
        assert actions[0].automated is True

    def test_balance_asks_user_to_fund_wallet(self, badge, make_history) -> None:
        actions = RecommendationEngine().alternative_actions(
            badge, make_history(ErrorCategory.BALANCE)
        )
        assert [a.to_dict() for a in actions] == [
            {"action": "Add ETH to wallet", "priority": "high", "automated": False}
        ]

    def test_nullifier_asks_for_new_proof(self, badge, make_history) -> None:
        actions = RecommendationEngine().alternative_actions(
            badge, make_history(ErrorCategory.NULLIFIER_REUSE)
        )
        assert actions[0].action == "Generate a new proof for this claim"
        assert actions[0].automated is False

    def test_network_has_no_alternatives(self, badge, make_history) -> None:
        actions = RecommendationEngine().alternative_actions(
            badge, make_history(ErrorCategory.NETWORK)
        )
        assert actions == []


class TestGenerate:
    """Full recommendation composition."""

    def test_single_gas_failure_with_queue(self, badge, make_history) -> None:
        history = make_history(ErrorCategory.GAS)
        queue = QueueState(total_in_queue=50, avg_processing_time_seconds=15)
        recommendation = RecommendationEngine().generate(
            badge, history, queue, now=history[-1].timestamp
        )

        assert recommendation.should_retry is True
        assert recommendation.confidence == pytest.approx(0.75 * 0.95)
        assert recommendation.queue_position == 6
        assert recommendation.estimated_wait_seconds == 90
        assert recommendation.estimated_wait_time == "1m"
        assert recommendation.risk_assessment is RiskLevel.LOW
        assert recommendation.alternative_actions[0].automated is True
        assert recommendation.needs_manual_action is False

    def test_without_queue_state_wait_is_unknown(self, badge, make_history) -> None:
        history = make_history(ErrorCategory.NETWORK)
        recommendation = RecommendationEngine().generate(badge, history)
        assert recommendation.queue_position is None
        assert recommendation.estimated_wait_seconds is None
        assert recommendation.estimated_wait_time == "unknown"
        assert recommendation.to_dict()["estimated_wait_time"] == "unknown"

    def test_empty_history_recommends_retry(self, badge) -> None:
        recommendation = RecommendationEngine().generate(badge, [])
        assert recommendation.should_retry is True
        assert recommendation.confidence == 0.75
        assert recommendation.alternative_actions == []

    def test_low_confidence_blocks_retry(self, badge, make_history) -> None:
        history = make_history(
            ErrorCategory.NETWORK,
            ErrorCategory.NETWORK,
            ErrorCategory.BALANCE,
            ErrorCategory.BALANCE,
            ErrorCategory.NULLIFIER_REUSE,
        )
        recommendation = RecommendationEngine().generate(
            badge, history, now=history[-1].timestamp
        )
        assert recommendation.should_retry is False
        assert recommendation.confidence == pytest.approx(0.05)
        assert recommendation.risk_assessment is RiskLevel.HIGH
        assert recommendation.needs_manual_action is True

    def test_global_cap_blocks_retry_despite_confidence(self, make_history) -> None:
        badge = BadgeContext(badge_id="b", tier="legendary", retry_count=5)
        recommendation = RecommendationEngine().generate(badge, make_history(ErrorCategory.GAS))
        assert recommendation.confidence > 0.30
        assert recommendation.should_retry is False

    def test_confidence_threshold_is_exclusive(self, make_history) -> None:
        # network, rare tier, four attempts: 0.70 - 0.40 = 0.30
        badge = BadgeContext(badge_id="b", tier="rare")
        history = make_history(*([ErrorCategory.NETWORK] * 4))
        recommendation = RecommendationEngine().generate(badge, history)
        assert recommendation.confidence == pytest.approx(0.30)
        assert recommendation.should_retry is False

    def test_to_dict_shape(self, badge, make_history) -> None:
        data = RecommendationEngine().generate(badge, make_history(ErrorCategory.GAS)).to_dict()
        assert set(data) == {
            "should_retry",
            "confidence",
            "estimated_wait_time",
            "estimated_wait_seconds",
            "queue_position",
            "alternative_actions",
            "risk_assessment",
        }
