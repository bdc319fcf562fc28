"""Retry policy evaluation and adaptive strategies.

Decides whether another attempt should be made for a failed claim and how
that attempt should be adjusted. Rules are applied in order:

1. The global cap is absolute: ``attempt_count >= global_max_retries`` stops.
2. Non-retryable categories (always including ``nullifier_reuse``) stop.
3. Otherwise ``attempt_count`` must be below the category's own limit.

Transient infrastructure categories (network, timeout) get more attempts;
categories that need the user to act (balance) get few.

Example usage:
    evaluator = RetryPolicyEvaluator()
    if evaluator.should_retry(ErrorCategory.NETWORK, attempt_count=2):
        strategy = evaluator.strategy_for(ErrorCategory.NETWORK, badge)
"""

from __future__ import annotations

from dataclasses import dataclass

from badgeretry.core.claims import AdaptiveStrategy, BadgeContext, BadgeTier
from badgeretry.core.config import RetryPolicyConfig
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.logging import get_logger

_logger = get_logger("retry_policy")


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a policy evaluation with its reason, for observability."""

    should_retry: bool
    reason: str
    limit: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "should_retry": self.should_retry,
            "reason": self.reason,
            "limit": self.limit,
        }


class RetryPolicyEvaluator:
    """Applies the global cap, non-retryable set and per-category limits."""

    def __init__(self, config: RetryPolicyConfig | None = None) -> None:
        self.config = config or RetryPolicyConfig()

    def retry_limit_for(self, category: ErrorCategory) -> int:
        return self.config.retry_limits.get(category, self.config.default_retry_limit)

    def evaluate(self, category: ErrorCategory, attempt_count: int) -> PolicyDecision:
        """Evaluate the policy and explain the decision.

        Args:
            category: Category of the most recent failure.
            attempt_count: Number of attempts already made.

        Returns:
            PolicyDecision with the verdict and the rule that produced it.
        """
        if attempt_count >= self.config.global_max_retries:
            return PolicyDecision(
                should_retry=False,
                reason=(
                    f"Global retry cap reached ({attempt_count}/"
                    f"{self.config.global_max_retries})"
                ),
                limit=self.config.global_max_retries,
            )

        if category in self.config.non_retryable:
            return PolicyDecision(
                should_retry=False,
                reason=f"{category.value} is not retryable",
            )

        limit = self.retry_limit_for(category)
        if attempt_count < limit:
            return PolicyDecision(
                should_retry=True,
                reason=f"{category.value} attempt {attempt_count + 1} of {limit}",
                limit=limit,
            )
        return PolicyDecision(
            should_retry=False,
            reason=f"{category.value} retry limit reached ({attempt_count}/{limit})",
            limit=limit,
        )

    def should_retry(self, category: ErrorCategory, attempt_count: int) -> bool:
        """Whether a further attempt should be made."""
        decision = self.evaluate(category, attempt_count)
        if not decision.should_retry:
            _logger.debug(
                "retry_policy.retry_denied",
                category=category.value,
                attempt_count=attempt_count,
                reason=decision.reason,
            )
        return decision.should_retry

    def strategy_for(self, category: ErrorCategory, badge: BadgeContext) -> AdaptiveStrategy:
        """Derive how the next attempt should be adjusted.

        Computed fresh on every call from the category and badge; never cached.
        """
        if category is ErrorCategory.GAS:
            return AdaptiveStrategy(
                action="increase_gas_limit",
                parameters={
                    "gas_multiplier": 1.2,
                    "priority_boost": 1.5 if badge.tier == BadgeTier.LEGENDARY.value else 1.0,
                },
            )
        if category is ErrorCategory.NETWORK:
            return AdaptiveStrategy(
                action="retry_with_backoff",
                parameters={"use_alternate_rpc": True, "timeout_ms": 60_000},
            )
        if category is ErrorCategory.TIMEOUT:
            return AdaptiveStrategy(
                action="retry_with_longer_timeout",
                parameters={"timeout_multiplier": 1.5, "max_timeout_ms": 180_000},
            )
        if category is ErrorCategory.NULLIFIER_REUSE:
            return AdaptiveStrategy(
                action="regenerate_proof",
                requires_user_action=True,
                suggested_action="Generate a new proof for this claim",
                block_retry=True,
            )
        if category is ErrorCategory.NONCE:
            return AdaptiveStrategy(
                action="refresh_nonce",
                parameters={"delay_before_refresh_ms": 5_000},
            )
        if category is ErrorCategory.BALANCE:
            return AdaptiveStrategy(
                action="check_balance_and_wait",
                requires_user_action=True,
                suggested_action="Add ETH to wallet",
            )
        if category is ErrorCategory.TRANSACTION_REVERTED:
            return AdaptiveStrategy(
                action="analyze_revert_reason",
                parameters={
                    "investigate_gas_estimation": True,
                    "check_contract_state": True,
                },
            )
        return AdaptiveStrategy(
            action="conservative_retry",
            parameters={"increase_all_limits": True, "collect_debug_info": True},
        )
