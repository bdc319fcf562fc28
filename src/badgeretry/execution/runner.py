"""Claim retry runner.

Drives one claim through the retry loop:

    attempt -> success: record success, done
            -> failure: analyze, track, persist
                        nullifier reuse        -> blocked
                        policy says stop       -> needs_user_action
                        recommendation says no -> needs_user_action
                        otherwise              -> sleep(backoff), attempt again

The mint/verify call itself is injected as ``attempt_fn``. Only ``Exception``
from it is treated as a claim failure; cancellation of the surrounding task
propagates untouched.

Example usage:
    runner = ClaimRetryRunner(service, attempt_fn=mint_badge)
    outcome = await runner.run(BadgeContext(badge_id="b-42", tier="epic"))
    if outcome.status is ClaimStatus.NEEDS_USER_ACTION:
        show_manual_actions(outcome.recommendation)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from badgeretry.core.claims import (
    BadgeContext,
    EnvironmentContext,
    QueueState,
    RetryRecommendation,
)
from badgeretry.core.constants import MS_PER_SECOND
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.exceptions import ClaimAlreadyRunningError
from badgeretry.core.logging import ClaimContext, get_logger, with_context
from badgeretry.execution.retry_service import BadgeRetryService
from badgeretry.state.base import HistoryBackend

_logger = get_logger("runner")

AttemptFn = Callable[[BadgeContext], Awaitable[Any]]
QueueStateFn = Callable[[BadgeContext], Awaitable[QueueState | None]]
SleepFn = Callable[[float], Awaitable[Any]]


class ClaimStatus(str, Enum):
    """Terminal status of a claim run."""

    SUCCEEDED = "succeeded"
    """The attempt function returned; the badge was minted."""

    ABANDONED = "abandoned"
    """The caller asked the runner to stop retrying."""

    BLOCKED = "blocked"
    """A non-retryable failure (nullifier reuse); retrying can never succeed."""

    NEEDS_USER_ACTION = "needs_user_action"
    """The retry budget is spent or retrying is unlikely to help."""


@dataclass
class ClaimOutcome:
    """Result of running one claim through the retry loop."""

    claim_id: str
    status: ClaimStatus
    attempts: int
    result: Any = None
    last_error: str | None = None
    last_category: ErrorCategory | None = None
    recommendation: RetryRecommendation | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ClaimStatus.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim_id": self.claim_id,
            "status": self.status.value,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "last_category": self.last_category.value if self.last_category else None,
            "recommendation": self.recommendation.to_dict() if self.recommendation else None,
        }


class ClaimRetryRunner:
    """Runs claims through attempt/backoff cycles, one run per claim at a time.

    Args:
        service: Retry service holding the per-claim bookkeeping.
        attempt_fn: Async mint/verify call; raising means the attempt failed.
        history_backend: Optional audit store; every tracked attempt is appended.
        queue_state_fn: Optional async source of backend queue state.
        sleep: Async sleep used for backoff waits.
        keep_resolved: Keep persisted history after success or abandonment.
            Defaults to the service's history configuration.
    """

    def __init__(
        self,
        service: BadgeRetryService,
        attempt_fn: AttemptFn,
        history_backend: HistoryBackend | None = None,
        queue_state_fn: QueueStateFn | None = None,
        sleep: SleepFn = asyncio.sleep,
        keep_resolved: bool | None = None,
    ) -> None:
        self.service = service
        self.attempt_fn = attempt_fn
        self.history_backend = history_backend
        self.queue_state_fn = queue_state_fn
        self._sleep = sleep
        self.keep_resolved = (
            service.config.history.keep_resolved if keep_resolved is None else keep_resolved
        )
        self._locks: dict[str, asyncio.Lock] = {}
        self._abandon_requests: dict[str, str] = {}

    def is_running(self, claim_id: str) -> bool:
        lock = self._locks.get(claim_id)
        return lock is not None and lock.locked()

    def abandon(self, claim_id: str, reason: str = "abandoned by caller") -> bool:
        """Ask an in-flight run to stop before its next attempt.

        Returns:
            True if a run for the claim was in flight.
        """
        if not self.is_running(claim_id):
            return False
        self._abandon_requests[claim_id] = reason
        return True

    async def run(
        self,
        badge: BadgeContext,
        environment: EnvironmentContext | None = None,
    ) -> ClaimOutcome:
        """Attempt a claim until it succeeds or retrying should stop.

        Raises:
            ClaimAlreadyRunningError: If a run for the same claim is in flight.
        """
        claim_id = badge.badge_id
        lock = self._locks.setdefault(claim_id, asyncio.Lock())
        if lock.locked():
            raise ClaimAlreadyRunningError(claim_id)

        async with lock:
            ctx = ClaimContext(claim_id=claim_id, tier=badge.tier, component="runner")
            try:
                with with_context(ctx):
                    return await self._run_locked(badge, environment)
            finally:
                self._abandon_requests.pop(claim_id, None)
                self._locks.pop(claim_id, None)

    async def _run_locked(
        self,
        badge: BadgeContext,
        environment: EnvironmentContext | None,
    ) -> ClaimOutcome:
        claim_id = badge.badge_id
        attempts = 0
        _logger.info("runner.started", claim_id=claim_id, tier=badge.tier)

        while True:
            attempts += 1
            try:
                result = await self.attempt_fn(badge)
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                _logger.warning(
                    "runner.attempt_failed",
                    claim_id=claim_id,
                    attempt=attempts,
                    error_type=type(exc).__name__,
                )
            else:
                self.service.record_success(claim_id)
                await self._discard_history(claim_id)
                _logger.info("runner.succeeded", claim_id=claim_id, attempts=attempts)
                return ClaimOutcome(
                    claim_id=claim_id,
                    status=ClaimStatus.SUCCEEDED,
                    attempts=attempts,
                    result=result,
                )

            pattern = self.service.analyze_failure(message, badge)
            attempt = self.service.track_retry_attempt(
                badge, message, strategy=pattern.strategy, environment=environment
            )
            if self.history_backend is not None:
                await self.history_backend.append(attempt)

            if not pattern.category.retryable or pattern.strategy.block_retry:
                return self._stop(
                    badge, ClaimStatus.BLOCKED, attempts, message, pattern.category,
                    reason=f"{pattern.category.value} is not retryable",
                )

            if not pattern.retry_recommended:
                return self._stop(
                    badge, ClaimStatus.NEEDS_USER_ACTION, attempts, message, pattern.category,
                    reason="retry budget exhausted",
                )

            queue_state = await self.queue_state_fn(badge) if self.queue_state_fn else None
            recommendation = self.service.generate_retry_recommendation(
                badge, queue_state=queue_state
            )
            if not recommendation.should_retry:
                return self._stop(
                    badge, ClaimStatus.NEEDS_USER_ACTION, attempts, message, pattern.category,
                    reason="retry not recommended",
                    recommendation=recommendation,
                )

            delay_ms = pattern.suggested_delay_ms
            _logger.info(
                "runner.sleeping",
                claim_id=claim_id,
                attempt=attempts,
                category=pattern.category.value,
                delay_ms=delay_ms,
            )
            await self._sleep(delay_ms / MS_PER_SECOND)

            reason = self._abandon_requests.pop(claim_id, None)
            if reason is not None:
                outcome = self._stop(
                    badge, ClaimStatus.ABANDONED, attempts, message, pattern.category,
                    reason=reason,
                    recommendation=recommendation,
                )
                await self._discard_history(claim_id)
                return outcome

    def _stop(
        self,
        badge: BadgeContext,
        status: ClaimStatus,
        attempts: int,
        last_error: str,
        category: ErrorCategory,
        *,
        reason: str,
        recommendation: RetryRecommendation | None = None,
    ) -> ClaimOutcome:
        self.service.abandon_claim(badge.badge_id, reason)
        _logger.warning(
            "runner.stopped",
            claim_id=badge.badge_id,
            status=status.value,
            attempts=attempts,
            category=category.value,
            reason=reason,
        )
        return ClaimOutcome(
            claim_id=badge.badge_id,
            status=status,
            attempts=attempts,
            last_error=last_error,
            last_category=category,
            recommendation=recommendation,
        )

    async def _discard_history(self, claim_id: str) -> None:
        if self.history_backend is not None and not self.keep_resolved:
            await self.history_backend.delete(claim_id)
