"""Tests for badgeretry.execution.runner."""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from badgeretry.core.claims import BadgeContext, QueueState
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.exceptions import ClaimAlreadyRunningError
from badgeretry.execution import BadgeRetryService, ClaimRetryRunner, ClaimStatus
from badgeretry.state import InMemoryHistoryBackend


@pytest.fixture
def service(clock) -> BadgeRetryService:
    return BadgeRetryService(rng=random.Random(3), clock=clock)


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


def _always(message: str) -> AsyncMock:
    return AsyncMock(side_effect=RuntimeError(message))


def _slept_seconds(sleep: AsyncMock) -> list[float]:
    return [call.args[0] for call in sleep.await_args_list]


class TestRunOutcomes:
    """Terminal statuses of the retry loop."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, service, badge, sleep) -> None:
        attempt_fn = AsyncMock(return_value="0xabc")
        runner = ClaimRetryRunner(service, attempt_fn, sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.SUCCEEDED
        assert outcome.succeeded
        assert outcome.attempts == 1
        assert outcome.result == "0xabc"
        sleep.assert_not_awaited()
        attempt_fn.assert_awaited_once_with(badge)

    @pytest.mark.asyncio
    async def test_success_after_two_network_failures(self, service, badge, sleep) -> None:
        attempt_fn = AsyncMock(
            side_effect=[
                RuntimeError("network timeout"),
                RuntimeError("network timeout"),
                "0xabc",
            ]
        )
        runner = ClaimRetryRunner(service, attempt_fn, sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.SUCCEEDED
        assert outcome.attempts == 3
        first, second = _slept_seconds(sleep)
        assert 120 <= first < 132
        assert 180 <= second < 198
        assert service.tracked_claims() == []
        stats = service.get_service_stats()
        assert stats.retry_effectiveness == 1.0
        assert stats.resolved_predictions == 2

    @pytest.mark.asyncio
    async def test_nullifier_reuse_is_blocked_immediately(self, service, badge, sleep) -> None:
        runner = ClaimRetryRunner(service, _always("Nullifier already used"), sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.BLOCKED
        assert outcome.attempts == 1
        assert outcome.last_category is ErrorCategory.NULLIFIER_REUSE
        assert outcome.last_error == "Nullifier already used"
        assert outcome.recommendation is None
        sleep.assert_not_awaited()
        assert service.tracked_claims() == []

    @pytest.mark.asyncio
    async def test_low_confidence_needs_user_action(self, service, badge, sleep) -> None:
        """Network failures keep passing the policy but confidence drops below 0.30."""
        runner = ClaimRetryRunner(service, _always("network error"), sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.NEEDS_USER_ACTION
        assert outcome.attempts == 4
        assert sleep.await_count == 3
        assert outcome.recommendation is not None
        assert outcome.recommendation.should_retry is False
        assert outcome.recommendation.confidence == pytest.approx(0.285)

    @pytest.mark.asyncio
    async def test_retry_budget_exhausted(self, service, badge, sleep) -> None:
        """Balance errors are limited to two retries."""
        runner = ClaimRetryRunner(service, _always("insufficient funds"), sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.NEEDS_USER_ACTION
        assert outcome.attempts == 3
        assert sleep.await_count == 2
        assert outcome.recommendation is None
        assert outcome.last_category is ErrorCategory.BALANCE

    @pytest.mark.asyncio
    async def test_gas_retry_limit(self, service, sleep) -> None:
        badge = BadgeContext(badge_id="gas-claim", tier="legendary")
        runner = ClaimRetryRunner(service, _always("out of gas"), sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.NEEDS_USER_ACTION
        assert outcome.attempts == 4
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_type_name(self, service, badge, sleep) -> None:
        runner = ClaimRetryRunner(service, AsyncMock(side_effect=ValueError()), sleep=sleep)

        outcome = await runner.run(badge)

        assert outcome.last_error == "ValueError"
        assert outcome.last_category is ErrorCategory.UNKNOWN
        assert outcome.status is ClaimStatus.NEEDS_USER_ACTION

    @pytest.mark.asyncio
    async def test_outcome_to_dict(self, service, badge, sleep) -> None:
        runner = ClaimRetryRunner(service, _always("Nullifier already used"), sleep=sleep)
        data = (await runner.run(badge)).to_dict()
        assert data == {
            "claim_id": "badge-1",
            "status": "blocked",
            "attempts": 1,
            "last_error": "Nullifier already used",
            "last_category": "nullifier_reuse",
            "recommendation": None,
        }


class TestQueueState:
    @pytest.mark.asyncio
    async def test_queue_state_reaches_recommendation(self, service, badge, sleep) -> None:
        queue_state_fn = AsyncMock(
            return_value=QueueState(total_in_queue=50, avg_processing_time_seconds=15)
        )
        runner = ClaimRetryRunner(
            service, _always("network error"), queue_state_fn=queue_state_fn, sleep=sleep
        )

        outcome = await runner.run(badge)

        assert queue_state_fn.await_count == 4
        assert outcome.recommendation.queue_position == 12
        assert outcome.recommendation.estimated_wait_time == "3m"


class TestHistoryPersistence:
    """Attempts are mirrored to the history backend."""

    @pytest.mark.asyncio
    async def test_failed_attempts_are_kept_for_audit(self, service, badge, sleep) -> None:
        backend = InMemoryHistoryBackend()
        runner = ClaimRetryRunner(
            service, _always("insufficient funds"), history_backend=backend, sleep=sleep
        )

        await runner.run(badge)

        stored = await backend.load("badge-1")
        assert [a.category for a in stored] == [ErrorCategory.BALANCE] * 3

    @pytest.mark.asyncio
    async def test_history_dropped_after_success(self, service, badge, sleep) -> None:
        backend = InMemoryHistoryBackend()
        attempt_fn = AsyncMock(side_effect=[RuntimeError("out of gas"), "0xabc"])
        runner = ClaimRetryRunner(service, attempt_fn, history_backend=backend, sleep=sleep)

        await runner.run(badge)

        assert await backend.load("badge-1") is None

    @pytest.mark.asyncio
    async def test_keep_resolved_history(self, service, badge, sleep) -> None:
        backend = InMemoryHistoryBackend()
        attempt_fn = AsyncMock(side_effect=[RuntimeError("out of gas"), "0xabc"])
        runner = ClaimRetryRunner(
            service, attempt_fn, history_backend=backend, sleep=sleep, keep_resolved=True
        )

        await runner.run(badge)

        stored = await backend.load("badge-1")
        assert len(stored) == 1
        assert stored[0].strategy.action == "increase_gas_limit"


class TestConcurrency:
    """One in-flight run per claim, abandonment and cancellation."""

    @pytest.mark.asyncio
    async def test_second_run_for_same_claim_is_rejected(self, service, badge, sleep) -> None:
        release = asyncio.Event()

        async def attempt_fn(_: BadgeContext) -> str:
            await release.wait()
            return "0xabc"

        runner = ClaimRetryRunner(service, attempt_fn, sleep=sleep)
        task = asyncio.create_task(runner.run(badge))
        await asyncio.sleep(0)

        assert runner.is_running("badge-1")
        with pytest.raises(ClaimAlreadyRunningError) as exc_info:
            await runner.run(badge)
        assert exc_info.value.claim_id == "badge-1"

        release.set()
        outcome = await task
        assert outcome.succeeded
        assert not runner.is_running("badge-1")

    @pytest.mark.asyncio
    async def test_different_claims_run_concurrently(self, service, sleep) -> None:
        runner = ClaimRetryRunner(service, AsyncMock(return_value="ok"), sleep=sleep)
        outcomes = await asyncio.gather(
            runner.run(BadgeContext(badge_id="a")),
            runner.run(BadgeContext(badge_id="b")),
        )
        assert [o.status for o in outcomes] == [ClaimStatus.SUCCEEDED] * 2

    @pytest.mark.asyncio
    async def test_abandon_during_backoff(self, service, badge) -> None:
        backend = InMemoryHistoryBackend()
        runner: ClaimRetryRunner

        async def sleep(_: float) -> None:
            assert runner.abandon("badge-1", "user cancelled") is True

        runner = ClaimRetryRunner(
            service, _always("out of gas"), history_backend=backend, sleep=sleep
        )

        outcome = await runner.run(badge)

        assert outcome.status is ClaimStatus.ABANDONED
        assert outcome.attempts == 1
        assert service.tracked_claims() == []
        assert await backend.load("badge-1") is None
        assert service.get_service_stats().retry_effectiveness == 0.0

    def test_abandon_without_run(self, service) -> None:
        runner = ClaimRetryRunner(service, AsyncMock())
        assert runner.abandon("nothing") is False

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, service, badge, sleep) -> None:
        runner = ClaimRetryRunner(
            service, AsyncMock(side_effect=asyncio.CancelledError()), sleep=sleep
        )

        with pytest.raises(asyncio.CancelledError):
            await runner.run(badge)

        assert not runner.is_running("badge-1")
        assert service.tracked_claims() == []
