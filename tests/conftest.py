"""Pytest fixtures for badge retry tests."""

import logging
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from badgeretry.core.claims import BadgeContext, EnvironmentContext, RetryAttempt
from badgeretry.core.errors import ErrorCategory
from badgeretry.execution.retry_policy import RetryPolicyEvaluator


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from badgeretry.cli import helpers

    helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


BASE_TIME = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def badge() -> BadgeContext:
    """A common-tier badge claim."""
    return BadgeContext(badge_id="badge-1", tier="common", xp_earned=50, season=2)


@pytest.fixture
def make_history() -> Callable[..., list[RetryAttempt]]:
    """Build an attempt history from categories, one minute apart by default."""

    def _make(
        *categories: ErrorCategory,
        badge: BadgeContext | None = None,
        start: datetime = BASE_TIME,
        spacing: timedelta = timedelta(minutes=1),
    ) -> list[RetryAttempt]:
        badge = badge or BadgeContext(badge_id="badge-1")
        evaluator = RetryPolicyEvaluator()
        return [
            RetryAttempt(
                claim_id=badge.badge_id,
                timestamp=start + spacing * index,
                raw_error_message=f"{category.value} #{index}",
                category=category,
                strategy=evaluator.strategy_for(category, badge),
                badge_context=badge,
                environment_context=EnvironmentContext(),
            )
            for index, category in enumerate(categories)
        ]

    return _make
