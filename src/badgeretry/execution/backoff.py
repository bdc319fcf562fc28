"""Backoff scheduling for badge-claim retries.

Computes how long to wait before the next attempt:

    delay = floor(min(base * exponential_base ** attempt_count * (1 + jitter), max_delay))

where ``base`` depends on the error category and ``jitter`` is drawn
uniformly from ``[0, jitter_factor)``. For a fixed jitter the delay never
decreases as attempts grow, and it never exceeds ``max_delay``.

Example usage:
    scheduler = BackoffScheduler()
    delay_ms = scheduler.compute_delay(ErrorCategory.GAS, attempt_count=2)
    await asyncio.sleep(delay_ms / 1000)
"""

from __future__ import annotations

import math
import random

from badgeretry.core.config import RetryPolicyConfig
from badgeretry.core.constants import MS_PER_SECOND
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.logging import get_logger

_logger = get_logger("backoff")


class BackoffScheduler:
    """Category-aware exponential backoff with jitter.

    Args:
        config: Retry policy configuration. Uses defaults if not provided.
        rng: Random source for jitter. Pass a seeded ``random.Random`` for
            reproducible delays.
    """

    def __init__(
        self,
        config: RetryPolicyConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or RetryPolicyConfig()
        self._rng = rng or random.Random()

    def base_delay_for(self, category: ErrorCategory) -> int:
        """Base delay (ms) for a category before growth and jitter."""
        return self.config.base_delays_ms.get(category, self.config.fallback_base_delay_ms)

    def raw_delay(self, category: ErrorCategory, attempt_count: int, jitter: float = 0.0) -> float:
        """Delay in ms for an explicit jitter fraction, capped but not floored.

        Raises:
            ValueError: If attempt_count is negative.
        """
        if attempt_count < 0:
            raise ValueError(f"attempt_count must be >= 0, got {attempt_count}")

        base = self.base_delay_for(category)
        try:
            grown = base * (self.config.exponential_base ** attempt_count)
        except OverflowError:
            grown = math.inf
        return min(grown * (1 + jitter), float(self.config.max_delay_ms))

    def compute_delay(self, category: ErrorCategory, attempt_count: int) -> int:
        """Compute the delay before the next attempt.

        Args:
            category: Category of the most recent failure.
            attempt_count: Number of attempts already made.

        Returns:
            Delay in whole milliseconds, at most ``max_delay_ms``.
        """
        jitter = self._rng.random() * self.config.jitter_factor
        delay = math.floor(self.raw_delay(category, attempt_count, jitter))

        _logger.debug(
            "backoff.computed",
            category=category.value,
            attempt_count=attempt_count,
            jitter=round(jitter, 4),
            delay_ms=delay,
        )
        return delay

    def compute_delay_seconds(self, category: ErrorCategory, attempt_count: int) -> float:
        """Same as compute_delay, in seconds for ``asyncio.sleep``."""
        return self.compute_delay(category, attempt_count) / MS_PER_SECOND
