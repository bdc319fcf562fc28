"""Time utilities.

Provides timezone-aware "now" and compact duration formatting.
"""

from datetime import UTC, datetime

from badgeretry.core.constants import SECONDS_PER_HOUR, SECONDS_PER_MINUTE


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def format_duration(seconds: float) -> str:
    """Format a wait as "45s", "3m" or "1h 5m".

    Sub-minute waits keep seconds; longer waits drop them.
    """
    total = int(seconds)
    if total < SECONDS_PER_MINUTE:
        return f"{total}s"
    if total < SECONDS_PER_HOUR:
        return f"{total // SECONDS_PER_MINUTE}m"
    hours = total // SECONDS_PER_HOUR
    minutes = (total % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE
    return f"{hours}h {minutes}m"
