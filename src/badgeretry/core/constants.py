"""Global constants for the badge retry engine.

Centralizes magic numbers that are not tuning knobs. Tunable values live
on the pydantic config models in ``badgeretry.core.config``.
"""

# =============================================================================
# Time units
# =============================================================================

MS_PER_SECOND = 1000
"""Milliseconds in one second."""

SECONDS_PER_MINUTE = 60
"""Seconds in one minute, for duration formatting."""

SECONDS_PER_HOUR = 3600
"""Seconds in one hour, for duration formatting."""

ONE_HOUR_MS = SECONDS_PER_HOUR * MS_PER_SECOND
"""One hour in milliseconds; the default backoff cap."""

# =============================================================================
# Display
# =============================================================================

UNKNOWN_WAIT = "unknown"
"""Rendered wait time when no queue information is available."""

ERROR_HASH_LENGTH = 12
"""Hex characters kept from the error-message digest."""

TRUNCATE_ERROR_MESSAGE_CHARS = 200
"""Maximum characters of a raw error message shown in CLI tables."""
