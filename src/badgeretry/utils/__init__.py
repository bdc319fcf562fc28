"""Shared utilities.

Contains cross-cutting helpers used by multiple modules.
"""

from badgeretry.utils.time import format_duration, utc_now

__all__ = ["format_duration", "utc_now"]
