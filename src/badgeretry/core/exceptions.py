"""Exception hierarchy for the badge retry engine.

Failures of a claim are never raised: they are classified and returned as
structured values. These exceptions cover misuse and environment problems.
"""

from __future__ import annotations


class BadgeRetryError(Exception):
    """Base class for all badge retry engine errors."""


class ConfigurationError(BadgeRetryError):
    """Configuration file is missing, unparseable, or invalid."""


class ClaimAlreadyRunningError(BadgeRetryError):
    """A retry run was started for a claim that already has one in flight."""

    def __init__(self, claim_id: str) -> None:
        super().__init__(f"Claim {claim_id!r} already has a retry run in flight")
        self.claim_id = claim_id


class HistoryBackendError(BadgeRetryError):
    """Attempt history could not be read from or written to storage."""
