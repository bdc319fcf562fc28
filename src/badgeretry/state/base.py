"""Abstract base for attempt history backends."""

from abc import ABC, abstractmethod

from badgeretry.core.claims import RetryAttempt


class HistoryBackend(ABC):
    """Abstract base class for attempt history storage.

    Backends mirror the retry service's in-memory histories for audit and
    offline inspection. They are never read back to make retry decisions.
    """

    @abstractmethod
    async def load(self, claim_id: str) -> list[RetryAttempt] | None:
        """Load the attempt history for a claim.

        Args:
            claim_id: Claim identifier (badge id)

        Returns:
            Attempts oldest first, or None if nothing is stored
        """
        ...

    @abstractmethod
    async def append(self, attempt: RetryAttempt) -> None:
        """Append one attempt to its claim's history.

        Args:
            attempt: Failed attempt to persist
        """
        ...

    @abstractmethod
    async def save(self, claim_id: str, attempts: list[RetryAttempt]) -> None:
        """Replace a claim's stored history.

        Args:
            claim_id: Claim identifier
            attempts: Full history, oldest first
        """
        ...

    @abstractmethod
    async def delete(self, claim_id: str) -> bool:
        """Delete a claim's history.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def list_claims(self) -> list[str]:
        """List claim ids with stored history, sorted."""
        ...
