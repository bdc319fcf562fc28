"""In-memory history backend.

Keeps histories in a dict without filesystem I/O. Used when persistence is
not configured and in tests that need a real HistoryBackend.
"""

from badgeretry.core.claims import RetryAttempt
from badgeretry.state.base import HistoryBackend


class InMemoryHistoryBackend(HistoryBackend):
    """Dict-backed history storage."""

    def __init__(self) -> None:
        self.histories: dict[str, list[RetryAttempt]] = {}

    async def load(self, claim_id: str) -> list[RetryAttempt] | None:
        history = self.histories.get(claim_id)
        return list(history) if history is not None else None

    async def append(self, attempt: RetryAttempt) -> None:
        self.histories.setdefault(attempt.claim_id, []).append(attempt)

    async def save(self, claim_id: str, attempts: list[RetryAttempt]) -> None:
        self.histories[claim_id] = list(attempts)

    async def delete(self, claim_id: str) -> bool:
        if claim_id in self.histories:
            del self.histories[claim_id]
            return True
        return False

    async def list_claims(self) -> list[str]:
        return sorted(self.histories)
