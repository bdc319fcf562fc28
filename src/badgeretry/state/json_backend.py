"""JSON file-based history backend.

One file per claim holding its attempts as a JSON document. Writes go
through a temp file and rename so a crash never leaves a half-written file.
"""

import hashlib
import json
from pathlib import Path
from typing import Any

from badgeretry.core.claims import RetryAttempt
from badgeretry.core.logging import get_logger
from badgeretry.state.base import HistoryBackend

_logger = get_logger("state.json")

FORMAT_VERSION = 1
CLAIM_DIGEST_LENGTH = 8


class JsonHistoryBackend(HistoryBackend):
    """JSON file-based history storage.

    File naming: {history_dir}/{safe_claim_id}-{digest}.json, where the
    digest of the raw claim id keeps ids that sanitize alike apart.
    """

    def __init__(self, history_dir: Path):
        """Initialize JSON backend.

        Args:
            history_dir: Directory to store history files
        """
        self.history_dir = Path(history_dir)
        self.history_dir.mkdir(parents=True, exist_ok=True)

    def history_file(self, claim_id: str) -> Path:
        """Path of the file holding a claim's history."""
        safe_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in claim_id)
        digest = hashlib.sha256(claim_id.encode("utf-8")).hexdigest()[:CLAIM_DIGEST_LENGTH]
        return self.history_dir / f"{safe_id}-{digest}.json"

    def _read(self, history_file: Path) -> dict[str, Any]:
        with open(history_file) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        return data

    async def load(self, claim_id: str) -> list[RetryAttempt] | None:
        """Load history from the claim's file; corrupted files read as missing."""
        history_file = self.history_file(claim_id)
        if not history_file.exists():
            return None

        try:
            data = self._read(history_file)
            if data["claim_id"] != claim_id:
                raise ValueError(f"file belongs to claim {data['claim_id']!r}")
            return [RetryAttempt.from_dict(item) for item in data["attempts"]]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            _logger.warning(
                "state.json.load_failed",
                claim_id=claim_id,
                path=str(history_file),
                error=str(e),
            )
            return None

    async def save(self, claim_id: str, attempts: list[RetryAttempt]) -> None:
        """Write the claim's full history atomically."""
        history_file = self.history_file(claim_id)
        temp_file = history_file.with_suffix(".json.tmp")
        with open(temp_file, "w") as f:
            json.dump(
                {
                    "version": FORMAT_VERSION,
                    "claim_id": claim_id,
                    "attempts": [a.to_dict() for a in attempts],
                },
                f,
                indent=2,
            )
        temp_file.replace(history_file)

    async def append(self, attempt: RetryAttempt) -> None:
        attempts = await self.load(attempt.claim_id) or []
        attempts.append(attempt)
        await self.save(attempt.claim_id, attempts)

    async def delete(self, claim_id: str) -> bool:
        """Remove the claim's file; a file recorded for another claim is left alone."""
        history_file = self.history_file(claim_id)
        if not history_file.exists():
            return False
        try:
            owner = self._read(history_file).get("claim_id")
        except (json.JSONDecodeError, TypeError, ValueError):
            owner = claim_id
        if owner != claim_id:
            _logger.warning(
                "state.json.delete_skipped",
                claim_id=claim_id,
                path=str(history_file),
                owner=owner,
            )
            return False
        history_file.unlink()
        return True

    async def list_claims(self) -> list[str]:
        """Claim ids as recorded inside each readable history file."""
        claims = []
        for history_file in self.history_dir.glob("*.json"):
            try:
                claims.append(str(self._read(history_file)["claim_id"]))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                continue
        return sorted(claims)
