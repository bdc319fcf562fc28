"""SQLite-based history backend.

Stores one row per failed attempt so histories can be queried across
claims (for example, every balance failure in a season).
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from badgeretry.core.claims import RetryAttempt
from badgeretry.core.exceptions import HistoryBackendError
from badgeretry.core.logging import get_logger
from badgeretry.state.base import HistoryBackend
from badgeretry.utils.time import utc_now

_logger = get_logger("state.sqlite")

# Current schema version for migration support
SCHEMA_VERSION = 2


class SQLiteHistoryBackend(HistoryBackend):
    """SQLite-based attempt history storage.

    Tables:
    - schema_version: applied migrations
    - attempts: one row per failed attempt, ordered by ``seq`` within a claim
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.db_path) as db:
            yield db

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            async with self._connect() as db:
                await self._run_migrations(db)
                self._initialized = True

    async def _get_schema_version(self, db: aiosqlite.Connection) -> int:
        try:
            cursor = await db.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = await cursor.fetchone()
            return row[0] if row else 0
        except aiosqlite.OperationalError:
            # Table doesn't exist yet
            return 0

    async def schema_version(self) -> int:
        """Applied schema version of the database."""
        await self._ensure_initialized()
        async with self._connect() as db:
            return await self._get_schema_version(db)

    async def _run_migrations(self, db: aiosqlite.Connection) -> None:
        current_version = await self._get_schema_version(db)

        if current_version < 1:
            await self._migrate_v1(db)
            _logger.info("state.sqlite.schema_migrated", from_version=0, to_version=1)

        if current_version < 2:
            await self._migrate_v2(db)
            _logger.info("state.sqlite.schema_migrated", from_version=1, to_version=2)

    async def _migrate_v1(self, db: aiosqlite.Connection) -> None:
        """Initial schema: attempts table."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS attempts (
                claim_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                recorded_at TEXT NOT NULL,
                category TEXT NOT NULL,
                raw_error_message TEXT NOT NULL,
                payload TEXT NOT NULL,
                PRIMARY KEY (claim_id, seq)
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_attempts_category ON attempts(category)"
        )

        await db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (1, utc_now().isoformat()),
        )
        await db.commit()

    async def _migrate_v2(self, db: aiosqlite.Connection) -> None:
        """Add badge tier column for per-tier queries.

        Idempotent: checks column existence before ALTER.
        """
        cursor = await db.execute("PRAGMA table_info(attempts)")
        columns = {row[1] for row in await cursor.fetchall()}
        if "tier" not in columns:
            await db.execute("ALTER TABLE attempts ADD COLUMN tier TEXT")

        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (2, utc_now().isoformat()),
        )
        await db.commit()

    @staticmethod
    def _row_values(seq: int, attempt: RetryAttempt) -> tuple[object, ...]:
        return (
            attempt.claim_id,
            seq,
            attempt.timestamp.isoformat(),
            attempt.category.value,
            attempt.raw_error_message,
            json.dumps(attempt.to_dict()),
            attempt.badge_context.tier,
        )

    async def load(self, claim_id: str) -> list[RetryAttempt] | None:
        """Load a claim's attempts ordered by insertion.

        Raises:
            HistoryBackendError: If a stored row cannot be decoded.
        """
        await self._ensure_initialized()

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT payload FROM attempts WHERE claim_id = ? ORDER BY seq",
                (claim_id,),
            )
            rows = await cursor.fetchall()

        if not rows:
            return None
        try:
            return [RetryAttempt.from_dict(json.loads(row[0])) for row in rows]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise HistoryBackendError(
                f"Corrupted attempt history for claim {claim_id!r}: {e}"
            ) from e

    async def append(self, attempt: RetryAttempt) -> None:
        await self._ensure_initialized()

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COALESCE(MAX(seq), 0) FROM attempts WHERE claim_id = ?",
                (attempt.claim_id,),
            )
            row = await cursor.fetchone()
            next_seq = (row[0] if row else 0) + 1
            await db.execute(
                "INSERT INTO attempts "
                "(claim_id, seq, recorded_at, category, raw_error_message, payload, tier) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                self._row_values(next_seq, attempt),
            )
            await db.commit()

    async def save(self, claim_id: str, attempts: list[RetryAttempt]) -> None:
        await self._ensure_initialized()

        async with self._connect() as db:
            await db.execute("DELETE FROM attempts WHERE claim_id = ?", (claim_id,))
            await db.executemany(
                "INSERT INTO attempts "
                "(claim_id, seq, recorded_at, category, raw_error_message, payload, tier) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [self._row_values(seq, a) for seq, a in enumerate(attempts, start=1)],
            )
            await db.commit()

        _logger.debug("state.sqlite.history_saved", claim_id=claim_id, attempts=len(attempts))

    async def delete(self, claim_id: str) -> bool:
        await self._ensure_initialized()

        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM attempts WHERE claim_id = ?", (claim_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def list_claims(self) -> list[str]:
        await self._ensure_initialized()

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT DISTINCT claim_id FROM attempts ORDER BY claim_id"
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def count_by_category(self) -> dict[str, int]:
        """Attempt counts per category across all stored claims."""
        await self._ensure_initialized()

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT category, COUNT(*) FROM attempts GROUP BY category ORDER BY category"
            )
            rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}
