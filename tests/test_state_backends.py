"""Tests for attempt history backends."""

import hashlib
import json
from pathlib import Path

import aiosqlite
import pytest

from badgeretry.core.claims import BadgeContext
from badgeretry.core.config import HistoryConfig
from badgeretry.core.errors import ErrorCategory
from badgeretry.core.exceptions import HistoryBackendError
from badgeretry.state import (
    HistoryBackend,
    InMemoryHistoryBackend,
    JsonHistoryBackend,
    SQLiteHistoryBackend,
    create_history_backend,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def backend(request, tmp_path: Path) -> HistoryBackend:
    if request.param == "json":
        return JsonHistoryBackend(tmp_path / "history")
    if request.param == "sqlite":
        return SQLiteHistoryBackend(tmp_path / "history.db")
    return InMemoryHistoryBackend()


class TestHistoryBackendContract:
    """Behaviour shared by every backend."""

    @pytest.mark.asyncio
    async def test_missing_claim_loads_none(self, backend: HistoryBackend) -> None:
        assert await backend.load("missing") is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, backend: HistoryBackend, make_history) -> None:
        history = make_history(ErrorCategory.GAS, ErrorCategory.NETWORK, ErrorCategory.TIMEOUT)
        await backend.save("badge-1", history)
        assert await backend.load("badge-1") == history

    @pytest.mark.asyncio
    async def test_append_keeps_order(self, backend: HistoryBackend, make_history) -> None:
        history = make_history(ErrorCategory.NONCE, ErrorCategory.BALANCE)
        for attempt in history:
            await backend.append(attempt)
        loaded = await backend.load("badge-1")
        assert [a.category for a in loaded] == [ErrorCategory.NONCE, ErrorCategory.BALANCE]
        assert loaded[1].strategy.suggested_action == "Add ETH to wallet"

    @pytest.mark.asyncio
    async def test_save_replaces_history(self, backend: HistoryBackend, make_history) -> None:
        await backend.save("badge-1", make_history(ErrorCategory.GAS, ErrorCategory.GAS))
        await backend.save("badge-1", make_history(ErrorCategory.NETWORK))
        loaded = await backend.load("badge-1")
        assert [a.category for a in loaded] == [ErrorCategory.NETWORK]

    @pytest.mark.asyncio
    async def test_delete(self, backend: HistoryBackend, make_history) -> None:
        await backend.save("badge-1", make_history(ErrorCategory.GAS))
        assert await backend.delete("badge-1") is True
        assert await backend.load("badge-1") is None
        assert await backend.delete("badge-1") is False

    @pytest.mark.asyncio
    async def test_list_claims_sorted(self, backend: HistoryBackend, make_history) -> None:
        for claim_id in ("zeta", "alpha", "mid"):
            badge = BadgeContext(badge_id=claim_id)
            await backend.save(claim_id, make_history(ErrorCategory.GAS, badge=badge))
        assert await backend.list_claims() == ["alpha", "mid", "zeta"]

    @pytest.mark.asyncio
    async def test_claims_are_isolated(self, backend: HistoryBackend, make_history) -> None:
        other = BadgeContext(badge_id="badge-2", tier="epic")
        await backend.append(make_history(ErrorCategory.GAS)[0])
        await backend.append(make_history(ErrorCategory.NONCE, badge=other)[0])
        await backend.delete("badge-1")
        loaded = await backend.load("badge-2")
        assert len(loaded) == 1
        assert loaded[0].badge_context.tier == "epic"

    @pytest.mark.asyncio
    async def test_similar_claim_ids_stay_separate(
        self, backend: HistoryBackend, make_history
    ) -> None:
        colon = BadgeContext(badge_id="badge:1")
        underscore = BadgeContext(badge_id="badge_1")
        await backend.append(make_history(ErrorCategory.GAS, badge=colon)[0])
        await backend.append(make_history(ErrorCategory.NETWORK, badge=underscore)[0])

        loaded = await backend.load("badge:1")
        assert [(a.claim_id, a.category) for a in loaded] == [("badge:1", ErrorCategory.GAS)]
        assert await backend.list_claims() == ["badge:1", "badge_1"]

        assert await backend.delete("badge:1") is True
        remaining = await backend.load("badge_1")
        assert [a.category for a in remaining] == [ErrorCategory.NETWORK]


class TestJsonBackend:
    """File layout and corruption handling."""

    @pytest.mark.asyncio
    async def test_file_format(self, tmp_path: Path, make_history) -> None:
        backend = JsonHistoryBackend(tmp_path)
        await backend.save("badge-1", make_history(ErrorCategory.GAS))

        digest = hashlib.sha256(b"badge-1").hexdigest()[:8]
        history_file = tmp_path / f"badge-1-{digest}.json"
        assert backend.history_file("badge-1") == history_file
        data = json.loads(history_file.read_text())
        assert data["version"] == 1
        assert data["claim_id"] == "badge-1"
        assert data["attempts"][0]["category"] == "gas_error"
        assert not list(tmp_path.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_unsafe_claim_id_is_sanitized(self, tmp_path: Path, make_history) -> None:
        backend = JsonHistoryBackend(tmp_path)
        badge = BadgeContext(badge_id="../season:2/badge")
        await backend.save(badge.badge_id, make_history(ErrorCategory.GAS, badge=badge))

        [stored] = list(tmp_path.iterdir())
        assert stored.name.startswith("___season_2_badge-")
        assert stored.suffix == ".json"
        assert await backend.list_claims() == ["../season:2/badge"]
        assert len(await backend.load(badge.badge_id)) == 1

    @pytest.mark.asyncio
    async def test_ids_that_sanitize_alike_use_separate_files(
        self, tmp_path: Path, make_history
    ) -> None:
        backend = JsonHistoryBackend(tmp_path)
        assert backend.history_file("badge:1") != backend.history_file("badge_1")
        await backend.save("badge:1", make_history(ErrorCategory.GAS))
        await backend.save("badge_1", make_history(ErrorCategory.NETWORK))
        assert len(list(tmp_path.glob("*.json"))) == 2

    @pytest.mark.asyncio
    async def test_file_recorded_for_another_claim_is_ignored(
        self, tmp_path: Path, make_history
    ) -> None:
        backend = JsonHistoryBackend(tmp_path)
        await backend.save("badge-2", make_history(ErrorCategory.GAS))
        backend.history_file("badge-2").rename(backend.history_file("badge-1"))

        assert await backend.load("badge-1") is None
        assert await backend.delete("badge-1") is False
        assert backend.history_file("badge-1").exists()

    @pytest.mark.asyncio
    async def test_corrupted_file_reads_as_missing(self, tmp_path: Path) -> None:
        backend = JsonHistoryBackend(tmp_path)
        backend.history_file("badge-1").write_text("{not json")
        assert await backend.load("badge-1") is None
        assert await backend.list_claims() == []

    @pytest.mark.asyncio
    async def test_undecodable_file_is_skipped_when_listing(
        self, tmp_path: Path, make_history
    ) -> None:
        backend = JsonHistoryBackend(tmp_path)
        await backend.save("badge-1", make_history(ErrorCategory.GAS))
        (tmp_path / "garbage.json").write_bytes(b"\xff\xfe\x00garbage")
        assert await backend.list_claims() == ["badge-1"]

    @pytest.mark.asyncio
    async def test_bad_attempt_payload_reads_as_missing(self, tmp_path: Path) -> None:
        backend = JsonHistoryBackend(tmp_path)
        backend.history_file("badge-1").write_text(
            json.dumps({"version": 1, "claim_id": "badge-1", "attempts": [{"category": "x"}]})
        )
        assert await backend.load("badge-1") is None


class TestSQLiteBackend:
    """Schema migrations and queries."""

    @pytest.mark.asyncio
    async def test_schema_is_migrated_to_latest(self, tmp_path: Path) -> None:
        backend = SQLiteHistoryBackend(tmp_path / "nested" / "history.db")
        assert await backend.schema_version() == 2
        assert (tmp_path / "nested" / "history.db").exists()

    @pytest.mark.asyncio
    async def test_reopening_does_not_rerun_migrations(
        self, tmp_path: Path, make_history
    ) -> None:
        db_path = tmp_path / "history.db"
        await SQLiteHistoryBackend(db_path).save("badge-1", make_history(ErrorCategory.GAS))

        reopened = SQLiteHistoryBackend(db_path)
        assert await reopened.schema_version() == 2
        assert len(await reopened.load("badge-1")) == 1

    @pytest.mark.asyncio
    async def test_count_by_category(self, tmp_path: Path, make_history) -> None:
        backend = SQLiteHistoryBackend(tmp_path / "history.db")
        await backend.save(
            "badge-1",
            make_history(ErrorCategory.GAS, ErrorCategory.GAS, ErrorCategory.BALANCE),
        )
        other = BadgeContext(badge_id="badge-2")
        await backend.save("badge-2", make_history(ErrorCategory.BALANCE, badge=other))

        assert await backend.count_by_category() == {"balance_error": 2, "gas_error": 2}

    @pytest.mark.asyncio
    async def test_corrupted_row_raises(self, tmp_path: Path, make_history) -> None:
        db_path = tmp_path / "history.db"
        backend = SQLiteHistoryBackend(db_path)
        await backend.save("badge-1", make_history(ErrorCategory.GAS))
        async with aiosqlite.connect(db_path) as db:
            await db.execute("UPDATE attempts SET payload = 'garbage'")
            await db.commit()

        with pytest.raises(HistoryBackendError, match="badge-1"):
            await backend.load("badge-1")


class TestCreateHistoryBackend:
    def test_memory_default(self) -> None:
        assert isinstance(create_history_backend(HistoryConfig()), InMemoryHistoryBackend)

    def test_json(self, tmp_path: Path) -> None:
        config = HistoryConfig(backend="json", path=tmp_path / "h")
        assert isinstance(create_history_backend(config), JsonHistoryBackend)

    def test_sqlite(self, tmp_path: Path) -> None:
        config = HistoryConfig(backend="sqlite", path=tmp_path / "h.db")
        assert isinstance(create_history_backend(config), SQLiteHistoryBackend)
