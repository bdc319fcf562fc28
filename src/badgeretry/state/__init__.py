"""Attempt history backends."""

from badgeretry.core.config import HistoryConfig
from badgeretry.state.base import HistoryBackend
from badgeretry.state.json_backend import JsonHistoryBackend
from badgeretry.state.memory import InMemoryHistoryBackend
from badgeretry.state.sqlite_backend import SQLiteHistoryBackend


def create_history_backend(config: HistoryConfig) -> HistoryBackend:
    """Build the backend selected by a HistoryConfig."""
    if config.backend == "json":
        assert config.path is not None
        return JsonHistoryBackend(config.path)
    if config.backend == "sqlite":
        assert config.path is not None
        return SQLiteHistoryBackend(config.path)
    return InMemoryHistoryBackend()


__all__ = [
    "HistoryBackend",
    "InMemoryHistoryBackend",
    "JsonHistoryBackend",
    "SQLiteHistoryBackend",
    "create_history_backend",
]
