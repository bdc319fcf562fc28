"""Tests for badgeretry.utils.time."""

from datetime import UTC

import pytest

from badgeretry.utils.time import format_duration, utc_now


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0s"),
        (45, "45s"),
        (59.9, "59s"),
        (60, "1m"),
        (180, "3m"),
        (3599, "59m"),
        (3600, "1h 0m"),
        (3900, "1h 5m"),
        (7325, "2h 2m"),
    ],
)
def test_format_duration(seconds: float, expected: str) -> None:
    assert format_duration(seconds) == expected


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is UTC
