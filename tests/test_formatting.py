import pytest

from session import format_elapsed, format_remaining


@pytest.mark.parametrize("ms,expected", [
    (0, "0:00"),
    (999, "0:00"),
    (61_000, "1:01"),
    (59 * 60_000 + 59_000, "59:59"),
    (3_600_000, "1:00:00"),
    (3_661_000, "1:01:01"),
    (-5_000, "0:00"),
])
def test_format_elapsed(ms, expected):
    assert format_elapsed(ms) == expected


@pytest.mark.parametrize("ms,expected", [
    (0, "0 min"),
    (-5_000, "0 min"),
    (1, "1 min"),
    (60_000, "1 min"),
    (60_001, "2 min"),
    (59 * 60_000, "59 min"),
    (3_600_000, "1h"),
    (5_400_000, "1h 30m"),
    (7_200_000, "2h"),
])
def test_format_remaining(ms, expected):
    assert format_remaining(ms) == expected
