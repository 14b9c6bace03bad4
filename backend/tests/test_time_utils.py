"""Timestamp parsing and rendering used by the movement filters."""

from datetime import datetime

import pytest

from chemflo.time_utils import parse_iso_datetime, to_utc_z


@pytest.mark.parametrize("raw,expected", [
    ("2024-01-15", datetime(2024, 1, 15, 0, 0)),
    ("2024-01-15T08:30", datetime(2024, 1, 15, 8, 30)),
    ("2024-01-15T08:30:00Z", datetime(2024, 1, 15, 8, 30)),
    ("2024-01-15T10:30:00+02:00", datetime(2024, 1, 15, 8, 30)),
])
def test_parse_normalizes_to_naive_utc(raw, expected):
    assert parse_iso_datetime(raw) == expected


def test_parse_blank_and_invalid():
    assert parse_iso_datetime(None) is None
    assert parse_iso_datetime("  ") is None
    with pytest.raises(ValueError):
        parse_iso_datetime("last tuesday")


def test_render_drops_microseconds():
    assert to_utc_z(datetime(2024, 2, 1, 9, 0, 0, 123456)) == "2024-02-01T09:00:00Z"
    assert to_utc_z(None) is None
