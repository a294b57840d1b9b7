from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta, timezone

import pytest

from fleetwatch._constants import ALERT_COOLDOWN_SECONDS, ONLINE_THRESHOLD_SECONDS, format_location
from fleetwatch.ingestion.normalize import normalize_timestamp, safe_float, safe_str


def test_status_and_cooldown_windows() -> None:
    assert ONLINE_THRESHOLD_SECONDS == 900
    assert ALERT_COOLDOWN_SECONDS == 300


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1, 1.0),
        ("2.5", 2.5),
        (" 3 ", 3.0),
        ("--", None),
        ("", None),
        (None, None),
        (True, None),
        ("nan", None),
        (math.inf, None),
        ([1], None),
        (10**400, None),
    ],
)
def test_safe_float(value: object, expected: float | None) -> None:
    assert safe_float(value) == expected


def test_safe_str_renders_integral_floats_as_ints() -> None:
    assert safe_str(12.0) == "12"
    assert safe_str(12.5) == "12.5"
    assert safe_str("  ") is None
    assert safe_str(None) is None


def test_timestamp_from_iso_string_with_z_suffix() -> None:
    assert normalize_timestamp("2026-01-01T12:00:00Z") == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_timestamp_with_offset_is_converted_to_utc() -> None:
    parsed = normalize_timestamp("2026-01-01T14:00:00+02:00")

    assert parsed == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert parsed is not None and parsed.utcoffset() == timedelta(0)


def test_naive_values_are_assumed_utc() -> None:
    assert normalize_timestamp("2026-01-01T12:00:00") == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert normalize_timestamp(datetime(2026, 1, 1, 12, 0)) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_aware_datetime_passes_through() -> None:
    value = datetime(2026, 1, 1, 13, 0, tzinfo=timezone(timedelta(hours=1)))

    assert normalize_timestamp(value) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_epoch_seconds_and_milliseconds() -> None:
    expected = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    assert normalize_timestamp(1_767_268_800) == expected
    assert normalize_timestamp("1767268800") == expected
    assert normalize_timestamp(1_767_268_800_000) == expected


@pytest.mark.parametrize("value", [None, "", "yesterday", 0, -5, True, {}])
def test_unusable_timestamps(value: object) -> None:
    assert normalize_timestamp(value) is None


def test_format_location_is_lat_first() -> None:
    assert format_location(13.405, 52.52) == "52.52000, 13.40500"
    assert format_location(0.0, 0.02, precision=4) == "0.0200, 0.0000"
