"""
Tests for canonical timestamp normalization.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from booking_engine.application.utils.time_normalizer import (
    add_minutes,
    is_in_future,
    normalize_timestamp,
    parse_canonical,
    to_zoned,
)

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


def test_bare_time_uses_reference_date():
    assert normalize_timestamp("14:00", reference_date=date(2025, 3, 10), timezone=TZ) == "2025-03-10 14:00:00"
    assert normalize_timestamp("9:40", reference_date="2025-03-10", timezone=TZ) == "2025-03-10 09:40:00"


def test_bare_time_without_reference_is_invalid():
    assert normalize_timestamp("14:00", timezone=TZ) == ""
    assert normalize_timestamp("25:00", reference_date=date(2025, 3, 10), timezone=TZ) == ""


def test_naive_strings_are_not_shifted():
    """Local-naive values keep their wall-clock time whatever the timezone."""
    assert normalize_timestamp("2025-03-10T14:00", timezone=TZ) == "2025-03-10 14:00:00"
    assert normalize_timestamp("2025-03-10 14:00:00", timezone=TZ) == "2025-03-10 14:00:00"
    assert normalize_timestamp("2025-03-10 14:00", timezone=ZoneInfo("Asia/Tokyo")) == "2025-03-10 14:00:00"


def test_zoned_strings_convert_to_business_time():
    assert normalize_timestamp("2025-03-10T17:00:00Z", timezone=TZ) == "2025-03-10 14:00:00"
    assert normalize_timestamp("2025-03-10T17:00:00.000Z", timezone=TZ) == "2025-03-10 14:00:00"
    assert normalize_timestamp("2025-03-10T14:00:00-03:00", timezone=TZ) == "2025-03-10 14:00:00"


def test_same_instant_in_any_shape_normalizes_identically():
    shapes = [
        "2025-03-10T17:00:00Z",
        "2025-03-10T14:00:00-03:00",
        "2025-03-10T19:00:00+02:00",
        datetime(2025, 3, 10, 14, 0, tzinfo=TZ),
        1741626000000,
        1741626000,
    ]
    assert {normalize_timestamp(s, timezone=TZ) for s in shapes} == {"2025-03-10 14:00:00"}


def test_invalid_input_yields_empty_string():
    for value in (None, "", "tomorrow", "2025-02-30 10:00", "2025-03-10T14:00:00+99:99", True, [], {}):
        assert normalize_timestamp(value, timezone=TZ) == ""


def test_naive_datetime_passes_through():
    assert normalize_timestamp(datetime(2025, 3, 10, 8, 5), timezone=TZ) == "2025-03-10 08:05:00"


def test_add_minutes_and_zoned_output():
    assert add_minutes("2025-03-10 14:00:00", 30) == "2025-03-10 14:30:00"
    assert add_minutes("2025-03-10 23:50:00", 20) == "2025-03-11 00:10:00"
    assert add_minutes("nope", 30) == ""
    assert to_zoned("2025-03-10 14:00:00", TZ) == "2025-03-10T14:00:00-03:00"


def test_is_in_future_is_strict():
    now = datetime(2025, 3, 10, 14, 0)
    assert is_in_future("2025-03-10 14:00:01", now)
    assert not is_in_future("2025-03-10 14:00:00", now)
    assert not is_in_future("", now)
    assert parse_canonical("2025-03-10 14:00:00") == now
