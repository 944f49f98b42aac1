from __future__ import annotations

from datetime import datetime, timezone

from models.boards import BoardType
from models.records import Reading
from services.normalizer import (
    EPOCH,
    format_one_decimal,
    latest_reading,
    normalize_stream,
    parse_timestamp,
    reading_time,
)


def _reading(reading_id: str, timestamp: str | None, **fields) -> Reading:
    return Reading(id=reading_id, board=BoardType.GSMB, timestamp=timestamp, fields=fields)


def test_parse_timestamp_variants() -> None:
    expected = datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)

    assert parse_timestamp("2024-01-01T00:05:00Z") == expected
    assert parse_timestamp("2024-01-01T00:05:00+00:00") == expected
    assert parse_timestamp("2024-01-01T02:05:00+02:00") == expected
    assert parse_timestamp("2024-01-01T00:05:00") == expected
    assert parse_timestamp("not-a-time") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_garbled_timestamp_orders_as_epoch() -> None:
    assert reading_time(_reading("a", "garbage")) == EPOCH
    assert reading_time(_reading("b", None)) == EPOCH


def test_latest_reading_empty_stream() -> None:
    assert latest_reading([]) is None


def test_latest_reading_prefers_later_element_on_ties() -> None:
    first = _reading("first", "2024-01-01T00:00:00Z", temperature=20)
    second = _reading("second", "2024-01-01T00:00:00Z", temperature=21)

    assert latest_reading([first, second]).id == "second"


def test_latest_reading_is_by_timestamp_not_arrival() -> None:
    newer = _reading("newer", "2024-01-02T00:00:00Z")
    older = _reading("older", "2024-01-01T00:00:00Z")

    assert latest_reading([newer, older]).id == "newer"


def test_normalize_stream_sorts_stably() -> None:
    late = _reading("late", "2024-01-03T00:00:00Z")
    tie_a = _reading("tie-a", "2024-01-02T00:00:00Z")
    tie_b = _reading("tie-b", "2024-01-02T00:00:00Z")
    early = _reading("early", "2024-01-01T00:00:00Z")

    stream = normalize_stream(BoardType.GSMB, [late, tie_a, tie_b, early])

    assert [reading.id for reading in stream.readings] == ["early", "tie-a", "tie-b", "late"]
    assert stream.latest.id == "late"
    assert stream.board is BoardType.GSMB


def test_format_one_decimal() -> None:
    assert format_one_decimal(21.34) == "21.3"
    assert format_one_decimal("18") == "18.0"
    assert format_one_decimal(0) == "0.0"
    assert format_one_decimal("abc") == ""
    assert format_one_decimal(None) == ""
    assert format_one_decimal(True) == ""
    assert format_one_decimal("nan") == ""
    assert format_one_decimal("inf") == ""
    assert format_one_decimal("-inf") == ""
    assert format_one_decimal("1e999") == ""
