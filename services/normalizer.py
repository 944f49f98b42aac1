"""Per-board ordering, latest-reading extraction and display formatting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Tuple

from models.boards import BoardType
from models.records import Reading

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class NormalizedStream:
    board: BoardType
    readings: Tuple[Reading, ...] = ()
    latest: Optional[Reading] = None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, or ``None``."""
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if not candidate:
        return None

    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def reading_time(reading: Reading) -> datetime:
    """Ordering key for a reading; unknown timestamps sort as the epoch."""
    return parse_timestamp(reading.timestamp) or EPOCH


def sort_readings(readings: Iterable[Reading]) -> Tuple[Reading, ...]:
    return tuple(sorted(readings, key=reading_time))


def latest_reading(readings: Iterable[Reading]) -> Optional[Reading]:
    """Most recent reading; on equal timestamps the later element wins."""
    latest: Optional[Reading] = None
    latest_time = EPOCH
    for reading in readings:
        current = reading_time(reading)
        if latest is None or current >= latest_time:
            latest, latest_time = reading, current
    return latest


def normalize_stream(board: BoardType, readings: Iterable[Reading]) -> NormalizedStream:
    items = list(readings)
    return NormalizedStream(
        board=board,
        readings=sort_readings(items),
        latest=latest_reading(items),
    )


def parse_number(value: Any) -> Optional[float]:
    """Interpret ``value`` as a float; ``None`` when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def format_one_decimal(value: Any) -> str:
    """One-decimal display string; empty when the value is not numeric."""
    number = parse_number(value)
    if number is None:
        return ""
    return f"{number:.1f}"
