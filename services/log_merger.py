"""Fan every field of every board reading into one time-ordered log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Mapping, Optional, Sequence

from models.boards import BOARD_FIELDS, BoardType
from models.records import Reading
from services.normalizer import EPOCH, parse_timestamp

logger = logging.getLogger(__name__)

DISPLAY_FORMAT = "%m/%d/%Y, %I:%M:%S %p"


@dataclass(frozen=True)
class LogEntry:
    id: int
    board: BoardType
    time: datetime
    time_display: str
    action: str


def display_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


class LogMerger:
    """Build the merged audit log from the three board streams.

    The log is rebuilt from scratch on every call; ids are dense ranks over
    the sorted result and are not stable across rebuilds.
    """

    def __init__(self, display_timezone: Optional[tzinfo] = None) -> None:
        self.display_timezone = display_timezone or timezone.utc

    def merge(self, streams: Mapping[BoardType, Sequence[Reading]]) -> List[LogEntry]:
        lines: List[tuple[BoardType, datetime, str, str]] = []
        for board in BoardType:
            for reading in streams.get(board, ()):
                time = parse_timestamp(reading.timestamp) or EPOCH
                time_display = self.format_time(time)
                for spec in BOARD_FIELDS[board]:
                    value = reading.get(spec.key)
                    if not _is_present(value):
                        continue
                    action = f"Reading of {spec.label}: {display_value(value)}"
                    lines.append((board, time, time_display, action))

        # sorted() is stable, so lines from one reading keep field order on ties.
        lines = sorted(lines, key=lambda line: line[1])
        entries = [
            LogEntry(id=rank, board=board, time=time, time_display=time_display, action=action)
            for rank, (board, time, time_display, action) in enumerate(lines, start=1)
        ]
        logger.debug("Rebuilt merged log", extra={"entry_count": len(entries)})
        return entries

    def format_time(self, value: datetime) -> str:
        return value.astimezone(self.display_timezone).strftime(DISPLAY_FORMAT)
