"""Aggregation of per-board latest readings into one composite view."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Union

from models.boards import BOARD_FIELDS, BoardType
from models.records import Reading
from services.normalizer import format_one_decimal, parse_timestamp

LatestValue = Union[str, bool]


@dataclass(frozen=True)
class LatestState:
    """Latest value of every known field plus the newest board timestamp."""

    values: Dict[str, LatestValue] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    def __getitem__(self, key: str) -> LatestValue:
        return self.values[key]


def empty_latest_state() -> LatestState:
    return Aggregator().aggregate(None, None, None)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(
        self,
        latest_gsmb: Optional[Reading],
        latest_hpcb: Optional[Reading],
        latest_nscb: Optional[Reading],
    ) -> LatestState:
        latest_by_board = {
            BoardType.GSMB: latest_gsmb,
            BoardType.HPCB: latest_hpcb,
            BoardType.NSCB: latest_nscb,
        }

        values: Dict[str, LatestValue] = {}
        for board, specs in BOARD_FIELDS.items():
            reading = latest_by_board[board]
            for spec in specs:
                raw = reading.get(spec.key) if reading is not None else None
                if spec.is_numeric:
                    values[spec.key] = format_one_decimal(raw)
                else:
                    values[spec.key] = raw if isinstance(raw, bool) else False

        return LatestState(values=values, timestamp=self.combine_timestamps(latest_by_board.values()))

    @staticmethod
    def combine_timestamps(readings) -> Optional[datetime]:
        """Newest parseable timestamp among ``readings``; ``None`` if there is none."""
        times = [
            parsed
            for parsed in (
                parse_timestamp(reading.timestamp) for reading in readings if reading is not None
            )
            if parsed is not None
        ]
        return max(times) if times else None
