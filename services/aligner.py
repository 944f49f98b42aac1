"""Align per-board numeric series onto one shared timeline for charting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from models.boards import BoardType
from models.records import Reading
from services.normalizer import parse_number, parse_timestamp

CHART_LABEL_FORMAT = "%b %d, %Y %I:%M %p"


@dataclass(frozen=True)
class SeriesRequest:
    board: BoardType
    field: str
    readings: Sequence[Reading] = ()


@dataclass(frozen=True)
class AlignedSeries:
    timeline: List[datetime] = field(default_factory=list)
    values: Dict[str, List[Optional[float]]] = field(default_factory=dict)


def format_chart_label(value: datetime) -> str:
    return value.strftime(CHART_LABEL_FORMAT)


def _timed_values(request: SeriesRequest) -> List[Tuple[datetime, float]]:
    """(time, value) pairs carrying a usable value for the field, ascending by time."""
    points: List[Tuple[datetime, float]] = []
    for reading in request.readings:
        time = parse_timestamp(reading.timestamp)
        if time is None:
            continue
        value = parse_number(reading.get(request.field))
        if value is None:
            continue
        points.append((time, value))
    points.sort(key=lambda point: point[0])
    return points


class SeriesAligner:
    """Step interpolation over the union of every series' timestamps."""

    def align(self, requests: Sequence[SeriesRequest]) -> AlignedSeries:
        per_request = [(request, _timed_values(request)) for request in requests]

        timeline = sorted({time for _, points in per_request for time, _ in points})

        values: Dict[str, List[Optional[float]]] = {}
        for request, points in per_request:
            values[request.field] = self._forward_fill(points, timeline)
        return AlignedSeries(timeline=timeline, values=values)

    @staticmethod
    def _forward_fill(
        points: Sequence[Tuple[datetime, float]], timeline: Sequence[datetime]
    ) -> List[Optional[float]]:
        filled: List[Optional[float]] = []
        cursor = 0
        last: Optional[float] = None
        for moment in timeline:
            while cursor < len(points) and points[cursor][0] <= moment:
                last = points[cursor][1]
                cursor += 1
            filled.append(last)
        return filled
