"""Filtering, pagination and export over the merged log."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from services.log_merger import LogEntry


@dataclass(frozen=True)
class LogPage:
    entries: List[LogEntry] = field(default_factory=list)
    page: int = 1
    per_page: int = 25
    total: int = 0
    total_pages: int = 0


def relevant_logs(entries: Iterable[LogEntry], sensors: Sequence[str]) -> List[LogEntry]:
    """Entries whose action mentions one of ``sensors``; none without sensors."""
    needles = [sensor.lower() for sensor in sensors]
    if not needles:
        return []
    return [
        entry
        for entry in entries
        if any(needle in entry.action.lower() for needle in needles)
    ]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def filter_logs(
    entries: Iterable[LogEntry],
    sensors: Sequence[str],
    search: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[LogEntry]:
    term = (search or "").strip().lower()
    start = _as_utc(start)
    end = _as_utc(end)
    result: List[LogEntry] = []
    for entry in relevant_logs(entries, sensors):
        if term and term not in str(entry.id) and term not in entry.action.lower():
            continue
        if start is not None and entry.time < start:
            continue
        if end is not None and entry.time > end:
            continue
        result.append(entry)
    return result


def paginate(entries: Sequence[LogEntry], page: int = 1, per_page: int = 25) -> LogPage:
    if page < 1:
        raise ValueError("Page numbers start at 1.")
    if per_page < 1:
        raise ValueError("Page size must be positive.")
    total = len(entries)
    first = (page - 1) * per_page
    return LogPage(
        entries=list(entries[first : first + per_page]),
        page=page,
        per_page=per_page,
        total=total,
        total_pages=math.ceil(total / per_page),
    )


def export_logs(entries: Iterable[LogEntry]) -> List[Dict[str, object]]:
    return [
        {"id": entry.id, "time": entry.time.isoformat().replace("+00:00", "Z"), "action": entry.action}
        for entry in entries
    ]
