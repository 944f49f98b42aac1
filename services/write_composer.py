"""Compose and append new board documents from operator write intents."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from datastore.reading_store import ReadingStore
from models.boards import BOARD_FIELDS, FIELDS_BY_KEY, BoardType, classify_sensor
from models.records import BOARD_KEY, TIMESTAMP_KEY, Reading
from services.normalizer import parse_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComposedWrite:
    board: BoardType
    document: Dict[str, Any]


@dataclass(frozen=True)
class BoardWriteResult:
    board: BoardType
    document: Dict[str, Any]
    reading_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class WriteReport:
    results: List[BoardWriteResult] = field(default_factory=list)

    @property
    def failed(self) -> List[BoardWriteResult]:
        return [result for result in self.results if not result.ok]


def timestamp_string(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 timestamp with whole seconds and a ``Z`` suffix."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def boards_for_sensors(active_sensors: Iterable[str]) -> List[BoardType]:
    """Boards implicated by the active sensors, in board declaration order."""
    implicated = {classify_sensor(name) for name in active_sensors}
    return [board for board in BoardType if board in implicated]


class WriteComposer:
    """Turns field updates into one full-snapshot document per implicated board."""

    def __init__(self, store: ReadingStore, workers: int = 3) -> None:
        self.store = store
        self.executor = ThreadPoolExecutor(max_workers=workers)

    def compose(
        self,
        field_updates: Mapping[str, Any],
        active_sensors: Iterable[str],
        latest_by_board: Mapping[BoardType, Optional[Reading]],
        timestamp: Optional[str] = None,
    ) -> List[ComposedWrite]:
        active = set(active_sensors)
        stamp = timestamp or timestamp_string()
        writes: List[ComposedWrite] = []

        for board in boards_for_sensors(active):
            document = self._clone_latest(board, latest_by_board.get(board))
            for key, value in field_updates.items():
                spec = FIELDS_BY_KEY.get(key)
                if spec is None or spec.board is not board or spec.sensor not in active:
                    continue
                document[key] = self._coerce_numeric(board, key, value) if spec.is_numeric else value
            document[TIMESTAMP_KEY] = stamp
            document[BOARD_KEY] = board.value
            writes.append(ComposedWrite(board=board, document=document))

        return writes

    def apply(self, writes: Iterable[ComposedWrite]) -> WriteReport:
        """Append every composed document; a failed board never blocks the others."""
        pending: List[Tuple[ComposedWrite, Future[Reading]]] = [
            (write, self.executor.submit(self.store.append, write.board, write.document))
            for write in writes
        ]

        results: List[BoardWriteResult] = []
        for write, future in pending:
            try:
                reading = future.result()
            except Exception as exc:  # noqa: BLE001 - isolate per-board failures
                logger.error(
                    "Failed to append reading",
                    extra={"board": write.board.value, "error": repr(exc)},
                )
                results.append(
                    BoardWriteResult(board=write.board, document=write.document, error=str(exc))
                )
                continue
            logger.info(
                "Appended reading",
                extra={"board": write.board.value, "reading_id": reading.id},
            )
            results.append(
                BoardWriteResult(board=write.board, document=write.document, reading_id=reading.id)
            )
        return WriteReport(results=results)

    def submit(
        self,
        field_updates: Mapping[str, Any],
        active_sensors: Iterable[str],
        latest_by_board: Mapping[BoardType, Optional[Reading]],
    ) -> WriteReport:
        return self.apply(self.compose(field_updates, active_sensors, latest_by_board))

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _clone_latest(board: BoardType, latest: Optional[Reading]) -> Dict[str, Any]:
        # Only schema fields are carried over; id, timestamp and board never are.
        if latest is None:
            return {}
        return {
            spec.key: latest.fields[spec.key]
            for spec in BOARD_FIELDS[board]
            if spec.key in latest.fields
        }

    @staticmethod
    def _coerce_numeric(board: BoardType, key: str, value: Any) -> float:
        number = parse_number(value)
        if number is None:
            # TODO: decide whether unparseable operator input should reject the write.
            logger.warning(
                "Numeric value could not be parsed; writing 0",
                extra={"board": board.value, "field": key, "invalid_value": repr(value)},
            )
            return 0.0
        return number
