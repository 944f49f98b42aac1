"""Live derivation of dashboard state from the board streams."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import timezone, tzinfo
from functools import lru_cache
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.schemas import Automation
from datastore.automation_store import AutomationStore, build_default_automation_store
from datastore.reading_store import ReadingStore, Subscription, build_default_reading_store
from models.boards import FIELDS_BY_KEY, NUMERIC_SENSOR_FIELDS, BoardType
from models.records import Reading
from services.aggregator import Aggregator, LatestState, empty_latest_state
from services.aligner import AlignedSeries, SeriesAligner, SeriesRequest
from services.log_merger import LogEntry, LogMerger
from services.normalizer import NormalizedStream, normalize_stream
from services.write_composer import WriteComposer, WriteReport
from settings import get_settings

logger = logging.getLogger(__name__)


def _empty_streams() -> Dict[BoardType, NormalizedStream]:
    return {board: NormalizedStream(board=board) for board in BoardType}


@dataclass(frozen=True)
class DashboardState:
    """One consistent snapshot of every derived view.

    Instances are never mutated; each stream update builds a new one.
    """

    streams: Mapping[BoardType, NormalizedStream] = field(default_factory=_empty_streams)
    latest: LatestState = field(default_factory=empty_latest_state)
    merged_logs: Tuple[LogEntry, ...] = ()
    automations: Tuple[Automation, ...] = ()

    def readings(self, board: BoardType) -> Tuple[Reading, ...]:
        return self.streams[board].readings

    def latest_by_board(self) -> Dict[BoardType, Optional[Reading]]:
        return {board: stream.latest for board, stream in self.streams.items()}


class DashboardService:
    """Subscribes to the stores and keeps the derived state current."""

    def __init__(
        self,
        store: ReadingStore,
        automation_store: AutomationStore,
        aggregator: Aggregator,
        merger: LogMerger,
        composer: WriteComposer,
        aligner: SeriesAligner,
    ) -> None:
        self.store = store
        self.automation_store = automation_store
        self.aggregator = aggregator
        self.merger = merger
        self.composer = composer
        self.aligner = aligner
        self._state = DashboardState()
        self._state_lock = Lock()
        self._subscriptions: List[Subscription] = []

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def started(self) -> bool:
        return bool(self._subscriptions)

    def start(self) -> None:
        """Open one subscription per board plus one for automations."""
        if self._subscriptions:
            return
        for board in BoardType:
            self._subscriptions.append(
                self.store.subscribe(board, lambda readings, b=board: self._on_board_snapshot(b, readings))
            )
        self._subscriptions.append(self.automation_store.subscribe(self._on_automations))
        logger.info("Dashboard subscriptions started", extra={"entry_count": len(self._subscriptions)})

    def shutdown(self) -> None:
        """Release every subscription and the write worker pool."""
        while self._subscriptions:
            self._subscriptions.pop().unsubscribe()
        self.composer.shutdown()

    def create_reading(
        self, field_updates: Mapping[str, Any], active_sensors: Iterable[str]
    ) -> WriteReport:
        unknown = sorted(key for key in field_updates if key not in FIELDS_BY_KEY)
        if unknown:
            logger.warning(
                "Ignoring unknown fields in write request",
                extra={"field": ",".join(unknown)},
            )
        return self.composer.submit(field_updates, active_sensors, self.state.latest_by_board())

    def series(self, sensor_names: Sequence[str]) -> Tuple[List[str], AlignedSeries]:
        """Align every numeric sensor among ``sensor_names``; returns the charted names too."""
        state = self.state
        charted = [name for name in sensor_names if name in NUMERIC_SENSOR_FIELDS]
        requests = []
        for name in charted:
            key = NUMERIC_SENSOR_FIELDS[name]
            board = FIELDS_BY_KEY[key].board
            requests.append(SeriesRequest(board=board, field=key, readings=state.readings(board)))
        return charted, self.aligner.align(requests)

    def _on_board_snapshot(self, board: BoardType, readings: List[Reading]) -> None:
        with self._state_lock:
            streams = dict(self._state.streams)
            streams[board] = normalize_stream(board, readings)
            self._state = self._derive(streams, self._state.automations)

    def _on_automations(self, automations: List[Automation]) -> None:
        with self._state_lock:
            self._state = replace(self._state, automations=tuple(automations))

    def _derive(
        self,
        streams: Dict[BoardType, NormalizedStream],
        automations: Tuple[Automation, ...],
    ) -> DashboardState:
        latest = self.aggregator.aggregate(
            streams[BoardType.GSMB].latest,
            streams[BoardType.HPCB].latest,
            streams[BoardType.NSCB].latest,
        )
        merged = self.merger.merge({board: stream.readings for board, stream in streams.items()})
        return DashboardState(
            streams=streams,
            latest=latest,
            merged_logs=tuple(merged),
            automations=automations,
        )


def _display_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown display timezone; using UTC", extra={"reason": name})
        return timezone.utc


@lru_cache
def build_default_dashboard(workers: Optional[int] = None) -> DashboardService:
    """Factory that wires the dashboard with the default stores."""
    settings = get_settings()
    store = build_default_reading_store()
    worker_count = workers or settings.write_workers
    return DashboardService(
        store=store,
        automation_store=build_default_automation_store(),
        aggregator=Aggregator(),
        merger=LogMerger(display_timezone=_display_timezone(settings.display_timezone)),
        composer=WriteComposer(store=store, workers=worker_count),
        aligner=SeriesAligner(),
    )
