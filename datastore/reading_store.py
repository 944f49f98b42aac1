from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from models.boards import BoardType
from models.records import ID_KEY, Reading
from services.normalizer import sort_readings
from settings import get_settings

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[List[Reading]], None]


class Subscription:
    """Handle returned by ``subscribe``; release it to stop deliveries."""

    def __init__(self, release: Callable[[], None]) -> None:
        self._release = release
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.unsubscribe()


class ReadingStore:
    """Append-only per-board reading collections with snapshot subscriptions.

    Every change delivers the full, timestamp-ordered list of a board's
    readings to that board's listeners. Delivery happens while the store lock
    is held so listeners observe snapshots in append order.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._documents: Dict[BoardType, List[Dict[str, Any]]] = {
            board: [] for board in BoardType
        }
        self._listeners: Dict[BoardType, Dict[int, SnapshotListener]] = {
            board: {} for board in BoardType
        }
        self._next_token = 0
        self.persistence_path = persistence_path
        self._lock = RLock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def subscribe(self, board: BoardType, listener: SnapshotListener) -> Subscription:
        """Register ``listener`` and deliver the current snapshot immediately."""
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[board][token] = listener
            listener(self._snapshot(board))

        def release() -> None:
            with self._lock:
                self._listeners[board].pop(token, None)

        return Subscription(release)

    def append(self, board: BoardType, document: Mapping[str, Any]) -> Reading:
        """Persist a new document for ``board`` and notify subscribers."""
        stored = {key: value for key, value in document.items() if key != ID_KEY}
        stored[ID_KEY] = uuid4().hex
        stored.setdefault("boardType", board.value)
        with self._lock:
            self._documents[board].append(stored)
            self._persist()
            reading = Reading.from_document(board, stored[ID_KEY], stored)
            logger.debug(
                "Appended reading",
                extra={"board": board.value, "reading_id": reading.id},
            )
            snapshot = self._snapshot(board)
            for listener in list(self._listeners[board].values()):
                listener(snapshot)
        return reading

    def snapshot(self, board: BoardType) -> List[Reading]:
        with self._lock:
            return self._snapshot(board)

    def listener_count(self, board: BoardType) -> int:
        with self._lock:
            return len(self._listeners[board])

    def _snapshot(self, board: BoardType) -> List[Reading]:
        # Stored order is append order; equal instants keep it.
        readings = [Reading.from_document(board, doc[ID_KEY], doc) for doc in self._documents[board]]
        return list(sort_readings(readings))

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {board.value: docs for board, docs in self._documents.items()}
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable reading store file",
                extra={"reason": str(self.persistence_path)},
            )
            data = {}

        for board in BoardType:
            for document in data.get(board.value, []):
                if not isinstance(document, dict):
                    continue
                document.setdefault(ID_KEY, uuid4().hex)
                self._documents[board].append(document)


@lru_cache
def build_default_reading_store(path: Optional[str] = None) -> ReadingStore:
    settings = get_settings()
    store_path = settings.reading_store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return ReadingStore(persistence_path=persistence)
