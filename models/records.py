"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from models.boards import BoardType

ID_KEY = "id"
TIMESTAMP_KEY = "timestamp"
BOARD_KEY = "boardType"

RESERVED_KEYS = frozenset({ID_KEY, TIMESTAMP_KEY, BOARD_KEY})


@dataclass(frozen=True, slots=True)
class Reading:
    """One immutable document from a board stream."""

    id: str
    board: BoardType
    timestamp: Optional[str]
    fields: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @classmethod
    def from_document(
        cls, board: BoardType, reading_id: str, document: Mapping[str, Any]
    ) -> "Reading":
        fields = {key: value for key, value in document.items() if key not in RESERVED_KEYS}
        timestamp = document.get(TIMESTAMP_KEY)
        return cls(
            id=reading_id,
            board=board,
            timestamp=timestamp if isinstance(timestamp, str) else None,
            fields=fields,
        )

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            ID_KEY: self.id,
            BOARD_KEY: self.board.value,
            TIMESTAMP_KEY: self.timestamp,
        }
        document.update(self.fields)
        return document
