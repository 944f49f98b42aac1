from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from app.schemas import Automation
from datastore.reading_store import Subscription
from settings import get_settings

logger = logging.getLogger(__name__)

AutomationListener = Callable[[List[Automation]], None]


class AutomationStore:
    """Live collection of automation documents keyed by id."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._items: Dict[str, Automation] = {}
        self._listeners: Dict[int, AutomationListener] = {}
        self._next_token = 0
        self.persistence_path = persistence_path
        self._lock = RLock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def subscribe(self, listener: AutomationListener) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = listener
            listener(self._scan())

        def release() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return Subscription(release)

    def create(self, document: Mapping[str, Any]) -> Automation:
        automation_id = uuid4().hex
        item = Automation.model_validate({**document, "id": automation_id})
        with self._lock:
            self._items[automation_id] = item
            self._commit()
        return item.model_copy(deep=True)

    def update(self, automation_id: str, document: Mapping[str, Any]) -> Automation:
        """Merge ``document`` into the stored automation."""
        with self._lock:
            current = self._items.get(automation_id)
            if current is None:
                raise KeyError(f"Automation {automation_id!r} not found.")
            merged = {**current.model_dump(by_alias=True), **document, "id": automation_id}
            item = Automation.model_validate(merged)
            self._items[automation_id] = item
            self._commit()
        return item.model_copy(deep=True)

    def replace(self, automation_id: str, document: Mapping[str, Any]) -> Automation:
        """Swap the stored automation for ``document``, keeping its id."""
        with self._lock:
            if automation_id not in self._items:
                raise KeyError(f"Automation {automation_id!r} not found.")
            item = Automation.model_validate({**document, "id": automation_id})
            self._items[automation_id] = item
            self._commit()
        return item.model_copy(deep=True)

    def delete(self, automation_id: str) -> None:
        with self._lock:
            if self._items.pop(automation_id, None) is None:
                raise KeyError(f"Automation {automation_id!r} not found.")
            self._commit()

    def clear(self) -> int:
        with self._lock:
            removed = len(self._items)
            self._items.clear()
            self._commit()
        return removed

    def get_item(self, automation_id: str) -> Optional[Automation]:
        with self._lock:
            item = self._items.get(automation_id)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> List[Automation]:
        """Return deep copies of all stored automations."""
        with self._lock:
            return self._scan()

    def _scan(self) -> List[Automation]:
        return [item.model_copy(deep=True) for item in self._items.values()]

    def _commit(self) -> None:
        self._persist()
        snapshot = self._scan()
        for listener in list(self._listeners.values()):
            listener(snapshot)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            automation_id: item.model_dump(mode="json", by_alias=True)
            for automation_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable automation store file",
                extra={"reason": str(self.persistence_path)},
            )
            data = {}

        for automation_id, payload in data.items():
            self._items[automation_id] = Automation.model_validate(payload)


@lru_cache
def build_default_automation_store(path: Optional[str] = None) -> AutomationStore:
    settings = get_settings()
    store_path = settings.automation_store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return AutomationStore(persistence_path=persistence)
