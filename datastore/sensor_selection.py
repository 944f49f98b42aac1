from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from models.boards import KNOWN_SENSORS, sensor_slot
from settings import get_settings

logger = logging.getLogger(__name__)


class SensorSelectionStore:
    """Active sensor names per instance (node), persisted as JSON."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._selections: Dict[str, List[str]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get(self, instance: str) -> List[str]:
        with self._lock:
            return list(self._selections.get(instance, []))

    def instances(self) -> List[str]:
        with self._lock:
            return sorted(self._selections)

    def add(self, instance: str, sensor: str) -> List[str]:
        """Activate ``sensor``; a numbered sensor may not share its slot."""
        if sensor not in KNOWN_SENSORS:
            raise ValueError(f"Unknown sensor {sensor!r}.")
        with self._lock:
            current = self._selections.setdefault(instance, [])
            if sensor in current:
                return list(current)
            slot = sensor_slot(sensor)
            if slot is not None:
                taken = next((name for name in current if sensor_slot(name) == slot), None)
                if taken is not None:
                    raise ValueError(
                        f"Slot {slot} on instance {instance!r} is already used by {taken!r}."
                    )
            current.append(sensor)
            self._persist()
            logger.info("Activated sensor", extra={"instance": instance, "sensor": sensor})
            return list(current)

    def remove(self, instance: str, sensor: str) -> List[str]:
        with self._lock:
            current = self._selections.get(instance, [])
            if sensor not in current:
                raise KeyError(f"Sensor {sensor!r} is not active on instance {instance!r}.")
            current.remove(sensor)
            self._persist()
            return list(current)

    def clear(self, instance: str) -> None:
        with self._lock:
            self._selections[instance] = []
            self._persist()

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(
            json.dumps(self._selections, indent=2, sort_keys=True)
        )

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for instance, sensors in data.items():
            if isinstance(sensors, list):
                self._selections[str(instance)] = [
                    name for name in sensors if name in KNOWN_SENSORS
                ]


@lru_cache
def build_default_selection_store(path: Optional[str] = None) -> SensorSelectionStore:
    settings = get_settings()
    store_path = settings.sensor_selection_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return SensorSelectionStore(persistence_path=persistence)
