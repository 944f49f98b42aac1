"""Build and manage automation rule documents.

Automations are only defined and stored here; nothing in this service runs
them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from app.schemas import Automation, AutomationPayload, AutomationType
from datastore.automation_store import AutomationStore
from models.boards import BoardType
from services.normalizer import parse_number, parse_timestamp
from services.write_composer import timestamp_string

logger = logging.getLogger(__name__)

NODE_NUMBERS = {BoardType.GSMB: 1, BoardType.HPCB: 2, BoardType.NSCB: 3}

# HPCB actions mapped to the sensor family whose slot becomes the port.
PORT_ACTIONS = {
    "turnOnLight": "Light",
    "turnOnFan": "Fan",
    "turnOnHumidifier": "Humidifier",
}


def _int_or_default(value: Any, default: int) -> int:
    number = parse_number(value)
    return int(number) if number is not None else default


def _float_or_zero(value: Any) -> float:
    number = parse_number(value)
    return number if number is not None else 0.0


def port_number_for_action(action: str, instance_sensors: Sequence[str]) -> Optional[int]:
    family = PORT_ACTIONS.get(action)
    if family is None:
        return None
    for slot in (1, 2, 3):
        if f"{family} {slot}" in instance_sensors:
            return slot
    return None


def _trigger_timestamp(date_time: Optional[str]) -> str:
    parsed = parse_timestamp(date_time)
    if parsed is None:
        return timestamp_string()
    return parsed.isoformat().replace("+00:00", "Z")


def build_automation_document(
    payload: AutomationPayload, instance_sensors: Sequence[str] = ()
) -> Dict[str, Any]:
    """Translate form input into the stored automation document."""
    document: Dict[str, Any] = {
        "boardType": payload.board.value,
        "name": payload.name or "",
        "type": payload.type.value,
        "enabled": True if payload.enabled is None else payload.enabled,
        "repeat": payload.repeat_schedule or "none",
        "action": payload.action,
        "instanceNumber": _int_or_default(payload.instance_number, 1) or 1,
        "nodeNumber": NODE_NUMBERS.get(payload.board, 0),
    }

    if payload.type is AutomationType.time_based:
        document["timestamp"] = _trigger_timestamp(payload.date_time)
    elif payload.type is AutomationType.threshold_based:
        document["sensorField"] = payload.sensor_field or ""
        document["operator"] = payload.operator or ">"
        document["thresholdNumber"] = _float_or_zero(payload.threshold_value)
    elif payload.type is AutomationType.volume_based:
        document["volume"] = _float_or_zero(payload.volume_ml)

    document["timeLength"] = _int_or_default(payload.time_length, 0)
    document["timeLengthType"] = payload.time_unit or "Second"

    if payload.board is BoardType.HPCB:
        port = port_number_for_action(payload.action, instance_sensors)
        document["portNumber"] = port if port is not None else 0
    elif payload.board is BoardType.NSCB:
        document["volume"] = _float_or_zero(payload.volume_ml)

    return document


class AutomationService:
    """Create, replace, toggle and remove stored automations."""

    def __init__(self, store: AutomationStore) -> None:
        self.store = store

    def list(self) -> List[Automation]:
        return self.store.scan()

    def create(self, payload: AutomationPayload, instance_sensors: Sequence[str] = ()) -> Automation:
        created = self.store.create(build_automation_document(payload, instance_sensors))
        logger.info(
            "Created automation",
            extra={"automation_id": created.id, "board": created.board.value},
        )
        return created

    def update(
        self,
        automation_id: str,
        payload: AutomationPayload,
        instance_sensors: Sequence[str] = (),
    ) -> Automation:
        replacement = self.store.replace(
            automation_id, build_automation_document(payload, instance_sensors)
        )
        logger.info("Replaced automation", extra={"automation_id": automation_id})
        return replacement

    def set_enabled(self, automation_id: str, enabled: bool) -> Automation:
        return self.store.update(automation_id, {"enabled": enabled})

    def delete(self, automation_id: str) -> None:
        self.store.delete(automation_id)
        logger.info("Deleted automation", extra={"automation_id": automation_id})

    def clear(self) -> int:
        removed = self.store.clear()
        logger.info("Cleared automations", extra={"entry_count": removed})
        return removed
