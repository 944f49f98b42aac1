"""Fixed board schemas and the sensor-name routing table."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple


class BoardType(str, Enum):
    """The three sensor boards that report readings."""

    GSMB = "GSMB"
    HPCB = "HPCB"
    NSCB = "NSCB"


class FieldKind(str, Enum):
    numeric = "numeric"
    boolean = "boolean"


@dataclass(frozen=True)
class FieldSpec:
    """A single field in a board document."""

    key: str
    board: BoardType
    kind: FieldKind
    label: str
    sensor: str

    @property
    def is_numeric(self) -> bool:
        return self.kind is FieldKind.numeric


def _numeric(key: str, board: BoardType, label: str, sensor: str) -> FieldSpec:
    return FieldSpec(key=key, board=board, kind=FieldKind.numeric, label=label, sensor=sensor)


def _boolean(key: str, board: BoardType, label: str, sensor: str) -> FieldSpec:
    return FieldSpec(key=key, board=board, kind=FieldKind.boolean, label=label, sensor=sensor)


_SLOTS = (1, 2, 3)

# Declaration order is the order fields appear in the merged log.
BOARD_FIELDS: Dict[BoardType, Tuple[FieldSpec, ...]] = {
    BoardType.GSMB: (
        _numeric("temperature", BoardType.GSMB, "Temperature", "Temperature"),
        _numeric("humidity", BoardType.GSMB, "Humidity", "Humidity"),
        _numeric("soilMoisture", BoardType.GSMB, "Soil Moisture", "Soil Moisture"),
    ),
    BoardType.HPCB: (
        *(_numeric(f"light{n}", BoardType.HPCB, f"Light {n} (lux)", f"Light {n}") for n in _SLOTS),
        *(_boolean(f"light{n}State", BoardType.HPCB, f"Light {n} State", f"Light {n}") for n in _SLOTS),
        *(_boolean(f"fan{n}State", BoardType.HPCB, f"Fan {n} State", f"Fan {n}") for n in _SLOTS),
        *(
            _boolean(f"humidifier{n}State", BoardType.HPCB, f"Humidifier {n} State", f"Humidifier {n}")
            for n in _SLOTS
        ),
    ),
    BoardType.NSCB: (
        _numeric("waterLevel", BoardType.NSCB, "Water Level", "Water Level"),
        _numeric("nutrient1", BoardType.NSCB, "Nutrient 1 Level", "Nutrient 1 Level"),
        _numeric("nutrient2", BoardType.NSCB, "Nutrient 2 Level", "Nutrient 2 Level"),
    ),
}

FIELDS_BY_KEY: Dict[str, FieldSpec] = {
    spec.key: spec for specs in BOARD_FIELDS.values() for spec in specs
}

# Operator-facing sensor names offered per board.
SENSOR_OPTIONS: Dict[BoardType, Tuple[str, ...]] = {
    BoardType.GSMB: ("Temperature", "Humidity", "Soil Moisture"),
    BoardType.HPCB: (
        *(f"Fan {n}" for n in _SLOTS),
        *(f"Light {n}" for n in _SLOTS),
        *(f"Humidifier {n}" for n in _SLOTS),
    ),
    BoardType.NSCB: ("Water Level", "Nutrient 1 Level", "Nutrient 2 Level"),
}

KNOWN_SENSORS = frozenset(name for names in SENSOR_OPTIONS.values() for name in names)

# Sensor names whose readings can be charted, mapped to their numeric field.
NUMERIC_SENSOR_FIELDS: Dict[str, str] = {
    spec.sensor: spec.key
    for specs in BOARD_FIELDS.values()
    for spec in specs
    if spec.is_numeric
}


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda name: any(needle in name.lower() for needle in needles)


def _starts_with(*prefixes: str) -> Callable[[str], bool]:
    return lambda name: name.startswith(prefixes)


# Evaluated in order; the first matching rule decides the board.
SENSOR_ROUTING: Tuple[Tuple[Callable[[str], bool], BoardType], ...] = (
    (_contains("temperature", "humidity", "soil moisture"), BoardType.GSMB),
    (_starts_with("Fan ", "Light ", "Humidifier "), BoardType.HPCB),
    (_contains("water", "nutrient"), BoardType.NSCB),
)


def classify_sensor(name: str) -> Optional[BoardType]:
    """Return the board an active sensor name belongs to, if any."""
    for matches, board in SENSOR_ROUTING:
        if matches(name):
            return board
    return None


def fields_for_board(board: BoardType) -> Tuple[FieldSpec, ...]:
    return BOARD_FIELDS[board]


def field_keys(board: BoardType) -> List[str]:
    return [spec.key for spec in BOARD_FIELDS[board]]


def parse_board(value: str) -> BoardType:
    """Resolve a board name case-insensitively; raises ``KeyError`` when unknown."""
    try:
        return BoardType(value.strip().upper())
    except ValueError as exc:
        raise KeyError(f"Unknown board {value!r}.") from exc


_SLOT_PATTERN = re.compile(r"\b(\d)\b")


def sensor_slot(name: str) -> Optional[str]:
    """Slot digit of a numbered sensor such as ``Fan 2``; ``None`` otherwise."""
    match = _SLOT_PATTERN.search(name)
    return match.group(1) if match else None
