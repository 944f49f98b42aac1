from __future__ import annotations

import json

from datastore.reading_store import ReadingStore
from models.boards import BoardType
from services.normalizer import latest_reading


def test_subscribe_delivers_current_snapshot_immediately() -> None:
    store = ReadingStore()
    store.append(BoardType.GSMB, {"temperature": 20, "timestamp": "2024-01-01T00:00:00Z"})
    received = []

    store.subscribe(BoardType.GSMB, received.append)

    assert len(received) == 1
    assert received[0][0].get("temperature") == 20


def test_append_notifies_only_that_boards_listeners() -> None:
    store = ReadingStore()
    gsmb, hpcb = [], []
    store.subscribe(BoardType.GSMB, gsmb.append)
    store.subscribe(BoardType.HPCB, hpcb.append)

    reading = store.append(BoardType.GSMB, {"temperature": 20, "timestamp": "2024-01-01T00:00:00Z"})

    assert len(gsmb) == 2
    assert len(hpcb) == 1
    assert gsmb[-1][0].id == reading.id
    assert reading.board is BoardType.GSMB
    assert reading.timestamp == "2024-01-01T00:00:00Z"


def test_append_assigns_store_id_and_board() -> None:
    store = ReadingStore()

    first = store.append(BoardType.NSCB, {"id": "caller", "waterLevel": 3})
    second = store.append(BoardType.NSCB, {"waterLevel": 4})

    assert first.id != "caller"
    assert first.id != second.id
    assert "id" not in first.fields
    assert "boardType" not in first.fields


def test_snapshot_is_ordered_by_timestamp() -> None:
    store = ReadingStore()
    store.append(BoardType.GSMB, {"temperature": 2, "timestamp": "2024-01-02T00:00:00Z"})
    store.append(BoardType.GSMB, {"temperature": 1, "timestamp": "2024-01-01T00:00:00Z"})
    store.append(BoardType.GSMB, {"temperature": 3, "timestamp": "2024-01-02T00:00:00Z"})

    values = [reading.get("temperature") for reading in store.snapshot(BoardType.GSMB)]

    assert values == [1, 2, 3]


def test_unsubscribe_stops_delivery() -> None:
    store = ReadingStore()
    received = []
    subscription = store.subscribe(BoardType.HPCB, received.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    store.append(BoardType.HPCB, {"fan1State": True})

    assert len(received) == 1
    assert subscription.active is False
    assert store.listener_count(BoardType.HPCB) == 0


def test_subscription_context_manager() -> None:
    store = ReadingStore()

    with store.subscribe(BoardType.GSMB, lambda snapshot: None):
        assert store.listener_count(BoardType.GSMB) == 1

    assert store.listener_count(BoardType.GSMB) == 0


def test_persistence_round_trip(tmp_path) -> None:
    path = tmp_path / "readings.json"
    store = ReadingStore(persistence_path=path)
    reading = store.append(BoardType.HPCB, {"light1": 300, "timestamp": "2024-01-01T00:00:00Z"})

    payload = json.loads(path.read_text())
    assert payload["HPCB"][0]["id"] == reading.id
    assert payload["HPCB"][0]["boardType"] == "HPCB"

    reloaded = ReadingStore(persistence_path=path)
    assert [item.id for item in reloaded.snapshot(BoardType.HPCB)] == [reading.id]


def test_unreadable_file_is_ignored(tmp_path, caplog) -> None:
    path = tmp_path / "readings.json"
    path.write_text("{not json")

    store = ReadingStore(persistence_path=path)

    assert store.snapshot(BoardType.GSMB) == []
    assert "Ignoring unreadable reading store file" in caplog.text


def test_snapshot_orders_by_instant_and_keeps_arrival_on_ties() -> None:
    store = ReadingStore()
    store.append(BoardType.GSMB, {"temperature": 1, "timestamp": "2024-01-01T00:00:00Z"})
    store.append(BoardType.GSMB, {"temperature": 2, "timestamp": "2024-01-01T00:00:00.000Z"})
    store.append(BoardType.GSMB, {"temperature": 3, "timestamp": "2024-01-01T00:00:00.500Z"})
    store.append(BoardType.GSMB, {"temperature": 0, "timestamp": "2023-12-31T23:00:00-02:00"})

    snapshot = store.snapshot(BoardType.GSMB)

    assert [reading.get("temperature") for reading in snapshot] == [1, 2, 3, 0]
    assert latest_reading(snapshot).get("temperature") == 0


def test_equal_instants_resolve_to_last_appended() -> None:
    store = ReadingStore()
    store.append(BoardType.GSMB, {"temperature": 1, "timestamp": "2024-01-01T00:00:00Z"})
    store.append(BoardType.GSMB, {"temperature": 2, "timestamp": "2024-01-01T00:00:00.000Z"})

    assert latest_reading(store.snapshot(BoardType.GSMB)).get("temperature") == 2
