"""Unit tests for the append-only history collection."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from datastore.history_store import DuplicateReadingError, MockHistoryCollection
from models.records import Reading, SensorType


def _sample_reading(field_id=None) -> Reading:
    return Reading(
        id=uuid4(),
        field_id=field_id or uuid4(),
        sensor_type=SensorType.HUMIDITY,
        raw_sensor_type="Umidade",
        value=27.5,
        timestamp=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        sensor_device_id=uuid4(),
        farmer_name="Ana Souza",
        property_name="Fazenda Boa Vista",
        field_name="Talhao 3",
    )


def test_add_stores_document_with_reading_fields() -> None:
    collection = MockHistoryCollection(name="SensorDataHistory")
    reading = _sample_reading()

    document_id = collection.add(reading)

    [document] = collection.find()
    assert document["_id"] == document_id
    assert document["reading_id"] == str(reading.id)
    assert document["sensor_type"] == "Umidade"
    assert document["value"] == 27.5
    assert document["timestamp"] == "2024-06-01T12:00:00+00:00"


def test_duplicate_reading_ids_are_accepted_by_default() -> None:
    collection = MockHistoryCollection(name="SensorDataHistory")
    reading = _sample_reading()

    first = collection.add(reading)
    second = collection.add(reading)

    assert first != second
    assert collection.count() == 2


def test_unique_reading_ids_rejects_repeats() -> None:
    collection = MockHistoryCollection(name="SensorDataHistory", unique_reading_ids=True)
    reading = _sample_reading()
    collection.add(reading)

    with pytest.raises(DuplicateReadingError):
        collection.add(reading)

    assert collection.count() == 1


def test_find_filters_by_field() -> None:
    collection = MockHistoryCollection(name="SensorDataHistory")
    field_id = uuid4()
    collection.add(_sample_reading(field_id))
    collection.add(_sample_reading())
    collection.add(_sample_reading(field_id))

    documents = collection.find(field_id=field_id)

    assert len(documents) == 2
    assert {doc["field_id"] for doc in documents} == {str(field_id)}


def test_find_returns_copies() -> None:
    collection = MockHistoryCollection(name="SensorDataHistory")
    collection.add(_sample_reading())

    collection.find()[0]["value"] = -1.0

    assert collection.find()[0]["value"] == 27.5


def test_documents_persist_as_json_lines_and_reload(tmp_path) -> None:
    path = tmp_path / "history" / "readings.jsonl"
    collection = MockHistoryCollection(name="SensorDataHistory", persistence_path=path)
    reading = _sample_reading()
    collection.add(reading)
    collection.add(reading)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["reading_id"] == str(reading.id)

    reloaded = MockHistoryCollection(
        name="SensorDataHistory", persistence_path=path, unique_reading_ids=True
    )
    assert reloaded.count() == 2
    with pytest.raises(DuplicateReadingError):
        reloaded.add(reading)


def test_unreadable_lines_are_skipped_on_reload(tmp_path) -> None:
    path = tmp_path / "readings.jsonl"
    path.write_text('{"reading_id": "a", "field_id": "f"}\nnot-json\n\n', encoding="utf-8")

    collection = MockHistoryCollection(name="SensorDataHistory", persistence_path=path)

    assert collection.count() == 1
