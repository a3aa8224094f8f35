import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID, uuid4

import pytest

from metrics.registry import MetricsRegistry
from models.records import Reading, SensorType
from services.analyzer import AlertKind, TelemetryAnalyzer

FIELD_ID = UUID("6f1c2a8e-3d4b-4e5f-9a0b-1c2d3e4f5a6b")
LABELS = {
    "farmer_name": "Ana Souza",
    "property_name": "Fazenda Boa Vista",
    "field_name": "Talhao 3",
    "field_id": str(FIELD_ID),
}

ALERT_COUNTERS = (
    "agro_alert_drought_total",
    "agro_alert_frost_total",
    "agro_alert_heat_total",
    "agro_alert_storm_total",
)
GAUGES = (
    "agro_soil_humidity_percent",
    "agro_temperature_celsius",
    "agro_pressure_hpa",
)


class RecordingStore:
    def __init__(self) -> None:
        self.readings: List[Reading] = []

    def add(self, reading: Reading) -> str:
        self.readings.append(reading)
        return str(len(self.readings))


class FailingStore:
    def add(self, reading: Reading) -> str:
        raise ConnectionError("history store unavailable")


def _reading(raw_type: str, value: float) -> Reading:
    return Reading(
        id=uuid4(),
        field_id=FIELD_ID,
        sensor_type=SensorType.parse(raw_type),
        raw_sensor_type=raw_type,
        value=value,
        timestamp=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        sensor_device_id=uuid4(),
        farmer_name=LABELS["farmer_name"],
        property_name=LABELS["property_name"],
        field_name=LABELS["field_name"],
    )


def _alert_counts(metrics: MetricsRegistry) -> dict:
    return {name: metrics.sample(name, LABELS) for name in ALERT_COUNTERS}


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def analyzer(store: RecordingStore, metrics: MetricsRegistry) -> TelemetryAnalyzer:
    return TelemetryAnalyzer(store=store, metrics=metrics)


@pytest.mark.parametrize(
    ("raw_type", "value", "expected_alert", "counter"),
    [
        ("Humidity", 25.0, AlertKind.drought, "agro_alert_drought_total"),
        ("Humidity", 30.0, None, None),
        ("Humidity", 40.0, None, None),
        ("Temperature", 4.0, AlertKind.frost, "agro_alert_frost_total"),
        ("Temperature", 36.0, AlertKind.heat, "agro_alert_heat_total"),
        ("Temperature", 25.0, None, None),
        ("Temperature", 5.0, None, None),
        ("Temperature", 35.0, None, None),
        ("Pressure", 990.0, AlertKind.storm, "agro_alert_storm_total"),
        ("Pressure", 1000.0, None, None),
        ("Pressure", 1013.0, None, None),
    ],
)
def test_threshold_rules(analyzer, store, metrics, raw_type, value, expected_alert, counter) -> None:
    alert = analyzer.analyze_and_persist(_reading(raw_type, value))

    assert len(store.readings) == 1
    assert metrics.sample("agro_events_processed_total") == 1.0

    counts = _alert_counts(metrics)
    if expected_alert is None:
        assert alert is None
        assert all(count in (None, 0.0) for count in counts.values())
    else:
        assert alert is not None
        assert alert.kind is expected_alert
        assert counts.pop(counter) == 1.0
        assert all(count in (None, 0.0) for count in counts.values())


@pytest.mark.parametrize(
    ("raw_type", "gauge"),
    [
        ("Humidity", "agro_soil_humidity_percent"),
        ("temperature", "agro_temperature_celsius"),
        ("PRESSURE", "agro_pressure_hpa"),
    ],
)
def test_gauge_tracks_last_value_per_field(analyzer, metrics, raw_type, gauge) -> None:
    analyzer.analyze_and_persist(_reading(raw_type, 42.0))
    analyzer.analyze_and_persist(_reading(raw_type, 43.5))

    assert metrics.sample(gauge, LABELS) == 43.5


def test_unrecognized_type_is_archived_and_warned(analyzer, store, metrics, caplog) -> None:
    reading = _reading("Luminosity", 800.0)

    with caplog.at_level(logging.WARNING, logger="services.analyzer"):
        alert = analyzer.analyze_and_persist(reading)

    assert alert is None
    assert store.readings == [reading]
    for name in GAUGES + ALERT_COUNTERS:
        assert metrics.sample(name, LABELS) is None
    messages = [record.getMessage() for record in caplog.records]
    assert any("Unrecognized sensor type 'Luminosity'" in message for message in messages)


def test_alert_is_logged_with_field_context(analyzer, caplog) -> None:
    reading = _reading("Temperature", 2.5)

    with caplog.at_level(logging.WARNING, logger="services.analyzer"):
        analyzer.analyze_and_persist(reading)

    records = [record for record in caplog.records if getattr(record, "alert", None)]
    assert len(records) == 1
    record = records[0]
    assert record.alert == "FROST"
    assert record.field_id == str(FIELD_ID)
    assert record.reading_id == str(reading.id)
    assert "Talhao 3" in record.getMessage()
    assert "2.5°C" in record.getMessage()


def test_archive_happens_before_metrics_and_errors_propagate(metrics) -> None:
    analyzer = TelemetryAnalyzer(store=FailingStore(), metrics=metrics)

    with pytest.raises(ConnectionError):
        analyzer.analyze_and_persist(_reading("Humidity", 10.0))

    assert metrics.sample("agro_events_processed_total") == 0.0
    assert metrics.sample("agro_alert_drought_total", LABELS) is None


def test_redelivered_reading_is_counted_twice(analyzer, store, metrics) -> None:
    reading = _reading("Pressure", 980.0)

    analyzer.analyze_and_persist(reading)
    analyzer.analyze_and_persist(reading)

    assert [r.id for r in store.readings] == [reading.id, reading.id]
    assert metrics.sample("agro_events_processed_total") == 2.0
    assert metrics.sample("agro_alert_storm_total", LABELS) == 2.0


def test_fields_are_partitioned_by_labels(analyzer, metrics) -> None:
    other_field = uuid4()
    first = _reading("Humidity", 20.0)
    second = Reading(
        id=uuid4(),
        field_id=other_field,
        sensor_type=SensorType.HUMIDITY,
        raw_sensor_type="Humidity",
        value=55.0,
        timestamp=first.timestamp,
        farmer_name="Bruno Lima",
        property_name="Sitio Alto",
        field_name="Norte",
    )

    analyzer.analyze_and_persist(first)
    analyzer.analyze_and_persist(second)

    assert metrics.sample("agro_soil_humidity_percent", LABELS) == 20.0
    assert metrics.sample("agro_soil_humidity_percent", second.metric_labels()) == 55.0
    assert metrics.sample("agro_alert_drought_total", second.metric_labels()) is None
