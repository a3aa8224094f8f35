"""Threshold rules applied to every archived sensor reading."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol

from metrics.registry import MetricsRegistry
from models.records import Reading, SensorType

logger = logging.getLogger(__name__)

DROUGHT_HUMIDITY_PERCENT = 30.0
FROST_TEMPERATURE_CELSIUS = 5.0
HEAT_TEMPERATURE_CELSIUS = 35.0
STORM_PRESSURE_HPA = 1000.0


class HistoryStore(Protocol):
    def add(self, reading: Reading) -> object: ...


class AlertKind(str, Enum):
    drought = "DROUGHT"
    frost = "FROST"
    heat = "EXCESSIVE HEAT"
    storm = "STORM / LOW PRESSURE"


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    reading: Reading
    display_value: str


class TelemetryAnalyzer:
    """Archives readings, then updates gauges and raises threshold alerts."""

    def __init__(self, store: HistoryStore, metrics: MetricsRegistry) -> None:
        self.store = store
        self.metrics = metrics
        self._rules: Dict[SensorType, Callable[[Reading], Optional[Alert]]] = {
            SensorType.HUMIDITY: self._process_humidity,
            SensorType.TEMPERATURE: self._process_temperature,
            SensorType.PRESSURE: self._process_pressure,
        }

    def analyze_and_persist(self, reading: Reading) -> Optional[Alert]:
        """Archive ``reading`` and evaluate the rules for its sensor type.

        The archive write happens first and always, so a reading is kept even
        when its type is unknown. Errors from the store propagate untouched.
        Returns the alert raised, if any.
        """
        self.store.add(reading)
        self.metrics.events_processed.inc()

        rule = self._rules.get(reading.sensor_type)
        if rule is None:
            logger.warning(
                "Unrecognized sensor type %r; reading archived without analysis",
                reading.raw_sensor_type,
                extra={
                    "reading_id": str(reading.id),
                    "field_id": str(reading.field_id),
                    "sensor_type": reading.raw_sensor_type,
                },
            )
            return None

        alert = rule(reading)
        if alert is not None:
            self._log_alert(alert)
        return alert

    def _process_humidity(self, reading: Reading) -> Optional[Alert]:
        labels = reading.metric_labels()
        self.metrics.soil_humidity.labels(**labels).set(reading.value)

        if reading.value < DROUGHT_HUMIDITY_PERCENT:
            self.metrics.drought_alerts.labels(**labels).inc()
            return Alert(AlertKind.drought, reading, f"{reading.value}%")
        return None

    def _process_temperature(self, reading: Reading) -> Optional[Alert]:
        labels = reading.metric_labels()
        self.metrics.ambient_temperature.labels(**labels).set(reading.value)

        if reading.value < FROST_TEMPERATURE_CELSIUS:
            self.metrics.frost_alerts.labels(**labels).inc()
            return Alert(AlertKind.frost, reading, f"{reading.value}°C")
        if reading.value > HEAT_TEMPERATURE_CELSIUS:
            self.metrics.heat_alerts.labels(**labels).inc()
            return Alert(AlertKind.heat, reading, f"{reading.value}°C")
        return None

    def _process_pressure(self, reading: Reading) -> Optional[Alert]:
        labels = reading.metric_labels()
        self.metrics.atmospheric_pressure.labels(**labels).set(reading.value)

        # Sea-level pressure sits around 1013 hPa.
        if reading.value < STORM_PRESSURE_HPA:
            self.metrics.storm_alerts.labels(**labels).inc()
            return Alert(AlertKind.storm, reading, f"{reading.value} hPa")
        return None

    @staticmethod
    def _log_alert(alert: Alert) -> None:
        reading = alert.reading
        logger.warning(
            "ALERT %s detected at field %s (%s / %s / %s) | value: %s",
            alert.kind.value,
            reading.field_id,
            reading.farmer_name or "-",
            reading.property_name or "-",
            reading.field_name or "-",
            alert.display_value,
            extra={
                "alert": alert.kind.value,
                "reading_id": str(reading.id),
                "field_id": str(reading.field_id),
                "sensor_type": reading.sensor_type.value,
                "value": reading.value,
            },
        )
