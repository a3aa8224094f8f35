"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID


class SensorType(str, Enum):
    """Sensor families the analyzer knows how to route."""

    HUMIDITY = "Humidity"
    TEMPERATURE = "Temperature"
    PRESSURE = "Pressure"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def parse(cls, raw: str) -> "SensorType":
        """Map a producer-supplied type name onto a member.

        Matching ignores case and surrounding whitespace. Unknown names map to
        ``UNRECOGNIZED`` rather than failing, so new sensor families can be
        archived before the analyzer learns about them.
        """
        return _SENSOR_TYPE_NAMES.get(raw.strip().casefold(), cls.UNRECOGNIZED)


_SENSOR_TYPE_NAMES: Dict[str, SensorType] = {
    "humidity": SensorType.HUMIDITY,
    "umidade": SensorType.HUMIDITY,
    "temperature": SensorType.TEMPERATURE,
    "temperatura": SensorType.TEMPERATURE,
    "pressure": SensorType.PRESSURE,
    "pressao": SensorType.PRESSURE,
    "pressão": SensorType.PRESSURE,
}


@dataclass(frozen=True, slots=True)
class Reading:
    """A single sensor sample delivered through the queue."""

    id: UUID
    field_id: UUID
    sensor_type: SensorType
    raw_sensor_type: str
    value: float
    timestamp: datetime
    sensor_device_id: Optional[UUID] = None
    farmer_name: str = ""
    property_name: str = ""
    field_name: str = ""

    def metric_labels(self) -> Dict[str, str]:
        return {
            "farmer_name": self.farmer_name,
            "property_name": self.property_name,
            "field_name": self.field_name,
            "field_id": str(self.field_id),
        }

    def to_document(self) -> Dict[str, Any]:
        """Return the JSON-ready representation stored in the history collection."""
        return {
            "reading_id": str(self.id),
            "field_id": str(self.field_id),
            "sensor_type": self.raw_sensor_type,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
            "sensor_device_id": (
                str(self.sensor_device_id) if self.sensor_device_id is not None else None
            ),
            "farmer_name": self.farmer_name,
            "property_name": self.property_name,
            "field_name": self.field_name,
        }
