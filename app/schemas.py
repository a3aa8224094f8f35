"""Pydantic schemas for queue payloads and the HTTP API layer."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.records import Reading, SensorType


def _normalize_key(name: str) -> str:
    return name.replace("_", "").casefold()


class ReadingPayload(BaseModel):
    """Sensor reading as published by field gateways.

    Producers are inconsistent about key casing, so keys are matched
    case-insensitively against both the camelCase aliases and the snake_case
    field names before validation.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: UUID
    field_id: UUID = Field(..., alias="fieldId")
    sensor_type: str = Field(..., alias="sensorType", min_length=1)
    value: float
    timestamp: datetime
    sensor_device_id: Optional[UUID] = Field(default=None, alias="sensorDeviceId")
    farmer_name: str = Field(default="", alias="farmerName")
    property_name: str = Field(default="", alias="propertyName")
    field_name: str = Field(default="", alias="fieldName")

    @model_validator(mode="before")
    @classmethod
    def _match_keys_case_insensitively(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        canonical: Dict[str, str] = {}
        for name, info in cls.model_fields.items():
            canonical[_normalize_key(name)] = info.alias or name
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                continue
            target = canonical.get(_normalize_key(key))
            if target is not None:
                normalized[target] = value
        return normalized

    @field_validator("value")
    @classmethod
    def _require_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("value must be a finite number")
        return value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("farmer_name", "property_name", "field_name", mode="before")
    @classmethod
    def _blank_labels(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_reading(self) -> Reading:
        return Reading(
            id=self.id,
            field_id=self.field_id,
            sensor_type=SensorType.parse(self.sensor_type),
            raw_sensor_type=self.sensor_type.strip(),
            value=self.value,
            timestamp=self.timestamp,
            sensor_device_id=self.sensor_device_id,
            farmer_name=self.farmer_name,
            property_name=self.property_name,
            field_name=self.field_name,
        )


class ReadingAccepted(BaseModel):
    """Immediate response payload after a reading is queued."""

    message_id: str = Field(..., description="Queue identifier assigned to the published reading.")


class QueueStats(BaseModel):
    """Approximate message counts for the sensor queue."""

    name: str
    visible: int = Field(..., ge=0)
    in_flight: int = Field(..., ge=0)
    dead_lettered: int = Field(..., ge=0)


class HealthStatus(BaseModel):
    status: str = "healthy"
    service: str
