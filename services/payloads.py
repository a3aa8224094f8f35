"""Deserialization of queue message bodies into readings."""

from __future__ import annotations

import json
from typing import Union

from pydantic import ValidationError

from app.schemas import ReadingPayload
from models.records import Reading


class ReadingPayloadError(ValueError):
    """Raised when a message body cannot be turned into a reading."""


def parse_reading(body: Union[str, bytes]) -> Reading:
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ReadingPayloadError("Payload is not valid UTF-8.") from exc

    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ReadingPayloadError(f"Payload is not valid JSON: {exc.msg}") from exc
    except (RecursionError, ValueError) as exc:
        raise ReadingPayloadError(f"Payload could not be decoded: {exc}") from exc

    if not isinstance(data, dict):
        raise ReadingPayloadError(
            f"Payload must be a JSON object, got {type(data).__name__}."
        )

    try:
        payload = ReadingPayload.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) or "payload"
            for error in exc.errors()
        )
        raise ReadingPayloadError(f"Invalid reading payload ({fields}).") from exc

    return payload.to_reading()
