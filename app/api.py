"""HTTP route definitions for the service."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from app.schemas import HealthStatus, QueueStats, ReadingAccepted
from messaging.mock_sqs import MockSQSQueue, build_default_queue
from metrics.registry import METRICS_CONTENT_TYPE, MetricsRegistry, build_default_registry
from services.payloads import ReadingPayloadError, parse_reading
from settings import get_settings

router = APIRouter()


def get_queue() -> MockSQSQueue:
    return build_default_queue()


def get_registry() -> MetricsRegistry:
    return build_default_registry()


@router.post(
    "/readings",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ReadingAccepted,
    summary="Publish a sensor reading to the analysis queue.",
)
async def publish_reading(
    payload: Any = Body(..., description="Sensor reading as emitted by a field gateway."),
    queue: MockSQSQueue = Depends(get_queue),
) -> ReadingAccepted:
    body = json.dumps(payload)
    try:
        parse_reading(body)
    except ReadingPayloadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    message_id = queue.send_message(body)
    return ReadingAccepted(message_id=message_id)


@router.get(
    "/queue",
    response_model=QueueStats,
    summary="Approximate message counts for the sensor queue.",
)
async def queue_stats(queue: MockSQSQueue = Depends(get_queue)) -> QueueStats:
    return QueueStats(name=queue.name, **queue.attributes())


@router.get(
    "/metrics",
    summary="Prometheus text exposition of the worker metrics.",
    response_class=Response,
)
async def metrics(registry: MetricsRegistry = Depends(get_registry)) -> Response:
    return Response(content=registry.render(), media_type=METRICS_CONTENT_TYPE)


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> HealthStatus:
    return HealthStatus(service=get_settings().service_name)
