from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.consumer import build_default_consumer
from settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    consumer = build_default_consumer()
    if settings.consumer_enabled:
        consumer.start()
    try:
        yield
    finally:
        consumer.shutdown(
            timeout=settings.consumer_wait_seconds + settings.consumer_backoff_seconds + 1
        )
        build_default_consumer.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Agro Analysis Worker",
        description="Consumes field sensor readings, archives them and raises threshold alerts.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
