"""Queue consumption loop feeding readings into the analyzer."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from functools import lru_cache
from typing import Callable, List, Optional, Protocol

from datastore.history_store import build_default_history
from messaging.mock_sqs import QueueMessage, build_default_queue
from metrics.registry import MetricsRegistry, build_default_registry
from models.records import Reading
from services.analyzer import TelemetryAnalyzer
from services.payloads import ReadingPayloadError, parse_reading
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_WAIT_SECONDS = 20
DEFAULT_BACKOFF_SECONDS = 1.0


class MessageQueue(Protocol):
    name: str

    def receive_messages(self, max_messages: int, wait_seconds: float) -> List[QueueMessage]: ...

    def delete_message(self, receipt_handle: str) -> None: ...


class Analyzer(Protocol):
    def analyze_and_persist(self, reading: Reading) -> object: ...


class MessageOutcome(str, Enum):
    """What happened to one delivered message."""

    acknowledged = "acknowledged"
    payload_error = "payload_error"
    analysis_error = "analysis_error"
    ack_failed = "ack_failed"


class QueueConsumer:
    """Polls the sensor queue and deletes each message only once it is fully analyzed.

    Delivery is at-least-once: anything that is not acknowledged reappears
    after the queue's visibility timeout, so the consumer never retries
    locally and never dead-letters on its own.
    """

    def __init__(
        self,
        queue: MessageQueue,
        analyzer: Analyzer,
        metrics: Optional[MetricsRegistry] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        wait_seconds: float = DEFAULT_WAIT_SECONDS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.queue = queue
        self.analyzer = analyzer
        self.metrics = metrics
        self.batch_size = batch_size
        self.wait_seconds = wait_seconds
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run(self, stop_event: threading.Event) -> None:
        """Consume until ``stop_event`` is set.

        The event is only checked between batches; a batch that has been
        received is always processed to the end.
        """
        logger.info("Starting consumption of queue", extra={"queue": self.queue.name})
        while not stop_event.is_set():
            try:
                messages = self._receive()
            except Exception:
                logger.exception(
                    "Failed to receive messages; retrying in %.1fs",
                    self.backoff_seconds,
                    extra={"queue": self.queue.name},
                )
                if self.metrics is not None:
                    self.metrics.queue_poll_failures.inc()
                self._backoff(stop_event)
                continue
            for message in messages:
                self.process_message(message)
        logger.info("Stopped consumption of queue", extra={"queue": self.queue.name})

    def process_batch(self) -> List[MessageOutcome]:
        """Receive one batch and handle its messages in order.

        Errors raised while polling propagate; per-message failures never do.
        """
        return [self.process_message(message) for message in self._receive()]

    def process_message(self, message: QueueMessage) -> MessageOutcome:
        outcome = self._handle(message)
        if self.metrics is not None:
            self.metrics.queue_messages.labels(outcome=outcome.value).inc()
        return outcome

    def start(self) -> None:
        """Run the loop on a background thread owned by this consumer."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name=f"consumer-{self.queue.name}",
            daemon=True,
        )
        self._thread.start()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if wait and thread is not None:
            thread.join(timeout=timeout)
        self._thread = None

    def _receive(self) -> List[QueueMessage]:
        return self.queue.receive_messages(
            max_messages=self.batch_size, wait_seconds=self.wait_seconds
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _handle(self, message: QueueMessage) -> MessageOutcome:
        context = {
            "queue": self.queue.name,
            "message_id": message.message_id,
            "receive_count": message.receive_count,
        }

        try:
            reading = parse_reading(message.body)
        except ReadingPayloadError as exc:
            logger.error("Discarding undecodable message: %s", exc, extra=context)
            return MessageOutcome.payload_error
        except Exception:
            logger.exception("Failed to decode message", extra=context)
            return MessageOutcome.payload_error

        context["reading_id"] = str(reading.id)
        try:
            self.analyzer.analyze_and_persist(reading)
        except Exception:
            logger.exception("Failed to analyze message", extra=context)
            return MessageOutcome.analysis_error

        try:
            self.queue.delete_message(message.receipt_handle)
        except Exception:
            logger.exception("Failed to acknowledge message", extra=context)
            return MessageOutcome.ack_failed

        logger.debug("Message acknowledged", extra=context)
        return MessageOutcome.acknowledged

    def _backoff(self, stop_event: threading.Event) -> None:
        if self._sleep is not None:
            self._sleep(self.backoff_seconds)
        else:
            stop_event.wait(self.backoff_seconds)


@lru_cache
def build_default_consumer() -> QueueConsumer:
    """Factory that wires the consumer with the default mocks."""
    settings = get_settings()
    metrics = build_default_registry()
    analyzer = TelemetryAnalyzer(store=build_default_history(), metrics=metrics)
    return QueueConsumer(
        queue=build_default_queue(),
        analyzer=analyzer,
        metrics=metrics,
        batch_size=settings.consumer_batch_size,
        wait_seconds=settings.consumer_wait_seconds,
        backoff_seconds=settings.consumer_backoff_seconds,
    )
