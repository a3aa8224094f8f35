from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from threading import Condition
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from settings import get_settings

MAX_MESSAGES_PER_RECEIVE = 10
MAX_WAIT_SECONDS = 20


@dataclass(frozen=True)
class QueueMessage:
    """A delivered message as seen by a consumer."""

    message_id: str
    receipt_handle: str
    body: str
    receive_count: int


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    visible_at: float
    receive_count: int = 0
    receipt_handle: Optional[str] = None


class MockSQSQueue:
    """In-process queue with SQS delivery semantics.

    Received messages stay on the queue, hidden for ``visibility_timeout``
    seconds, until they are deleted with the receipt handle of their latest
    delivery. Undeleted messages reappear and are delivered again. When
    ``max_receive_count`` is set, a message that would exceed it is moved to
    the dead-letter list instead.

    ``clock`` drives visibility only; long-poll waits always run on real time.
    """

    def __init__(
        self,
        name: str,
        visibility_timeout: float = 30.0,
        max_receive_count: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.visibility_timeout = visibility_timeout
        self.max_receive_count = max_receive_count
        self._clock = clock
        self._messages: "OrderedDict[str, _StoredMessage]" = OrderedDict()
        self._dead_letters: List[_StoredMessage] = []
        self._condition = Condition()

    def send_message(self, body: str) -> str:
        message_id = str(uuid4())
        now = self._clock()
        with self._condition:
            self._messages[message_id] = _StoredMessage(
                message_id=message_id, body=body, visible_at=now
            )
            self._condition.notify_all()
        return message_id

    def receive_messages(
        self, max_messages: int = 1, wait_seconds: float = 0
    ) -> List[QueueMessage]:
        if not 1 <= max_messages <= MAX_MESSAGES_PER_RECEIVE:
            raise ValueError(
                f"max_messages must be between 1 and {MAX_MESSAGES_PER_RECEIVE}, got {max_messages}."
            )
        if not 0 <= wait_seconds <= MAX_WAIT_SECONDS:
            raise ValueError(
                f"wait_seconds must be between 0 and {MAX_WAIT_SECONDS}, got {wait_seconds}."
            )

        deadline = time.monotonic() + wait_seconds
        last_seen: Optional[float] = None
        with self._condition:
            while True:
                delivered = self._deliver(max_messages)
                remaining = deadline - time.monotonic()
                if delivered or remaining <= 0:
                    return delivered
                now = self._clock()
                # A clock that has not moved cannot reveal hidden messages.
                if now == last_seen:
                    timeout = remaining
                else:
                    timeout = min(remaining, self._next_visible_in(now))
                last_seen = now
                self._condition.wait(timeout=timeout)

    def delete_message(self, receipt_handle: str) -> None:
        with self._condition:
            for message_id, stored in self._messages.items():
                if stored.receipt_handle == receipt_handle:
                    del self._messages[message_id]
                    return
        raise KeyError(
            f"Receipt handle {receipt_handle!r} is not valid for queue {self.name!r}."
        )

    def attributes(self) -> Dict[str, int]:
        now = self._clock()
        with self._condition:
            visible = sum(1 for stored in self._messages.values() if stored.visible_at <= now)
            return {
                "visible": visible,
                "in_flight": len(self._messages) - visible,
                "dead_lettered": len(self._dead_letters),
            }

    def dead_letters(self) -> List[str]:
        """Bodies of messages moved aside by the redrive policy."""
        with self._condition:
            return [stored.body for stored in self._dead_letters]

    def _deliver(self, max_messages: int) -> List[QueueMessage]:
        now = self._clock()
        delivered: List[QueueMessage] = []
        for message_id in list(self._messages):
            if len(delivered) >= max_messages:
                break
            stored = self._messages[message_id]
            if stored.visible_at > now:
                continue
            if (
                self.max_receive_count is not None
                and stored.receive_count >= self.max_receive_count
            ):
                del self._messages[message_id]
                self._dead_letters.append(stored)
                continue
            stored.receive_count += 1
            stored.receipt_handle = f"{message_id}:{uuid4().hex}"
            stored.visible_at = now + self.visibility_timeout
            delivered.append(
                QueueMessage(
                    message_id=stored.message_id,
                    receipt_handle=stored.receipt_handle,
                    body=stored.body,
                    receive_count=stored.receive_count,
                )
            )
        return delivered

    def _next_visible_in(self, now: float) -> float:
        if not self._messages:
            return MAX_WAIT_SECONDS
        soonest = min(stored.visible_at for stored in self._messages.values())
        return max(soonest - now, 0.01)


@lru_cache
def build_default_queue(name: Optional[str] = None) -> MockSQSQueue:
    settings = get_settings()
    queue_name = settings.queue_name if name is None else name
    return MockSQSQueue(
        name=queue_name,
        visibility_timeout=settings.queue_visibility_timeout,
        max_receive_count=settings.queue_max_receive_count,
    )
