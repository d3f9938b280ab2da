"""Broker publishers for worker task envelopes."""

from __future__ import annotations

import json
import logging
import threading
from typing import Protocol

from ticketflow.core.config import settings
from ticketflow.core.redis_client import get_sync_redis_client
from ticketflow.services.errors import PublishFailure

logger = logging.getLogger(__name__)


class TaskPublisher(Protocol):
    def publish(self, topic: str, message: dict) -> None: ...


class RedisStreamPublisher:
    """
    Append envelopes to a Redis Stream named after the topic.

    Workers read with consumer groups (XREADGROUP/XACK), which gives durable
    at-least-once delivery; retry and dead-lettering live on the consumer side.
    """

    def __init__(self, client, *, maxlen: int | None = None) -> None:
        self._client = client
        self._maxlen = maxlen

    def publish(self, topic: str, message: dict) -> None:
        try:
            self._client.xadd(
                topic,
                {"body": json.dumps(message)},
                maxlen=self._maxlen,
                approximate=True,
            )
        except Exception as exc:
            raise PublishFailure(f"XADD to {topic} failed: {exc}") from exc


class InMemoryPublisher:
    """Keeps published envelopes in process. Used with REDIS_URL=memory:// and in tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: list[tuple[str, dict]] = []

    def publish(self, topic: str, message: dict) -> None:
        with self._lock:
            self.messages.append((topic, message))

    def by_topic(self, topic: str) -> list[dict]:
        with self._lock:
            return [message for t, message in self.messages if t == topic]

    def clear(self) -> None:
        with self._lock:
            self.messages.clear()


def get_task_publisher() -> TaskPublisher:
    client = get_sync_redis_client()
    if client is None:
        logger.warning("REDIS_URL not configured - task envelopes kept in memory only")
        return InMemoryPublisher()
    return RedisStreamPublisher(client, maxlen=settings.TASK_STREAM_MAXLEN)
