from __future__ import annotations

import asyncio
import logging

from .messages import OutboundMessage, encode

logger = logging.getLogger(__name__)


class Broadcaster:
    """Fans encoded messages out to one bounded queue per UI client.

    A client that falls behind loses its oldest queued messages rather
    than stalling tick ingestion.
    """

    def __init__(self, queue_size: int = 1000) -> None:
        self.queue_size = queue_size
        self._queues: set[asyncio.Queue[str]] = set()

    def subscribe(self) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.queue_size)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        self._queues.discard(queue)

    @property
    def client_count(self) -> int:
        return len(self._queues)

    def publish(self, message: OutboundMessage) -> None:
        if not self._queues:
            return
        payload = encode(message)
        for queue in list(self._queues):
            if queue.full():
                queue.get_nowait()
                logger.debug("[UI] Client queue full; dropped oldest message")
            queue.put_nowait(payload)

    def publish_all(self, messages: list[OutboundMessage]) -> None:
        for message in messages:
            self.publish(message)
