"""
Pipeline Event Bus

Topic-based publish/subscribe over asyncio queues. The pipeline publishes a
progress event whenever a source finishes fetching and one more when the run
completes or fails. Consumers subscribe to a topic and read events from their
own queue independently of each other. The CLI subscribes to both topics and
logs every event at DEBUG once the run ends; embedding callers can subscribe
their own consumers.

Topics:
    FETCH_TOPIC: {"event": "source_fetched", "exchange", "records", "complete"}
    PIPELINE_TOPIC: {"event": "pipeline_completed" | "pipeline_failed", ...}
"""

import asyncio
from collections import defaultdict
from typing import Any, DefaultDict, Dict, List, Set

from core.logging import get_logger

FETCH_TOPIC = "fetch"
PIPELINE_TOPIC = "pipeline"


class EventBus:
    """
    Async event bus keyed by topic.

    Every subscriber owns a bounded queue. A full queue loses the event for
    that subscriber only, and the loss is counted per topic.
    """

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._topics: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._dropped: DefaultDict[str, int] = defaultdict(int)
        self._max_queue_size = max_queue_size
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    async def subscribe(self, topic: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._topics[topic].add(queue)
        self._logger.debug(f"Subscribed to '{topic}' ({len(self._topics[topic])} subscribers)")
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        """Detach ``queue`` from ``topic`` and discard anything it still holds."""
        async with self._lock:
            subscribers = self._topics.get(topic)
            if subscribers and queue in subscribers:
                subscribers.remove(queue)
                drain(queue)
        self._logger.debug(f"Unsubscribed from '{topic}' ({self.subscriber_count(topic)} subscribers)")

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, set()))

    def dropped(self, topic: str) -> int:
        """Number of deliveries lost on ``topic`` because a queue was full."""
        return self._dropped.get(topic, 0)

    async def publish(self, topic: str, event: Dict[str, Any]) -> int:
        """
        Deliver ``event`` to every subscriber of ``topic``.

        Returns:
            int: Number of queues that accepted the event
        """
        delivered = 0
        for queue in list(self._topics.get(topic, set())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                self._dropped[topic] += 1
                self._logger.warning(
                    f"Dropping '{event.get('event', '?')}' event on '{topic}': subscriber queue full"
                )
        return delivered


def drain(queue: asyncio.Queue) -> List[Dict[str, Any]]:
    """Remove and return every event currently waiting in ``queue``."""
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


# Shared bus for the CLI run
bus = EventBus()
