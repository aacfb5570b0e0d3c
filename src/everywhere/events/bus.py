"""In-memory change notification bus with topic-based pub/sub."""

import asyncio
import uuid
from collections.abc import AsyncIterator

import structlog

from everywhere.events.types import DomainEvent

logger = structlog.get_logger()


class EventBus:
    """Async event bus with topic-based fan-out and backpressure.

    Every provider and the search service hold their own subscription, so
    releasing a listener is just cancelling the task that consumes it.
    Overflowing subscriber queues drop their oldest event.

    Attributes:
        queue_size: Maximum size of each subscriber queue.
        max_subscribers: Maximum number of concurrent subscribers.
    """

    def __init__(
        self,
        queue_size: int = 100,
        max_subscribers: int = 100,
    ) -> None:
        """Initialize event bus.

        Args:
            queue_size: Maximum items per subscriber queue.
            max_subscribers: Maximum concurrent subscribers allowed.
        """
        self._subscribers: dict[str, dict[str, asyncio.Queue[DomainEvent]]] = {
            "files": {},
            "documents": {},
            "workspace": {},
            "*": {},
        }
        self._queue_size = queue_size
        self._max_subscribers = max_subscribers
        self._dropped_count = 0
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        """Total number of active subscribers across all topics."""
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def dropped_events(self) -> int:
        """Total number of events dropped due to queue overflow."""
        return self._dropped_count

    async def publish(self, event: DomainEvent) -> int:
        """Publish event to subscribers of its topic and to wildcard subscribers.

        Args:
            event: Change notification to publish.

        Returns:
            Number of subscribers that received the event.
        """
        delivered = 0

        for topic in (event.topic, "*"):
            subscribers = self._subscribers.get(topic, {})
            for queue in list(subscribers.values()):
                try:
                    queue.put_nowait(event)
                    delivered += 1
                except asyncio.QueueFull:
                    try:
                        queue.get_nowait()
                        queue.put_nowait(event)
                        delivered += 1
                        self._dropped_count += 1
                    except asyncio.QueueEmpty:
                        pass

        logger.debug(
            "event_published",
            event_type=event.type.value,
            uri=event.uri,
            delivered_to=delivered,
        )
        return delivered

    async def subscribe(
        self,
        topic: str = "*",
    ) -> tuple[str, AsyncIterator[DomainEvent]]:
        """Subscribe to events on a topic.

        The subscription is registered immediately; the returned iterator
        unsubscribes when it is closed or its consuming task is cancelled.

        Args:
            topic: Topic to subscribe to. Use "*" for all events.

        Returns:
            Tuple of (subscriber_id, event_iterator).

        Raises:
            ValueError: If maximum subscribers reached.
        """
        async with self._lock:
            if self.subscriber_count >= self._max_subscribers:
                raise ValueError("Maximum subscribers reached")

            subscriber_id = str(uuid.uuid4())
            queue: asyncio.Queue[DomainEvent] = asyncio.Queue(
                maxsize=self._queue_size,
            )

            if topic not in self._subscribers:
                topic = "*"

            self._subscribers[topic][subscriber_id] = queue

        async def event_iterator() -> AsyncIterator[DomainEvent]:
            try:
                while True:
                    yield await queue.get()
            finally:
                self._discard(topic, subscriber_id)

        return subscriber_id, event_iterator()

    async def unsubscribe(self, topic: str, subscriber_id: str) -> None:
        """Remove a subscriber from the bus.

        Args:
            topic: Topic the subscriber was subscribed to.
            subscriber_id: ID of the subscriber to remove.
        """
        async with self._lock:
            self._discard(topic, subscriber_id)

    def _discard(self, topic: str, subscriber_id: str) -> None:
        subscribers = self._subscribers.get(topic, {})
        if subscribers.pop(subscriber_id, None) is not None:
            logger.debug(
                "subscriber_removed",
                subscriber_id=subscriber_id,
                topic=topic,
            )
